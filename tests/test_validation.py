from app.skinserver.validation import Rule, has_special_chars, is_email, validate


def test_is_email():
    assert is_email("a@b.c")
    assert is_email("first.last@example.co.uk")
    assert not is_email("not_an_email")
    assert not is_email("a@b")
    assert not is_email("a b@c.d")


def test_has_special_chars():
    assert has_special_chars("\\")
    assert has_special_chars("<script>")
    assert has_special_chars(" padded ")
    assert has_special_chars("Ste\x00ve")
    assert not has_special_chars("Steve 2")


def test_validate_reports_first_failure_per_field():
    rules = [
        Rule("email", email=True),
        Rule("password", min_len=8, max_len=32),
        Rule("nickname", required=False, max_len=4),
    ]
    errors = validate({"email": "nope", "password": "1234", "nickname": ""}, rules)
    assert errors == [
        "The email must be a valid email address.",
        "The password must be at least 8 characters.",
    ]
    assert validate({"email": "a@b.c", "password": "12345678", "nickname": "abcde"}, rules) == [
        "The nickname may not be greater than 4 characters."
    ]
