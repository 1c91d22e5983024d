import pytest

from app.skinserver.models import User
from app.skinserver.tokens import InvalidResetToken, make_reset_token, read_reset_token, token_matches_user


def _user():
    u = User(uid=7, email="user@example.com")
    u.change_password("12345678")
    return u


def test_reset_token_carries_uid_and_fingerprint():
    user = _user()
    uid, fp = read_reset_token("secret", make_reset_token("secret", user), max_age=60)
    assert uid == 7
    assert token_matches_user(fp, user)

    user.change_password("another-password")
    assert not token_matches_user(fp, user)


def test_reset_token_rejects_tampering_and_other_secrets():
    token = make_reset_token("secret", _user())
    with pytest.raises(InvalidResetToken):
        read_reset_token("other-secret", token, max_age=60)
    with pytest.raises(InvalidResetToken):
        read_reset_token("secret", token[:-2] + "xx", max_age=60)
    with pytest.raises(InvalidResetToken):
        read_reset_token("secret", token, max_age=-1)
