from datetime import datetime, timedelta

from app.skinserver.db import session_scope
from app.skinserver.models import Player, User
from app.skinserver.validation import min_message

from conftest import csrf_headers, get_user, login, make_user, set_options


def test_profile_requires_login(client):
    r = client.get("/user/")
    assert r.status_code == 401
    assert r.json["errno"] == 1


def test_profile(app, client):
    uid = make_user(app, nickname="alex")
    login(client)
    r = client.get("/user/")
    assert r.json["errno"] == 0
    assert r.json["user"]["uid"] == uid
    assert r.json["user"]["nickname"] == "alex"
    assert "password" not in r.json["user"]


def test_banned_user_is_forbidden(app, client):
    make_user(app)
    login(client)
    with session_scope(app) as s:
        s.query(User).filter(User.email == "user@example.com").one().permission = User.BANNED
    r = client.get("/user/")
    assert r.status_code == 403
    assert r.json["msg"] == "You are banned."


def test_post_without_csrf_token_is_rejected(app, client):
    make_user(app)
    login(client)
    r = client.post("/user/sign")
    assert r.status_code == 400


def test_sign(app, client):
    uid = make_user(app, score=0)
    login(client)
    headers = csrf_headers(client)

    r = client.post("/user/sign", headers=headers)
    assert r.json["errno"] == 0
    assert 10 <= r.json["acquired"] <= 100
    assert get_user(app, uid).score == r.json["acquired"]

    r = client.post("/user/sign", headers=headers)
    assert r.json["errno"] == 1
    assert 23 <= r.json["remaining_hours"] <= 24


def test_sign_respects_options(app, client):
    uid = make_user(app, score=0, last_sign_at=datetime.utcnow() - timedelta(hours=2))
    set_options(app, sign_gap_time=1, sign_score="5")
    login(client)
    r = client.post("/user/sign", headers=csrf_headers(client))
    assert r.json["acquired"] == 5
    assert get_user(app, uid).score == 5


def test_change_nickname(app, client):
    uid = make_user(app)
    login(client)
    headers = csrf_headers(client)

    r = client.post("/user/profile", json={"action": "nickname", "new_nickname": "<b>"}, headers=headers)
    assert r.json == {"errno": 1, "msg": "The nickname may not contain special characters."}

    r = client.post("/user/profile", json={"action": "nickname", "new_nickname": "steve"}, headers=headers)
    assert r.json["errno"] == 0
    assert get_user(app, uid).nickname == "steve"


def test_change_password(app, client):
    uid = make_user(app)
    login(client)
    headers = csrf_headers(client)

    r = client.post(
        "/user/profile",
        json={"action": "password", "current_password": "wrong-one", "new_password": "87654321"},
        headers=headers,
    )
    assert r.json == {"errno": 1, "msg": "Wrong password."}

    r = client.post(
        "/user/profile",
        json={"action": "password", "current_password": "12345678", "new_password": "short"},
        headers=headers,
    )
    assert r.json == {"errno": 1, "msg": min_message("new password", 8)}

    r = client.post(
        "/user/profile",
        json={"action": "password", "current_password": "12345678", "new_password": "87654321"},
        headers=headers,
    )
    assert r.json["errno"] == 0
    assert get_user(app, uid).verify_password("87654321")

    # changing the password logs the client out
    assert client.get("/user/").status_code == 401
    login(client, password="87654321")


def test_change_email(app, client):
    uid = make_user(app)
    make_user(app, email="other@example.com")
    login(client)
    headers = csrf_headers(client)

    r = client.post(
        "/user/profile",
        json={"action": "email", "new_email": "other@example.com", "password": "12345678"},
        headers=headers,
    )
    assert r.json == {"errno": 1, "msg": "This email has already been registered."}

    r = client.post(
        "/user/profile",
        json={"action": "email", "new_email": "New@Example.com", "password": "12345678"},
        headers=headers,
    )
    assert r.json["errno"] == 0
    assert get_user(app, uid).email == "new@example.com"
    login(client, identification="new@example.com")


def test_profile_unknown_action(app, client):
    make_user(app)
    login(client)
    r = client.post("/user/profile", json={"action": "explode"}, headers=csrf_headers(client))
    assert r.json == {"errno": 1, "msg": "Invalid action."}


def test_add_player(app, client):
    uid = make_user(app, score=1000)
    make_user(app, email="other@example.com", players=["Taken"])
    login(client)
    headers = csrf_headers(client)

    r = client.post("/user/players", json={"player_name": "ab"}, headers=headers)
    assert r.json == {"errno": 1, "msg": min_message("player name", 3)}

    r = client.post("/user/players", json={"player_name": "bad name!"}, headers=headers)
    assert r.json["errno"] == 1
    assert "letters, numbers and underscores" in r.json["msg"]

    r = client.post("/user/players", json={"player_name": "Taken"}, headers=headers)
    assert r.json["errno"] == 6

    r = client.post("/user/players", json={"player_name": "Steve_1"}, headers=headers)
    assert r.json["errno"] == 0
    assert r.json["player"]["player_name"] == "Steve_1"
    assert r.json["score"] == 900
    assert get_user(app, uid).score == 900

    r = client.get("/user/players")
    assert [p["player_name"] for p in r.json["players"]] == ["Steve_1"]

    # the new player name works as a login identifier
    client.post("/auth/logout")
    login(client, identification="Steve_1")


def test_add_player_needs_score(app, client):
    make_user(app, score=50)
    login(client)
    r = client.post("/user/players", json={"player_name": "Steve"}, headers=csrf_headers(client))
    assert r.json["errno"] == 7
    with session_scope(app) as s:
        assert s.query(Player).count() == 0


def test_delete_player_refunds_score(app, client):
    uid = make_user(app, score=0, players=["Steve"])
    make_user(app, email="other@example.com", players=["Alex"])
    login(client)
    headers = csrf_headers(client)

    with session_scope(app) as s:
        steve = s.query(Player).filter(Player.player_name == "Steve").one().pid
        alex = s.query(Player).filter(Player.player_name == "Alex").one().pid

    r = client.post(f"/user/players/{alex}/delete", headers=headers)
    assert r.json == {"errno": 1, "msg": "Player not found."}

    r = client.post(f"/user/players/{steve}/delete", headers=headers)
    assert r.json["errno"] == 0
    assert get_user(app, uid).score == 100
    with session_scope(app) as s:
        assert s.get(Player, steve) is None
        assert s.get(Player, alex) is not None
