from app.skinserver.db import session_scope
from app.skinserver.models import AuditEvent, User
from app.skinserver.options import get_option

from conftest import csrf_headers, get_user, login, make_user


def _login_admin(app, client, permission=User.ADMIN):
    make_user(app, email="admin@example.com", nickname="admin", permission=permission)
    login(client, identification="admin@example.com")
    return csrf_headers(client)


def test_options_require_admin(app, client):
    make_user(app)
    assert client.get("/admin/options").status_code == 401

    login(client)
    r = client.get("/admin/options")
    assert r.status_code == 403
    assert r.json["msg"] == "Permission denied."


def test_options_get_and_update(app, client):
    headers = _login_admin(app, client)

    r = client.get("/admin/options")
    assert r.json["options"]["user_can_register"] is True
    assert r.json["options"]["regs_per_ip"] == 3

    r = client.post("/admin/options", json={"user_can_register": False, "regs_per_ip": "5"}, headers=headers)
    assert r.json["errno"] == 0
    assert r.json["options"]["user_can_register"] is False
    assert r.json["options"]["regs_per_ip"] == 5

    with session_scope(app) as s:
        assert get_option(s, "user_can_register") is False
        assert s.query(AuditEvent).filter(AuditEvent.action == "admin.options").count() == 1


def test_options_reject_unknown_names(app, client):
    headers = _login_admin(app, client)
    r = client.post("/admin/options", json={"no_such_option": 1}, headers=headers)
    assert r.json == {"errno": 1, "msg": "Unknown option: no_such_option"}


def test_options_reject_bad_values(app, client):
    headers = _login_admin(app, client)
    r = client.post("/admin/options", json={"regs_per_ip": "many"}, headers=headers)
    assert r.json["errno"] == 1
    assert "expects an integer" in r.json["msg"]
    with session_scope(app) as s:
        assert get_option(s, "regs_per_ip") == 3


def test_users_list(app, client):
    headers = _login_admin(app, client)
    make_user(app, email="steve@example.com", nickname="steve")
    make_user(app, email="alex@example.com", nickname="alex")

    r = client.get("/admin/users", headers=headers)
    assert r.json["total"] == 3

    r = client.get("/admin/users?q=stev")
    assert [u["email"] for u in r.json["users"]] == ["steve@example.com"]


def test_users_search_treats_wildcards_literally(app, client):
    _login_admin(app, client)
    make_user(app, email="a_b@example.com", nickname="under")
    make_user(app, email="axb@example.com", nickname="plain")
    make_user(app, email="pct@example.com", nickname="100%")

    r = client.get("/admin/users?q=a_b")
    assert [u["email"] for u in r.json["users"]] == ["a_b@example.com"]

    r = client.get("/admin/users?q=%25")
    assert [u["email"] for u in r.json["users"]] == ["pct@example.com"]


def test_ban_user(app, client):
    headers = _login_admin(app, client)
    uid = make_user(app)

    r = client.post(f"/admin/users/{uid}/permission", json={"permission": User.BANNED}, headers=headers)
    assert r.json["errno"] == 0
    assert get_user(app, uid).permission == User.BANNED

    other = app.test_client()
    r = other.post("/auth/login", json={"identification": "user@example.com", "password": "12345678"})
    assert r.json["errno"] == 5


def test_permission_rules(app, client):
    headers = _login_admin(app, client)
    uid = make_user(app)
    peer = make_user(app, email="peer@example.com", permission=User.ADMIN)

    # an admin cannot grant its own level
    r = client.post(f"/admin/users/{uid}/permission", json={"permission": User.ADMIN}, headers=headers)
    assert r.json == {"errno": 1, "msg": "Permission denied."}

    # nor touch another admin
    r = client.post(f"/admin/users/{peer}/permission", json={"permission": User.BANNED}, headers=headers)
    assert r.json == {"errno": 1, "msg": "Permission denied."}

    r = client.post(f"/admin/users/{uid}/permission", json={"permission": 7}, headers=headers)
    assert r.json == {"errno": 1, "msg": "Invalid permission."}

    r = client.post("/admin/users/9999/permission", json={"permission": User.BANNED}, headers=headers)
    assert r.json == {"errno": 1, "msg": "User not existed."}


def test_super_admin_can_promote(app, client):
    headers = _login_admin(app, client, permission=User.SUPER_ADMIN)
    uid = make_user(app)
    r = client.post(f"/admin/users/{uid}/permission", json={"permission": User.ADMIN}, headers=headers)
    assert r.json["errno"] == 0
    assert r.json["user"]["permission"] == User.ADMIN
