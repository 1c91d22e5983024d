import pytest

from app.skinserver import create_app
from app.skinserver.db import session_scope
from app.skinserver.mail import Mailer
from app.skinserver.models import Base, Player, User
from app.skinserver.options import set_option

SECRET = "test-secret"


class RecordingMailer(Mailer):
    def __init__(self):
        self.sent = []

    def send(self, to, subject, body):
        self.sent.append({"to": to, "subject": subject, "body": body})


class FailingMailer(Mailer):
    def send(self, to, subject, body):
        raise RuntimeError("A fake exception.")


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", SECRET)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("MAIL_DRIVER", "smtp")
    monkeypatch.setenv("MAIL_FROM_ADDRESS", "noreply@example.com")
    for k in ("SITE_URL", "RESET_LINK_TTL", "MAIL_HOST", "MAIL_PORT"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    app.config["TESTING"] = True

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    app.extensions["mailer"] = RecordingMailer()
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def make_user(app, email="user@example.com", password="12345678", *, nickname="user", players=(), **fields) -> int:
    with session_scope(app) as s:
        u = User(
            email=email,
            nickname=nickname,
            score=fields.pop("score", 1000),
            ip=fields.pop("ip", "10.0.0.1"),
            permission=fields.pop("permission", User.NORMAL),
            **fields,
        )
        u.change_password(password)
        s.add(u)
        s.flush()
        for name in players:
            s.add(Player(uid=u.uid, player_name=name))
        return u.uid


def get_user(app, uid) -> User | None:
    with session_scope(app) as s:
        return s.get(User, uid)


def set_options(app, **values) -> None:
    with session_scope(app) as s:
        for name, value in values.items():
            set_option(s, name, value)


def login(client, identification="user@example.com", password="12345678"):
    r = client.post("/auth/login", json={"identification": identification, "password": password})
    assert r.json["errno"] == 0, r.json
    return r


def csrf_headers(client) -> dict:
    with client.session_transaction() as sess:
        sess["csrf_token"] = "csrf-test-token"
    return {"X-CSRF-Token": "csrf-test-token"}
