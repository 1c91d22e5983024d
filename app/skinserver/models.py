from __future__ import annotations

import hashlib
import hmac
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from werkzeug.security import check_password_hash, generate_password_hash


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    # permission levels
    BANNED = -1
    NORMAL = 0
    ADMIN = 1
    SUPER_ADMIN = 2

    uid: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    nickname: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avatar: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    password: Mapped[str] = mapped_column(String(255), nullable=False)  # werkzeug hash
    ip: Mapped[str] = mapped_column(String(45), nullable=False, default="", index=True)
    permission: Mapped[int] = mapped_column(Integer, nullable=False, default=NORMAL)
    last_sign_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    register_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    players: Mapped[list["Player"]] = relationship(
        back_populates="owner",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Player.pid",
    )

    def change_password(self, new_password: str) -> None:
        self.password = generate_password_hash(new_password)

    def verify_password(self, raw_password: str) -> bool:
        return check_password_hash(self.password, raw_password)

    def get_token(self, secret_key: str) -> str:
        """
        Session/cookie token. Bound to the password hash, so changing the
        password invalidates every token issued before.
        """
        msg = f"{self.uid}:{self.email}:{self.password}".encode("utf-8")
        return hmac.new(secret_key.encode("utf-8"), msg, hashlib.sha256).hexdigest()

    @property
    def is_banned(self) -> bool:
        return self.permission == User.BANNED

    @property
    def is_admin(self) -> bool:
        return self.permission >= User.ADMIN

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "email": self.email,
            "nickname": self.nickname,
            "score": self.score,
            "avatar": self.avatar,
            "permission": self.permission,
            "last_sign_at": self.last_sign_at.isoformat() if self.last_sign_at else None,
            "register_at": self.register_at.isoformat() if self.register_at else None,
        }


class Player(Base):
    """A game character name bound to a user; doubles as a login identifier."""

    __tablename__ = "players"

    pid: Mapped[int] = mapped_column(Integer, primary_key=True)
    uid: Mapped[int] = mapped_column(ForeignKey("users.uid", ondelete="CASCADE"), nullable=False, index=True)
    player_name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    last_modified: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    owner: Mapped[User] = relationship(back_populates="players", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "pid": self.pid,
            "uid": self.uid,
            "player_name": self.player_name,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
        }


class Option(Base):
    __tablename__ = "options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    option_name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    option_value: Mapped[str] = mapped_column(Text, nullable=False, default="")


class AuditEvent(Base):
    """
    Append-only audit trail event.
    """

    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_uid: Mapped[int | None] = mapped_column(ForeignKey("users.uid", ondelete="SET NULL"), nullable=True)
    actor_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False, index=True)  # e.g. "auth.login"
    entity_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string
    client_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
