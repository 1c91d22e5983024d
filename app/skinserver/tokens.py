"""
Signed, time-limited password reset tokens.

The payload carries the user id and a short fingerprint of the current
password hash, so a link stops working once it has been used.
"""
from __future__ import annotations

import hashlib

from itsdangerous import BadSignature, URLSafeTimedSerializer

from app.skinserver.models import User

RESET_SALT = "skinserver.password-reset"


class InvalidResetToken(Exception):
    pass


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key, salt=RESET_SALT)


def _fingerprint(user: User) -> str:
    return hashlib.sha256(user.password.encode("utf-8")).hexdigest()[:16]


def make_reset_token(secret_key: str, user: User) -> str:
    return _serializer(secret_key).dumps({"uid": user.uid, "fp": _fingerprint(user)})


def read_reset_token(secret_key: str, token: str, max_age: int) -> tuple[int, str]:
    """Return ``(uid, fingerprint)``; raises InvalidResetToken on bad or expired signatures."""
    try:
        data = _serializer(secret_key).loads(token, max_age=max_age)
    except BadSignature as e:  # SignatureExpired is a subclass
        raise InvalidResetToken(str(e)) from e
    if not isinstance(data, dict) or not isinstance(data.get("uid"), int):
        raise InvalidResetToken("Malformed reset token payload.")
    return data["uid"], str(data.get("fp") or "")


def token_matches_user(fingerprint: str, user: User) -> bool:
    return fingerprint == _fingerprint(user)
