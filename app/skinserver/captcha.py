from __future__ import annotations

import secrets

from captcha.image import ImageCaptcha
from flask import session

SESSION_KEY = "phrase"
PHRASE_LENGTH = 5
# no 0/O, 1/I/L lookalikes
PHRASE_ALPHABET = "abcdefghjkmnpqrstuvwxyz23456789"

_image = ImageCaptcha(width=160, height=60)


def new_phrase(length: int = PHRASE_LENGTH) -> str:
    return "".join(secrets.choice(PHRASE_ALPHABET) for _ in range(length))


def render_png(phrase: str) -> bytes:
    return _image.generate(phrase, format="png").getvalue()


def issue_captcha() -> bytes:
    """Store a fresh phrase in the session and return its PNG challenge."""
    phrase = new_phrase()
    session[SESSION_KEY] = phrase
    return render_png(phrase)


def check_captcha(answer: str | None) -> bool:
    expected = session.get(SESSION_KEY)
    if not expected or not answer:
        return False
    given = str(answer).strip().lower().encode("utf-8")
    return secrets.compare_digest(given, str(expected).lower().encode("utf-8"))
