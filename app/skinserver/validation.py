from __future__ import annotations

import re
from dataclasses import dataclass

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s.]+$")
SPECIAL_CHARS_RE = re.compile(r"[&<>\"'\\\x00]")


@dataclass(frozen=True)
class Rule:
    field: str
    label: str | None = None
    required: bool = True
    email: bool = False
    min_len: int | None = None
    max_len: int | None = None
    no_special_chars: bool = False

    @property
    def attribute(self) -> str:
        return self.label or self.field


def is_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ""))


def has_special_chars(value: str) -> bool:
    return bool(SPECIAL_CHARS_RE.search(value)) or value != value.strip()


def _check(rule: Rule, value: object) -> str | None:
    attr = rule.attribute
    if value is None or (isinstance(value, str) and value == ""):
        return required_message(attr) if rule.required else None
    text = value if isinstance(value, str) else str(value)
    if rule.email and not is_email(text):
        return email_message(attr)
    if rule.no_special_chars and has_special_chars(text):
        return f"The {attr} may not contain special characters."
    if rule.min_len is not None and len(text) < rule.min_len:
        return min_message(attr, rule.min_len)
    if rule.max_len is not None and len(text) > rule.max_len:
        return max_message(attr, rule.max_len)
    return None


def validate(payload: dict, rules: list[Rule]) -> list[str]:
    """Validate payload fields in rule order. Returns list of errors (one per failing field)."""
    errors = []
    for rule in rules:
        err = _check(rule, payload.get(rule.field))
        if err:
            errors.append(err)
    return errors


def required_message(attribute: str) -> str:
    return f"The {attribute} field is required."


def email_message(attribute: str) -> str:
    return f"The {attribute} must be a valid email address."


def min_message(attribute: str, n: int) -> str:
    return f"The {attribute} must be at least {n} characters."


def max_message(attribute: str, n: int) -> str:
    return f"The {attribute} may not be greater than {n} characters."
