"""
Site-wide option store.

Options live in the ``options`` table as strings; ``DEFAULT_OPTIONS`` names
every known option and fixes its Python type.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from app.skinserver.models import Option

DEFAULT_OPTIONS: dict[str, Any] = {
    "site_name": "Skin Server",
    "user_can_register": True,
    "regs_per_ip": 3,
    "user_initial_score": 1000,
    "score_per_player": 100,
    "player_name_length_min": 3,
    "player_name_length_max": 16,
    "sign_score": "10,100",
    "sign_gap_time": 24,
}

_TRUE_STRINGS = ("1", "true", "yes", "on")


def _coerce(name: str, raw: str) -> Any:
    default = DEFAULT_OPTIONS[name]
    # bool first: bool is a subclass of int
    if isinstance(default, bool):
        return raw.strip().lower() in _TRUE_STRINGS
    if isinstance(default, int):
        try:
            return int(raw.strip())
        except ValueError:
            return default
    return raw


def _serialize(name: str, value: Any) -> str:
    """Render a value for storage; raises ValueError when it does not fit the option type."""
    default = DEFAULT_OPTIONS[name]
    if isinstance(default, bool):
        if isinstance(value, str):
            value = value.strip().lower() in _TRUE_STRINGS
        return "true" if value else "false"
    if isinstance(default, int):
        try:
            return str(int(value))
        except (TypeError, ValueError):
            raise ValueError(f"Option {name} expects an integer, got {value!r}.")
    return str(value)


def get_option(s: Session, name: str) -> Any:
    if name not in DEFAULT_OPTIONS:
        raise KeyError(f"Unknown option: {name}")
    row = s.query(Option).filter(Option.option_name == name).one_or_none()
    if row is None:
        return DEFAULT_OPTIONS[name]
    return _coerce(name, row.option_value)


def set_option(s: Session, name: str, value: Any) -> Any:
    """Upsert an option and return its coerced value."""
    if name not in DEFAULT_OPTIONS:
        raise KeyError(f"Unknown option: {name}")
    raw = _serialize(name, value)
    row = s.query(Option).filter(Option.option_name == name).one_or_none()
    if row is None:
        row = Option(option_name=name, option_value=raw)
        s.add(row)
    else:
        row.option_value = raw
    return _coerce(name, raw)


def all_options(s: Session) -> dict[str, Any]:
    stored = {o.option_name: o.option_value for o in s.query(Option).all()}
    return {name: _coerce(name, stored[name]) if name in stored else default for name, default in DEFAULT_OPTIONS.items()}


def seed_defaults(s: Session) -> int:
    """Insert rows for options that are missing. Existing values are kept."""
    existing = {name for (name,) in s.query(Option.option_name).all()}
    added = 0
    for name, default in DEFAULT_OPTIONS.items():
        if name not in existing:
            s.add(Option(option_name=name, option_value=_serialize(name, default)))
            added += 1
    return added


def parse_score_range(raw: str) -> tuple[int, int]:
    """Parse ``"10,100"`` into ``(10, 100)``; a single number means a fixed reward."""
    parts = [p.strip() for p in (raw or "").split(",") if p.strip()]
    try:
        nums = [int(p) for p in parts]
    except ValueError:
        nums = []
    if not nums:
        return 0, 0
    lo, hi = nums[0], nums[-1]
    return (lo, hi) if lo <= hi else (hi, lo)
