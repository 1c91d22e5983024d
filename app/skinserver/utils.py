from __future__ import annotations

from typing import Any

from flask import Response, jsonify, request


def result(errno: int, msg: str, **extra: Any) -> Response:
    """JSON body shared by every API endpoint: ``{"errno": ..., "msg": ..., **extra}``."""
    body: dict[str, Any] = {"errno": errno, "msg": msg}
    body.update(extra)
    return jsonify(body)


def request_payload() -> dict:
    """Request fields from a JSON body or, failing that, form data."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def field(payload: dict, name: str) -> str:
    value = payload.get(name)
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value)


def truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "on", "yes")
    return bool(value)


def wants_json() -> bool:
    if request.is_json:
        return True
    if request.headers.get("X-Requested-With") == "XMLHttpRequest":
        return True
    best = request.accept_mimetypes.best_match(["application/json", "text/html"])
    return best == "application/json" and request.accept_mimetypes[best] > request.accept_mimetypes["text/html"]
