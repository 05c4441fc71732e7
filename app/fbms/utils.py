from __future__ import annotations

import re

from flask import request

from app.fbms.errors import ValidationError

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def json_payload() -> dict:
    """Request body as a dict; form posts are accepted too."""
    if request.is_json:
        data = request.get_json(silent=True)
        if data is None:
            raise ValidationError("Request body must be valid JSON.")
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object.")
        return data
    return request.form.to_dict()


def parse_int(value, field: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer.")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field} must be an integer.")


def parse_bool(value, field: str) -> bool:
    if isinstance(value, bool):
        return value
    raw = str(value).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValidationError(f"{field} must be a boolean.")


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))
