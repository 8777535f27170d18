from __future__ import annotations

from datetime import date, datetime
from typing import Any

from flask import request

_TRUE_STRINGS = {"1", "true", "on", "yes"}


def parse_date(s: Any) -> date | None:
    """Parse YYYY-MM-DD, or the date part of an ISO datetime ("2024-11-18T00:00:00.000Z")."""
    if s is None:
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    s = str(s).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        raise ValueError(f"Invalid date: {s!r}. Use YYYY-MM-DD.")


def parse_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a whole number.")
    try:
        result = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be a whole number.")
    if minimum is not None and result < minimum:
        raise ValueError(f"{field} must be at least {minimum}.")
    return result


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_STRINGS


def json_payload() -> dict:
    """JSON request body as a dict; form posts fall back to request.form."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    if request.form:
        return request.form.to_dict()
    return {}
