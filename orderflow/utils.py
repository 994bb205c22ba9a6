"""
Utility functions shared across the app. This includes:
- utcnow: naive UTC timestamp used for every server-assigned time
- parse_* helpers: payload coercion used by the engines and blueprints
- clean_text: trim strings, blank -> None
- request_payload: JSON body or form data of the current request
- check_length: string payload vs. column size, as a ValidationError
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from flask import request

from .errors import ValidationError


def utcnow() -> datetime:
    """Naive UTC now (columns are stored without tz info)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def clean_text(value: Any) -> str | None:
    """Trim a string value. Empty/whitespace -> None."""
    if value is None:
        return None
    raw = str(value).strip()
    return raw or None


def parse_optional_int(value: Any) -> int | None:
    """Parse optional int from payload/query. Returns None if empty/invalid."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_date(value: Any) -> date | None:
    """
    Parse an ISO date (YYYY-MM-DD). Datetime strings are accepted and truncated.

    Raises ValueError on malformed input; None/blank -> None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if raw == "":
        return None
    if "T" in raw or " " in raw:
        return parse_datetime(raw).date()
    return date.fromisoformat(raw)


def parse_datetime(value: Any) -> datetime | None:
    """
    Parse an ISO datetime. A trailing 'Z' is accepted; aware values are converted to naive UTC.

    Raises ValueError on malformed input; None/blank -> None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        raw = str(value).strip()
        if raw == "":
            return None
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_bool(value: Any) -> bool | None:
    """Parse a JSON/form boolean. None stays None; unknown strings raise ValueError."""
    if value is None or isinstance(value, bool):
        return value
    raw = str(value).strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def request_payload() -> dict:
    """JSON body if present, else form data, as a plain dict."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def check_length(model, key: str, value: Any) -> Any:
    """Raise ValidationError when a string exceeds the String(n) size of model.key."""
    length = getattr(model.__table__.c[key].type, "length", None)
    if isinstance(value, str) and length is not None and len(value) > length:
        raise ValidationError(f"{key} must be at most {length} characters", field=key, max_length=length)
    return value
