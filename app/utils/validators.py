from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any

from flask import request

from app.utils.errors import ApiError, validation_error

_YMD_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")


def require_json() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise validation_error("JSON body must be an object")
    return body


def require_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise validation_error(f"{field} must be an integer", {"field": field})
    try:
        out = int(str(value).strip())
    except Exception as e:
        raise validation_error(f"{field} must be an integer", {"field": field}) from e
    if out <= 0:
        raise validation_error(f"{field} must be positive", {"field": field})
    return out


def require_str(value: Any, field: str) -> str:
    s = str(value or "").strip()
    if not s:
        raise validation_error(f"{field} is required", {"field": field})
    return s


def optional_str(value: Any) -> str | None:
    s = str(value or "").strip()
    return s or None


def parse_calendar_date(value: Any, field: str = "date") -> date:
    """
    Accept `YYYY-MM-DD` or an ISO datetime; the calendar date written in the
    value is kept as-is, without timezone conversion.
    """

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    m = _YMD_RE.match(str(value or "").strip())
    if not m:
        raise validation_error(f"{field} must be YYYY-MM-DD", {"field": field})
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError as e:
        raise validation_error(f"{field} is not a valid date", {"field": field}) from e


def parse_date_range(args, *, from_key: str = "from", to_key: str = "to", required: bool = True):
    """Return (start_iso, end_exclusive_iso, from_s, to_s); the end bound is the day after `to`."""
    from_s = str(args.get(from_key) or "").strip()
    to_s = str(args.get(to_key) or "").strip()
    if required and (not from_s or not to_s):
        raise ApiError("VALIDATION_ERROR", f"{from_key} and {to_key} are required (YYYY-MM-DD)", status=400)

    start = parse_calendar_date(from_s, from_key).isoformat() if from_s else None
    end = None
    if to_s:
        end = (parse_calendar_date(to_s, to_key) + timedelta(days=1)).isoformat()
    if start and end and end <= start:
        raise validation_error("Invalid date range")
    return start, end, from_s, to_s


def parse_pagination(args, *, default_limit: int = 50, max_limit: int = 500) -> tuple[int, int]:
    try:
        page = int(args.get("page") or 1)
    except Exception:
        page = 1
    try:
        limit = int(args.get("limit") or default_limit)
    except Exception:
        limit = default_limit
    return max(1, page), max(1, min(max_limit, limit))


def list_arg(args, name: str) -> list[str]:
    """Repeatable query arg (`?facility=a&facility=b`); `all` means no filter."""
    values: list[str] = []
    raw = args.getlist(name) if hasattr(args, "getlist") else [args.get(name)]
    for item in raw:
        part = str(item or "").strip()
        if part and part.lower() != "all":
            values.append(part)
    return values
