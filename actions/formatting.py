from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Optional

from dateutil import parser as dt_parser

PLACEHOLDER = "—"
PENDING = "Pending"
REJECTED = "Rejected"

_YMD_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def calendar_date(value: Any) -> Optional[date]:
    """
    Calendar date carried by a raw database/API value, or None.

    `2024-03-05` and `2024-03-05T00:00:00.000Z` both mean March 5th: the date
    written in the value is taken literally and never shifted across zones.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    s = str(value).strip()
    if not s:
        return None
    if "T" in s:
        head = s.split("T", 1)[0]
        if _YMD_RE.match(head):
            s = head
    m = _YMD_RE.match(s)
    if m:
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            return None
    try:
        return dt_parser.parse(s).date()
    except (ValueError, OverflowError):
        return None


def format_date(value: Any) -> str:
    d = calendar_date(value)
    if d is None:
        return PLACEHOLDER
    return f"{d.month}/{d.day}/{d.year}"


def format_awarded(flag: Any, value: Any) -> str:
    if flag:
        return format_date(value)
    return PENDING


def format_conference(awaiting: Any, value: Any) -> str:
    # awaiting: False/0 -> "Awaiting <date>", True/1 -> "<date>", None -> "Rejected".
    if calendar_date(value) is None:
        return PENDING
    if awaiting is None:
        return REJECTED
    if awaiting is False or (not isinstance(awaiting, bool) and awaiting == 0):
        return f"Awaiting {format_date(value)}"
    if awaiting is True or (not isinstance(awaiting, bool) and awaiting == 1):
        return format_date(value)
    return PENDING


def format_scheduled_or_done(scheduled: Any, done: Any) -> str:
    if calendar_date(done) is not None:
        return format_date(done)
    if calendar_date(scheduled) is not None:
        return f"Scheduled {format_date(scheduled)}"
    return PENDING
