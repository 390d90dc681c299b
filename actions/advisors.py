from __future__ import annotations

import logging
import re
from typing import Any, Optional

from sqlalchemy import func, select, text

from actions.audit import ADVISOR_ADDED, log_audit
from app.utils.errors import not_found, validation_error
from models import Advisor

log = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z .'\-]*$")
_BLOCKED_WORDS_RE = re.compile(
    r"\b(select|insert|update|delete|drop|union|exec|script|alter|create|truncate)\b", re.IGNORECASE
)
_BLOCKED_FRAGMENTS = ("--", ";", "<", ">", "javascript:")
MAX_NAME_LENGTH = 50


def advisor_to_dict(a: Advisor) -> dict[str, Any]:
    return {
        "advisorId": a.advisorId,
        "firstName": a.firstName,
        "lastName": a.lastName,
        "fullName": a.fullName,
    }


def validate_advisor_name(value: Any, field: str, *, required: bool = True) -> Optional[str]:
    name = re.sub(r"\s+", " ", str(value or "")).strip()
    if not name:
        if required:
            raise validation_error(f"{field} is required", {"field": field})
        return None
    if len(name) > MAX_NAME_LENGTH:
        raise validation_error(f"{field} must be at most {MAX_NAME_LENGTH} characters", {"field": field})
    lowered = name.lower()
    if any(frag in lowered for frag in _BLOCKED_FRAGMENTS) or _BLOCKED_WORDS_RE.search(name):
        raise validation_error(f"{field} contains disallowed content", {"field": field})
    if not _NAME_RE.match(name):
        raise validation_error(
            f"{field} may only contain letters, spaces, apostrophes, hyphens and periods", {"field": field}
        )
    return name


def list_advisors(db) -> list[dict[str, Any]]:
    rows = db.execute(select(Advisor).order_by(Advisor.lastName, Advisor.firstName)).scalars().all()
    return [advisor_to_dict(a) for a in rows]


def get_advisor(db, advisor_id: int) -> Advisor:
    advisor = db.get(Advisor, advisor_id)
    if advisor is None:
        raise not_found("Advisor not found", {"advisorId": advisor_id})
    return advisor


def add_advisor(db, *, first_name: Any, last_name: Any, user: str, ip_address: str | None = None) -> Advisor:
    first = validate_advisor_name(first_name, "firstName")
    last = validate_advisor_name(last_name, "lastName", required=False)

    advisor = Advisor(firstName=first, lastName=last)
    db.add(advisor)
    db.flush()

    log_audit(
        db,
        user=user,
        action=ADVISOR_ADDED,
        record_id=advisor.advisorId,
        table_name="advisors",
        field_name="advisor",
        new_value=advisor.fullName,
        details=f"Added advisor {advisor.fullName}",
        ip_address=ip_address,
    )
    return advisor


def find_advisor_by_name(db, first_name: str, last_name: Optional[str]) -> Optional[Advisor]:
    stmt = select(Advisor).where(func.lower(Advisor.firstName) == first_name.lower())
    if last_name:
        stmt = stmt.where(func.lower(Advisor.lastName) == last_name.lower())
    else:
        stmt = stmt.where((Advisor.lastName.is_(None)) | (Advisor.lastName == ""))
    return db.execute(stmt.order_by(Advisor.advisorId)).scalars().first()


def get_or_create_advisor_by_name(db, first_name: Any, last_name: Any = None) -> Advisor:
    first = validate_advisor_name(first_name, "firstName")
    last = validate_advisor_name(last_name, "lastName", required=False)
    existing = find_advisor_by_name(db, first, last)
    if existing is not None:
        return existing
    advisor = Advisor(firstName=first, lastName=last)
    db.add(advisor)
    db.flush()
    log.info("Created advisor advisorId=%s name=%s", advisor.advisorId, advisor.fullName)
    return advisor


def _sync_advisor_sequence(db) -> None:
    # Explicit ids bypass the Postgres identity sequence; move it past the max id.
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(
        text(
            "SELECT setval(pg_get_serial_sequence('advisors', 'advisorId'), "
            '(SELECT COALESCE(MAX("advisorId"), 1) FROM advisors))'
        )
    )


def ensure_advisor_by_id(db, advisor_id: int, first_name: Any = None, last_name: Any = None) -> Advisor:
    """Return the advisor with this id, creating it with that exact id when missing."""
    try:
        advisor_id = int(advisor_id)
    except (TypeError, ValueError) as e:
        raise validation_error("advisorId must be an integer", {"advisorId": advisor_id}) from e
    if advisor_id <= 0:
        raise validation_error("advisorId must be positive", {"advisorId": advisor_id})

    existing = db.get(Advisor, advisor_id)
    if existing is not None:
        return existing

    first = validate_advisor_name(first_name, "firstName", required=False) or f"Advisor {advisor_id}"
    last = validate_advisor_name(last_name, "lastName", required=False)
    advisor = Advisor(advisorId=advisor_id, firstName=first, lastName=last)
    db.add(advisor)
    db.flush()
    _sync_advisor_sequence(db)
    log.info("Created advisor with explicit advisorId=%s", advisor_id)
    return advisor
