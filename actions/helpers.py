from __future__ import annotations

from datetime import date
from typing import Any, Optional

from sqlalchemy import select

from app.utils.errors import not_found
from models import Advisor, SecureCareEmployee

# Columns exposed on the wire for one level row (ORM attribute names; `session1` is stored as `session#1`).
EMPLOYEE_FIELDS = (
    "employeeId",
    "employeeNumber",
    "name",
    "facility",
    "area",
    "staffRole",
    "awardType",
    "assignedDate",
    "completedDate",
    "conferenceCompleted",
    "awaiting",
    "notes",
    "advisorId",
    "secureCareAwarded",
    "secureCareAwardedDate",
    "scheduleStandingVideo",
    "standingVideo",
    "scheduleSleepingVideo",
    "sleepingVideo",
    "scheduleFeedGradVideo",
    "feedGradVideo",
    "schedulenoHandnoSpeak",
    "noHandnoSpeak",
    "scheduleSession1",
    "session1",
    "scheduleSession2",
    "session2",
    "scheduleSession3",
    "session3",
)


def json_value(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


def employee_to_dict(row: SecureCareEmployee, advisor: Optional[Advisor] = None) -> dict[str, Any]:
    out = {f: json_value(getattr(row, f)) for f in EMPLOYEE_FIELDS}
    out["advisorName"] = advisor.fullName if advisor is not None else None
    return out


def get_employee_row(db, employee_id: int) -> SecureCareEmployee:
    row = db.get(SecureCareEmployee, employee_id)
    if row is None:
        raise not_found("Employee not found", {"employeeId": employee_id})
    return row


def rows_for_employee_number(db, employee_number: str) -> list[SecureCareEmployee]:
    return (
        db.execute(
            select(SecureCareEmployee)
            .where(SecureCareEmployee.employeeNumber == employee_number)
            .order_by(SecureCareEmployee.employeeId)
        )
        .scalars()
        .all()
    )


def advisors_by_id(db, ids) -> dict[int, Advisor]:
    wanted = {int(i) for i in ids if i is not None}
    if not wanted:
        return {}
    rows = db.execute(select(Advisor).where(Advisor.advisorId.in_(wanted))).scalars().all()
    return {a.advisorId: a for a in rows}


def like_pattern(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
