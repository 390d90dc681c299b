from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import func, select

from actions.audit import ACTION_LABELS, audit_to_dict
from actions.employees import dashboard_summary
from actions.formatting import format_awarded, format_conference, format_date
from actions.progression import LEVELS, LevelRecord, progress
from cache_layer import ReadCache
from models import AuditLog, SecureCareEmployee


def level_summary(db, *, cache: Optional[ReadCache] = None) -> list[dict[str, Any]]:
    dash = dashboard_summary(db, cache=cache)
    rows = []
    for lv in LEVELS:
        c = dash["counts"][lv.flat_prefix]
        rows.append(
            {
                "level": lv.award_type,
                "total": c["total"],
                "completed": c["completed"],
                "inProgress": c["inProgress"],
                "pending": c["pending"],
                "overdue": c["overdue"],
                "completionPct": dash["completion"][lv.flat_prefix],
            }
        )
    return rows


def level_roster(db) -> list[dict[str, Any]]:
    """Every level row with display statuses, ordered by level then name."""
    order = {lv.award_type: i for i, lv in enumerate(LEVELS)}
    rows = db.execute(select(SecureCareEmployee)).scalars().all()
    rows = sorted(rows, key=lambda r: (order.get(r.awardType, len(order)), r.name or "", r.employeeId))

    out = []
    for r in rows:
        p = progress(r.awardType, LevelRecord.from_row(r))
        out.append(
            {
                "employeeNumber": r.employeeNumber,
                "name": r.name,
                "facility": r.facility,
                "area": r.area,
                "awardType": r.awardType,
                "assigned": format_date(r.assignedDate),
                "completed": format_date(r.completedDate),
                "conference": format_conference(r.awaiting, r.conferenceCompleted),
                "awarded": format_awarded(r.secureCareAwarded, r.secureCareAwardedDate),
                "progress": f"{p.completed}/{p.total}",
            }
        )
    return out


def activity_summary(db, start: Optional[str], end: Optional[str]) -> dict[str, Any]:
    stmt = select(AuditLog.action, func.count(AuditLog.auditId)).group_by(AuditLog.action)
    if start:
        stmt = stmt.where(AuditLog.timestamp >= start)
    if end:
        stmt = stmt.where(AuditLog.timestamp < end)
    by_action = [
        {"action": a, "label": ACTION_LABELS.get(a, a), "count": int(c)}
        for a, c in sorted(db.execute(stmt).all())
    ]
    return {"total": sum(x["count"] for x in by_action), "byAction": by_action}


def audit_rows(db, start: str, end: str) -> list[dict[str, Any]]:
    rows = (
        db.execute(
            select(AuditLog)
            .where(AuditLog.timestamp >= start)
            .where(AuditLog.timestamp < end)
            .order_by(AuditLog.timestamp, AuditLog.auditId)
        )
        .scalars()
        .all()
    )
    return [audit_to_dict(r) for r in rows]
