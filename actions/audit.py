from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import func, or_, select

from actions.helpers import like_pattern
from app.utils.datetime import audit_timestamp
from app.utils.errors import validation_error
from models import AuditLog

TRAINING_SCHEDULED = "TRAINING_SCHEDULED"
TRAINING_COMPLETED = "TRAINING_COMPLETED"
DATE_EDITED = "DATE_EDITED"
CONFERENCE_APPROVED = "CONFERENCE_APPROVED"
CONFERENCE_REJECTED = "CONFERENCE_REJECTED"
NOTES_UPDATED = "NOTES_UPDATED"
ADVISOR_CHANGED = "ADVISOR_CHANGED"
ADVISOR_ADDED = "ADVISOR_ADDED"

ACTION_LABELS: dict[str, str] = {
    TRAINING_SCHEDULED: "Training Scheduled",
    TRAINING_COMPLETED: "Training Completed",
    DATE_EDITED: "Date Edited",
    CONFERENCE_APPROVED: "Conference Approved",
    CONFERENCE_REJECTED: "Conference Rejected",
    NOTES_UPDATED: "Notes Updated",
    ADVISOR_CHANGED: "Advisor Changed",
    ADVISOR_ADDED: "Advisor Added",
}


def _audit_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def log_audit(
    db,
    *,
    user: str,
    action: str,
    record_id: Any,
    table_name: str = "securecare_employees",
    employee_number: Optional[str] = None,
    employee_name: Optional[str] = None,
    award_type: Optional[str] = None,
    field_name: Optional[str] = None,
    old_value: Any = None,
    new_value: Any = None,
    details: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """Append one audit row to the caller's session; committed with the mutation it records."""
    action_u = str(action or "").upper().strip()
    if action_u not in ACTION_LABELS:
        raise validation_error(f"Unknown audit action: {action}")

    row = AuditLog(
        timestamp=audit_timestamp(),
        userIdentifier=str(user or "unknown"),
        action=action_u,
        tableName=table_name,
        recordId=str(record_id if record_id is not None else ""),
        employeeNumber=employee_number,
        employeeName=employee_name,
        awardType=award_type,
        fieldName=field_name,
        oldValue=_audit_value(old_value),
        newValue=_audit_value(new_value),
        details=details,
        ipAddress=ip_address or None,
    )
    db.add(row)
    return row


def audit_to_dict(row: AuditLog) -> dict[str, Any]:
    return {
        "auditId": row.auditId,
        "timestamp": row.timestamp,
        "userIdentifier": row.userIdentifier,
        "action": row.action,
        "actionLabel": ACTION_LABELS.get(row.action, row.action),
        "tableName": row.tableName,
        "recordId": row.recordId,
        "employeeNumber": row.employeeNumber,
        "employeeName": row.employeeName,
        "awardType": row.awardType,
        "fieldName": row.fieldName,
        "oldValue": row.oldValue,
        "newValue": row.newValue,
        "details": row.details,
        "ipAddress": row.ipAddress,
    }


def _apply_filters(stmt, *, start, end, user, action, search):
    if start:
        stmt = stmt.where(AuditLog.timestamp >= start)
    if end:
        stmt = stmt.where(AuditLog.timestamp < end)
    if user:
        stmt = stmt.where(AuditLog.userIdentifier == user.lower())
    if action and action.lower() != "all":
        stmt = stmt.where(AuditLog.action == action.upper())
    if search:
        pattern = like_pattern(search)
        stmt = stmt.where(
            or_(AuditLog.employeeName.ilike(pattern, escape="\\"), AuditLog.employeeNumber.ilike(pattern, escape="\\"))
        )
    return stmt


def query_audit_logs(
    db,
    *,
    start: Optional[str] = None,
    end: Optional[str] = None,
    user: Optional[str] = None,
    action: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> dict[str, Any]:
    """Newest first. `end` is exclusive (callers pass the day after the last included date)."""
    filters = dict(start=start, end=end, user=user, action=action, search=search)
    total = db.execute(_apply_filters(select(func.count(AuditLog.auditId)), **filters)).scalar_one()
    rows = (
        db.execute(
            _apply_filters(select(AuditLog), **filters)
            .order_by(AuditLog.timestamp.desc(), AuditLog.auditId.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return {
        "items": [audit_to_dict(r) for r in rows],
        "total": int(total),
        "page": page,
        "limit": limit,
        "totalPages": max(1, -(-int(total) // limit)),
    }


def audit_users(db) -> list[str]:
    rows = db.execute(select(AuditLog.userIdentifier).distinct().order_by(AuditLog.userIdentifier)).scalars().all()
    return [r for r in rows if r]


def audit_actions() -> list[dict[str, str]]:
    return [{"value": k, "label": v} for k, v in ACTION_LABELS.items()]


def audit_stats(db, *, now: Optional[datetime] = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    action_rows = db.execute(select(AuditLog.action, func.count(AuditLog.auditId)).group_by(AuditLog.action)).all()
    action_counts = sorted(
        ({"action": a, "label": ACTION_LABELS.get(a, a), "count": int(c)} for a, c in action_rows),
        key=lambda x: (-x["count"], x["action"]),
    )

    since = audit_timestamp(now - timedelta(days=7))
    recent = db.execute(select(AuditLog.timestamp).where(AuditLog.timestamp >= since)).scalars().all()
    per_day = Counter(str(ts)[:10] for ts in recent)
    last_7_days = [{"date": d, "count": per_day[d]} for d in sorted(per_day)]

    user_rows = db.execute(
        select(AuditLog.userIdentifier, func.count(AuditLog.auditId))
        .group_by(AuditLog.userIdentifier)
        .order_by(func.count(AuditLog.auditId).desc(), AuditLog.userIdentifier)
        .limit(5)
    ).all()

    return {
        "actionCounts": action_counts,
        "last7Days": last_7_days,
        "topUsers": [{"user": u, "count": int(c)} for u, c in user_rows],
    }
