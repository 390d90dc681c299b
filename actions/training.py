from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from sqlalchemy import select

from actions import audit
from actions.advisors import get_advisor
from actions.helpers import employee_to_dict, get_employee_row
from actions.progression import (
    AWARD_COLUMNS,
    COMPLETE_COLUMNS,
    LevelDef,
    Milestone,
    level,
    milestone_for_columns,
    previous_level,
)
from app.utils.datetime import audit_timestamp
from app.utils.errors import level_locked, no_scheduled_date, read_only, validation_error
from cache_layer import mutation_invalidation_keys
from models import SecureCareEmployee

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Who performed a mutation, and whether level gating applies to it."""

    user: str
    ip_address: Optional[str] = None
    enforce_gating: bool = True


def _outcome(row: SecureCareEmployee, message: str) -> dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "employeeId": row.employeeId,
        "record": employee_to_dict(row),
        "invalidate": mutation_invalidation_keys(row.employeeId),
    }


def _touch(row: SecureCareEmployee, actor: Actor) -> None:
    row.updatedAt = audit_timestamp()
    row.updatedBy = actor.user


def _row_level(row: SecureCareEmployee) -> LevelDef:
    return level(row.awardType)


def _assert_level_unlocked(db, row: SecureCareEmployee, actor: Actor) -> None:
    if not actor.enforce_gating:
        return
    lv = _row_level(row)
    prev = previous_level(lv)
    if prev is None:
        return
    prev_row = (
        db.execute(
            select(SecureCareEmployee)
            .where(SecureCareEmployee.employeeNumber == row.employeeNumber)
            .where(SecureCareEmployee.awardType == prev.award_type)
        )
        .scalars()
        .first()
    )
    if prev_row is None or not prev_row.secureCareAwarded:
        raise level_locked(
            f"{lv.award_type} is locked until {prev.award_type} is awarded",
            {"employeeNumber": row.employeeNumber, "level": lv.key, "requires": prev.key},
        )


def _milestone_for_row(row: SecureCareEmployee, schedule_column: Any, complete_column: Any = None) -> Milestone:
    for col in (schedule_column, complete_column):
        if col in AWARD_COLUMNS:
            raise read_only(details={"column": col})
    if schedule_column in COMPLETE_COLUMNS:
        raise validation_error("Expected a schedule column, got a completion column", {"column": schedule_column})

    m = milestone_for_columns(schedule_column, complete_column)
    lv = _row_level(row)
    if m.key not in {key for key, _ in lv.milestones}:
        raise validation_error(
            f"{m.schedule_column} is not a requirement of {lv.award_type}",
            {"column": m.schedule_column, "awardType": lv.award_type},
        )
    return m


def _audit(db, row: SecureCareEmployee, actor: Actor, action: str, **kwargs) -> None:
    audit.log_audit(
        db,
        user=actor.user,
        action=action,
        record_id=row.employeeId,
        employee_number=row.employeeNumber,
        employee_name=row.name,
        award_type=row.awardType,
        ip_address=actor.ip_address,
        **kwargs,
    )


def schedule_training(db, *, employee_id: int, column_name: str, when: date, actor: Actor) -> dict[str, Any]:
    """Set a milestone's schedule column. Rescheduling is the same write over an existing date."""
    row = get_employee_row(db, employee_id)
    m = _milestone_for_row(row, column_name)
    _assert_level_unlocked(db, row, actor)

    old = getattr(row, m.schedule_attr)
    setattr(row, m.schedule_attr, when)
    _touch(row, actor)
    _audit(
        db,
        row,
        actor,
        audit.TRAINING_SCHEDULED,
        field_name=m.schedule_column,
        old_value=old,
        new_value=when,
        details=("Rescheduled" if old else "Scheduled") + f" {m.key} for {when.isoformat()}",
    )
    log.info("schedule employeeId=%s column=%s date=%s user=%s", row.employeeId, m.schedule_column, when, actor.user)
    return _outcome(row, "Training scheduled successfully")


def complete_training(
    db, *, employee_id: int, schedule_column: str, complete_column: str, actor: Actor
) -> dict[str, Any]:
    """Copy the stored scheduled date into the completion column."""
    row = get_employee_row(db, employee_id)
    m = _milestone_for_row(row, schedule_column, complete_column)
    _assert_level_unlocked(db, row, actor)

    scheduled = getattr(row, m.schedule_attr)
    if not scheduled:
        raise no_scheduled_date({"employeeId": row.employeeId, "scheduleColumn": m.schedule_column})

    old = getattr(row, m.complete_attr)
    setattr(row, m.complete_attr, scheduled)
    _touch(row, actor)
    _audit(
        db,
        row,
        actor,
        audit.TRAINING_COMPLETED,
        field_name=m.complete_column,
        old_value=old,
        new_value=scheduled,
        details=f"Completed {m.key} on scheduled date {scheduled.isoformat()}",
    )
    log.info("complete employeeId=%s column=%s user=%s", row.employeeId, m.complete_column, actor.user)
    return _outcome(row, "Training marked as completed")


def edit_completed_date(
    db, *, employee_id: int, schedule_column: str, complete_column: str, when: date, actor: Actor
) -> dict[str, Any]:
    """Move a completed milestone back to scheduled on a new date."""
    row = get_employee_row(db, employee_id)
    m = _milestone_for_row(row, schedule_column, complete_column)
    _assert_level_unlocked(db, row, actor)

    old_done = getattr(row, m.complete_attr)
    setattr(row, m.schedule_attr, when)
    setattr(row, m.complete_attr, None)
    _touch(row, actor)
    _audit(
        db,
        row,
        actor,
        audit.DATE_EDITED,
        field_name=m.complete_column,
        old_value=old_done,
        new_value=when,
        details=f"Completed date for {m.key} reset; rescheduled for {when.isoformat()}",
    )
    return _outcome(row, "Completed date updated; item is scheduled again")


def _set_conference(
    db, *, employee_id: int, awaiting: Optional[bool], notes: Optional[str], actor: Actor, action: str
) -> SecureCareEmployee:
    row = get_employee_row(db, employee_id)
    _assert_level_unlocked(db, row, actor)

    old = row.awaiting
    row.awaiting = awaiting
    if notes is not None:
        row.notes = notes
    _touch(row, actor)
    _audit(
        db,
        row,
        actor,
        action,
        field_name="awaiting",
        old_value=old,
        new_value=awaiting,
        details=notes or None,
    )
    return row


def approve_conference(db, *, employee_id: int, notes: Optional[str] = None, actor: Actor) -> dict[str, Any]:
    row = _set_conference(
        db, employee_id=employee_id, awaiting=False, notes=notes, actor=actor, action=audit.CONFERENCE_APPROVED
    )
    return _outcome(row, "Conference approved")


def reject_conference(db, *, employee_id: int, notes: Optional[str] = None, actor: Actor) -> dict[str, Any]:
    row = _set_conference(
        db, employee_id=employee_id, awaiting=None, notes=notes, actor=actor, action=audit.CONFERENCE_REJECTED
    )
    return _outcome(row, "Conference rejected")


def update_notes(db, *, employee_id: int, notes: Optional[str], actor: Actor) -> dict[str, Any]:
    row = get_employee_row(db, employee_id)
    old = row.notes
    row.notes = notes or None
    _touch(row, actor)
    _audit(db, row, actor, audit.NOTES_UPDATED, field_name="notes", old_value=old, new_value=row.notes)
    return _outcome(row, "Notes updated")


def update_advisor(db, *, employee_id: int, advisor_id: Optional[int], actor: Actor) -> dict[str, Any]:
    row = get_employee_row(db, employee_id)
    new_name = None
    if advisor_id is not None:
        new_name = get_advisor(db, advisor_id).fullName
    old = row.advisorId
    row.advisorId = advisor_id
    _touch(row, actor)
    _audit(
        db,
        row,
        actor,
        audit.ADVISOR_CHANGED,
        field_name="advisorId",
        old_value=old,
        new_value=advisor_id,
        details=f"Advisor set to {new_name}" if new_name else "Advisor cleared",
    )
    return _outcome(row, "Advisor updated")
