from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from actions.advisors import ensure_advisor_by_id, get_or_create_advisor_by_name
from actions.formatting import calendar_date
from actions.progression import level
from app.utils.datetime import audit_timestamp
from app.utils.errors import ApiError
from models import SecureCareEmployee

log = logging.getLogger(__name__)

PROGRESS_EVERY = 50
IMPORT_USER = "csv-import"

# Logical field -> accepted header spellings, first non-empty wins.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name", "Name", "employeeName"),
    "employeeNumber": ("employeeNumber", "EmployeeNumber", "empNumber"),
    "area": ("area", "Area"),
    "facility": ("facility", "Facility"),
    "staffRole": ("staffRole", "staffRoll", "StaffRole", "JobTitle"),
    "notes": ("notes", "Notes"),
    "awardType": ("awardType", "AwardType"),
    "advisorId": ("advisorId", "AdvisorId"),
    "advisorFirstName": ("advisorFirstName", "AdvisorFirstName", "advisorFirst"),
    "advisorLastName": ("advisorLastName", "AdvisorLastName", "advisorLast"),
    "assignedDate": ("assignedDate", "AssignedDate"),
    "completedDate": ("completedDate", "CompletedDate"),
    "conferenceCompleted": ("conferenceCompleted", "ConferenceCompleted"),
    "awaiting": ("awaiting", "Awaiting"),
    "secureCareAwarded": ("secureCareAwarded", "SecureCareAwarded"),
    "secureCareAwardedDate": ("secureCareAwardedDate", "SecureCareAwardedDate"),
    "scheduleStandingVideo": ("scheduleStandingVideo", "ScheduleStandingVideo"),
    "standingVideo": ("standingVideo", "StandingVideo"),
    "scheduleSleepingVideo": ("scheduleSleepingVideo", "ScheduleSleepingVideo"),
    "sleepingVideo": ("sleepingVideo", "SleepingVideo"),
    "scheduleFeedGradVideo": ("scheduleFeedGradVideo", "ScheduleFeedGradVideo"),
    "feedGradVideo": ("feedGradVideo", "FeedGradVideo"),
    "schedulenoHandnoSpeak": ("schedulenoHandnoSpeak", "schedulenoHandNoSpeak", "ScheduleNoHandNoSpeak"),
    "noHandnoSpeak": ("noHandnoSpeak", "NoHandNoSpeak", "NoHandnoSpeak"),
    "scheduleSession1": ("scheduleSession1", "ScheduleSession1", "scheduleSession#1"),
    "session1": ("session1", "Session1", "session#1"),
    "scheduleSession2": ("scheduleSession2", "ScheduleSession2", "scheduleSession#2"),
    "session2": ("session2", "Session2", "session#2"),
    "scheduleSession3": ("scheduleSession3", "ScheduleSession3", "scheduleSession#3"),
    "session3": ("session3", "Session3", "session#3"),
}

DATE_FIELDS = (
    "assignedDate",
    "completedDate",
    "conferenceCompleted",
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


@dataclass
class ImportReport:
    inserted: int = 0
    updated: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return self.inserted + self.updated

    def to_dict(self) -> dict[str, int]:
        return {"inserted": self.inserted, "updated": self.updated, "failed": self.failed}


def as_bool(value: Any) -> Optional[bool]:
    s = str(value if value is not None else "").strip().lower()
    if s in {"true", "1", "yes", "y"}:
        return True
    if s in {"false", "0", "no", "n"}:
        return False
    return None


def _pick(row: dict[str, Any], field: str) -> Optional[str]:
    for header in FIELD_ALIASES[field]:
        value = row.get(header)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def read_csv_rows(path: str) -> list[dict[str, Any]]:
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        return [row for row in reader if any(str(v or "").strip() for v in row.values())]


def _resolve_advisor(db, row: dict[str, Any]) -> Optional[int]:
    """Advisor id for the row, or None; resolution problems never fail the row."""
    raw_id = _pick(row, "advisorId")
    first = _pick(row, "advisorFirstName")
    last = _pick(row, "advisorLastName")
    if raw_id is None and first is None and last is None:
        return None
    try:
        with db.begin_nested():
            if raw_id is not None:
                return ensure_advisor_by_id(db, raw_id).advisorId
            if first is None:
                # A bare last name is stored as the first name.
                first, last = last, None
            return get_or_create_advisor_by_name(db, first, last).advisorId
    except (ApiError, SQLAlchemyError) as e:
        log.warning("Advisor resolution failed advisorId=%r name=%r %r: %s", raw_id, first, last, e)
        return None


def _awarded_fields(row: dict[str, Any], employee_number: str) -> tuple[bool, Any]:
    awarded = as_bool(_pick(row, "secureCareAwarded"))
    awarded_date = calendar_date(_pick(row, "secureCareAwardedDate"))
    if awarded is None:
        awarded = awarded_date is not None
    if awarded and awarded_date is None:
        log.warning("employeeNumber=%s marked awarded without a date; importing as not awarded", employee_number)
        return False, None
    if not awarded and awarded_date is not None:
        log.warning("employeeNumber=%s has an award date but is not awarded; dropping the date", employee_number)
        return False, None
    return awarded, awarded_date


def import_row(db, row: dict[str, Any]) -> bool:
    """Upsert one CSV row keyed by (employeeNumber, awardType). Returns True when inserted."""
    employee_number = _pick(row, "employeeNumber")
    if not employee_number:
        raise ValueError("employeeNumber is required")
    award_type = level(_pick(row, "awardType") or "").award_type

    existing = (
        db.execute(
            select(SecureCareEmployee)
            .where(SecureCareEmployee.employeeNumber == employee_number)
            .where(SecureCareEmployee.awardType == award_type)
        )
        .scalars()
        .first()
    )
    target = existing or SecureCareEmployee(employeeNumber=employee_number, awardType=award_type)

    target.name = _pick(row, "name") or target.name or ""
    target.facility = _pick(row, "facility") or target.facility or ""
    target.area = _pick(row, "area") or target.area or ""
    target.staffRole = _pick(row, "staffRole") or target.staffRole or ""
    target.notes = _pick(row, "notes")
    target.awaiting = as_bool(_pick(row, "awaiting"))
    for field in DATE_FIELDS:
        setattr(target, field, calendar_date(_pick(row, field)))
    target.secureCareAwarded, target.secureCareAwardedDate = _awarded_fields(row, employee_number)
    target.advisorId = _resolve_advisor(db, row)
    target.updatedAt = audit_timestamp()
    target.updatedBy = IMPORT_USER

    if existing is None:
        db.add(target)
    db.flush()
    return existing is None


def import_rows(db, rows: Iterable[dict[str, Any]]) -> ImportReport:
    """
    Load rows one by one, each inside its own savepoint.

    A failing row is logged and skipped; the run continues. The caller owns
    the outer transaction.
    """

    report = ImportReport()
    for idx, row in enumerate(rows, start=1):
        try:
            with db.begin_nested():
                inserted = import_row(db, row)
        except (ApiError, SQLAlchemyError, ValueError) as e:
            report.failed += 1
            log.error("Row %d failed: %s row=%r", idx, getattr(e, "message", None) or e, row)
            continue

        if inserted:
            report.inserted += 1
        else:
            report.updated += 1
        if report.processed % PROGRESS_EVERY == 0:
            log.info("Imported %d employees...", report.processed)

    log.info(
        "Import done inserted=%d updated=%d failed=%d", report.inserted, report.updated, report.failed
    )
    return report
