from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Callable, Iterable, Mapping, Optional

from actions.formatting import (
    calendar_date,
    format_awarded,
    format_conference,
    format_date,
    format_scheduled_or_done,
)
from app.utils.errors import validation_error

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LevelDef:
    key: str
    award_type: str
    flat_prefix: str
    award_label: str
    milestones: tuple[tuple[str, str], ...]  # (requirement key, label)


@dataclass(frozen=True)
class Milestone:
    """A schedulable requirement: a schedule column and a completion column."""

    key: str
    schedule_attr: str
    complete_attr: str
    schedule_column: str
    complete_column: str


LEVELS: tuple[LevelDef, ...] = (
    LevelDef("care-partner", "Level 1", "level1", "Level 1 Awarded", ()),
    LevelDef(
        "associate",
        "Level 2",
        "level2",
        "Level 2 Awarded",
        (
            ("standingVideo", "Standing Video"),
            ("sleepingVideo", "Sleeping/Sitting Video"),
            ("feedGradVideo", "Feeding Video"),
        ),
    ),
    LevelDef(
        "champion",
        "Level 3",
        "level3",
        "Level 3 Awarded",
        (
            ("standingVideo", "Sitting/Standing/Approaching"),
            ("noHandnoSpeak", "No Hand/No Speak"),
            ("sleepingVideo", "Challenge Sleeping"),
        ),
    ),
    LevelDef(
        "consultant",
        "Consultant",
        "consultant",
        "Consultant Awarded",
        (("session1", "Coaching Session 1"), ("session2", "Coaching Session 2"), ("session3", "Coaching Session 3")),
    ),
    LevelDef(
        "coach",
        "Coach",
        "coach",
        "Coach Awarded",
        (("session1", "Coaching Session 1"), ("session2", "Coaching Session 2"), ("session3", "Coaching Session 3")),
    ),
)

LEVEL_KEYS = tuple(lv.key for lv in LEVELS)
AWARD_TYPES = tuple(lv.award_type for lv in LEVELS)

MILESTONES: dict[str, Milestone] = {
    "standingVideo": Milestone(
        "standingVideo", "scheduleStandingVideo", "standingVideo", "scheduleStandingVideo", "standingVideo"
    ),
    "sleepingVideo": Milestone(
        "sleepingVideo", "scheduleSleepingVideo", "sleepingVideo", "scheduleSleepingVideo", "sleepingVideo"
    ),
    "feedGradVideo": Milestone(
        "feedGradVideo", "scheduleFeedGradVideo", "feedGradVideo", "scheduleFeedGradVideo", "feedGradVideo"
    ),
    "noHandnoSpeak": Milestone(
        "noHandnoSpeak", "schedulenoHandnoSpeak", "noHandnoSpeak", "schedulenoHandnoSpeak", "noHandnoSpeak"
    ),
    "session1": Milestone("session1", "scheduleSession1", "session1", "scheduleSession#1", "session#1"),
    "session2": Milestone("session2", "scheduleSession2", "session2", "scheduleSession#2", "session#2"),
    "session3": Milestone("session3", "scheduleSession3", "session3", "scheduleSession#3", "session#3"),
}

SCHEDULE_COLUMNS: dict[str, Milestone] = {m.schedule_column: m for m in MILESTONES.values()}
COMPLETE_COLUMNS: dict[str, Milestone] = {m.complete_column: m for m in MILESTONES.values()}
AWARD_COLUMNS = frozenset({"secureCareAwarded", "secureCareAwardedDate"})


def level(value: str) -> LevelDef:
    """Resolve a tab key (`associate`), award type (`Level 2`) or flat prefix (`level2`)."""
    s = str(value or "").strip()
    for lv in LEVELS:
        if s in {lv.key, lv.award_type, lv.flat_prefix}:
            return lv
    low = s.lower()
    for lv in LEVELS:
        if low in {lv.key, lv.award_type.lower(), lv.flat_prefix.lower()}:
            return lv
    raise validation_error(f"Unknown level: {value}", {"allowed": list(LEVEL_KEYS)})


def previous_level(lv: LevelDef) -> Optional[LevelDef]:
    idx = LEVELS.index(lv)
    return LEVELS[idx - 1] if idx > 0 else None


def milestone_for_columns(schedule_column: str, complete_column: str | None = None) -> Milestone:
    m = SCHEDULE_COLUMNS.get(str(schedule_column or ""))
    if m is None:
        if schedule_column in AWARD_COLUMNS:
            raise validation_error("Award columns cannot be scheduled", {"column": schedule_column})
        raise validation_error("Invalid schedule column", {"column": schedule_column})
    if complete_column is not None and COMPLETE_COLUMNS.get(str(complete_column or "")) is not m:
        raise validation_error(
            "Completion column does not match schedule column",
            {"scheduleColumn": schedule_column, "completeColumn": complete_column},
        )
    return m


@dataclass
class LevelRecord:
    """Per-level training state of one employee; mirrors one securecare_employees row."""

    employeeId: Optional[int] = None
    awardType: str = ""
    assignedDate: Optional[date] = None
    completedDate: Optional[date] = None
    conferenceCompleted: Optional[date] = None
    awaiting: Optional[bool] = None
    notes: Optional[str] = None
    advisorId: Optional[int] = None
    secureCareAwarded: bool = False
    secureCareAwardedDate: Optional[date] = None
    scheduleStandingVideo: Optional[date] = None
    standingVideo: Optional[date] = None
    scheduleSleepingVideo: Optional[date] = None
    sleepingVideo: Optional[date] = None
    scheduleFeedGradVideo: Optional[date] = None
    feedGradVideo: Optional[date] = None
    schedulenoHandnoSpeak: Optional[date] = None
    noHandnoSpeak: Optional[date] = None
    scheduleSession1: Optional[date] = None
    session1: Optional[date] = None
    scheduleSession2: Optional[date] = None
    session2: Optional[date] = None
    scheduleSession3: Optional[date] = None
    session3: Optional[date] = None

    @classmethod
    def from_row(cls, row: Any) -> "LevelRecord":
        return cls(**{f.name: getattr(row, f.name, None) for f in fields(cls)})


_NON_DATE_FIELDS = {"employeeId", "awardType", "awaiting", "notes", "advisorId", "secureCareAwarded"}
_DATE_FIELDS = tuple(f.name for f in fields(LevelRecord) if f.name not in _NON_DATE_FIELDS)


@dataclass(frozen=True)
class Accessor:
    kind: str  # "date" | "award"
    get: Callable[[Any], Any]
    set: Callable[[Any, Any], None]


def _attr_accessor(kind: str, attr: str) -> Accessor:
    def _get(rec: Any) -> Any:
        return getattr(rec, attr)

    def _set(rec: Any, value: Any) -> None:
        setattr(rec, attr, value)

    return Accessor(kind, _get, _set)


# Requirement key -> getter/setter. Works on LevelRecord and on ORM rows alike.
ACCESSORS: dict[str, Accessor] = {
    "assignedDate": _attr_accessor("date", "assignedDate"),
    "completedDate": _attr_accessor("date", "completedDate"),
    "conferenceCompleted": _attr_accessor("date", "conferenceCompleted"),
    "standingVideo": _attr_accessor("date", "standingVideo"),
    "sleepingVideo": _attr_accessor("date", "sleepingVideo"),
    "feedGradVideo": _attr_accessor("date", "feedGradVideo"),
    "noHandnoSpeak": _attr_accessor("date", "noHandnoSpeak"),
    "session1": _attr_accessor("date", "session1"),
    "session2": _attr_accessor("date", "session2"),
    "session3": _attr_accessor("date", "session3"),
    "secureCareAwarded": _attr_accessor("award", "secureCareAwarded"),
}


def accessor(requirement_key: str) -> Accessor:
    acc = ACCESSORS.get(str(requirement_key or ""))
    if acc is None:
        raise validation_error(f"Unknown requirement: {requirement_key}")
    return acc


@dataclass(frozen=True)
class Requirement:
    key: str
    label: str


def requirement_defs(lv: LevelDef) -> list[Requirement]:
    out = [
        Requirement("assignedDate", "Relias Training Assigned"),
        Requirement("completedDate", "Relias Training Completed"),
        Requirement("conferenceCompleted", "Conference Completed"),
    ]
    out += [Requirement(key, label) for key, label in lv.milestones]
    out.append(Requirement("secureCareAwarded", lv.award_label))
    return out


@dataclass(frozen=True)
class RequirementStatus:
    label: str
    key: str
    completed: bool
    date: Optional[date]
    display: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "key": self.key,
            "completed": self.completed,
            "date": self.date.isoformat() if self.date else None,
            "display": self.display,
        }


def _display(req: Requirement, rec: Optional[LevelRecord]) -> str:
    if rec is None:
        return "Pending"
    if req.key == "secureCareAwarded":
        return format_awarded(rec.secureCareAwarded, rec.secureCareAwardedDate)
    if req.key == "conferenceCompleted":
        return format_conference(rec.awaiting, rec.conferenceCompleted)
    m = MILESTONES.get(req.key)
    if m is not None:
        return format_scheduled_or_done(getattr(rec, m.schedule_attr), getattr(rec, m.complete_attr))
    value = accessor(req.key).get(rec)
    return format_date(value) if value else "Pending"


def requirements_for(lv: LevelDef | str, rec: Optional[LevelRecord]) -> list[RequirementStatus]:
    if isinstance(lv, str):
        lv = level(lv)
    out: list[RequirementStatus] = []
    for req in requirement_defs(lv):
        acc = accessor(req.key)
        if rec is None:
            out.append(RequirementStatus(req.label, req.key, False, None, "Pending"))
            continue
        raw = acc.get(rec)
        if acc.kind == "award":
            completed = bool(raw)
            when = rec.secureCareAwardedDate if completed else None
        else:
            completed = bool(raw)
            when = raw
        out.append(RequirementStatus(req.label, req.key, completed, when, _display(req, rec)))
    return out


@dataclass(frozen=True)
class Progress:
    completed: int
    total: int

    @property
    def is_complete(self) -> bool:
        return self.completed >= self.total

    def to_dict(self) -> dict[str, int]:
        return {"completed": self.completed, "total": self.total}


def progress(lv: LevelDef | str, rec: Optional[LevelRecord]) -> Progress:
    reqs = requirements_for(lv, rec)
    return Progress(sum(1 for r in reqs if r.completed), len(reqs))


_FLAT_SUFFIXES: dict[str, str] = {
    "EmployeeId": "employeeId",
    "ReliasAssigned": "assignedDate",
    "ReliasCompleted": "completedDate",
    "ConferenceCompleted": "conferenceCompleted",
    "Awaiting": "awaiting",
    "Notes": "notes",
    "AdvisorId": "advisorId",
    "Awarded": "secureCareAwarded",
    "AwardedDate": "secureCareAwardedDate",
    "ScheduleStandingVideo": "scheduleStandingVideo",
    "StandingVideo": "standingVideo",
    "ScheduleSleepingVideo": "scheduleSleepingVideo",
    "SleepingVideo": "sleepingVideo",
    "ScheduleFeedGradVideo": "scheduleFeedGradVideo",
    "FeedGradVideo": "feedGradVideo",
    "ScheduleNoHandnoSpeak": "schedulenoHandnoSpeak",
    "NoHandnoSpeak": "noHandnoSpeak",
    "ScheduleSession1": "scheduleSession1",
    "Session1": "session1",
    "ScheduleSession2": "scheduleSession2",
    "Session2": "session2",
    "ScheduleSession3": "scheduleSession3",
    "Session3": "session3",
}


def record_to_flat(lv: LevelDef, rec: Optional[LevelRecord]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for suffix, attr in _FLAT_SUFFIXES.items():
        value = getattr(rec, attr) if rec is not None else None
        if isinstance(value, date):
            value = value.isoformat()
        out[lv.flat_prefix + suffix] = value
    return out


@dataclass
class EmployeeProgress:
    """All level records of one person, keyed by award type; a missing key means no record."""

    employeeNumber: str = ""
    name: str = ""
    records: dict[str, LevelRecord] = field(default_factory=dict)

    @classmethod
    def from_rows(cls, rows: Iterable[Any]) -> "EmployeeProgress":
        emp = cls()
        for row in rows:
            rec = LevelRecord.from_row(row)
            if rec.awardType not in AWARD_TYPES:
                log.warning("Skipping row employeeId=%s with unknown awardType=%r", rec.employeeId, rec.awardType)
                continue
            emp.employeeNumber = emp.employeeNumber or str(getattr(row, "employeeNumber", "") or "")
            emp.name = emp.name or str(getattr(row, "name", "") or "")
            emp.records[rec.awardType] = rec
        return emp

    @classmethod
    def from_flat(cls, data: Mapping[str, Any]) -> "EmployeeProgress":
        """Build from the pivoted shape (`level1ReliasAssigned`, `level2Awarded`, ...)."""
        emp = cls(
            employeeNumber=str(data.get("employeeNumber") or ""),
            name=str(data.get("name") or ""),
        )
        for lv in LEVELS:
            values = {
                attr: data.get(lv.flat_prefix + suffix)
                for suffix, attr in _FLAT_SUFFIXES.items()
                if lv.flat_prefix + suffix in data
            }
            if not any(v is not None for v in values.values()):
                continue
            rec = LevelRecord(awardType=lv.award_type)
            for attr, value in values.items():
                if attr in _DATE_FIELDS:
                    value = calendar_date(value)
                elif attr == "secureCareAwarded":
                    value = bool(value)
                setattr(rec, attr, value)
            emp.records[lv.award_type] = rec
        return emp

    def record(self, lv: LevelDef | str) -> Optional[LevelRecord]:
        if isinstance(lv, str):
            lv = level(lv)
        return self.records.get(lv.award_type)

    def to_flat(self) -> dict[str, Any]:
        out: dict[str, Any] = {"employeeNumber": self.employeeNumber, "name": self.name}
        for lv in LEVELS:
            out.update(record_to_flat(lv, self.record(lv)))
        return out


def is_awarded(rec: Optional[LevelRecord]) -> bool:
    return bool(rec is not None and rec.secureCareAwarded)


def eligible_for_level(lv: LevelDef | str, employee: EmployeeProgress) -> bool:
    """
    Whether the employee can be assigned into the level's training flow.

    Level 1 is open to anyone not yet assigned at Level 1. Every later level
    needs the previous level awarded and no assignment yet at the target level.
    """

    if isinstance(lv, str):
        lv = level(lv)
    target = employee.record(lv)
    not_assigned = target is None or not target.assignedDate
    prev = previous_level(lv)
    if prev is None:
        return not_assigned
    return is_awarded(employee.record(prev)) and not_assigned


def _first_incomplete(employee: EmployeeProgress) -> Optional[LevelDef]:
    for lv in LEVELS:
        if not progress(lv, employee.record(lv)).is_complete:
            return lv
    return None


def progression_complete(employee: EmployeeProgress) -> bool:
    return _first_incomplete(employee) is None


def current_level(employee: EmployeeProgress) -> str:
    """Key of the first level not fully complete; the last level once everything is complete."""
    lv = _first_incomplete(employee)
    return (lv or LEVELS[-1]).key


def level_state(lv: LevelDef, employee: EmployeeProgress) -> str:
    rec = employee.record(lv)
    if is_awarded(rec):
        return "awarded"
    prev = previous_level(lv)
    if prev is not None and not is_awarded(employee.record(prev)):
        return "locked"
    if rec is None or not any(r.completed for r in requirements_for(lv, rec)):
        return "not-started"
    return "in-progress"


def summarize(employee: EmployeeProgress) -> dict[str, Any]:
    levels = []
    for lv in LEVELS:
        rec = employee.record(lv)
        levels.append(
            {
                "key": lv.key,
                "awardType": lv.award_type,
                "employeeId": rec.employeeId if rec else None,
                "state": level_state(lv, employee),
                "eligible": eligible_for_level(lv, employee),
                "progress": progress(lv, rec).to_dict(),
                "requirements": [r.to_dict() for r in requirements_for(lv, rec)],
            }
        )
    return {
        "employeeNumber": employee.employeeNumber,
        "name": employee.name,
        "currentLevel": current_level(employee),
        "complete": progression_complete(employee),
        "levels": levels,
    }
