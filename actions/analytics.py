from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy import select

from actions.progression import LEVELS, LevelRecord, level, progress
from app.utils.datetime import today_utc
from cache_layer import LEVEL_STATS, ReadCache, cached_view, make_cache_key, store_view
from models import SecureCareEmployee

E = SecureCareEmployee

MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
# Share of all level rows each level is expected to have awarded.
TARGET_SHARE = {"Level 1": 0.8, "Level 2": 0.6, "Level 3": 0.4, "Consultant": 0.2, "Coach": 0.1}
OVERDUE_AFTER_DAYS = 30
RECENT_COMPLETION_DAYS = 7


def _rows(db, filters: dict[str, Any], *, use_level: bool = True, use_place: bool = True) -> list[SecureCareEmployee]:
    stmt = select(E)
    if use_place:
        if filters.get("facility"):
            stmt = stmt.where(E.facility.in_(filters["facility"]))
        if filters.get("area"):
            stmt = stmt.where(E.area == filters["area"])
    if use_level and filters.get("level"):
        stmt = stmt.where(E.awardType == level(filters["level"]).award_type)
    return db.execute(stmt.order_by(E.employeeId)).scalars().all()


def _in_range(value: Optional[date], filters: dict[str, Any]) -> bool:
    start, end = filters.get("startDate"), filters.get("endDate")
    if not (start and end):
        return True
    return value is not None and start <= value <= end


def _days(start: Optional[date], end: Optional[date]) -> Optional[int]:
    if start is None or end is None:
        return None
    return (end - start).days


def _avg_days(rows: Iterable[SecureCareEmployee]) -> Optional[float]:
    spans = [d for d in (_days(r.assignedDate, r.secureCareAwardedDate) for r in rows) if d is not None]
    return sum(spans) / len(spans) if spans else None


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def _cached(cache: Optional[ReadCache], name: str, params: dict[str, Any], build):
    key = make_cache_key(LEVEL_STATS, scope=["analytics", name], params=params)
    hit = cached_view(cache, key)
    if hit is not None:
        return hit
    out = build()
    store_view(cache, key, out)
    return out


def overview(db, *, filters: dict[str, Any], cache: Optional[ReadCache] = None) -> dict[str, Any]:
    def build() -> dict[str, Any]:
        rows = _rows(db, filters)
        awarded = [r for r in rows if r.secureCareAwarded and _in_range(r.secureCareAwardedDate, filters)]
        out: dict[str, Any] = {
            "totalEmployees": len(rows),
            "completedCertifications": len(awarded),
            "inProgress": sum(1 for r in rows if not r.secureCareAwarded),
            "notStarted": sum(1 for r in rows if r.assignedDate is None),
        }
        for lv in LEVELS:
            out[lv.flat_prefix + "Completed"] = sum(1 for r in awarded if r.awardType == lv.award_type)
        avg = _avg_days(awarded)
        out["averageCompletionTime"] = round(avg) if avg is not None else None
        return out

    return _cached(cache, "overview", filters, build)


def _group_performance(rows: list[SecureCareEmployee], attr: str, *, with_time: bool) -> list[dict[str, Any]]:
    groups: dict[str, list[SecureCareEmployee]] = defaultdict(list)
    for r in rows:
        name = getattr(r, attr) or ""
        if name:
            groups[name].append(r)

    out = []
    for name, members in groups.items():
        completed = sum(1 for r in members if r.secureCareAwarded)
        item: dict[str, Any] = {
            attr: name,
            "total": len(members),
            "completed": completed,
            "completionRate": _rate(completed, len(members)),
        }
        if with_time:
            item["inProgress"] = sum(1 for r in members if not r.secureCareAwarded)
            item["avgTime"] = round(_avg_days(members) or 0)
        else:
            item["inProgress"] = sum(1 for r in members if r.assignedDate and not r.secureCareAwarded)
        out.append(item)
    out.sort(key=lambda x: (-x["completionRate"], x[attr]))
    return out


def _award_window(db, filters: dict[str, Any]) -> list[SecureCareEmployee]:
    rows = _rows(db, filters, use_place=False)
    if filters.get("startDate") and filters.get("endDate"):
        rows = [r for r in rows if _in_range(r.secureCareAwardedDate, filters)]
    return rows


def facility_performance(db, *, filters: dict[str, Any], cache: Optional[ReadCache] = None) -> list[dict[str, Any]]:
    return _cached(
        cache,
        "facility",
        filters,
        lambda: _group_performance(_award_window(db, filters), "facility", with_time=True),
    )


def area_performance(db, *, filters: dict[str, Any], cache: Optional[ReadCache] = None) -> list[dict[str, Any]]:
    return _cached(
        cache,
        "area",
        filters,
        lambda: _group_performance(_award_window(db, filters), "area", with_time=False),
    )


def _last_months(today: date, count: int) -> list[tuple[int, int]]:
    out = []
    year, month = today.year, today.month
    for _ in range(count):
        out.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(out))


def monthly_trends(
    db, *, filters: dict[str, Any], cache: Optional[ReadCache] = None, today: Optional[date] = None
) -> list[dict[str, Any]]:
    """Awards and new assignments per calendar month, for the six months ending with the current one."""
    today = today or today_utc()

    def build() -> list[dict[str, Any]]:
        months = _last_months(today, 6)
        completed: dict[tuple[int, int], int] = defaultdict(int)
        started: dict[tuple[int, int], int] = defaultdict(int)
        for r in _rows(db, filters):
            if r.secureCareAwarded and r.secureCareAwardedDate:
                completed[(r.secureCareAwardedDate.year, r.secureCareAwardedDate.month)] += 1
            elif r.assignedDate:
                started[(r.assignedDate.year, r.assignedDate.month)] += 1
        return [
            {"year": y, "month": MONTH_LABELS[m - 1], "completed": completed[(y, m)], "inProgress": started[(y, m)]}
            for y, m in months
        ]

    return _cached(cache, "trends", {**filters, "today": today}, build)


def certification_progress(
    db, *, filters: dict[str, Any], cache: Optional[ReadCache] = None
) -> list[dict[str, Any]]:
    def build() -> list[dict[str, Any]]:
        rows = _rows(db, filters, use_level=False)
        if filters.get("startDate") and filters.get("endDate"):
            rows = [r for r in rows if _in_range(r.secureCareAwardedDate, filters)]
        total = len(rows)

        out = []
        for lv in LEVELS:
            members = [r for r in rows if r.awardType == lv.award_type]
            if not members:
                continue
            completed = sum(1 for r in members if r.secureCareAwarded)
            steps = [progress(lv, LevelRecord.from_row(r)) for r in members]
            done = sum(p.completed for p in steps)
            needed = sum(p.total for p in steps)
            out.append(
                {
                    "level": lv.award_type,
                    "total": len(members),
                    "completed": completed,
                    "inProgress": len(members) - completed,
                    "target": round(total * TARGET_SHARE.get(lv.award_type, 0.1)),
                    "efficiency": _rate(completed, total),
                    "avgTime": round(_avg_days(members) or 0),
                    "requirementsPct": _rate(done, needed),
                }
            )
        return out

    return _cached(cache, "certification", filters, build)


def _performance_label(days: int) -> str:
    if days < 120:
        return "Excellent"
    if days < 180:
        return "Good"
    return "Average"


def recent_activity(
    db, *, filters: dict[str, Any], cache: Optional[ReadCache] = None, limit: int = 10
) -> list[dict[str, Any]]:
    """Most recent approved conferences."""

    def build() -> list[dict[str, Any]]:
        rows = [r for r in _rows(db, filters) if r.conferenceCompleted and r.awaiting is False]
        rows.sort(key=lambda r: (r.conferenceCompleted, r.employeeId), reverse=True)
        out = []
        for r in rows[:limit]:
            days = _days(r.assignedDate, r.conferenceCompleted) or 0
            out.append(
                {
                    "employeeId": r.employeeId,
                    "employee": r.name,
                    "facility": r.facility,
                    "achievement": r.awardType,
                    "date": r.conferenceCompleted.isoformat(),
                    "timeToComplete": days,
                    "performance": _performance_label(days),
                }
            )
        return out

    return _cached(cache, "recent", {**filters, "limit": limit}, build)


def metrics(
    db, *, filters: dict[str, Any], cache: Optional[ReadCache] = None, today: Optional[date] = None
) -> dict[str, Any]:
    today = today or today_utc()

    def build() -> dict[str, Any]:
        rows = _rows(db, filters, use_level=False)
        active = [r for r in rows if r.assignedDate and not r.secureCareAwarded]
        since = today - timedelta(days=RECENT_COMPLETION_DAYS)
        return {
            "activeTrainingSessions": len(active),
            "overdueTraining": sum(1 for r in active if (today - r.assignedDate).days > OVERDUE_AFTER_DAYS),
            "recentCompletions": sum(
                1 for r in rows if r.secureCareAwardedDate is not None and r.secureCareAwardedDate >= since
            ),
            "trainingEfficiency": _rate(sum(1 for r in rows if r.secureCareAwarded), len(rows)),
        }

    return _cached(cache, "metrics", {**filters, "today": today}, build)
