from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Optional

from sqlalchemy import and_, func, or_, select

from actions.helpers import (
    advisors_by_id,
    employee_to_dict,
    get_employee_row,
    like_pattern,
    rows_for_employee_number,
)
from actions.progression import LEVELS, EmployeeProgress, LevelRecord, level, progress, summarize
from app.utils.datetime import today_utc
from app.utils.errors import validation_error
from cache_layer import EMPLOYEE, EMPLOYEES, LEVEL_STATS, ReadCache, cached_view, make_cache_key, store_view
from models import SecureCareEmployee

E = SecureCareEmployee

STATUSES = ("awarded", "in-progress", "awaiting", "rejected")
SORTABLE = {
    "name": E.name,
    "facility": E.facility,
    "area": E.area,
    "employeeNumber": E.employeeNumber,
    "awardType": E.awardType,
}
# Days after assignment before an unawarded level counts as overdue.
OVERDUE_DAYS = {"Level 1": 30, "Level 2": 45, "Level 3": 60}


def _status_condition(status: str):
    not_awarded = E.secureCareAwarded.is_(False)
    has_conference = E.conferenceCompleted.isnot(None)
    if status == "awarded":
        return E.secureCareAwarded.is_(True)
    if status == "in-progress":
        return or_(
            and_(E.awardType == "Level 1", E.assignedDate.isnot(None), not_awarded),
            and_(E.awardType != "Level 1", has_conference, E.awaiting.is_(False), not_awarded),
        )
    if status == "awaiting":
        return and_(has_conference, E.awaiting.is_(True))
    if status == "rejected":
        return and_(has_conference, E.awaiting.is_(None))
    raise validation_error(f"Unknown status: {status}", {"allowed": list(STATUSES)})


def apply_filters(stmt, filters: dict[str, Any]):
    facilities = filters.get("facility") or []
    if facilities:
        stmt = stmt.where(E.facility.in_(facilities))
    if filters.get("area"):
        stmt = stmt.where(E.area == filters["area"])
    if filters.get("jobTitle"):
        stmt = stmt.where(E.staffRole == filters["jobTitle"])
    if filters.get("search"):
        pattern = like_pattern(filters["search"])
        stmt = stmt.where(or_(E.name.ilike(pattern, escape="\\"), E.employeeNumber.ilike(pattern, escape="\\")))
    return stmt


def _page_meta(total: int, page: int, limit: int) -> dict[str, int]:
    return {"total": total, "page": page, "limit": limit, "totalPages": max(1, -(-total // limit))}


def list_employees_by_level(
    db,
    level_key: str,
    *,
    cache: Optional[ReadCache] = None,
    filters: dict[str, Any],
    page: int = 1,
    limit: int = 50,
    sort_by: str = "name",
    sort_order: str = "asc",
) -> dict[str, Any]:
    """Paginated level rows; `level_key` may be `all`."""
    award_type = None if str(level_key or "").lower() == "all" else level(level_key).award_type
    status = str(filters.get("status") or "").strip().lower()
    if status == "all":
        status = ""

    key = make_cache_key(
        EMPLOYEES,
        scope=["level", award_type or "all"],
        params={**filters, "status": status, "page": page, "limit": limit, "sortBy": sort_by, "sortOrder": sort_order},
    )
    cached = cached_view(cache, key)
    if cached is not None:
        return cached

    stmt = apply_filters(select(E), filters)
    count_stmt = apply_filters(select(func.count(E.employeeId)), filters)
    if award_type:
        stmt = stmt.where(E.awardType == award_type)
        count_stmt = count_stmt.where(E.awardType == award_type)
    if status:
        cond = _status_condition(status)
        stmt = stmt.where(cond)
        count_stmt = count_stmt.where(cond)

    column = SORTABLE.get(sort_by, E.name)
    ordering = column.desc() if str(sort_order).lower() == "desc" else column.asc()
    rows = (
        db.execute(stmt.order_by(ordering, E.employeeId).offset((page - 1) * limit).limit(limit)).scalars().all()
    )
    total = int(db.execute(count_stmt).scalar_one())

    advisors = advisors_by_id(db, (r.advisorId for r in rows))
    items = []
    for r in rows:
        item = employee_to_dict(r, advisors.get(r.advisorId))
        item["progress"] = progress(r.awardType, LevelRecord.from_row(r)).to_dict()
        items.append(item)

    out = {"items": items, **_page_meta(total, page, limit)}
    store_view(cache, key, out)
    return out


def get_employee(db, employee_id: int) -> dict[str, Any]:
    row = get_employee_row(db, employee_id)
    advisor = advisors_by_id(db, [row.advisorId]).get(row.advisorId)
    return employee_to_dict(row, advisor)


def get_employee_levels(db, employee_id: int, *, cache: Optional[ReadCache] = None) -> dict[str, Any]:
    """Every level row of the person owning `employee_id`, with the derived progression view."""
    key = make_cache_key(EMPLOYEE, scope=[str(employee_id)], params={"view": "levels"})
    cached = cached_view(cache, key)
    if cached is not None:
        return cached

    row = get_employee_row(db, employee_id)
    rows = rows_for_employee_number(db, row.employeeNumber)
    advisors = advisors_by_id(db, (r.advisorId for r in rows))
    out = {
        "employeeNumber": row.employeeNumber,
        "levels": [employee_to_dict(r, advisors.get(r.advisorId)) for r in rows],
        "progression": summarize(EmployeeProgress.from_rows(rows)),
    }
    store_view(cache, key, out)
    return out


def employee_data(
    db,
    *,
    cache: Optional[ReadCache] = None,
    filters: dict[str, Any],
    page: int = 1,
    limit: int = 1000,
    sort_by: str = "area",
    sort_order: str = "asc",
) -> dict[str, Any]:
    """One flat row per employee number with every level's fields pivoted in."""
    key = make_cache_key(
        EMPLOYEES,
        scope=["data"],
        params={**filters, "page": page, "limit": limit, "sortBy": sort_by, "sortOrder": sort_order},
    )
    cached = cached_view(cache, key)
    if cached is not None:
        return cached

    grouped = apply_filters(
        select(
            E.employeeNumber,
            func.max(E.employeeId).label("employeeId"),
            func.max(E.name).label("name"),
            func.max(E.facility).label("facility"),
            func.max(E.area).label("area"),
            func.max(E.staffRole).label("staffRole"),
        ),
        filters,
    ).group_by(E.employeeNumber)
    people = grouped.subquery()

    desc = str(sort_order).lower() == "desc"

    def _dir(col):
        return col.desc() if desc else col.asc()

    if sort_by == "name":
        order = [_dir(people.c.name)]
    elif sort_by == "facility":
        order = [_dir(people.c.facility)]
    elif sort_by in {"employeeId", "employeeNumber"}:
        order = [_dir(people.c.employeeNumber)]
    else:
        order = [_dir(people.c.area), _dir(people.c.name)]

    total = int(db.execute(select(func.count()).select_from(people)).scalar_one())
    page_rows = db.execute(
        select(people).order_by(*order, people.c.employeeNumber).offset((page - 1) * limit).limit(limit)
    ).all()

    numbers = [p.employeeNumber for p in page_rows]
    level_rows: dict[str, list[SecureCareEmployee]] = {n: [] for n in numbers}
    if numbers:
        for r in db.execute(select(E).where(E.employeeNumber.in_(numbers)).order_by(E.employeeId)).scalars():
            level_rows[r.employeeNumber].append(r)
    advisors = advisors_by_id(db, (r.advisorId for rows in level_rows.values() for r in rows))

    items = []
    for p in page_rows:
        rows = level_rows[p.employeeNumber]
        emp = EmployeeProgress.from_rows(rows)
        flat = {
            "employeeId": p.employeeId,
            "employeeNumber": p.employeeNumber,
            "name": p.name,
            "facility": p.facility,
            "area": p.area,
            "staffRole": p.staffRole,
        }
        flat.update({k: v for k, v in emp.to_flat().items() if k not in flat})
        for lv in LEVELS:
            rec = emp.record(lv)
            advisor = advisors.get(rec.advisorId) if rec is not None and rec.advisorId is not None else None
            flat[lv.flat_prefix + "AdvisorName"] = advisor.fullName if advisor is not None else None
        items.append(flat)

    out = {"items": items, **_page_meta(total, page, limit)}
    store_view(cache, key, out)
    return out


def filter_options(db, *, cache: Optional[ReadCache] = None) -> dict[str, list[str]]:
    key = make_cache_key(EMPLOYEES, scope=["filters"])
    cached = cached_view(cache, key)
    if cached is not None:
        return cached

    def _distinct(col) -> list[str]:
        rows = db.execute(select(col).where(col.isnot(None)).where(col != "").distinct().order_by(col)).scalars()
        return [str(v) for v in rows]

    out = {"facilities": _distinct(E.facility), "areas": _distinct(E.area), "jobTitles": _distinct(E.staffRole)}
    store_view(cache, key, out)
    return out


def _is_overdue(row: SecureCareEmployee, today: date) -> bool:
    days = OVERDUE_DAYS.get(row.awardType)
    if days is None or row.secureCareAwarded or not row.assignedDate:
        return False
    return row.assignedDate + timedelta(days=days) < today


def _in_progress(row: SecureCareEmployee) -> bool:
    if row.secureCareAwarded:
        return False
    if row.awardType == "Level 1":
        return bool(row.assignedDate)
    return bool(row.conferenceCompleted) and row.awaiting is False


def dashboard_summary(db, *, cache: Optional[ReadCache] = None, today: Optional[date] = None) -> dict[str, Any]:
    """Per-level completed/in-progress/pending/overdue counts and completion rates."""
    key = make_cache_key(LEVEL_STATS, scope=["dashboard"], params={"today": str(today or "")})
    cached = cached_view(cache, key)
    if cached is not None:
        return cached

    today = today or today_utc()
    rows = db.execute(select(E)).scalars().all()

    by_person: dict[str, dict[str, SecureCareEmployee]] = {}
    for r in rows:
        by_person.setdefault(r.employeeNumber, {})[r.awardType] = r

    counts: dict[str, dict[str, int]] = {}
    completion: dict[str, int] = {}
    for idx, lv in enumerate(LEVELS):
        level_rows = [r for r in rows if r.awardType == lv.award_type]
        completed = sum(1 for r in level_rows if r.secureCareAwarded)
        if idx == 0:
            pending = sum(1 for r in level_rows if not r.assignedDate)
        else:
            prev = LEVELS[idx - 1].award_type
            pending = sum(
                1
                for person in by_person.values()
                if prev in person and person[prev].secureCareAwarded and lv.award_type not in person
            )
        counts[lv.flat_prefix] = {
            "total": len(level_rows),
            "completed": completed,
            "inProgress": sum(1 for r in level_rows if _in_progress(r)),
            "pending": pending,
            "overdue": sum(1 for r in level_rows if _is_overdue(r, today)),
        }
        completion[lv.flat_prefix] = round(completed / max(len(level_rows), 1) * 100)

    out = {
        "total": len(by_person),
        "totalCompleted": sum(c["completed"] for c in counts.values()),
        "totalInProgress": sum(c["inProgress"] for c in counts.values()),
        "totalPending": sum(c["pending"] for c in counts.values()),
        "totalOverdue": sum(c["overdue"] for c in counts.values()),
        "awaitingApprovals": sum(1 for r in rows if r.awardType != "Level 1" and r.awaiting is True),
        "rejectedApprovals": sum(1 for r in rows if r.conferenceCompleted and r.awaiting is None),
        "completion": completion,
        "counts": counts,
    }
    store_view(cache, key, out)
    return out
