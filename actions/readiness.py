from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import select

from actions.employees import apply_filters
from actions.helpers import advisors_by_id, employee_to_dict, json_value
from actions.progression import (
    MILESTONES,
    EmployeeProgress,
    LevelDef,
    LevelRecord,
    is_awarded,
    level,
    previous_level,
    progress,
)
from app.utils.errors import validation_error
from cache_layer import EMPLOYEES, ReadCache, cached_view, make_cache_key, store_view
from models import SecureCareEmployee

E = SecureCareEmployee

_SORT_KEYS = {
    "name": lambda r: ((r.name or "").lower(),),
    "facility": lambda r: ((r.facility or "").lower(),),
    "employeeNumber": lambda r: (r.employeeNumber or "",),
}


def _sort_key(sort_by: str):
    return _SORT_KEYS.get(sort_by, lambda r: ((r.area or "").lower(), (r.name or "").lower()))


def milestones_done(lv: LevelDef, rec: Optional[LevelRecord]) -> bool:
    if rec is None:
        return False
    return all(getattr(rec, MILESTONES[key].complete_attr) for key, _ in lv.milestones)


def ready_for_award(lv: LevelDef | str, employee: EmployeeProgress) -> bool:
    """
    Previous level awarded, every milestone of `lv` completed, `lv` itself not
    yet awarded. Level 1 has no milestones and is never listed.
    """

    if isinstance(lv, str):
        lv = level(lv)
    prev = previous_level(lv)
    rec = employee.record(lv)
    if prev is None or rec is None or is_awarded(rec):
        return False
    return is_awarded(employee.record(prev)) and milestones_done(lv, rec)


def employees_ready_for_award(
    db,
    level_key: str,
    *,
    filters: dict[str, Any],
    cache: Optional[ReadCache] = None,
    page: int = 1,
    limit: int = 50,
    sort_by: str = "area",
    sort_order: str = "asc",
) -> dict[str, Any]:
    lv = level(level_key)
    prev = previous_level(lv)
    if prev is None:
        raise validation_error(f"{lv.award_type} has no award readiness list", {"level": lv.key})

    key = make_cache_key(
        EMPLOYEES,
        scope=["ready", lv.award_type],
        params={**filters, "page": page, "limit": limit, "sortBy": sort_by, "sortOrder": sort_order},
    )
    cached = cached_view(cache, key)
    if cached is not None:
        return cached

    candidates = (
        db.execute(
            apply_filters(select(E), filters).where(E.awardType == lv.award_type).where(E.secureCareAwarded.is_(False))
        )
        .scalars()
        .all()
    )
    numbers = {r.employeeNumber for r in candidates}
    previous: dict[str, SecureCareEmployee] = {}
    if numbers:
        for r in db.execute(
            select(E).where(E.awardType == prev.award_type).where(E.employeeNumber.in_(numbers))
        ).scalars():
            previous[r.employeeNumber] = r

    ready = []
    for row in candidates:
        rows = [row] + ([previous[row.employeeNumber]] if row.employeeNumber in previous else [])
        if ready_for_award(lv, EmployeeProgress.from_rows(rows)):
            ready.append(row)

    ready.sort(key=lambda r: (_sort_key(sort_by)(r), r.employeeNumber), reverse=str(sort_order).lower() == "desc")
    total = len(ready)
    page_rows = ready[(page - 1) * limit : page * limit]

    advisors = advisors_by_id(db, (r.advisorId for r in page_rows))
    items = []
    for r in page_rows:
        item = employee_to_dict(r, advisors.get(r.advisorId))
        item["progress"] = progress(lv, LevelRecord.from_row(r)).to_dict()
        item["previousAwardedDate"] = json_value(previous[r.employeeNumber].secureCareAwardedDate)
        items.append(item)

    out = {
        "level": lv.key,
        "awardType": lv.award_type,
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": max(1, -(-total // limit)),
    }
    store_view(cache, key, out)
    return out
