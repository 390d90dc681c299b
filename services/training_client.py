from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional

import requests
from cachetools import TTLCache

from actions.formatting import calendar_date
from actions.progression import MILESTONES, Milestone

AWARD_KEYS = frozenset({"secureCareAwarded", "secureCareAwardedDate", "awarded"})


class TrainingClientError(Exception):
    pass


class RequestFailed(TrainingClientError):
    """Transport failure or non-2xx answer from the training API."""

    def __init__(self, status_text: str, *, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(status_text)
        self.status_text = status_text
        self.status = status
        self.code = code


class ReadOnly(TrainingClientError):
    def __init__(self, message: str = "Awards are read-only"):
        super().__init__(message)


@dataclass(frozen=True)
class MutationResult:
    success: bool
    message: str
    invalidate: tuple[str, ...] = ()
    record: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "MutationResult":
        return cls(
            success=bool(payload.get("success")),
            message=str(payload.get("message") or ""),
            invalidate=tuple(str(k) for k in payload.get("invalidate") or ()),
            record=dict(payload.get("record") or {}),
        )


class ViewCache:
    """
    Client-side read cache for employee views, listings and level statistics.

    Keys are colon-separated (`EMPLOYEE:42:levels`); invalidating `EMPLOYEE:42`
    drops that key and everything under it.
    """

    def __init__(self, *, ttl_seconds: int = 300, max_items: int = 1024):
        self._cache: TTLCache = TTLCache(maxsize=max_items, ttl=ttl_seconds)
        self._lock = threading.RLock()

    def get(self, key: str) -> Any:
        with self._lock:
            return self._cache.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._cache[key] = value

    def invalidate_many(self, keys: Iterable[str]) -> int:
        prefixes = [str(k) for k in keys if str(k or "")]
        with self._lock:
            stale = [k for k in self._cache.keys() if any(k == p or k.startswith(p + ":") for p in prefixes)]
            for k in stale:
                self._cache.pop(k, None)
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


def _milestone(requirement_key: str) -> Milestone:
    if requirement_key in AWARD_KEYS:
        raise ReadOnly()
    m = MILESTONES.get(requirement_key)
    if m is None:
        raise TrainingClientError(f"Unknown requirement: {requirement_key}")
    return m


def _date_param(value: Any) -> str:
    d = calendar_date(value)
    if d is None:
        raise TrainingClientError(f"Invalid date: {value!r}")
    return d.isoformat()


class TrainingClient:
    """One HTTP request per training mutation against `/api/securecare`."""

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        user: Optional[str] = None,
        timeout: float = 15.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.user = user
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.user:
            headers["X-User-Email"] = self.user
        return headers

    def _post(self, path: str, body: dict[str, Any]) -> MutationResult:
        url = f"{self.base_url}/api/securecare{path}"
        try:
            resp = self.session.post(url, json=body, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise RequestFailed(str(e) or e.__class__.__name__) from e

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if not 200 <= resp.status_code < 300:
            error = (payload or {}).get("error") if isinstance(payload, dict) else None
            error = error if isinstance(error, dict) else {}
            raise RequestFailed(
                str(error.get("message") or resp.reason or f"HTTP {resp.status_code}"),
                status=resp.status_code,
                code=error.get("code"),
            )
        if not isinstance(payload, dict):
            raise RequestFailed("Malformed response", status=resp.status_code)
        return MutationResult.from_payload(payload)

    def schedule(self, employee_id: int, requirement_key: str, when: date | str) -> MutationResult:
        m = _milestone(requirement_key)
        return self._post(
            "/schedule",
            {"employeeId": employee_id, "columnName": m.schedule_column, "date": _date_param(when)},
        )

    def reschedule(self, employee_id: int, requirement_key: str, when: date | str) -> MutationResult:
        m = _milestone(requirement_key)
        return self._post(
            "/reschedule",
            {"employeeId": employee_id, "columnName": m.schedule_column, "date": _date_param(when)},
        )

    def complete(self, employee_id: int, requirement_key: str) -> MutationResult:
        # No date is sent: the server copies the stored scheduled date.
        m = _milestone(requirement_key)
        return self._post(
            "/complete",
            {"employeeId": employee_id, "scheduleColumn": m.schedule_column, "completeColumn": m.complete_column},
        )

    def approve_conference(self, employee_id: int, notes: Optional[str] = None) -> MutationResult:
        return self._post("/approve", {"employeeId": employee_id, "notes": notes})

    def reject_conference(self, employee_id: int, notes: Optional[str] = None) -> MutationResult:
        return self._post("/reject", {"employeeId": employee_id, "notes": notes})

    def award(self, employee_id: int, *args: Any, **kwargs: Any) -> MutationResult:
        raise ReadOnly()
