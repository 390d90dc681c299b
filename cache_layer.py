from __future__ import annotations

import hashlib
import json
import threading
from typing import Any, Iterable

from cachetools import TTLCache

# Namespaces of derived read views. Every training mutation invalidates all three.
EMPLOYEE = "EMPLOYEE"
EMPLOYEES = "EMPLOYEES"
LEVEL_STATS = "LEVEL_STATS"


def _sha256_16(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]


def make_cache_key(namespace: str, *, scope: list[str] | None = None, params: dict[str, Any] | None = None) -> str:
    ns = str(namespace or "").strip().upper()
    scope = scope or []
    params = params or {}
    try:
        blob = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    except Exception:
        blob = str(params)
    parts = [ns] + [str(s or "").strip() for s in scope if str(s or "").strip()] + [_sha256_16(blob)]
    return ":".join(parts)


def mutation_invalidation_keys(employee_id: int | str) -> list[str]:
    """Named views made stale by a mutation of one employee row."""
    return [f"{EMPLOYEE}:{employee_id}", EMPLOYEES, LEVEL_STATS]


class ReadCache:
    """TTL cache of derived read views. One instance per app, kept in `app.extensions["cache"]`."""

    def __init__(self, *, ttl_seconds: int = 300, max_items: int = 10000):
        self._cache = TTLCache(maxsize=max(1, max_items), ttl=max(1, ttl_seconds))
        self._lock = threading.RLock()

    def get(self, key: str) -> Any:
        with self._lock:
            return self._cache.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._cache[key] = value

    def _drop_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._cache.keys() if str(k).startswith(prefix)]
            for k in keys:
                self._cache.pop(k, None)
        return len(keys)

    def invalidate_keys(self, keys: Iterable[str]) -> int:
        """
        Drop every cached view under the namespaces named by `keys`.

        An employee's views span all of its level rows, so `EMPLOYEE:<id>` drops
        the whole EMPLOYEE namespace rather than only that id.
        """

        removed = 0
        namespaces = {str(k or "").split(":", 1)[0].strip().upper() for k in keys}
        for ns in sorted(n for n in namespaces if n):
            removed += self._drop_prefix(ns + ":")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


def cached_view(cache: ReadCache | None, key: str) -> Any:
    return cache.get(key) if cache is not None else None


def store_view(cache: ReadCache | None, key: str, value: Any) -> None:
    if cache is not None:
        cache.set(key, value)
