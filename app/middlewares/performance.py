from __future__ import annotations

import logging
import threading
import time
from typing import Any

from flask import Flask, g, request


class RequestMetrics:
    """Per-endpoint latency counters. One instance per app, kept in `app.extensions["metrics"]`."""

    def __init__(self, slow_ms: int = 1000):
        self.slow_ms = slow_ms
        self._lock = threading.Lock()
        self._stats: dict[str, dict[str, Any]] = {}

    def record(self, key: str, latency_ms: float, status: int) -> bool:
        slow = latency_ms >= self.slow_ms
        with self._lock:
            s = self._stats.setdefault(
                key, {"count": 0, "totalMs": 0.0, "maxMs": 0.0, "slow": 0, "errors": 0}
            )
            s["count"] += 1
            s["totalMs"] += latency_ms
            s["maxMs"] = max(s["maxMs"], latency_ms)
            if slow:
                s["slow"] += 1
            if status >= 500:
                s["errors"] += 1
        return slow

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            out = {}
            for key, s in sorted(self._stats.items()):
                out[key] = {
                    "count": s["count"],
                    "avgMs": round(s["totalMs"] / s["count"], 2) if s["count"] else 0.0,
                    "maxMs": round(s["maxMs"], 2),
                    "slow": s["slow"],
                    "errors": s["errors"],
                }
            return out

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


def init_performance(app: Flask) -> None:
    cfg = app.config["CFG"]
    metrics = RequestMetrics(slow_ms=cfg.SLOW_REQUEST_MS)
    app.extensions["metrics"] = metrics
    logger = logging.getLogger("app.performance")

    @app.after_request
    def _measure(resp):
        start = getattr(g, "start_ts", None)
        if not isinstance(start, (int, float)):
            return resp
        latency_ms = (time.monotonic() - start) * 1000
        rule = request.url_rule.rule if request.url_rule is not None else request.path
        key = f"{request.method} {rule}"
        if metrics.record(key, latency_ms, resp.status_code):
            logger.warning(
                "Slow request %s latency_ms=%d request_id=%s",
                key,
                int(latency_ms),
                getattr(g, "request_id", ""),
            )
        return resp
