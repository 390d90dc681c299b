from __future__ import annotations

from flask import Flask, request

from app.utils.auth import client_ip
from app.utils.rate_limiter import InMemoryRateLimiter

_MUTATING = {"POST", "PUT", "PATCH", "DELETE"}


def init_rate_limiting(app: Flask) -> None:
    cfg = app.config["CFG"]
    limiter = InMemoryRateLimiter()
    app.extensions["rate_limiter"] = limiter

    @app.before_request
    def _rate_limit():
        path = request.path or ""
        if not path.startswith("/api/"):
            return None

        ip = client_ip()
        limiter.check(f"{ip}:GLOBAL", cfg.RATE_LIMIT_GLOBAL)
        if request.method in _MUTATING:
            limiter.check(f"{ip}:MUTATION", cfg.RATE_LIMIT_MUTATION)
        else:
            limiter.check(f"{ip}:PATH:{path}", cfg.RATE_LIMIT_DEFAULT)
        return None
