from __future__ import annotations

import functools
from typing import Any, Callable, TypeVar

from flask import current_app, g, request

from app.utils.errors import ApiError

_T = TypeVar("_T", bound=Callable[..., Any])

# Set by the hosting platform's authentication proxy.
PRINCIPAL_HEADER = "X-MS-CLIENT-PRINCIPAL-NAME"


def client_ip() -> str:
    cfg = current_app.config["CFG"]
    ip = request.remote_addr or ""
    if cfg.TRUST_PROXY_HEADERS:
        ip = request.headers.get("X-Forwarded-For", ip)
    if ip and "," in ip:
        ip = ip.split(",", 1)[0].strip()
    return ip


def current_user_identifier() -> str:
    """
    Acting user for audit rows.

    Outside production a developer can impersonate via `X-User-Email` or
    `?user=`; in production only the platform principal header counts.
    """

    principal = str(request.headers.get(PRINCIPAL_HEADER) or "").strip()
    if principal:
        return principal.lower()

    cfg = current_app.config["CFG"]
    if not cfg.IS_PRODUCTION:
        fallback = str(request.headers.get("X-User-Email") or request.args.get("user") or "").strip()
        if fallback:
            return fallback.lower()
    return ""


def require_user() -> str:
    user = current_user_identifier()
    if not user:
        raise ApiError("AUTH_REQUIRED", "User identity required", status=401)
    g.user_identifier = user
    return user


def require_edit_completed_date_permission(fn: _T) -> _T:
    @functools.wraps(fn)
    def _wrapped(*args, **kwargs):
        user = require_user()
        allowed = current_app.config["CFG"].EDIT_COMPLETED_DATE_PERMISSIONS
        if user not in allowed:
            raise ApiError(
                "FORBIDDEN",
                "You do not have permission to edit completed dates",
                status=403,
                details={"user": user},
            )
        return fn(*args, **kwargs)

    return _wrapped  # type: ignore[return-value]
