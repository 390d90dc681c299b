from __future__ import annotations

import logging
from typing import Any

from flask import Flask, g, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from app.utils.errors import ApiError


def _payload(code: str, message: str, details: Any = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": False,
        "error": {"code": code, "message": message, "details": details},
    }
    if getattr(g, "request_id", None):
        payload["request_id"] = g.request_id
    return payload


def init_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(err: ApiError):
        return jsonify(_payload(err.code, err.message, err.details)), err.status

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        code = int(err.code or 500)
        return jsonify(_payload(f"HTTP_{code}", str(err.description or "HTTP error"))), code

    @app.errorhandler(IntegrityError)
    def _integrity_error(err: IntegrityError):
        logging.getLogger("app").warning(
            "Integrity error request_id=%s err=%s", getattr(g, "request_id", ""), err.orig
        )
        return jsonify(_payload("VALIDATION_ERROR", "Write violates a database constraint")), 400

    @app.errorhandler(Exception)
    def _unhandled(err: Exception):
        logging.getLogger("app").exception(
            "Unhandled exception request_id=%s", getattr(g, "request_id", "")
        )
        return jsonify(_payload("INTERNAL", "Unexpected error")), 500
