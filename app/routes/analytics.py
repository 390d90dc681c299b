from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify, request

import db as db_
from actions import analytics
from app.utils.errors import validation_error
from app.utils.validators import list_arg, optional_str, parse_calendar_date

analytics_bp = Blueprint("analytics", __name__)


def _filters() -> dict[str, Any]:
    """`facility` (repeatable), `area`, `level` and an inclusive `startDate`/`endDate` award window."""
    out: dict[str, Any] = {"facility": list_arg(request.args, "facility")}
    for name in ("area", "level"):
        value = optional_str(request.args.get(name))
        out[name] = None if value is None or value.lower() == "all" else value

    start_s = optional_str(request.args.get("startDate"))
    end_s = optional_str(request.args.get("endDate"))
    if bool(start_s) != bool(end_s):
        raise validation_error("startDate and endDate must be given together")
    out["startDate"] = parse_calendar_date(start_s, "startDate") if start_s else None
    out["endDate"] = parse_calendar_date(end_s, "endDate") if end_s else None
    if out["startDate"] and out["endDate"] < out["startDate"]:
        raise validation_error("Invalid date range")
    return out


def _respond(fn):
    filters = _filters()
    with db_.session_scope() as db:
        data = fn(db, filters=filters, cache=current_app.extensions["cache"])
    return jsonify({"success": True, "data": data})


@analytics_bp.get("/overview")
def overview():
    return _respond(analytics.overview)


@analytics_bp.get("/facility-performance")
def facility_performance():
    return _respond(analytics.facility_performance)


@analytics_bp.get("/area-performance")
def area_performance():
    return _respond(analytics.area_performance)


@analytics_bp.get("/monthly-trends")
def monthly_trends():
    return _respond(analytics.monthly_trends)


@analytics_bp.get("/certification-progress")
def certification_progress():
    return _respond(analytics.certification_progress)


@analytics_bp.get("/recent-activity")
def recent_activity():
    return _respond(analytics.recent_activity)


@analytics_bp.get("/metrics")
def metrics():
    return _respond(analytics.metrics)
