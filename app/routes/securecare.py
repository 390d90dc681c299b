from __future__ import annotations

from typing import Any, Callable

from flask import Blueprint, current_app, jsonify, request

import db as db_
from actions import advisors as advisor_actions
from actions import audit as audit_actions
from actions import employees as employee_actions
from actions import readiness
from actions import training
from app.utils.auth import client_ip, require_edit_completed_date_permission, require_user
from app.utils.validators import (
    list_arg,
    optional_str,
    parse_calendar_date,
    parse_date_range,
    parse_pagination,
    require_int,
    require_json,
    require_str,
)
from cache_layer import EMPLOYEES, ReadCache

securecare_bp = Blueprint("securecare", __name__)


def _read_cache() -> ReadCache:
    return current_app.extensions["cache"]


def _actor() -> training.Actor:
    cfg = current_app.config["CFG"]
    return training.Actor(
        user=require_user(),
        ip_address=client_ip() or None,
        enforce_gating=cfg.ENFORCE_LEVEL_GATING,
    )


def _mutate(op: Callable[..., dict[str, Any]], **kwargs):
    actor = _actor()
    with db_.session_scope() as db:
        result = op(db, actor=actor, **kwargs)
    _read_cache().invalidate_keys(result["invalidate"])
    return jsonify(result)


def _single_arg(name: str) -> str | None:
    value = optional_str(request.args.get(name))
    if value is None or value.lower() == "all":
        return None
    return value


def _employee_filters() -> dict[str, Any]:
    return {
        "facility": list_arg(request.args, "facility"),
        "area": _single_arg("area"),
        "jobTitle": _single_arg("jobTitle"),
        "search": optional_str(request.args.get("search")),
        "status": _single_arg("status"),
    }


def _sorting(default: str) -> tuple[str, str]:
    sort_by = optional_str(request.args.get("sortBy")) or default
    sort_order = "desc" if str(request.args.get("sortOrder") or "").lower() == "desc" else "asc"
    return sort_by, sort_order


# Reads


@securecare_bp.get("/employees/<level_key>")
def employees_by_level(level_key: str):
    page, limit = parse_pagination(request.args)
    sort_by, sort_order = _sorting("name")
    with db_.session_scope() as db:
        data = employee_actions.list_employees_by_level(
            db,
            level_key,
            filters=_employee_filters(),
            cache=_read_cache(),
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    return jsonify({"success": True, "data": data})


@securecare_bp.get("/employee/<int:employee_id>")
def employee(employee_id: int):
    with db_.session_scope() as db:
        data = employee_actions.get_employee(db, employee_id)
    return jsonify({"success": True, "data": data})


@securecare_bp.get("/employee/<int:employee_id>/levels")
def employee_levels(employee_id: int):
    with db_.session_scope() as db:
        data = employee_actions.get_employee_levels(db, employee_id, cache=_read_cache())
    return jsonify({"success": True, "data": data})


@securecare_bp.get("/employee-data")
def employee_data():
    page, limit = parse_pagination(request.args, default_limit=1000, max_limit=5000)
    sort_by, sort_order = _sorting("area")
    filters = _employee_filters()
    filters.pop("status", None)
    with db_.session_scope() as db:
        data = employee_actions.employee_data(
            db,
            filters=filters,
            cache=_read_cache(),
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    return jsonify({"success": True, "data": data})


@securecare_bp.get("/filters")
def filters():
    with db_.session_scope() as db:
        data = employee_actions.filter_options(db, cache=_read_cache())
    return jsonify({"success": True, "data": data})


@securecare_bp.get("/dashboard")
def dashboard():
    with db_.session_scope() as db:
        data = employee_actions.dashboard_summary(db, cache=_read_cache())
    return jsonify({"success": True, "data": data})


@securecare_bp.get("/ready/<level_key>")
def ready_for_award(level_key: str):
    page, limit = parse_pagination(request.args)
    sort_by, sort_order = _sorting("area")
    filters = _employee_filters()
    filters.pop("status", None)
    with db_.session_scope() as db:
        data = readiness.employees_ready_for_award(
            db,
            level_key,
            filters=filters,
            cache=_read_cache(),
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    return jsonify({"success": True, "data": data})


# Training mutations


@securecare_bp.post("/schedule")
@securecare_bp.post("/reschedule")
def schedule():
    body = require_json()
    return _mutate(
        training.schedule_training,
        employee_id=require_int(body.get("employeeId"), "employeeId"),
        column_name=require_str(body.get("columnName"), "columnName"),
        when=parse_calendar_date(body.get("date"), "date"),
    )


@securecare_bp.post("/complete")
def complete():
    body = require_json()
    return _mutate(
        training.complete_training,
        employee_id=require_int(body.get("employeeId"), "employeeId"),
        schedule_column=require_str(body.get("scheduleColumn"), "scheduleColumn"),
        complete_column=require_str(body.get("completeColumn"), "completeColumn"),
    )


@securecare_bp.post("/edit-completed-date")
@require_edit_completed_date_permission
def edit_completed_date():
    body = require_json()
    return _mutate(
        training.edit_completed_date,
        employee_id=require_int(body.get("employeeId"), "employeeId"),
        schedule_column=require_str(body.get("scheduleColumn"), "scheduleColumn"),
        complete_column=require_str(body.get("completeColumn"), "completeColumn"),
        when=parse_calendar_date(body.get("date"), "date"),
    )


@securecare_bp.post("/approve")
def approve():
    body = require_json()
    return _mutate(
        training.approve_conference,
        employee_id=require_int(body.get("employeeId"), "employeeId"),
        notes=optional_str(body.get("notes")),
    )


@securecare_bp.post("/reject")
def reject():
    body = require_json()
    return _mutate(
        training.reject_conference,
        employee_id=require_int(body.get("employeeId"), "employeeId"),
        notes=optional_str(body.get("notes")),
    )


@securecare_bp.post("/update-notes")
def update_notes():
    body = require_json()
    return _mutate(
        training.update_notes,
        employee_id=require_int(body.get("employeeId"), "employeeId"),
        notes=optional_str(body.get("notes")),
    )


@securecare_bp.post("/update-advisor")
def update_advisor():
    body = require_json()
    raw = body.get("advisorId")
    advisor_id = None if raw in (None, "") else require_int(raw, "advisorId")
    return _mutate(
        training.update_advisor,
        employee_id=require_int(body.get("employeeId"), "employeeId"),
        advisor_id=advisor_id,
    )


# Advisors


@securecare_bp.get("/advisors")
def advisors():
    with db_.session_scope() as db:
        data = advisor_actions.list_advisors(db)
    return jsonify({"success": True, "data": data})


@securecare_bp.post("/advisors")
def add_advisor():
    user = require_user()
    body = require_json()
    with db_.session_scope() as db:
        advisor = advisor_actions.add_advisor(
            db,
            first_name=body.get("firstName"),
            last_name=body.get("lastName"),
            user=user,
            ip_address=client_ip() or None,
        )
        data = advisor_actions.advisor_to_dict(advisor)
    # Listings carry advisor names.
    _read_cache().invalidate_keys([EMPLOYEES])
    return jsonify({"success": True, "message": "Advisor added", "data": data}), 201


# Audit log


@securecare_bp.get("/audit-logs")
def audit_logs():
    start, end, _, _ = parse_date_range(request.args, from_key="startDate", to_key="endDate", required=False)
    page, limit = parse_pagination(request.args)
    with db_.session_scope() as db:
        data = audit_actions.query_audit_logs(
            db,
            start=start,
            end=end,
            user=_single_arg("user"),
            action=_single_arg("action"),
            search=optional_str(request.args.get("search")),
            page=page,
            limit=limit,
        )
    return jsonify({"success": True, "data": data})


@securecare_bp.get("/audit-logs/users")
def audit_log_users():
    with db_.session_scope() as db:
        data = audit_actions.audit_users(db)
    return jsonify({"success": True, "data": data})


@securecare_bp.get("/audit-logs/stats")
def audit_log_stats():
    with db_.session_scope() as db:
        data = audit_actions.audit_stats(db)
    return jsonify({"success": True, "data": data})


@securecare_bp.get("/audit-logs/actions")
def audit_log_actions():
    return jsonify({"success": True, "data": audit_actions.audit_actions()})
