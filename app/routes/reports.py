from __future__ import annotations

from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

import db as db_
from app.reports.excel import build_workbook_bytes
from app.reports.queries import activity_summary, audit_rows, level_roster, level_summary
from app.utils.errors import validation_error
from app.utils.validators import parse_date_range

reports_bp = Blueprint("reports", __name__)


@reports_bp.get("/summary")
def summary():
    start, end, from_s, to_s = parse_date_range(request.args, required=False)
    cache = current_app.extensions["cache"]
    with db_.session_scope() as db:
        data = {"levels": level_summary(db, cache=cache), "activity": activity_summary(db, start, end)}
    return jsonify({"success": True, "data": {"from": from_s or None, "to": to_s or None, **data}})


@reports_bp.get("/export.xlsx")
def export_xlsx():
    report_type = str(request.args.get("type") or "").strip().lower() or "levels"
    if report_type not in {"levels", "audit"}:
        raise validation_error("type must be levels|audit", {"type": report_type})

    start, end, from_s, to_s = parse_date_range(request.args, required=report_type == "audit")
    cache = current_app.extensions["cache"]
    with db_.session_scope() as db:
        if report_type == "levels":
            payload = {"levels": level_summary(db, cache=cache), "roster": level_roster(db)}
        else:
            payload = {"audit": audit_rows(db, start, end)}

    xlsx_bytes = build_workbook_bytes(
        report_type=report_type,
        from_s=from_s,
        to_s=to_s,
        timezone_display=current_app.config["CFG"].TIMEZONE_DISPLAY,
        data=payload,
    )

    suffix = f"_{from_s}_{to_s}" if from_s and to_s else ""
    return send_file(
        BytesIO(xlsx_bytes),
        as_attachment=True,
        download_name=f"securecare_{report_type}{suffix}.xlsx",
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
