from __future__ import annotations

from datetime import date
from io import BytesIO

from openpyxl import load_workbook

from app.utils.datetime import iso_utc_now
from db import SessionLocal
from models import AuditLog, SecureCareEmployee


def _seed() -> None:
    db = SessionLocal()
    try:
        now = iso_utc_now()
        db.add_all(
            [
                SecureCareEmployee(
                    employeeNumber="E1",
                    name="Alice Adams",
                    facility="North Campus",
                    area="Memory Care",
                    staffRole="CNA",
                    awardType="Level 1",
                    assignedDate=date(2024, 1, 2),
                    conferenceCompleted=date(2024, 1, 20),
                    awaiting=False,
                    secureCareAwarded=True,
                    secureCareAwardedDate=date(2024, 1, 31),
                    updatedAt=now,
                    updatedBy="TEST",
                ),
                SecureCareEmployee(
                    employeeNumber="E2",
                    name="Bob Brown",
                    facility="South Campus",
                    area="Rehab",
                    staffRole="RN",
                    awardType="Level 1",
                    updatedAt=now,
                    updatedBy="TEST",
                ),
                AuditLog(
                    timestamp="2026-01-01T10:00:00.000Z",
                    userIdentifier="a@example.com",
                    action="TRAINING_SCHEDULED",
                    tableName="securecare_employees",
                    recordId="1",
                    employeeName="Alice Adams",
                ),
                AuditLog(
                    timestamp="2026-01-03T10:00:00.000Z",
                    userIdentifier="a@example.com",
                    action="NOTES_UPDATED",
                    tableName="securecare_employees",
                    recordId="1",
                    employeeName="Alice Adams",
                ),
            ]
        )
        db.commit()
    finally:
        db.close()


def test_reports_summary(app_client):
    _app, client = app_client
    _seed()

    res = client.get("/api/securecare/reports/summary?from=2026-01-01&to=2026-01-02")
    assert res.status_code == 200
    payload = res.get_json()
    assert payload["success"] is True
    data = payload["data"]
    assert data["from"] == "2026-01-01"
    assert [lv["level"] for lv in data["levels"]] == ["Level 1", "Level 2", "Level 3", "Consultant", "Coach"]
    assert data["levels"][0]["completed"] == 1
    assert data["levels"][0]["completionPct"] == 50
    assert data["activity"]["total"] == 1
    assert data["activity"]["byAction"] == [
        {"action": "TRAINING_SCHEDULED", "label": "Training Scheduled", "count": 1}
    ]

    res = client.get("/api/securecare/reports/summary")
    assert res.get_json()["data"]["activity"]["total"] == 2


def test_export_levels_workbook(app_client):
    _app, client = app_client
    _seed()

    res = client.get("/api/securecare/reports/export.xlsx?type=levels")
    assert res.status_code == 200
    assert "spreadsheetml" in res.headers["Content-Type"]
    assert "securecare_levels.xlsx" in res.headers["Content-Disposition"]

    wb = load_workbook(BytesIO(res.data))
    assert wb.sheetnames == ["Meta", "Levels", "Roster"]

    roster = list(wb["Roster"].iter_rows(values_only=True))
    assert roster[0][:5] == ("employeeNumber", "name", "facility", "area", "awardType")
    alice = [r for r in roster if r[0] == "E1"][0]
    assert alice[7] == "Awaiting 1/20/2024"
    assert alice[8] == "1/31/2024"
    bob = [r for r in roster if r[0] == "E2"][0]
    assert bob[5] == "—"
    assert bob[8] == "Pending"


def test_export_audit_requires_range(app_client):
    _app, client = app_client
    _seed()

    res = client.get("/api/securecare/reports/export.xlsx?type=audit")
    assert res.status_code == 400

    res = client.get("/api/securecare/reports/export.xlsx?type=audit&from=2026-01-01&to=2026-01-31")
    assert res.status_code == 200
    wb = load_workbook(BytesIO(res.data))
    rows = list(wb["Audit"].iter_rows(values_only=True))
    assert len(rows) == 3
    assert rows[1][2] == "Training Scheduled"

    res = client.get("/api/securecare/reports/export.xlsx?type=pivot")
    assert res.status_code == 400
