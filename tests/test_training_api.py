from __future__ import annotations

import dataclasses
from datetime import date

from sqlalchemy import select

from app.utils.datetime import iso_utc_now
from db import SessionLocal
from models import AuditLog, SecureCareEmployee

USER = {"X-User-Email": "Nurse.Manager@example.com"}
EDITOR = {"X-User-Email": "editor@example.com"}


def _seed_employee(employee_number: str = "E100", award_type: str = "Level 1", **fields) -> int:
    db = SessionLocal()
    try:
        row = SecureCareEmployee(
            employeeNumber=employee_number,
            name=fields.pop("name", "Jane Doe"),
            facility=fields.pop("facility", "North Campus"),
            area=fields.pop("area", "Memory Care"),
            staffRole=fields.pop("staffRole", "CNA"),
            awardType=award_type,
            updatedAt=iso_utc_now(),
            updatedBy="TEST",
            **fields,
        )
        db.add(row)
        db.commit()
        return row.employeeId
    finally:
        db.close()


def _seed_awarded_level1(employee_number: str = "E100") -> int:
    return _seed_employee(
        employee_number,
        "Level 1",
        assignedDate=date(2024, 1, 2),
        completedDate=date(2024, 1, 9),
        conferenceCompleted=date(2024, 1, 20),
        awaiting=True,
        secureCareAwarded=True,
        secureCareAwardedDate=date(2024, 1, 31),
    )


def _row(employee_id: int) -> SecureCareEmployee:
    db = SessionLocal()
    try:
        return db.get(SecureCareEmployee, employee_id)
    finally:
        db.close()


def _audit_rows(employee_id: int) -> list[AuditLog]:
    db = SessionLocal()
    try:
        stmt = (
            select(AuditLog)
            .where(AuditLog.tableName == "securecare_employees")
            .where(AuditLog.recordId == str(employee_id))
            .order_by(AuditLog.auditId)
        )
        return list(db.execute(stmt).scalars().all())
    finally:
        db.close()


def test_schedule_then_complete_copies_scheduled_date(app_client):
    _app, client = app_client
    _seed_awarded_level1()
    level2 = _seed_employee("E100", "Level 2")

    res = client.post(
        "/api/securecare/schedule",
        headers=USER,
        json={"employeeId": level2, "columnName": "scheduleStandingVideo", "date": "2024-03-05T00:00:00.000Z"},
    )
    assert res.status_code == 200
    body = res.get_json()
    assert body["success"] is True
    assert body["message"] == "Training scheduled successfully"
    assert body["record"]["scheduleStandingVideo"] == "2024-03-05"
    assert body["record"]["standingVideo"] is None
    assert body["invalidate"] == [f"EMPLOYEE:{level2}", "EMPLOYEES", "LEVEL_STATS"]

    res = client.post(
        "/api/securecare/complete",
        headers=USER,
        json={"employeeId": level2, "scheduleColumn": "scheduleStandingVideo", "completeColumn": "standingVideo"},
    )
    assert res.status_code == 200
    assert res.get_json()["record"]["standingVideo"] == "2024-03-05"

    row = _row(level2)
    assert row.standingVideo == date(2024, 3, 5)
    assert row.updatedBy == "nurse.manager@example.com"

    actions = [a.action for a in _audit_rows(level2)]
    assert actions == ["TRAINING_SCHEDULED", "TRAINING_COMPLETED"]


def test_session_columns_with_hash_names(app_client):
    app, client = app_client
    app.config["CFG"] = dataclasses.replace(app.config["CFG"], ENFORCE_LEVEL_GATING=False)
    consultant = _seed_employee("E200", "Consultant")

    res = client.post(
        "/api/securecare/schedule",
        headers=USER,
        json={"employeeId": consultant, "columnName": "scheduleSession#2", "date": "2024-04-01"},
    )
    assert res.status_code == 200
    res = client.post(
        "/api/securecare/complete",
        headers=USER,
        json={"employeeId": consultant, "scheduleColumn": "scheduleSession#2", "completeColumn": "session#2"},
    )
    assert res.status_code == 200
    row = _row(consultant)
    assert row.scheduleSession2 == date(2024, 4, 1)
    assert row.session2 == date(2024, 4, 1)


def test_scheduling_twice_keeps_value_and_audits_twice(app_client):
    _app, client = app_client
    _seed_awarded_level1()
    level2 = _seed_employee("E100", "Level 2")

    payload = {"employeeId": level2, "columnName": "scheduleFeedGradVideo", "date": "2024-05-10"}
    assert client.post("/api/securecare/schedule", headers=USER, json=payload).status_code == 200
    assert client.post("/api/securecare/reschedule", headers=USER, json=payload).status_code == 200

    assert _row(level2).scheduleFeedGradVideo == date(2024, 5, 10)
    rows = _audit_rows(level2)
    assert [a.action for a in rows] == ["TRAINING_SCHEDULED", "TRAINING_SCHEDULED"]
    assert rows[1].oldValue == "2024-05-10"
    assert rows[1].newValue == "2024-05-10"


def test_complete_without_schedule_is_conflict(app_client):
    _app, client = app_client
    _seed_awarded_level1()
    level2 = _seed_employee("E100", "Level 2")

    res = client.post(
        "/api/securecare/complete",
        headers=USER,
        json={"employeeId": level2, "scheduleColumn": "scheduleSleepingVideo", "completeColumn": "sleepingVideo"},
    )
    assert res.status_code == 409
    assert res.get_json()["error"]["code"] == "NO_SCHEDULED_DATE"
    assert _audit_rows(level2) == []


def test_award_columns_are_read_only(app_client):
    _app, client = app_client
    level1 = _seed_employee("E100", "Level 1")

    res = client.post(
        "/api/securecare/schedule",
        headers=USER,
        json={"employeeId": level1, "columnName": "secureCareAwarded", "date": "2024-05-10"},
    )
    assert res.status_code == 403
    assert res.get_json()["error"]["code"] == "READ_ONLY"


def test_unknown_or_foreign_columns_are_rejected(app_client):
    _app, client = app_client
    _seed_awarded_level1()
    level2 = _seed_employee("E100", "Level 2")

    res = client.post(
        "/api/securecare/schedule",
        headers=USER,
        json={"employeeId": level2, "columnName": "name", "date": "2024-05-10"},
    )
    assert res.status_code == 400

    # Coaching sessions belong to Consultant and Coach only.
    res = client.post(
        "/api/securecare/schedule",
        headers=USER,
        json={"employeeId": level2, "columnName": "scheduleSession#1", "date": "2024-05-10"},
    )
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "VALIDATION_ERROR"


def test_level_gating_blocks_writes_until_previous_level_awarded(app_client):
    _app, client = app_client
    _seed_employee("E300", "Level 1", assignedDate=date(2024, 1, 2))
    level2 = _seed_employee("E300", "Level 2", conferenceCompleted=date(2024, 2, 1), awaiting=True)

    res = client.post(
        "/api/securecare/schedule",
        headers=USER,
        json={"employeeId": level2, "columnName": "scheduleStandingVideo", "date": "2024-05-10"},
    )
    assert res.status_code == 409
    err = res.get_json()["error"]
    assert err["code"] == "LEVEL_LOCKED"
    assert err["details"]["requires"] == "care-partner"

    res = client.post("/api/securecare/approve", headers=USER, json={"employeeId": level2})
    assert res.status_code == 409


def test_mutations_require_user(app_client):
    _app, client = app_client
    level1 = _seed_employee()
    res = client.post("/api/securecare/approve", json={"employeeId": level1})
    assert res.status_code == 401
    assert res.get_json()["error"]["code"] == "AUTH_REQUIRED"


def test_validation_errors(app_client):
    _app, client = app_client
    level1 = _seed_employee()

    res = client.post("/api/securecare/schedule", headers=USER, data="nope", content_type="text/plain")
    assert res.status_code == 400

    res = client.post(
        "/api/securecare/schedule",
        headers=USER,
        json={"employeeId": level1, "columnName": "scheduleStandingVideo", "date": "05/10/2024"},
    )
    assert res.status_code == 400
    assert res.get_json()["error"]["details"]["field"] == "date"

    res = client.post("/api/securecare/approve", headers=USER, json={"employeeId": 99999})
    assert res.status_code == 404
    assert res.get_json()["error"]["code"] == "NOT_FOUND"


def test_approve_and_reject_conference(app_client):
    _app, client = app_client
    _seed_awarded_level1()
    level2 = _seed_employee("E100", "Level 2", conferenceCompleted=date(2024, 2, 1), awaiting=True)

    res = client.post("/api/securecare/approve", headers=USER, json={"employeeId": level2, "notes": "Looks good"})
    assert res.status_code == 200
    assert res.get_json()["message"] == "Conference approved"
    row = _row(level2)
    assert row.awaiting is False
    assert row.notes == "Looks good"

    res = client.post("/api/securecare/reject", headers=USER, json={"employeeId": level2})
    assert res.status_code == 200
    row = _row(level2)
    assert row.awaiting is None
    assert row.notes == "Looks good"

    rows = _audit_rows(level2)
    assert [a.action for a in rows] == ["CONFERENCE_APPROVED", "CONFERENCE_REJECTED"]
    assert rows[0].oldValue == "true"
    assert rows[0].newValue == "false"
    assert rows[1].newValue is None


def test_dashboard_reflects_mutation_after_invalidation(app_client):
    _app, client = app_client
    _seed_awarded_level1()
    level2 = _seed_employee("E100", "Level 2", conferenceCompleted=date(2024, 2, 1), awaiting=True)

    before = client.get("/api/securecare/dashboard").get_json()["data"]
    assert before["awaitingApprovals"] == 1

    assert client.post("/api/securecare/approve", headers=USER, json={"employeeId": level2}).status_code == 200

    after = client.get("/api/securecare/dashboard").get_json()["data"]
    assert after["awaitingApprovals"] == 0
    assert after["counts"]["level2"]["inProgress"] == 1


def test_edit_completed_date_requires_permission(app_client):
    _app, client = app_client
    _seed_awarded_level1()
    level2 = _seed_employee(
        "E100",
        "Level 2",
        scheduleStandingVideo=date(2024, 3, 1),
        standingVideo=date(2024, 3, 1),
    )
    payload = {
        "employeeId": level2,
        "scheduleColumn": "scheduleStandingVideo",
        "completeColumn": "standingVideo",
        "date": "2024-03-20",
    }

    res = client.post("/api/securecare/edit-completed-date", headers=USER, json=payload)
    assert res.status_code == 403
    assert res.get_json()["error"]["code"] == "FORBIDDEN"

    res = client.post("/api/securecare/edit-completed-date", headers=EDITOR, json=payload)
    assert res.status_code == 200
    row = _row(level2)
    assert row.scheduleStandingVideo == date(2024, 3, 20)
    assert row.standingVideo is None
    assert _audit_rows(level2)[-1].action == "DATE_EDITED"


def test_update_notes_and_advisor(app_client):
    _app, client = app_client
    level1 = _seed_employee()

    res = client.post(
        "/api/securecare/advisors", headers=USER, json={"firstName": "Grace", "lastName": "Hopper"}
    )
    assert res.status_code == 201
    advisor_id = res.get_json()["data"]["advisorId"]

    res = client.post(
        "/api/securecare/update-advisor", headers=USER, json={"employeeId": level1, "advisorId": advisor_id}
    )
    assert res.status_code == 200
    assert _row(level1).advisorId == advisor_id

    res = client.get(f"/api/securecare/employee/{level1}")
    assert res.get_json()["data"]["advisorName"] == "Grace Hopper"

    res = client.post("/api/securecare/update-advisor", headers=USER, json={"employeeId": level1, "advisorId": 404})
    assert res.status_code == 404

    res = client.post("/api/securecare/update-advisor", headers=USER, json={"employeeId": level1, "advisorId": None})
    assert res.status_code == 200
    assert _row(level1).advisorId is None

    res = client.post("/api/securecare/update-notes", headers=USER, json={"employeeId": level1, "notes": "Out until May"})
    assert res.status_code == 200
    assert _row(level1).notes == "Out until May"

    actions = [a.action for a in _audit_rows(level1)]
    assert actions == ["ADVISOR_CHANGED", "ADVISOR_CHANGED", "NOTES_UPDATED"]
