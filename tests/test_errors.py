from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

import db as db_
from app.utils.errors import ApiError, level_locked, no_scheduled_date, not_found

BACKEND_ROOT = Path(__file__).resolve().parents[1]


def test_api_error_keeps_code_through_session_scope(app_client):
    with pytest.raises(ApiError) as exc:
        with db_.session_scope():
            raise no_scheduled_date({"employeeId": 7})

    assert exc.value.code == "NO_SCHEDULED_DATE"
    assert exc.value.status == 409
    assert exc.value.details == {"employeeId": 7}
    assert exc.value.__traceback__ is not None


def test_api_error_fields_and_message():
    err = level_locked("Level 2 is locked until Level 1 is awarded", {"level": "associate"})
    assert str(err) == "Level 2 is locked until Level 1 is awarded"
    assert (err.code, err.status, err.details) == ("LEVEL_LOCKED", 409, {"level": "associate"})

    with pytest.raises(ApiError):
        raise not_found("Employee not found")


def test_domain_errors_reach_the_client_from_mutations(app_client):
    _app, client = app_client
    headers = {"X-User-Email": "a@example.com"}

    res = client.post("/api/securecare/approve", headers=headers, json={"employeeId": 999})
    assert res.status_code == 404
    assert res.get_json()["error"]["code"] == "NOT_FOUND"

    res = client.post(
        "/api/securecare/update-advisor", headers=headers, json={"employeeId": 999, "advisorId": 1}
    )
    assert res.status_code == 404
    assert res.get_json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.parametrize(
    "module",
    [
        "actions.progression",
        "actions.audit",
        "actions.advisors",
        "actions.readiness",
        "actions.analytics",
        "services.training_client",
        "services.csv_import",
    ],
)
def test_modules_import_on_their_own(module):
    result = subprocess.run(
        [sys.executable, "-c", f"import {module}"],
        cwd=BACKEND_ROOT,
        capture_output=True,
        text=True,
        timeout=60,
    )
    assert result.returncode == 0, result.stderr
