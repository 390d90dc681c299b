from __future__ import annotations

from datetime import date

import pytest

from actions.progression import (
    LEVELS,
    MILESTONES,
    EmployeeProgress,
    LevelRecord,
    accessor,
    current_level,
    eligible_for_level,
    level,
    milestone_for_columns,
    progress,
    progression_complete,
    requirements_for,
    summarize,
)
from app.utils.errors import ApiError

D = date(2024, 3, 5)


def _awarded(award_type: str) -> LevelRecord:
    rec = LevelRecord(
        awardType=award_type,
        assignedDate=D,
        completedDate=D,
        conferenceCompleted=D,
        awaiting=True,
        secureCareAwarded=True,
        secureCareAwardedDate=D,
    )
    for key, _label in level(award_type).milestones:
        m = MILESTONES[key]
        setattr(rec, m.schedule_attr, D)
        setattr(rec, m.complete_attr, D)
    return rec


def test_levels_resolve_by_key_award_type_and_prefix():
    assert [lv.key for lv in LEVELS] == ["care-partner", "associate", "champion", "consultant", "coach"]
    assert level("associate").award_type == "Level 2"
    assert level("Level 3").key == "champion"
    assert level("consultant").award_type == "Consultant"
    assert level("level1").key == "care-partner"
    with pytest.raises(ApiError) as exc:
        level("level 9")
    assert exc.value.code == "VALIDATION_ERROR"


def test_requirement_counts_per_level():
    assert [len(requirements_for(lv, None)) for lv in LEVELS] == [4, 7, 7, 7, 7]
    labels = [r.label for r in requirements_for("Level 3", None)]
    assert labels == [
        "Relias Training Assigned",
        "Relias Training Completed",
        "Conference Completed",
        "Sitting/Standing/Approaching",
        "No Hand/No Speak",
        "Challenge Sleeping",
        "Level 3 Awarded",
    ]


def test_progress_counts_truthy_requirements():
    rec = LevelRecord(awardType="Level 1", assignedDate=D, completedDate=D)
    assert progress("Level 1", rec).to_dict() == {"completed": 2, "total": 4}
    assert progress("Level 1", None).to_dict() == {"completed": 0, "total": 4}


def test_award_requirement_uses_flag_and_award_date():
    rec = LevelRecord(awardType="Level 1", secureCareAwarded=True, secureCareAwardedDate=D)
    award = requirements_for("Level 1", rec)[-1]
    assert award.completed is True
    assert award.date == D
    assert award.display == "3/5/2024"


def test_requirement_display_uses_formatters():
    rec = LevelRecord(awardType="Level 2", conferenceCompleted=D, awaiting=None, scheduleStandingVideo=D)
    by_key = {r.key: r for r in requirements_for("Level 2", rec)}
    assert by_key["conferenceCompleted"].display == "Rejected"
    assert by_key["standingVideo"].display == "Scheduled 3/5/2024"
    assert by_key["standingVideo"].completed is False
    assert by_key["assignedDate"].display == "Pending"


def test_current_level_is_first_incomplete():
    emp = EmployeeProgress(records={"Level 1": _awarded("Level 1"), "Level 2": _awarded("Level 2")})
    assert current_level(emp) == "champion"
    assert current_level(EmployeeProgress()) == "care-partner"


def test_fully_complete_employee_is_terminal():
    emp = EmployeeProgress(records={lv.award_type: _awarded(lv.award_type) for lv in LEVELS})
    assert progression_complete(emp) is True
    assert current_level(emp) == "coach"
    assert progression_complete(EmployeeProgress(records={"Level 1": _awarded("Level 1")})) is False


def test_eligible_for_level_from_flat_shape():
    not_awarded = EmployeeProgress.from_flat({"employeeNumber": "E1", "level1Awarded": False})
    assert eligible_for_level("associate", not_awarded) is False

    awarded = EmployeeProgress.from_flat(
        {"employeeNumber": "E1", "level1Awarded": True, "level1AwardedDate": "2024-01-02", "level2ReliasAssigned": None}
    )
    assert eligible_for_level("associate", awarded) is True

    assigned = EmployeeProgress.from_flat(
        {"level1Awarded": True, "level1AwardedDate": "2024-01-02", "level2ReliasAssigned": "2024-02-01"}
    )
    assert eligible_for_level("associate", assigned) is False


def test_level_one_open_until_assigned():
    assert eligible_for_level("care-partner", EmployeeProgress()) is True
    emp = EmployeeProgress(records={"Level 1": LevelRecord(awardType="Level 1", assignedDate=D)})
    assert eligible_for_level("care-partner", emp) is False


def test_from_flat_parses_dates_and_round_trips_to_flat():
    emp = EmployeeProgress.from_flat(
        {
            "employeeNumber": "E7",
            "name": "Jane Doe",
            "consultantScheduleSession2": "2024-03-05T00:00:00.000Z",
            "consultantAwarded": 0,
        }
    )
    rec = emp.record("consultant")
    assert rec.scheduleSession2 == D
    assert rec.secureCareAwarded is False
    assert emp.record("Level 1") is None

    flat = emp.to_flat()
    assert flat["consultantScheduleSession2"] == "2024-03-05"
    assert flat["level1Awarded"] is None


def test_session_columns_keep_hash_names():
    m = MILESTONES["session2"]
    assert m.schedule_column == "scheduleSession#2"
    assert m.complete_column == "session#2"
    assert milestone_for_columns("scheduleSession#2", "session#2") is m
    assert MILESTONES["noHandnoSpeak"].schedule_column == "schedulenoHandnoSpeak"


def test_milestone_for_columns_rejects_mismatch():
    with pytest.raises(ApiError):
        milestone_for_columns("scheduleSession#1", "session#2")
    with pytest.raises(ApiError):
        milestone_for_columns("secureCareAwarded")


def test_accessor_table_gets_and_sets():
    rec = LevelRecord(awardType="Coach")
    acc = accessor("session3")
    acc.set(rec, D)
    assert rec.session3 == D
    assert acc.get(rec) == D
    assert accessor("secureCareAwarded").kind == "award"
    with pytest.raises(ApiError):
        accessor("favouriteColour")


def test_summarize_marks_locked_levels():
    emp = EmployeeProgress(
        employeeNumber="E1",
        name="Jane",
        records={"Level 1": LevelRecord(awardType="Level 1", employeeId=3, assignedDate=D)},
    )
    out = summarize(emp)
    states = {lv["key"]: lv["state"] for lv in out["levels"]}
    assert states == {
        "care-partner": "in-progress",
        "associate": "locked",
        "champion": "locked",
        "consultant": "locked",
        "coach": "locked",
    }
    assert out["currentLevel"] == "care-partner"
    assert out["levels"][0]["employeeId"] == 3
    assert out["levels"][0]["progress"] == {"completed": 1, "total": 4}
