from datetime import time

from fieldops.models.task import Task
from fieldops.models.team import Team
from fieldops.services.routing_engine.constraint_validator import ConstraintValidator


def _task(task_id, skills=(), equipment=()):
    return Task(
        id=task_id,
        name=f"Task {task_id}",
        latitude=40.0,
        longitude=-74.0,
        estimated_duration=60,
        skills_required=list(skills),
        equipment_required=list(equipment),
    )


def _team(**overrides):
    values = {"id": 1, "name": "Crew", "skills": ["hvac"], "equipment": ["ladder"], "max_daily_tasks": 3}
    values.update(overrides)
    return Team(**values)


def _types(violations):
    return {v.type: v.severity for v in violations}


def test_clean_pairing_has_no_violations():
    validator = ConstraintValidator()
    violations = validator.validate(_team(), [_task(1, ["hvac"], ["ladder"])], total_distance=5, total_time=90)

    assert violations == []
    assert validator.is_valid(violations)


def test_missing_skill_is_an_error():
    validator = ConstraintValidator()
    violations = validator.validate(_team(), [_task(1, ["electrical"])], total_distance=5, total_time=90)

    assert _types(violations) == {"skill_mismatch": "error"}
    assert violations[0].task_id == 1
    assert not validator.is_valid(violations)


def test_missing_equipment_is_only_a_warning():
    validator = ConstraintValidator()
    violations = validator.validate(_team(), [_task(1, equipment=["crane"])], total_distance=5, total_time=90)

    assert _types(violations) == {"equipment_missing": "warning"}
    assert validator.is_valid(violations)


def test_capacity_exceeded():
    tasks = [_task(i) for i in range(1, 5)]
    violations = ConstraintValidator().validate(_team(), tasks, total_distance=5, total_time=240)

    assert _types(violations)["capacity_exceeded"] == "error"


def test_limits_prefer_explicit_values_over_team_and_defaults():
    team = _team(max_route_time=600, max_route_distance=300)
    validator = ConstraintValidator()

    within_team_limits = validator.validate(team, [_task(1)], total_distance=250, total_time=500)
    with_overrides = validator.validate(
        team, [_task(1)], total_distance=250, total_time=500, max_time=400, max_distance=100
    )

    assert within_team_limits == []
    assert _types(with_overrides) == {"time_exceeded": "warning", "distance_exceeded": "warning"}


def test_default_limits_apply_when_team_has_none():
    violations = ConstraintValidator().validate(_team(), [_task(1)], total_distance=201, total_time=481)

    assert _types(violations) == {"time_exceeded": "warning", "distance_exceeded": "warning"}


def test_route_longer_than_working_hours():
    team = _team(work_start_time=time(9, 0), work_end_time=time(13, 0))
    violations = ConstraintValidator().validate(team, [_task(1)], total_distance=5, total_time=300)

    assert _types(violations) == {"working_hours_exceeded": "warning"}


def test_missing_tasks_are_reported():
    violations = ConstraintValidator().validate(_team(), [], total_distance=0, total_time=0, missing_task_ids=[42])

    assert _types(violations) == {"task_not_found": "error"}
