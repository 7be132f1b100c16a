import random
from datetime import date, time

import pytest

from fieldops.core.exceptions import NoEligibleWorkError
from fieldops.models.task import Task, TaskPriority
from fieldops.models.team import Team
from fieldops.schemas.route import OptimizationParams
from fieldops.services.routing_engine.constraint_validator import ConstraintValidator
from fieldops.services.routing_engine.geo import haversine_km
from fieldops.services.routing_engine.optimizer import (
    RouteOptimizer,
    optimization_score,
    sort_by_priority,
)

DAY = date(2026, 10, 19)


def task_stub(task_id, latitude, longitude, **overrides):
    values = {
        "id": task_id,
        "name": f"Task {task_id}",
        "latitude": latitude,
        "longitude": longitude,
        "estimated_duration": 30,
        "priority": TaskPriority.medium,
        "skills_required": [],
        "equipment_required": [],
    }
    values.update(overrides)
    return Task(**values)


def team_stub(team_id=1, **overrides):
    values = {"id": team_id, "name": f"Team {team_id}", "skills": [], "equipment": [], "max_daily_tasks": 8}
    values.update(overrides)
    return Team(**values)


def test_three_tasks_in_a_line_become_one_route_ordered_by_latitude():
    tasks = [task_stub(1, 40.0, -74.0), task_stub(2, 40.01, -74.0), task_stub(3, 40.02, -74.0)]

    result = RouteOptimizer().optimize(tasks, [team_stub()], OptimizationParams(), DAY)

    assert len(result.plans) == 1
    plan = result.plans[0]
    assert [t.id for t in plan.tasks] == [1, 2, 3]
    assert plan.total_distance == pytest.approx(2 * haversine_km((40.0, -74.0), (40.01, -74.0)))
    assert sum(stop.distance_from_previous for stop in plan.stops) == pytest.approx(plan.total_distance)
    assert [stop.sequence_number for stop in plan.stops] == [1, 2, 3]


def test_schedule_starts_at_eight_with_travel_buffer_between_stops():
    tasks = [task_stub(1, 40.0, -74.0), task_stub(2, 40.01, -74.0)]

    plan = RouteOptimizer().optimize(tasks, [team_stub()], OptimizationParams(), DAY).plans[0]

    assert plan.stops[0].arrival.time() == time(8, 0)
    assert plan.stops[0].departure.time() == time(8, 30)
    assert plan.stops[1].arrival.time() == time(8, 45)
    assert plan.stops[1].travel_time == 15


def test_total_time_is_service_plus_travel():
    tasks = [task_stub(1, 40.0, -74.0), task_stub(2, 40.5, -74.0)]
    optimizer = RouteOptimizer()

    metrics = optimizer.measure(tasks)

    assert metrics.total_time == 60 + metrics.travel_time
    assert metrics.travel_time == round(metrics.total_distance / 50 * 60)


def test_nearest_neighbour_visits_every_task_once():
    rng = random.Random(7)
    tasks = [task_stub(i, 40 + rng.random(), -74 + rng.random()) for i in range(1, 16)]

    ordered = RouteOptimizer().order_stops(tasks, start=(40.5, -73.5))

    assert sorted(t.id for t in ordered) == list(range(1, 16))


def test_nearest_neighbour_starts_from_team_location():
    tasks = [task_stub(1, 40.0, -74.0), task_stub(2, 41.0, -74.0)]

    ordered = RouteOptimizer().order_stops(tasks, start=(41.1, -74.0))

    assert [t.id for t in ordered] == [2, 1]


@pytest.mark.parametrize("distance,total_time,count", [
    (0, 10, 1),
    (0, 600, 1),
    (500, 2000, 3),
    (1.5, 120, 3),
    (10000, 5, 2),
])
def test_optimization_score_stays_within_bounds(distance, total_time, count):
    assert 60 <= optimization_score(distance, total_time, count) <= 100


def test_optimization_score_rewards_short_hops_and_45_minute_stops():
    assert optimization_score(0, 135, 3) == 100
    assert optimization_score(10, 135, 3) == 90


def test_priority_order_with_time_window_tie_break():
    tasks = [
        task_stub(1, 40, -74, priority=TaskPriority.low),
        task_stub(2, 40, -74, priority=TaskPriority.high, time_window_start="13:00"),
        task_stub(3, 40, -74, priority=TaskPriority.emergency),
        task_stub(4, 40, -74, priority=TaskPriority.high, time_window_start="09:00"),
    ]

    assert [t.id for t in sort_by_priority(tasks)] == [3, 4, 2, 1]


def test_task_requiring_missing_skill_is_not_placed():
    tasks = [task_stub(1, 40.0, -74.0, skills_required=["electrical"])]
    team = team_stub(skills=["plumbing"])

    result = RouteOptimizer().optimize(tasks, [team], OptimizationParams(), DAY)

    assert result.plans == []
    assert [t.id for t in result.unassigned] == [1]
    violations = ConstraintValidator().validate(team, tasks, total_distance=0, total_time=30)
    assert any(v.type == "skill_mismatch" and v.severity == "error" for v in violations)


def test_skilled_task_goes_to_the_team_that_has_the_skill():
    tasks = [
        task_stub(1, 40.0, -74.0, skills_required=["electrical"]),
        task_stub(2, 40.01, -74.0),
    ]
    plain = team_stub(1, skills=[])
    electrician = team_stub(2, skills=["electrical"])

    result = RouteOptimizer().optimize(tasks, [plain, electrician], OptimizationParams(), DAY)

    placed = {plan.team.id: [t.id for t in plan.tasks] for plan in result.plans}
    assert placed == {1: [2], 2: [1]}


def test_teams_are_filled_up_to_capacity_in_priority_order():
    tasks = [
        task_stub(1, 40.0, -74.0, priority=TaskPriority.low),
        task_stub(2, 40.01, -74.0, priority=TaskPriority.urgent),
        task_stub(3, 40.02, -74.0, priority=TaskPriority.high),
    ]
    first = team_stub(1, max_daily_tasks=2)
    second = team_stub(2)

    result = RouteOptimizer().optimize(tasks, [first, second], OptimizationParams(), DAY)

    placed = {plan.team.id: sorted(t.id for t in plan.tasks) for plan in result.plans}
    assert placed == {1: [2, 3], 2: [1]}


def test_max_tasks_per_team_parameter_caps_team_capacity():
    tasks = [task_stub(i, 40 + i / 100, -74.0) for i in range(1, 5)]

    result = RouteOptimizer().optimize(tasks, [team_stub()], OptimizationParams(max_tasks_per_team=3), DAY)

    assert len(result.plans[0].stops) == 3
    assert len(result.unassigned) == 1


def test_no_tasks_or_no_teams_is_no_eligible_work():
    optimizer = RouteOptimizer()
    with pytest.raises(NoEligibleWorkError):
        optimizer.optimize([], [team_stub()], OptimizationParams(), DAY)
    with pytest.raises(NoEligibleWorkError):
        optimizer.optimize([task_stub(1, 40, -74)], [], OptimizationParams(), DAY)
