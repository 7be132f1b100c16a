import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from fieldops.core.exceptions import InvalidInputError, NotFoundError
from fieldops.models.route import RouteStatus, RouteStopStatus
from fieldops.models.route_progress import ProgressStatus, ProgressTaskStatus
from fieldops.models.task import TaskStatus
from fieldops.schemas.progress import ArrivedEvent, CompletedEvent, PausedEvent, StartedEvent
from fieldops.schemas.route import OptimizationParams
from fieldops.services.route_optimization import route_optimization_service as service
from fieldops.services.routing_engine.optimizer import RouteOptimizer
from fieldops.services.routing_engine.progress_tracker import ProgressTracker, TeamDateLocks
from fieldops.services.routing_engine.route_storage import RouteStorage
from tests.conftest import ROUTE_DAY


@pytest.fixture
def planned(db, business, make_team, make_task):
    team = make_team(external_identifier="crew-7", alternate_ids=["legacy-42"])
    tasks = [make_task(40.0, -74.0), make_task(40.02, -74.02)]
    plan = RouteOptimizer().optimize(tasks, [team], OptimizationParams(), ROUTE_DAY).plans[0]
    stored = RouteStorage(db).store_plan(plan, business.id, OptimizationParams())
    return team, [stop.task for stop in plan.stops], stored.route


def _event(cls, business, team_ref, task, **extra):
    return cls(business_id=business.id, team_id=str(team_ref), task_id=task.id, **extra)


def _snapshot(db, business, team):
    return service.get_route_progress(db, business.id, str(team.id), date=ROUTE_DAY.isoformat())


def test_started_then_completed_updates_all_three_records(db, business, planned):
    team, (first, second), route = planned

    started = service.update_route_progress(db, _event(StartedEvent, business, team.id, first), route.route_code)
    assert started.message == "Task started"
    assert started.task_status == TaskStatus.in_progress.value
    assert started.route_status == RouteStatus.in_progress.value
    assert started.progress_status == ProgressStatus.in_progress.value

    done = service.update_route_progress(db, _event(CompletedEvent, business, team.id, first), route.route_code)
    assert done.message == "Task completed"
    assert done.completed_tasks_count == 1
    assert done.warnings == []

    db.refresh(first)
    assert first.status == TaskStatus.completed
    assert first.completed_at is not None
    assert first.actual_performance["actual_duration"] <= 1

    snapshot = _snapshot(db, business, team)
    assert snapshot.route_id == route.route_code
    assert snapshot.completed_tasks_count == 1
    assert snapshot.total_tasks == 2
    assert snapshot.completion_percentage == 50
    assert [u.status for u in snapshot.progress_updates] == ["route_created", "task_started", "task_completed"]


def test_completing_every_task_completes_route_and_progress(db, business, planned):
    team, tasks, route = planned

    for task in tasks:
        ack = service.update_route_progress(db, _event(CompletedEvent, business, team.id, task), route.route_code)

    assert ack.route_status == RouteStatus.completed.value
    assert ack.progress_status == ProgressStatus.completed.value
    assert ack.completed_tasks_count == len(tasks)

    db.refresh(route)
    assert all(s.status == RouteStopStatus.completed for s in route.stops)
    assert route.completed_at is not None

    snapshot = _snapshot(db, business, team)
    assert snapshot.route_end_time is not None
    assert snapshot.completed_tasks_count == len([t for t in snapshot.tasks if t.status == "completed"])


def test_completed_without_start_uses_estimated_duration(db, business, planned):
    team, (first, _), route = planned

    service.update_route_progress(db, _event(CompletedEvent, business, team.id, first), route.route_code)

    db.refresh(first)
    assert first.actual_performance["actual_duration"] == first.estimated_duration


def test_repeated_completion_is_a_no_op(db, business, planned):
    team, (first, _), route = planned
    service.update_route_progress(db, _event(CompletedEvent, business, team.id, first), route.route_code)
    db.refresh(first)
    performance = dict(first.actual_performance)

    again = service.update_route_progress(db, _event(CompletedEvent, business, team.id, first), route.route_code)
    late_start = service.update_route_progress(db, _event(StartedEvent, business, team.id, first), route.route_code)

    assert again.message == "Task already completed"
    assert late_start.message == "Task already completed"
    assert late_start.task_status == TaskStatus.completed.value
    assert again.completed_tasks_count == 1
    db.refresh(first)
    assert first.actual_performance == performance


def test_arrived_marks_the_stop_only(db, business, planned):
    team, (first, _), route = planned

    ack = service.update_route_progress(db, _event(ArrivedEvent, business, team.id, first), route.route_code)

    assert ack.message == "Task arrived recorded"
    assert ack.task_status == TaskStatus.assigned.value
    db.refresh(route)
    stop = next(s for s in route.stops if s.task_id == first.id)
    assert stop.status == RouteStopStatus.arrived
    assert stop.actual_arrival_time is not None


def test_paused_is_logged_with_reason(db, business, planned):
    team, (first, _), route = planned

    service.update_route_progress(
        db, _event(PausedEvent, business, team.id, first, reason="waiting for parts"), route.route_code
    )

    last = _snapshot(db, business, team).progress_updates[-1]
    assert last.status == "task_paused"
    assert last.notes == "waiting for parts"
    # no location in the event and none on the team: the task site is used
    assert last.location["latitude"] == first.latitude


@pytest.mark.parametrize("team_ref", ["crew-7", "legacy-42"])
def test_team_is_resolved_by_alias(db, business, planned, team_ref):
    team, (first, _), route = planned

    ack = service.update_route_progress(db, _event(StartedEvent, business, team_ref, first), route.route_code)

    assert ack.task_status == TaskStatus.in_progress.value


def test_unknown_team_is_not_found(db, business, planned):
    _, (first, _), route = planned

    with pytest.raises(NotFoundError):
        service.update_route_progress(db, _event(StartedEvent, business, "ghost-crew", first), route.route_code)


def test_task_of_another_team_is_not_found(db, business, planned, make_team):
    _, (first, _), route = planned
    other = make_team(name="Team Bravo")

    with pytest.raises(NotFoundError):
        service.update_route_progress(db, _event(StartedEvent, business, other.id, first), route.route_code)


def test_task_on_a_different_route_is_rejected(db, business, planned, make_team, make_task):
    _, _, route = planned
    other = make_team(name="Team Bravo")
    stray = make_task(41.0, -75.0)
    plan = RouteOptimizer().optimize([stray], [other], OptimizationParams(), ROUTE_DAY).plans[0]
    RouteStorage(db).store_plan(plan, business.id, OptimizationParams())

    with pytest.raises(InvalidInputError):
        service.update_route_progress(db, _event(StartedEvent, business, other.id, stray), route.route_code)


def test_route_sync_failure_keeps_task_update(db, business, planned, monkeypatch):
    team, (first, _), route = planned

    def broken(self, route, task, event):
        raise SQLAlchemyError("route table locked")

    monkeypatch.setattr(ProgressTracker, "_sync_route", broken)

    ack = service.update_route_progress(db, _event(CompletedEvent, business, team.id, first), route.route_code)

    assert ack.task_status == TaskStatus.completed.value
    assert ack.route_status is None
    assert ack.warnings == [f"Failed to update route {route.route_code}: SQLAlchemyError"]
    db.refresh(first)
    assert first.status == TaskStatus.completed


def test_stale_progress_write_is_retried(db, business, planned, monkeypatch):
    team, (first, _), route = planned
    original = ProgressTracker._sync_progress
    calls = []

    def flaky(self, *args, **kwargs):
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("version mismatch")
        return original(self, *args, **kwargs)

    monkeypatch.setattr(ProgressTracker, "_sync_progress", flaky)

    ack = service.update_route_progress(db, _event(CompletedEvent, business, team.id, first), route.route_code)

    assert len(calls) == 2
    assert ack.warnings == []
    assert ack.completed_tasks_count == 1


def test_progress_entry_follows_task(db, business, planned):
    team, (first, _), route = planned

    service.update_route_progress(db, _event(StartedEvent, business, team.id, first), route.route_code)

    entry = next(t for t in _snapshot(db, business, team).tasks if t.task_id == first.id)
    assert entry.status == ProgressTaskStatus.in_progress.value
    assert entry.actual_start_time is not None


def test_team_date_locks_are_released_and_evicted():
    locks = TeamDateLocks()

    with locks.hold(1, ROUTE_DAY):
        assert locks._locks[(1, ROUTE_DAY)].locked()
        with locks.hold(2, ROUTE_DAY):
            assert locks._locks[(2, ROUTE_DAY)].locked()
        assert (2, ROUTE_DAY) not in locks._locks
    assert locks._locks == {}
    assert locks._users == {}


@pytest.mark.parametrize("status", [TaskStatus.cancelled, TaskStatus.on_hold])
def test_starting_a_cancelled_or_held_task_is_rejected(db, business, planned, status):
    team, (first, _), route = planned
    first.status = status
    db.add(first)
    db.commit()

    with pytest.raises(InvalidInputError):
        service.update_route_progress(db, _event(StartedEvent, business, team.id, first), route.route_code)

    db.refresh(first)
    assert first.status == status


def test_completing_a_cancelled_task_is_rejected(db, business, planned):
    team, (first, _), route = planned
    first.status = TaskStatus.cancelled
    db.add(first)
    db.commit()

    with pytest.raises(InvalidInputError):
        service.update_route_progress(db, _event(CompletedEvent, business, team.id, first), route.route_code)
