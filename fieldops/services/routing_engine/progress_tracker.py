"""
Progress tracker: the stop-level execution state machine.

Applies ``started``/``arrived``/``completed``/``paused`` events to three
records. The Task update is authoritative and committed first. RouteProgress
and Route are tracking views, updated independently: a failure there becomes
a warning and never rolls back the Task.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from fieldops.core.config import settings
from fieldops.core.exceptions import InvalidInputError
from fieldops.core.logging_config import logger
from fieldops.crud.route_progress import route_progress as route_progress_crud
from fieldops.models.route import Route, RouteStatus, RouteStopStatus
from fieldops.models.route_progress import RouteProgress, ProgressStatus, ProgressTaskStatus
from fieldops.models.task import Task, TaskStatus
from fieldops.models.team import Team
from fieldops.services.routing_engine.progress_log import appended, make_entry
from fieldops.utils.dates import minutes_between, utcnow

STARTED = "started"
ARRIVED = "arrived"
COMPLETED = "completed"
PAUSED = "paused"


class TeamDateLocks:
    """
    Process-local critical sections keyed by (team id, route date).

    An entry lives only while some caller holds or waits on it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[int, date], threading.Lock] = {}
        self._users: Dict[Tuple[int, date], int] = {}

    @contextmanager
    def hold(self, team_id: int, route_date: date):
        key = (team_id, route_date)
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]


team_date_locks = TeamDateLocks()


class TrackingRecordMissing(Exception):
    """The tracking view for a task does not exist."""


@dataclass
class ProgressOutcome:
    message: str
    task_status: Optional[str] = None
    route_status: Optional[str] = None
    progress_status: Optional[str] = None
    completed_tasks_count: Optional[int] = None
    warnings: List[str] = field(default_factory=list)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def resolve_location(location: Optional[Dict[str, Any]], team: Team, task: Task) -> Dict[str, Any]:
    """Event location, else the team's current position, else the task site."""
    if location:
        return location
    if team.current_location is not None:
        lat, lon = team.current_location
        return {"latitude": lat, "longitude": lon, "address": None}
    return {"latitude": task.latitude, "longitude": task.longitude, "address": task.address}


class ProgressTracker:
    def __init__(
        self,
        db: Session,
        locks: TeamDateLocks = team_date_locks,
        max_retries: Optional[int] = None
    ):
        self.db = db
        self.locks = locks
        self.max_retries = max_retries or settings.PROGRESS_UPDATE_MAX_RETRIES

    def apply(
        self,
        team: Team,
        task: Task,
        event: str,
        route: Optional[Route] = None,
        location: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None
    ) -> ProgressOutcome:
        """
        Apply one lifecycle event for a task executed by a team.
        
        Args:
            team: Resolved team executing the task
            task: Task the event refers to
            event: One of started, arrived, completed, paused
            route: Route the task is planned on, if any
            location: Reported position of the crew
            notes: Free-text note for the progress log
            
        Returns:
            ProgressOutcome with resulting statuses and partial-failure warnings
            
        Raises:
            InvalidInputError: If the task is cancelled, or on hold and being started
        """
        route_date = route.route_date if route is not None else task.scheduled_date
        where = resolve_location(location, team, task)

        with self.locks.hold(team.id, route_date):
            message = self._update_task(task, event)
            self.db.add(task)
            self.db.commit()
            self.db.refresh(task)
            logger.info(f"Task {task.id} {event}: status={task.status.value} team={team.id}")

            outcome = ProgressOutcome(message=message, task_status=task.status.value)

            progress = self._with_retries(
                f"route progress for task {task.id}",
                lambda: self._sync_progress(team, task, event, route, route_date, where, notes),
                outcome.warnings,
            )
            if progress is not None:
                outcome.progress_status = progress.route_status.value
                outcome.completed_tasks_count = progress.completed_tasks_count

            if route is None:
                outcome.warnings.append(f"Task {task.id} is not assigned to a route")
            else:
                updated_route = self._with_retries(
                    f"route {route.route_code}",
                    lambda: self._sync_route(route, task, event),
                    outcome.warnings,
                )
                if updated_route is not None:
                    outcome.route_status = updated_route.status.value

        return outcome

    def _with_retries(self, label: str, operation: Callable, warnings: List[str]):
        for attempt in range(1, self.max_retries + 1):
            try:
                return operation()
            except StaleDataError:
                self.db.rollback()
                logger.info(f"Concurrent update on {label}, retry {attempt}/{self.max_retries}")
            except TrackingRecordMissing as e:
                logger.warning(str(e))
                warnings.append(str(e))
                return None
            except SQLAlchemyError as e:
                self.db.rollback()
                warning = f"Failed to update {label}: {type(e).__name__}"
                logger.warning(f"{warning}: {e}")
                warnings.append(warning)
                return None
        warning = f"Failed to update {label}: too many concurrent updates"
        logger.warning(warning)
        warnings.append(warning)
        return None

    def _update_task(self, task: Task, event: str) -> str:
        now = utcnow()
        if event in (ARRIVED, PAUSED):
            return f"Task {event} recorded"

        if task.status == TaskStatus.completed:
            # Completed work never moves back and is never re-measured
            return "Task already completed"

        if task.status == TaskStatus.cancelled or (event == STARTED and task.status == TaskStatus.on_hold):
            raise InvalidInputError(f"Task {task.id} is {task.status.value} and cannot be {event}")

        performance = dict(task.actual_performance or {})

        if event == STARTED:
            task.status = TaskStatus.in_progress
            if not performance.get("start_time"):
                performance["start_time"] = now.isoformat()
            task.actual_performance = performance
            return "Task started"

        start_time = _parse_timestamp(performance.get("start_time"))
        if start_time is not None:
            actual_duration = minutes_between(start_time, now)
        else:
            actual_duration = task.estimated_duration or 60
        performance["end_time"] = now.isoformat()
        performance["actual_duration"] = actual_duration

        delay = actual_duration - (task.estimated_duration or actual_duration)
        if delay > 0:
            performance["delays"] = [
                *performance.get("delays", []),
                {"minutes": delay, "reason": "exceeded_estimate", "recorded_at": now.isoformat()},
            ]

        task.actual_performance = performance
        task.status = TaskStatus.completed
        task.completed_at = now
        return "Task completed"

    def _find_progress(self, team: Team, task: Task, route: Optional[Route], route_date: date) -> Optional[RouteProgress]:
        if route is not None:
            progress = route_progress_crud.get_for_route(self.db, route_id=route.id, business_id=task.business_id)
            if progress is not None:
                return progress
        return route_progress_crud.get_for_team_date(
            self.db, business_id=task.business_id, team_id=team.id, route_date=route_date
        )

    def _sync_progress(
        self,
        team: Team,
        task: Task,
        event: str,
        route: Optional[Route],
        route_date: date,
        location: Dict[str, Any],
        notes: Optional[str]
    ) -> Optional[RouteProgress]:
        progress = self._find_progress(team, task, route, route_date)
        if progress is None:
            raise TrackingRecordMissing(f"No route progress found for task {task.id}")

        now = utcnow()
        performance = task.actual_performance or {}
        entry = next((p for p in progress.tasks if p.task_id == task.id), None)

        if event == STARTED and entry is not None and entry.status != ProgressTaskStatus.completed:
            entry.status = ProgressTaskStatus.in_progress
            entry.actual_start_time = entry.actual_start_time or now
            progress.current_task_index = entry.scheduled_order - 1

        if event == COMPLETED and entry is not None and entry.status != ProgressTaskStatus.completed:
            entry.status = ProgressTaskStatus.completed
            entry.actual_start_time = entry.actual_start_time or _parse_timestamp(performance.get("start_time"))
            entry.actual_end_time = _parse_timestamp(performance.get("end_time")) or now
            entry.actual_duration = performance.get("actual_duration", task.estimated_duration)
            delay = (entry.actual_duration or 0) - (entry.estimated_duration or 0)
            if delay > 0:
                progress.total_delay_minutes = (progress.total_delay_minutes or 0) + delay
                entry.delay_reasons = [*(entry.delay_reasons or []), "exceeded_estimate"]

        if event in (STARTED, COMPLETED) and progress.route_status == ProgressStatus.pending:
            progress.route_status = ProgressStatus.in_progress
            progress.route_start_time = progress.route_start_time or now

        completed = [p for p in progress.tasks if p.status == ProgressTaskStatus.completed]
        progress.completed_tasks_count = len(completed)
        progress.performance = self._performance(completed)

        if (
            progress.tasks
            and len(completed) == len(progress.tasks)
            and progress.route_status != ProgressStatus.completed
        ):
            progress.route_status = ProgressStatus.completed
            progress.route_end_time = now
            progress.total_actual_duration = sum(p.actual_duration or 0 for p in completed)

        progress.progress_updates = appended(
            progress.progress_updates,
            make_entry(f"task_{event}", notes=notes, location=location, task_id=task.id),
        )
        self.db.add(progress)
        self.db.commit()
        self.db.refresh(progress)
        return progress

    @staticmethod
    def _performance(completed) -> Dict[str, Any]:
        estimated = sum(p.estimated_duration or 0 for p in completed)
        actual = sum(p.actual_duration or 0 for p in completed)
        on_time = sum(1 for p in completed if (p.actual_duration or 0) <= (p.estimated_duration or 0))
        return {
            "efficiency": round(estimated / actual * 100) if actual > 0 else 100,
            "on_time_tasks": on_time,
            "delayed_tasks": len(completed) - on_time,
        }

    def _sync_route(self, route: Route, task: Task, event: str) -> Route:
        self.db.refresh(route)
        now = utcnow()
        stop = next((s for s in route.stops if s.task_id == task.id), None)
        if stop is None:
            logger.warning(f"Task {task.id} has no stop on route {route.route_code}")

        if route.status == RouteStatus.cancelled:
            return route

        if event == ARRIVED and stop is not None and stop.status == RouteStopStatus.pending:
            stop.status = RouteStopStatus.arrived
            stop.actual_arrival_time = stop.actual_arrival_time or now

        if event == STARTED and stop is not None and stop.status in (RouteStopStatus.pending, RouteStopStatus.arrived):
            stop.status = RouteStopStatus.in_service
            stop.actual_arrival_time = stop.actual_arrival_time or now

        if event == COMPLETED and stop is not None and stop.status != RouteStopStatus.completed:
            stop.status = RouteStopStatus.completed
            stop.actual_arrival_time = stop.actual_arrival_time or now
            stop.actual_departure_time = now

        if event in (STARTED, COMPLETED) and route.status in (RouteStatus.draft, RouteStatus.optimized, RouteStatus.assigned):
            route.status = RouteStatus.in_progress
            route.started_at = route.started_at or now

        if (
            route.stops
            and all(s.status == RouteStopStatus.completed for s in route.stops)
            and route.status != RouteStatus.completed
        ):
            route.status = RouteStatus.completed
            route.completed_at = now
            if route.started_at is not None:
                route.actual_total_time = minutes_between(route.started_at, now)

        self.db.add(route)
        self.db.commit()
        self.db.refresh(route)
        return route


