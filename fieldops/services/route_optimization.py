"""
Route optimization service.

Public operations of the routing engine: planning, reading plans, live
progress tracking, assignment, re-optimization, validation and metrics.
"""

from contextlib import contextmanager
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fieldops.core.exceptions import FieldOpsError, InvalidInputError, NoEligibleWorkError, NotFoundError
from fieldops.core.logging_config import logger
from fieldops.crud.route import route as route_crud
from fieldops.crud.route_progress import route_progress as route_progress_crud
from fieldops.crud.task import task as task_crud
from fieldops.crud.team import team as team_crud
from fieldops.models.route import Route, RouteStatus
from fieldops.models.route_progress import ProgressStatus
from fieldops.models.task import Task
from fieldops.models.team import Team
from fieldops.schemas.progress import (
    ProgressAck,
    ProgressEvent,
    ProgressSnapshot,
    ProgressTaskSnapshot,
    ProgressUpdateEntry,
)
from fieldops.schemas.route import (
    AssignRouteResponse,
    OptimizationParams,
    OptimizeRoutesRequest,
    OptimizeRoutesResponse,
    OptimizedRoutesResponse,
    ReoptimizeRouteResponse,
    RouteMetrics,
    RouteMetricsResponse,
    RouteStatsResponse,
    ValidationResult,
)
from fieldops.services.audit import AuditAction, audit_service
from fieldops.services.route_analytics import route_analytics_service
from fieldops.services.routing_engine.constraint_validator import ERROR, ConstraintValidator
from fieldops.services.routing_engine.data_loader import OptimizationDataLoader, load_business, resolve_team
from fieldops.services.routing_engine.geo import GeoEstimator
from fieldops.services.routing_engine.optimizer import RouteOptimizer
from fieldops.services.routing_engine.progress_log import appended, make_entry
from fieldops.services.routing_engine.progress_tracker import ProgressTracker
from fieldops.services.routing_engine.result_formatter import format_route
from fieldops.services.routing_engine.route_storage import RouteStorage
from fieldops.services.routing_engine.routing_client import get_directions_client
from fieldops.services.routing_engine.weather_client import get_weather_client
from fieldops.services.routing_engine.weather_overlay import WeatherOverlay
from fieldops.utils.dates import resolve_date_window, utcnow

CLOSED_ROUTE_STATUSES = (RouteStatus.completed, RouteStatus.cancelled)
STARTED_ROUTE_STATUSES = (RouteStatus.in_progress, RouteStatus.completed)


class RouteOptimizationService:
    """
    Service layer for the routing engine.

    Every operation returns a response carrying ``success`` and ``message``;
    NotFound, InvalidInput and NoEligibleWork conditions are raised as domain
    errors and rendered the same way by the API.
    """

    def _optimizer(self) -> RouteOptimizer:
        return RouteOptimizer(GeoEstimator(get_directions_client()))

    def _weather_overlay(self) -> WeatherOverlay:
        return WeatherOverlay(get_weather_client())

    @contextmanager
    def _audit_failures(self, action: str, business_id: int, **metadata: Any):
        """Emit a failed audit event for any domain error raised inside the block."""
        try:
            yield
        except FieldOpsError as e:
            audit_service.record(action, business_id, False, reason=e.message, error=e.error, **metadata)
            raise

    def _get_route(self, db: Session, business_id: int, route_code: str) -> Route:
        route = route_crud.get_by_code(db, route_code=route_code, business_id=business_id)
        if route is None:
            raise NotFoundError(f"Route {route_code} not found")
        return route

    def _get_tasks_in_order(self, db: Session, business_id: int, task_ids: List[int]) -> List[Task]:
        found = {t.id: t for t in task_crud.get_multi_by_ids(db, ids=task_ids, business_id=business_id)}
        return [found[task_id] for task_id in task_ids if task_id in found]

    def optimize_routes(self, db: Session, request: OptimizeRoutesRequest) -> OptimizeRoutesResponse:
        """
        Plan routes for a business and persist them.

        A run replaces the day's live plans of every team it covers. Their
        unstarted tasks are planned again; any that end up unplanned go back to
        pending and are listed in ``warnings``.

        Args:
            db: Database session
            request: Business, date or month filter, optional team/task restriction and parameters

        Returns:
            OptimizeRoutesResponse with one route per team that received work

        Raises:
            NotFoundError: If the business or a requested team doesn't exist
            NoEligibleWorkError: If there are no tasks or no teams to plan
        """
        with self._audit_failures(
            AuditAction.OPTIMIZE_ROUTES, request.business_id, date=request.date, month=request.month
        ):
            data = OptimizationDataLoader(db).load(request)
            params = request.params
            result = self._optimizer().optimize(data.tasks, data.teams, params, data.route_date)

        storage = RouteStorage(db)
        planned_ids = {t.id for plan in result.plans for t in plan.tasks}
        warnings = []
        routes = []
        for plan in result.plans:
            stored = storage.store_plan(
                plan, request.business_id, params, result.processing_time_ms, keep_task_ids=planned_ids
            )
            warnings.extend(stored.warnings)
            routes.append(stored.route)

        planned_teams = {plan.team.id for plan in result.plans}
        for team in data.teams:
            if team.id not in planned_teams:
                warnings.extend(storage.retire(request.business_id, team.id, data.route_date, planned_ids))

        weather = {}
        if params.consider_weather and routes:
            weather = self._weather_overlay().annotate(db, request.business_id, routes)

        teams = {t.id: t for t in data.teams}
        formatted = [format_route(r, teams.get(r.team_id), weather=weather.get(r.id)) for r in routes]
        assigned = sum(len(r.tasks) for r in formatted)

        if formatted:
            message = f"Optimized {len(formatted)} routes covering {assigned} of {len(data.tasks)} tasks"
        else:
            message = f"No team could take any of the {len(data.tasks)} eligible tasks"
        logger.info(message)

        audit_service.record(
            AuditAction.OPTIMIZE_ROUTES, request.business_id, True,
            after={"routes": [r.route_id for r in formatted]},
            period=data.window.label,
            params=params.model_dump(),
            carried_over=[t.id for t in data.carried_over],
            unassigned=[t.id for t in result.unassigned],
        )
        return OptimizeRoutesResponse(
            message=message,
            routes=formatted,
            total_tasks=len(data.tasks),
            assigned_tasks=assigned,
            unassigned_task_ids=[t.id for t in result.unassigned],
            warnings=warnings,
        )

    def get_optimized_routes(
        self,
        db: Session,
        business_id: int,
        date: Optional[str] = None,
        month: Optional[str] = None
    ) -> OptimizedRoutesResponse:
        load_business(db, business_id)
        window = resolve_date_window(date, month)
        routes = route_crud.get_in_window(db, business_id=business_id, start=window.start, end=window.end)

        teams = {t.id: t for t in team_crud.get_multi_by_ids(
            db, ids=list({r.team_id for r in routes}), business_id=business_id
        )}
        formatted = []
        for route in routes:
            team = teams.get(route.team_id)
            if team is None:
                logger.warning(f"Skipping route {route.route_code}: team {route.team_id} not found")
                continue
            formatted.append(format_route(route, team))

        return OptimizedRoutesResponse(
            message=f"Found {len(formatted)} optimized routes",
            period=window.label,
            routes=formatted,
        )

    def update_route_progress(
        self,
        db: Session,
        event: ProgressEvent,
        route_code: Optional[str] = None
    ) -> ProgressAck:
        """
        Record a stop-level lifecycle event.

        Args:
            db: Database session
            event: started, arrived, completed or paused event for one task
            route_code: Route the event was reported against, if known

        Returns:
            ProgressAck; tracking-view failures are listed as warnings

        Raises:
            NotFoundError: If business, team, task or route don't exist, or the
                task isn't assigned to the team
            InvalidInputError: If the task isn't on the given route, or can't
                take the event in its current status
        """
        with self._audit_failures(
            AuditAction.UPDATE_PROGRESS, event.business_id,
            task_id=event.task_id, team_id=event.team_id, event=event.event, route_id=route_code,
        ):
            load_business(db, event.business_id)
            team = resolve_team(db, event.business_id, event.team_id)

            task = task_crud.get(db, id=event.task_id, business_id=event.business_id)
            if task is None or task.assigned_team_id != team.id:
                raise NotFoundError(f"Task {event.task_id} not found or not assigned to team {event.team_id}")

            if route_code:
                route = self._get_route(db, event.business_id, route_code)
                if task.assigned_route_id != route.id:
                    raise InvalidInputError(f"Task {task.id} is not on route {route_code}")
            elif task.assigned_route_id is not None:
                route = route_crud.get(db, id=task.assigned_route_id, business_id=event.business_id)
            else:
                route = None

            before = {"task_status": task.status.value}
            outcome = ProgressTracker(db).apply(
                team,
                task,
                event.event,
                route=route,
                location=event.location.model_dump() if event.location else None,
                notes=getattr(event, "reason", None) or event.notes,
            )

        audit_service.record(
            AuditAction.UPDATE_PROGRESS, event.business_id, True,
            before=before,
            after={"task_status": outcome.task_status, "route_status": outcome.route_status},
            task_id=task.id,
            team_id=team.id,
            event=event.event,
            warnings=outcome.warnings,
        )
        return ProgressAck(
            message=outcome.message,
            task_id=task.id,
            event=event.event,
            task_status=outcome.task_status,
            route_status=outcome.route_status,
            progress_status=outcome.progress_status,
            completed_tasks_count=outcome.completed_tasks_count,
            warnings=outcome.warnings,
        )

    def get_route_progress(
        self,
        db: Session,
        business_id: int,
        team_ref: str,
        date: Optional[str] = None,
        month: Optional[str] = None
    ) -> ProgressSnapshot:
        """
        Latest progress record of a team inside the date or month window.
        """
        load_business(db, business_id)
        team = resolve_team(db, business_id, team_ref)
        window = resolve_date_window(date, month)

        progress = route_progress_crud.get_latest_in_window(
            db, business_id=business_id, team_id=team.id, start=window.start, end=window.end
        )
        if progress is None:
            raise NotFoundError(f"No route progress found for team {team_ref} in {window.label}")

        route = route_crud.get(db, id=progress.route_id, business_id=business_id) if progress.route_id else None
        total = len(progress.tasks)
        return ProgressSnapshot(
            message="Route progress retrieved",
            team_id=team.id,
            team_name=progress.team_name or team.name,
            route_id=route.route_code if route else None,
            route_date=progress.route_date,
            route_status=progress.route_status.value,
            current_task_index=progress.current_task_index,
            completed_tasks_count=progress.completed_tasks_count,
            total_tasks=total,
            completion_percentage=round(progress.completed_tasks_count / total * 100) if total else 0,
            route_start_time=progress.route_start_time,
            route_end_time=progress.route_end_time,
            estimated_completion_time=progress.estimated_completion_time,
            total_estimated_duration=progress.total_estimated_duration,
            total_actual_duration=progress.total_actual_duration,
            total_distance_km=progress.total_distance_km,
            total_delay_minutes=progress.total_delay_minutes or 0,
            performance=progress.performance,
            tasks=[ProgressTaskSnapshot(
                task_id=p.task_id,
                scheduled_order=p.scheduled_order,
                status=p.status.value,
                estimated_start_time=p.estimated_start_time,
                estimated_end_time=p.estimated_end_time,
                actual_start_time=p.actual_start_time,
                actual_end_time=p.actual_end_time,
                estimated_duration=p.estimated_duration,
                actual_duration=p.actual_duration,
                latitude=p.latitude,
                longitude=p.longitude,
                address=p.address,
            ) for p in progress.tasks],
            progress_updates=[ProgressUpdateEntry(**entry) for entry in progress.progress_updates or []],
        )

    def _check_handover(self, db: Session, business_id: int, route: Route, team: Team) -> List[str]:
        """
        Validate a route against the team taking it over and clear that team's day.

        Returns:
            Warning-severity violations and any tasks released from the team's previous plan

        Raises:
            InvalidInputError: On error-severity violations, or if the team's
                plan for the day has already started
        """
        tasks = self._get_tasks_in_order(db, business_id, [s.task_id for s in route.stops])
        violations = ConstraintValidator().validate(
            team,
            tasks,
            total_distance=route.estimated_distance or 0.0,
            total_time=route.estimated_total_time or 0,
        )
        errors = [v.message for v in violations if v.severity == ERROR]
        if errors:
            raise InvalidInputError(f"Team {team.name} cannot take route {route.route_code}: {'; '.join(errors)}")

        for live_route in route_crud.get_active_for_team_date(
            db, business_id=business_id, team_id=team.id, route_date=route.route_date
        ):
            if live_route.status in STARTED_ROUTE_STATUSES:
                raise InvalidInputError(
                    f"Team {team.name} already has a {live_route.status.value} route on {route.route_date}"
                )

        warnings = [v.message for v in violations]
        warnings.extend(RouteStorage(db).retire(business_id, team.id, route.route_date))
        return warnings

    def assign_route_to_team(
        self,
        db: Session,
        business_id: int,
        route_code: str,
        team_ref: str,
        assigned_by: Optional[str] = None
    ) -> AssignRouteResponse:
        """
        Hand a planned route to a team.

        The route moves to ``assigned``. If the team differs from the planned
        one, the route is checked against the new team, the new team's own plan
        for that day is superseded, and the route, its progress record and its
        tasks move over.

        Raises:
            NotFoundError: If the business, team or route doesn't exist
            InvalidInputError: If the route is already in progress or closed, or
                the new team can't take it
        """
        with self._audit_failures(
            AuditAction.ASSIGN_ROUTE, business_id, route_id=route_code, team_id=team_ref, assigned_by=assigned_by
        ):
            load_business(db, business_id)
            team = resolve_team(db, business_id, team_ref)
            route = self._get_route(db, business_id, route_code)

            if route.status in CLOSED_ROUTE_STATUSES or route.status == RouteStatus.in_progress:
                raise InvalidInputError(f"Route {route_code} is {route.status.value} and cannot be assigned")

            previous_team_id = route.team_id
            warnings = []
            if previous_team_id != team.id:
                warnings.extend(self._check_handover(db, business_id, route, team))

        before = {"status": route.status.value, "team_id": previous_team_id}
        now = utcnow()

        route.team_id = team.id
        route.status = RouteStatus.assigned
        route.assigned_at = now
        route.assigned_by = assigned_by
        db.add(route)
        if previous_team_id != team.id:
            for task in task_crud.get_for_route(db, route_id=route.id, business_id=business_id):
                task.assigned_team_id = team.id
                db.add(task)
        db.commit()
        db.refresh(route)
        logger.info(f"Route {route_code} assigned to team {team.id} by {assigned_by or 'system'}")

        try:
            progress = route_progress_crud.get_for_route(db, route_id=route.id, business_id=business_id)
            if progress is None:
                warnings.append(f"No route progress found for route {route_code}")
            else:
                progress.team_id = team.id
                progress.team_name = team.name
                progress.route_status = ProgressStatus.pending
                progress.progress_updates = appended(
                    progress.progress_updates,
                    make_entry("route_assigned", notes=f"Route assigned to {team.name}"),
                )
                db.add(progress)
                db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            warning = f"Failed to update route progress for route {route_code}: {type(e).__name__}"
            logger.warning(warning)
            warnings.append(warning)

        audit_service.record(
            AuditAction.ASSIGN_ROUTE, business_id, True,
            before=before,
            after={"status": RouteStatus.assigned.value, "team_id": team.id},
            route_id=route_code,
            assigned_by=assigned_by,
            warnings=warnings,
        )
        return AssignRouteResponse(
            message=f"Route assigned to {team.name}",
            route_id=route.route_code,
            team_id=team.id,
            status=route.status,
            assigned_at=route.assigned_at,
            warnings=warnings,
        )

    def reoptimize_route(
        self,
        db: Session,
        business_id: int,
        route_code: str,
        params: Optional[OptimizationParams] = None
    ) -> ReoptimizeRouteResponse:
        """
        Re-order an existing route's stops and recompute its metrics.

        Stop statuses and recorded timestamps are kept per task.

        Raises:
            NotFoundError: If the business, route or its team doesn't exist
            InvalidInputError: If the route is completed or cancelled
            NoEligibleWorkError: If the route has no live tasks left
        """
        with self._audit_failures(AuditAction.REOPTIMIZE_ROUTE, business_id, route_id=route_code):
            load_business(db, business_id)
            route = self._get_route(db, business_id, route_code)
            if route.status in CLOSED_ROUTE_STATUSES:
                raise InvalidInputError(f"Route {route_code} is {route.status.value} and cannot be re-optimized")

            team = team_crud.get(db, id=route.team_id, business_id=business_id)
            if team is None:
                raise NotFoundError(f"Team {route.team_id} not found")

            tasks = self._get_tasks_in_order(db, business_id, [s.task_id for s in route.stops])
            if not tasks:
                raise NoEligibleWorkError(f"Route {route_code} has no tasks to optimize")

        before = {
            "tasks": [s.task_id for s in route.stops],
            "estimated_distance": route.estimated_distance,
            "optimization_score": route.optimization_score,
        }

        optimizer = self._optimizer()
        ordered = optimizer.order_stops(tasks, team.current_location)
        plan = optimizer.build_plan(team, ordered, route.route_date)

        storage = RouteStorage(db)
        if params is not None:
            route.optimization_objective = params.objective
        route.optimization_metadata = {
            **(route.optimization_metadata or {}),
            "reoptimized_at": utcnow().isoformat(),
        }
        route = storage.replace_stops(route, plan)

        weather = None
        if params is not None and params.consider_weather:
            weather = self._weather_overlay().annotate(db, business_id, [route]).get(route.id)

        formatted = format_route(route, team, weather=weather)
        audit_service.record(
            AuditAction.REOPTIMIZE_ROUTE, business_id, True,
            before=before,
            after={
                "tasks": formatted.tasks,
                "estimated_distance": formatted.estimated_distance,
                "optimization_score": formatted.optimization_score,
            },
            route_id=route_code,
        )
        return ReoptimizeRouteResponse(message=f"Route {route_code} re-optimized", route=formatted)

    def validate_route_constraints(
        self,
        db: Session,
        business_id: int,
        task_ids: List[int],
        team_ref: str,
        max_time: Optional[int] = None,
        max_distance: Optional[float] = None
    ) -> ValidationResult:
        """
        Check whether a team can take a set of tasks.

        Limits default to the team's own, then to configured defaults.

        Raises:
            NotFoundError: If the business or team doesn't exist
            InvalidInputError: If no task ids are given
        """
        with self._audit_failures(AuditAction.VALIDATE_CONSTRAINTS, business_id, team_id=team_ref, task_ids=task_ids):
            if not task_ids:
                raise InvalidInputError("At least one task id is required")
            load_business(db, business_id)
            team = resolve_team(db, business_id, team_ref)

        tasks = self._get_tasks_in_order(db, business_id, task_ids)
        found = {t.id for t in tasks}
        missing = [task_id for task_id in task_ids if task_id not in found]

        optimizer = self._optimizer()
        ordered = optimizer.order_stops(tasks, team.current_location)
        measured = optimizer.measure(ordered, team)

        validator = ConstraintValidator()
        violations = validator.validate(
            team,
            tasks,
            total_distance=measured.total_distance,
            total_time=measured.total_time,
            max_time=max_time,
            max_distance=max_distance,
            missing_task_ids=missing,
        )
        valid = validator.is_valid(violations)

        audit_service.record(
            AuditAction.VALIDATE_CONSTRAINTS, business_id, True,
            team_id=team.id,
            task_ids=task_ids,
            valid=valid,
            violations=[v.type for v in violations],
        )
        return ValidationResult(
            message="Constraints satisfied" if valid else f"{len(violations)} constraint violations found",
            valid=valid,
            violations=violations,
            metrics=RouteMetrics(
                total_distance=round(measured.total_distance, 3),
                total_time=measured.total_time,
                fuel_cost=measured.fuel_cost,
                optimization_score=measured.optimization_score,
                task_count=len(tasks),
                team_id=team.id,
            ),
        )

    def calculate_route_metrics(
        self,
        db: Session,
        business_id: int,
        task_ids: List[int],
        team_ref: Optional[str] = None
    ) -> RouteMetricsResponse:
        """
        Metrics for visiting the given tasks in the given order.

        Raises:
            NotFoundError: If the business, the team (when given) or every task is missing
        """
        load_business(db, business_id)
        team = resolve_team(db, business_id, team_ref) if team_ref else None

        tasks = self._get_tasks_in_order(db, business_id, task_ids or [])
        if not tasks:
            raise NotFoundError("No tasks found for metrics calculation")

        measured = self._optimizer().measure(tasks, team)
        return RouteMetricsResponse(
            message=f"Metrics calculated for {len(tasks)} tasks",
            metrics=RouteMetrics(
                total_distance=round(measured.total_distance, 3),
                total_time=measured.total_time,
                fuel_cost=measured.fuel_cost,
                optimization_score=measured.optimization_score,
                task_count=len(tasks),
                team_id=team.id if team else None,
            ),
        )

    def get_route_stats(
        self,
        db: Session,
        business_id: int,
        date: Optional[str] = None,
        month: Optional[str] = None
    ) -> RouteStatsResponse:
        return route_analytics_service.get_route_stats(db, business_id, date=date, month=month)


route_optimization_service = RouteOptimizationService()
