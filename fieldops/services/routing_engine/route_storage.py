"""
Route storage service.

Turns an in-memory route plan into a persisted Route (with stops) and its
RouteProgress tracking record, then stamps the source tasks.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fieldops.core.logging_config import logger
from fieldops.crud.route import route as route_crud
from fieldops.crud.route_progress import route_progress as route_progress_crud
from fieldops.crud.task import task as task_crud
from fieldops.models.task import TaskStatus
from fieldops.models.route import Route, RouteStop, RouteStatus, RouteStopStatus
from fieldops.models.route_progress import RouteProgress, RouteProgressTask, ProgressStatus, ProgressTaskStatus
from fieldops.schemas.route import OptimizationParams
from fieldops.services.routing_engine.optimizer import ALGORITHM_NAME, RoutePlan
from fieldops.services.routing_engine.progress_log import make_entry
from fieldops.utils.dates import utcnow


def new_route_code(team_id: int, route_date) -> str:
    return f"route-{team_id}-{route_date.isoformat()}-{uuid.uuid4().hex[:8]}"


@dataclass
class StoredRoute:
    route: Route
    progress: RouteProgress
    warnings: List[str] = field(default_factory=list)


class RouteStorage:
    """Stores optimization results in database."""
    
    def __init__(self, db: Session):
        self.db = db

    def store_plan(
        self,
        plan: RoutePlan,
        business_id: int,
        params: OptimizationParams,
        processing_time_ms: int = 0,
        keep_task_ids: Optional[Set[int]] = None
    ) -> StoredRoute:
        """
        Persist a route plan.
        
        Any live Route/RouteProgress for the same team and date is soft-deleted
        first; its unstarted tasks go back to pending unless they are in
        ``keep_task_ids``. Task stamping is best effort: failures become
        warnings and the stored route stays authoritative.
        
        Args:
            plan: Plan produced by the optimizer
            business_id: Business ID
            params: Parameters the plan was produced with
            processing_time_ms: Optimizer wall time
            keep_task_ids: Tasks planned again in the same run; defaults to this plan's tasks
            
        Returns:
            StoredRoute with the persisted records and any warnings
        """
        team = plan.team
        if keep_task_ids is None:
            keep_task_ids = {t.id for t in plan.tasks}
        warnings = self._supersede(business_id, team.id, plan.route_date, keep_task_ids)

        route = Route(
            route_code=new_route_code(team.id, plan.route_date),
            business_id=business_id,
            team_id=team.id,
            route_date=plan.route_date,
            status=RouteStatus.optimized,
            optimization_score=plan.optimization_score,
            optimization_objective=params.objective,
            estimated_total_time=plan.total_time,
            estimated_distance=plan.total_distance,
            estimated_fuel_cost=plan.fuel_cost,
            optimization_metadata=self._metadata(params, processing_time_ms),
            stops=self._build_stops(plan),
        )
        self.db.add(route)
        self.db.flush()

        progress = RouteProgress(
            business_id=business_id,
            team_id=team.id,
            team_name=team.name,
            route_id=route.id,
            route_date=plan.route_date,
            route_status=ProgressStatus.pending,
            current_task_index=0,
            completed_tasks_count=0,
            estimated_completion_time=plan.stops[-1].departure if plan.stops else None,
            total_estimated_duration=plan.total_time,
            total_distance_km=plan.total_distance,
            total_delay_minutes=0,
            progress_updates=[make_entry("route_created", notes=f"Route {route.route_code} created")],
            tasks=[
                RouteProgressTask(
                    task_id=stop.task.id,
                    scheduled_order=stop.sequence_number,
                    status=ProgressTaskStatus.pending,
                    estimated_start_time=stop.arrival,
                    estimated_end_time=stop.departure,
                    estimated_duration=stop.task.estimated_duration,
                    latitude=stop.task.latitude,
                    longitude=stop.task.longitude,
                    address=stop.task.address,
                )
                for stop in plan.stops
            ],
        )
        self.db.add(progress)
        self.db.commit()
        self.db.refresh(route)
        self.db.refresh(progress)
        logger.info(f"Stored route {route.route_code}: team={team.id} stops={len(route.stops)}")

        warnings.extend(self._stamp_tasks(plan, route))
        return StoredRoute(route=route, progress=progress, warnings=warnings)

    def replace_stops(self, route: Route, plan: RoutePlan) -> Route:
        """
        Rewrite a route's stop list from a new plan.
        
        Status and actual timestamps are carried over per task so execution
        already recorded is not lost.
        """
        previous = {stop.task_id: stop for stop in route.stops}
        new_stops = self._build_stops(plan)
        for stop in new_stops:
            old = previous.get(stop.task_id)
            if old is not None:
                stop.status = old.status
                stop.actual_arrival_time = old.actual_arrival_time
                stop.actual_departure_time = old.actual_departure_time
                stop.weather_delay_minutes = old.weather_delay_minutes
                stop.notes = old.notes
        route.stops = new_stops
        route.estimated_total_time = plan.total_time
        route.estimated_distance = plan.total_distance
        route.estimated_fuel_cost = plan.fuel_cost
        route.optimization_score = plan.optimization_score
        self.db.add(route)
        self.db.commit()
        self.db.refresh(route)
        return route

    def _build_stops(self, plan: RoutePlan) -> List[RouteStop]:
        return [
            RouteStop(
                task_id=stop.task.id,
                sequence_number=stop.sequence_number,
                status=RouteStopStatus.pending,
                estimated_arrival_time=stop.arrival,
                estimated_departure_time=stop.departure,
                distance_from_previous=stop.distance_from_previous,
                travel_time_from_previous=stop.travel_time,
                service_time=stop.task.estimated_duration,
                latitude=stop.task.latitude,
                longitude=stop.task.longitude,
                address=stop.task.address,
            )
            for stop in plan.stops
        ]

    def _metadata(self, params: OptimizationParams, processing_time_ms: int) -> Dict[str, Any]:
        return {
            "algorithm_used": ALGORITHM_NAME,
            "processing_time_ms": processing_time_ms,
            "iterations": 1,
            "weather_considered": params.consider_weather,
            "skill_matching_applied": params.consider_skills,
            "constraints": {
                "max_route_time": params.max_route_time,
                "max_stops": params.max_tasks_per_team,
                "required_breaks": False,
                "time_windows": True,
            },
        }

    def retire(self, business_id: int, team_id: int, route_date, keep_task_ids: Iterable[int] = ()) -> List[str]:
        """
        Soft-delete a team's live plan for a day without replacing it.

        Returns:
            Warnings naming every task put back to pending
        """
        warnings = self._supersede(business_id, team_id, route_date, set(keep_task_ids))
        self.db.commit()
        return warnings

    def _supersede(self, business_id: int, team_id: int, route_date, keep_task_ids: Set[int]) -> List[str]:
        now = utcnow()
        warnings = []
        for old_route in route_crud.get_active_for_team_date(
            self.db, business_id=business_id, team_id=team_id, route_date=route_date
        ):
            if old_route.status in (RouteStatus.in_progress, RouteStatus.completed):
                logger.warning(
                    f"Superseding {old_route.status.value} route {old_route.route_code} "
                    f"for team {team_id} on {route_date}"
                )
            route_crud.soft_delete(self.db, db_obj=old_route, deleted_at=now, commit=False)
            for task_id in self._release_tasks(business_id, old_route, keep_task_ids):
                warnings.append(f"Task {task_id} released from superseded route {old_route.route_code}")

        old_progress = route_progress_crud.get_for_team_date(
            self.db, business_id=business_id, team_id=team_id, route_date=route_date
        )
        while old_progress is not None:
            route_progress_crud.soft_delete(self.db, db_obj=old_progress, deleted_at=now, commit=False)
            self.db.flush()
            old_progress = route_progress_crud.get_for_team_date(
                self.db, business_id=business_id, team_id=team_id, route_date=route_date
            )
        for warning in warnings:
            logger.warning(warning)
        return warnings

    def _release_tasks(self, business_id: int, old_route: Route, keep_task_ids: Set[int]) -> List[int]:
        # Planned but unstarted work goes back to the pool unless re-planned in this run
        released = []
        for task in task_crud.get_for_route(self.db, route_id=old_route.id, business_id=business_id):
            if task.status == TaskStatus.assigned and task.id not in keep_task_ids:
                task.status = TaskStatus.pending
                task.assigned_route_id = None
                task.assigned_team_id = None
                task.assigned_at = None
                self.db.add(task)
                released.append(task.id)
        return released

    def _stamp_tasks(self, plan: RoutePlan, route: Route) -> List[str]:
        warnings = []
        assigned_at = utcnow()
        for stop in plan.stops:
            try:
                task_crud.update_assignment(
                    self.db,
                    db_obj=stop.task,
                    route_id=route.id,
                    team_id=plan.team.id,
                    assigned_at=assigned_at,
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                message = f"Failed to update assignment for task {stop.task.id}: {type(e).__name__}"
                logger.warning(f"{message} (route {route.route_code})")
                warnings.append(message)
        return warnings
