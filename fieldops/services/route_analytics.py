from sqlalchemy.orm import Session
from typing import Optional

from fieldops.core.logging_config import logger
from fieldops.crud.route import route as route_crud
from fieldops.crud.task import task as task_crud
from fieldops.models.task import TaskStatus
from fieldops.schemas.route import RouteStats, RouteStatsResponse
from fieldops.services.routing_engine.data_loader import load_business
from fieldops.utils.dates import resolve_date_window


class RouteAnalyticsService:
    def get_route_stats(
        self,
        db: Session,
        business_id: int,
        date: Optional[str] = None,
        month: Optional[str] = None
    ) -> RouteStatsResponse:
        """
        Aggregate execution statistics for a business over a day or a month.
        
        Efficiency compares estimated with actual route time for routes that
        recorded an actual time; it is 100 when none did.
        """
        load_business(db, business_id)
        window = resolve_date_window(date, month)

        routes = route_crud.get_in_window(db, business_id=business_id, start=window.start, end=window.end)
        tasks = task_crud.get_for_team_window(db, business_id=business_id, start=window.start, end=window.end)

        completed = [t for t in tasks if t.status == TaskStatus.completed]
        durations = [
            (t.actual_performance or {}).get("actual_duration")
            for t in completed
        ]
        durations = [d for d in durations if d is not None]
        avg_execution_time = round(sum(durations) / len(durations)) if durations else 0

        estimated_fuel = sum(r.estimated_fuel_cost or 0 for r in routes)
        actual_fuel = sum(
            r.actual_fuel_cost if r.actual_fuel_cost is not None else (r.estimated_fuel_cost or 0)
            for r in routes
        )

        timed = [r for r in routes if r.actual_total_time]
        estimated_time = sum(r.estimated_total_time or 0 for r in timed)
        actual_time = sum(r.actual_total_time for r in timed)
        efficiency = round(estimated_time / actual_time * 100) if actual_time > 0 else 100

        stats = RouteStats(
            total_tasks=len(tasks),
            completed_tasks=len(completed),
            avg_execution_time=avg_execution_time,
            total_distance=round(sum(r.estimated_distance or 0 for r in routes), 2),
            estimated_fuel_cost=round(estimated_fuel, 2),
            actual_fuel_cost=round(actual_fuel, 2),
            fuel_savings=round(max(0.0, estimated_fuel - actual_fuel), 2),
            efficiency=efficiency,
            teams_with_routes=len({r.team_id for r in routes}),
            routes_count=len(routes),
        )
        logger.info(f"Route stats for business {business_id} ({window.label}): {stats.routes_count} routes")
        return RouteStatsResponse(message="Route statistics retrieved", period=window.label, stats=stats)


route_analytics_service = RouteAnalyticsService()
