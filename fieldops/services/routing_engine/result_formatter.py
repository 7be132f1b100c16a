"""
Formats persisted routes into API results.
"""

from typing import Optional

from fieldops.models.route import Route
from fieldops.models.team import Team
from fieldops.schemas.common import Location
from fieldops.schemas.route import OptimizedRoute, RouteStep, WeatherSummary


def _clock(value) -> str:
    return value.strftime("%H:%M") if value else ""


def format_route(
    route: Route,
    team: Optional[Team] = None,
    weather: Optional[WeatherSummary] = None
) -> OptimizedRoute:
    """
    Build the OptimizedRoute view of a persisted route.
    
    Args:
        route: Route with stops loaded
        team: Team the route belongs to (for the name)
        weather: Fresh weather summary; falls back to the stored considerations
    """
    sequence = []
    for stop in route.stops:
        task = stop.task
        sequence.append(RouteStep(
            task_id=stop.task_id,
            task_name=task.name if task else None,
            sequence_number=stop.sequence_number,
            location=Location(latitude=stop.latitude, longitude=stop.longitude, address=stop.address),
            arrival_time=_clock(stop.estimated_arrival_time),
            departure_time=_clock(stop.estimated_departure_time),
            estimated_duration=stop.service_time or 0,
            travel_time=stop.travel_time_from_previous or 0,
            distance_from_previous=round(stop.distance_from_previous or 0.0, 3),
            priority=task.priority.value if task and task.priority else None,
            status=stop.status.value if stop.status else None,
            weather_delay_minutes=stop.weather_delay_minutes,
        ))

    if weather is None and route.weather_considerations:
        weather = WeatherSummary(**route.weather_considerations)

    return OptimizedRoute(
        route_id=route.route_code,
        team_id=route.team_id,
        team_name=team.name if team else (route.team.name if route.team else None),
        route_date=route.route_date,
        status=route.status,
        tasks=[stop.task_id for stop in route.stops],
        sequence=sequence,
        estimated_total_time=route.estimated_total_time or 0,
        estimated_distance=round(route.estimated_distance or 0.0, 3),
        estimated_fuel_cost=route.estimated_fuel_cost or 0.0,
        optimization_score=route.optimization_score or 0,
        optimization_objective=route.optimization_objective,
        optimization_metadata=route.optimization_metadata,
        weather=weather,
        assigned_at=route.assigned_at,
        started_at=route.started_at,
        completed_at=route.completed_at,
    )
