from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from fieldops.models.route import RouteStatus, OptimizationObjective
from fieldops.core.config import settings
from fieldops.schemas.common import Location


# Requests
class OptimizationParams(BaseModel):
    prioritize_time: bool = False
    prioritize_fuel: bool = False
    consider_weather: bool = False
    consider_skills: bool = True
    max_tasks_per_team: int = Field(settings.DEFAULT_MAX_TASKS_PER_TEAM, gt=0)
    max_route_time: int = Field(settings.DEFAULT_MAX_ROUTE_TIME_MINUTES, gt=0, description="Minutes")

    @property
    def objective(self) -> OptimizationObjective:
        if self.prioritize_time:
            return OptimizationObjective.minimize_time
        if self.prioritize_fuel:
            return OptimizationObjective.minimize_fuel
        return OptimizationObjective.balanced


class DateFilter(BaseModel):
    date: Optional[str] = Field(None, description="YYYY-MM-DD")
    month: Optional[str] = Field(None, description="YYYY-MM")


class OptimizeRoutesRequest(DateFilter):
    business_id: int
    team_ids: Optional[List[str]] = None
    task_ids: Optional[List[int]] = None
    params: OptimizationParams = OptimizationParams()


class AssignRouteRequest(BaseModel):
    business_id: int
    team_id: str
    assigned_by: Optional[str] = None


class ReoptimizeRouteRequest(BaseModel):
    business_id: int
    params: Optional[OptimizationParams] = None


# Results
class RouteStep(BaseModel):
    task_id: int
    task_name: Optional[str] = None
    sequence_number: int
    location: Location
    arrival_time: str  # HH:MM
    departure_time: str
    estimated_duration: int
    travel_time: int
    distance_from_previous: float
    priority: Optional[str] = None
    status: Optional[str] = None
    weather_delay_minutes: Optional[int] = None


class RouteMetrics(BaseModel):
    total_distance: float
    total_time: int
    fuel_cost: float
    optimization_score: int
    task_count: int
    team_id: Optional[int] = None


class WeatherSummary(BaseModel):
    risk_level: str
    safety_score: int
    suggested_delay_minutes: int = 0
    equipment_recommendations: List[str] = []
    recommendations: List[str] = []
    warnings: List[str] = []


class OptimizedRoute(BaseModel):
    route_id: str
    team_id: int
    team_name: Optional[str] = None
    route_date: date
    status: RouteStatus
    tasks: List[int]
    sequence: List[RouteStep]
    estimated_total_time: int
    estimated_distance: float
    estimated_fuel_cost: float
    optimization_score: int
    optimization_objective: Optional[OptimizationObjective] = None
    optimization_metadata: Optional[Dict[str, Any]] = None
    weather: Optional[WeatherSummary] = None
    assigned_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class OptimizeRoutesResponse(BaseModel):
    success: bool = True
    message: str
    routes: List[OptimizedRoute]
    total_tasks: int
    assigned_tasks: int
    unassigned_task_ids: List[int] = []
    warnings: List[str] = []


class OptimizedRoutesResponse(BaseModel):
    success: bool = True
    message: str
    period: str
    routes: List[OptimizedRoute]


class ReoptimizeRouteResponse(BaseModel):
    success: bool = True
    message: str
    route: OptimizedRoute


class ConstraintViolation(BaseModel):
    type: str
    severity: str  # "warning" | "error"
    message: str
    task_id: Optional[int] = None


class ValidationResult(BaseModel):
    success: bool = True
    message: str
    valid: bool
    violations: List[ConstraintViolation]
    metrics: Optional[RouteMetrics] = None


class RouteMetricsResponse(BaseModel):
    success: bool = True
    message: str
    metrics: RouteMetrics


class RouteStats(BaseModel):
    total_tasks: int
    completed_tasks: int
    avg_execution_time: int
    total_distance: float
    estimated_fuel_cost: float
    actual_fuel_cost: float
    fuel_savings: float
    efficiency: int
    teams_with_routes: int
    routes_count: int


class RouteStatsResponse(BaseModel):
    success: bool = True
    message: str
    period: str
    stats: RouteStats


class AssignRouteResponse(BaseModel):
    success: bool = True
    message: str
    route_id: str
    team_id: int
    status: RouteStatus
    assigned_at: Optional[datetime] = None
    warnings: List[str] = []
