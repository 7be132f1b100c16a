from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session
from typing import Annotated, List, Optional

from fieldops.database import get_db
from fieldops.core.logging_config import logger
from fieldops.schemas.progress import ProgressAck, ProgressEventVariant, ProgressSnapshot
from fieldops.schemas.route import (
    AssignRouteRequest,
    AssignRouteResponse,
    OptimizeRoutesRequest,
    OptimizeRoutesResponse,
    OptimizedRoutesResponse,
    ReoptimizeRouteRequest,
    ReoptimizeRouteResponse,
    RouteMetricsResponse,
    RouteStatsResponse,
    ValidationResult,
)
from fieldops.services.route_optimization import route_optimization_service

router = APIRouter()


@router.post("/optimize", response_model=OptimizeRoutesResponse)
def optimize_routes(
    request: OptimizeRoutesRequest,
    db: Session = Depends(get_db)
):
    """
    Plan and persist routes for a business.
    
    Tasks scheduled in the date or month window are split across available
    teams by priority and skills, then ordered nearest-neighbour per team.
    """
    logger.info(f"Optimizing routes: business_id={request.business_id} date={request.date} month={request.month}")
    return route_optimization_service.optimize_routes(db, request)


@router.get("/optimized", response_model=OptimizedRoutesResponse)
def get_optimized_routes(
    business_id: int,
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    month: Optional[str] = Query(None, description="YYYY-MM"),
    db: Session = Depends(get_db)
):
    """
    Routes planned for a day or a month (defaults to the current month).
    """
    return route_optimization_service.get_optimized_routes(db, business_id, date=date, month=month)


@router.get("/stats", response_model=RouteStatsResponse)
def get_route_stats(
    business_id: int,
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    month: Optional[str] = Query(None, description="YYYY-MM"),
    db: Session = Depends(get_db)
):
    return route_optimization_service.get_route_stats(db, business_id, date=date, month=month)


@router.post("/{route_id}/assign", response_model=AssignRouteResponse)
def assign_route(
    route_id: str,
    request: AssignRouteRequest,
    db: Session = Depends(get_db)
):
    logger.info(f"Assigning route {route_id} to team {request.team_id}")
    return route_optimization_service.assign_route_to_team(
        db,
        business_id=request.business_id,
        route_code=route_id,
        team_ref=request.team_id,
        assigned_by=request.assigned_by,
    )


@router.put("/{route_id}/progress", response_model=ProgressAck)
def update_route_progress(
    route_id: str,
    event: Annotated[ProgressEventVariant, Body(discriminator="event")],
    db: Session = Depends(get_db)
):
    """
    Record a started, arrived, completed or paused event for a task on the route.
    
    The task update always wins; failures updating the route or its progress
    record are returned as warnings.
    """
    logger.info(f"Progress event '{event.event}' for task {event.task_id} on route {route_id}")
    return route_optimization_service.update_route_progress(db, event, route_code=route_id)


@router.post("/{route_id}/reoptimize", response_model=ReoptimizeRouteResponse)
def reoptimize_route(
    route_id: str,
    request: ReoptimizeRouteRequest,
    db: Session = Depends(get_db)
):
    return route_optimization_service.reoptimize_route(
        db,
        business_id=request.business_id,
        route_code=route_id,
        params=request.params,
    )


@router.get("/teams/{team_id}/metrics", response_model=RouteMetricsResponse)
def calculate_route_metrics(
    team_id: str,
    business_id: int,
    task_ids: List[int] = Query(...),
    db: Session = Depends(get_db)
):
    return route_optimization_service.calculate_route_metrics(db, business_id, task_ids, team_ref=team_id)


@router.get("/teams/{team_id}/validate", response_model=ValidationResult)
def validate_route_constraints(
    team_id: str,
    business_id: int,
    task_ids: List[int] = Query(...),
    max_time: Optional[int] = Query(None, gt=0, description="Minutes"),
    max_distance: Optional[float] = Query(None, gt=0, description="Kilometres"),
    db: Session = Depends(get_db)
):
    """
    Advisory constraint check of a team against a task set.
    
    ``valid`` is false only for error-severity violations.
    """
    return route_optimization_service.validate_route_constraints(
        db,
        business_id,
        task_ids,
        team_ref=team_id,
        max_time=max_time,
        max_distance=max_distance,
    )


@router.get("/teams/{team_id}/progress", response_model=ProgressSnapshot)
def get_route_progress(
    team_id: str,
    business_id: int,
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    month: Optional[str] = Query(None, description="YYYY-MM"),
    db: Session = Depends(get_db)
):
    return route_optimization_service.get_route_progress(db, business_id, team_id, date=date, month=month)
