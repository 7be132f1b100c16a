"""
Route optimizer.

Greedy, priority-first partitioning of tasks across teams followed by a
nearest-neighbour ordering of each team's stops. Not globally optimal.
"""

import time as time_module
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple

from fieldops.core.config import settings
from fieldops.core.exceptions import NoEligibleWorkError
from fieldops.core.logging_config import logger
from fieldops.models.task import Task
from fieldops.models.team import Team
from fieldops.schemas.route import OptimizationParams
from fieldops.services.routing_engine.geo import Coordinate, FuelProfile, GeoEstimator, fuel_cost, haversine_km
from fieldops.utils.dates import add_minutes, at_time

ALGORITHM_NAME = "nearest_neighbor_with_priority"


def optimization_score(total_distance: float, total_time: int, task_count: int) -> int:
    """
    Heuristic route quality in [60, 100].

    Penalises long average hops (up to 30 points) and average stop times
    above 45 minutes (up to 20 points).
    """
    if task_count <= 0:
        return 100
    avg_distance = total_distance / (task_count - 1) if task_count > 1 else 0.0
    avg_time = total_time / task_count
    score = 100 - min(30.0, 2 * avg_distance) - min(20.0, (avg_time - 45) / 5)
    return int(max(60, min(100, round(score))))


def _window_key(task: Task) -> str:
    # Tasks without a window sort after those with one
    return task.time_window_start or "99:99"


def sort_by_priority(tasks: Sequence[Task]) -> List[Task]:
    return sorted(tasks, key=lambda t: (-t.priority_rank, _window_key(t)))


def team_has_skills(team: Team, task: Task) -> bool:
    return set(task.skills_required or []).issubset(set(team.skills or []))


def team_capacity(team: Team, max_tasks_per_team: int) -> int:
    if team.max_daily_tasks:
        return min(max_tasks_per_team, team.max_daily_tasks)
    return max_tasks_per_team


def vehicle_type(team: Optional[Team]) -> str:
    if team is None or team.fuel_type is None:
        return "gasoline"
    return team.fuel_type.value


@dataclass
class PlannedStop:
    task: Task
    sequence_number: int
    arrival: datetime
    departure: datetime
    travel_time: int
    distance_from_previous: float


@dataclass
class RoutePlan:
    team: Team
    route_date: date
    stops: List[PlannedStop]
    total_distance: float
    total_time: int
    travel_time: int
    fuel_cost: float
    optimization_score: int

    @property
    def tasks(self) -> List[Task]:
        return [stop.task for stop in self.stops]


@dataclass
class OptimizationResult:
    plans: List[RoutePlan] = field(default_factory=list)
    unassigned: List[Task] = field(default_factory=list)
    processing_time_ms: int = 0


@dataclass
class Metrics:
    total_distance: float
    total_time: int
    travel_time: int
    fuel_cost: float
    optimization_score: int
    leg_distances: List[float]


class RouteOptimizer:
    def __init__(self, geo: Optional[GeoEstimator] = None):
        self.geo = geo or GeoEstimator()

    def partition(
        self,
        tasks: Sequence[Task],
        teams: Sequence[Team],
        params: OptimizationParams
    ) -> Tuple[List[Tuple[Team, List[Task]]], List[Task]]:
        """
        Greedily fill each team, in order, with the highest priority tasks it can do.

        Returns:
            (team, tasks) pairs for teams that received work, and unassigned tasks
        """
        remaining = sort_by_priority(tasks)
        assignments = []
        for team in teams:
            capacity = team_capacity(team, params.max_tasks_per_team)
            taken = []
            for task in remaining:
                if len(taken) >= capacity:
                    break
                if params.consider_skills and not team_has_skills(team, task):
                    continue
                taken.append(task)
            if taken:
                taken_ids = {t.id for t in taken}
                remaining = [t for t in remaining if t.id not in taken_ids]
                assignments.append((team, taken))
        return assignments, remaining

    def order_stops(self, tasks: Sequence[Task], start: Optional[Coordinate] = None) -> List[Task]:
        """
        Nearest-neighbour ordering from ``start`` (or the first task's location).
        """
        unvisited = list(tasks)
        if not unvisited:
            return []
        current = start or unvisited[0].location
        ordered = []
        while unvisited:
            nearest = min(unvisited, key=lambda t: haversine_km(current, t.location))
            ordered.append(nearest)
            unvisited.remove(nearest)
            current = nearest.location
        return ordered

    def measure(self, ordered: Sequence[Task], team: Optional[Team] = None) -> Metrics:
        """Aggregate metrics for tasks visited in the given order."""
        route_measure = self.geo.measure([t.location for t in ordered], vehicle_type(team))
        total_distance = route_measure.total_distance_km
        travel_time = route_measure.travel_minutes
        total_time = sum(t.estimated_duration or 0 for t in ordered) + travel_time
        return Metrics(
            total_distance=total_distance,
            total_time=total_time,
            travel_time=travel_time,
            fuel_cost=fuel_cost(total_distance, FuelProfile.for_team(team)),
            optimization_score=optimization_score(total_distance, total_time, len(ordered)),
            leg_distances=[0.0] + [leg.distance_km for leg in route_measure.legs],
        )

    def build_plan(self, team: Team, ordered: Sequence[Task], route_date: date) -> RoutePlan:
        """
        Lay out the day's schedule and metrics for an ordered task list.

        The displayed schedule starts at the configured day start and inserts
        a fixed travel buffer between stops.
        """
        metrics = self.measure(ordered, team)
        current = at_time(route_date, settings.ROUTE_DAY_START)
        stops = []
        for index, task in enumerate(ordered):
            travel = 0 if index == 0 else settings.STOP_TRAVEL_BUFFER_MINUTES
            arrival = add_minutes(current, travel)
            departure = add_minutes(arrival, task.estimated_duration or 0)
            stops.append(PlannedStop(
                task=task,
                sequence_number=index + 1,
                arrival=arrival,
                departure=departure,
                travel_time=travel,
                distance_from_previous=metrics.leg_distances[index],
            ))
            current = departure

        return RoutePlan(
            team=team,
            route_date=route_date,
            stops=stops,
            total_distance=metrics.total_distance,
            total_time=metrics.total_time,
            travel_time=metrics.travel_time,
            fuel_cost=metrics.fuel_cost,
            optimization_score=metrics.optimization_score,
        )

    def optimize(
        self,
        tasks: Sequence[Task],
        teams: Sequence[Team],
        params: OptimizationParams,
        route_date: date
    ) -> OptimizationResult:
        """
        Produce one route plan per team that receives work.

        Raises:
            NoEligibleWorkError: If there are no tasks or no teams
        """
        if not tasks:
            raise NoEligibleWorkError("No eligible tasks found for optimization")
        if not teams:
            raise NoEligibleWorkError("No available teams found for optimization")

        started = time_module.perf_counter()
        assignments, unassigned = self.partition(tasks, teams, params)

        plans = []
        for team, team_tasks in assignments:
            ordered = self.order_stops(team_tasks, team.current_location)
            plans.append(self.build_plan(team, ordered, route_date))

        elapsed_ms = int((time_module.perf_counter() - started) * 1000)
        logger.info(
            f"Optimized {len(tasks)} tasks across {len(teams)} teams: "
            f"{len(plans)} routes, {len(unassigned)} unassigned, {elapsed_ms}ms"
        )
        if unassigned:
            logger.info(f"Unassigned task ids: {[t.id for t in unassigned]}")
        return OptimizationResult(plans=plans, unassigned=unassigned, processing_time_ms=elapsed_ms)
