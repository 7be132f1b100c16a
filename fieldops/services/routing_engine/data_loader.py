"""
Data loader for optimization requests.

Loads and validates the business, teams and tasks a request refers to.
"""

from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session

from fieldops.core.exceptions import NotFoundError
from fieldops.core.logging_config import logger
from fieldops.crud.business import business as business_crud
from fieldops.crud.route import route as route_crud
from fieldops.crud.task import task as task_crud
from fieldops.crud.team import team as team_crud
from fieldops.models.business import Business
from fieldops.models.task import Task, TaskStatus
from fieldops.models.team import Team
from fieldops.schemas.route import OptimizeRoutesRequest
from fieldops.utils.dates import DateWindow, resolve_date_window, utcnow


class OptimizationData:
    """Container for optimization data."""
    
    def __init__(
        self,
        business: Business,
        tasks: List[Task],
        teams: List[Team],
        window: DateWindow,
        route_date: date,
        carried_over: Optional[List[Task]] = None
    ):
        self.business = business
        self.tasks = tasks
        self.teams = teams
        self.window = window
        self.route_date = route_date
        self.carried_over = carried_over or []


def load_business(db: Session, business_id: int) -> Business:
    business = business_crud.get_active(db, business_id)
    if business is None:
        raise NotFoundError(f"Business {business_id} not found")
    return business


def resolve_team(db: Session, business_id: int, team_ref: str) -> Team:
    team = team_crud.resolve(db, team_ref=team_ref, business_id=business_id)
    if team is None:
        raise NotFoundError(f"Team {team_ref} not found")
    return team


class OptimizationDataLoader:
    """Loads optimization data from database."""
    
    def __init__(self, db: Session):
        self.db = db
    
    def load(self, request: OptimizeRoutesRequest) -> OptimizationData:
        """
        Load all data for an optimization request.
        
        Args:
            request: Optimization request
            
        Returns:
            OptimizationData container
            
        Raises:
            NotFoundError: If the business or a requested team doesn't exist
        """
        business = load_business(self.db, request.business_id)
        window = resolve_date_window(request.date, request.month)
        if request.date:
            route_date = window.start
        elif request.month:
            route_date = window.start
        else:
            route_date = utcnow().date()

        team_ids: Optional[List[int]] = None
        if request.team_ids:
            team_ids = [resolve_team(self.db, business.id, ref).id for ref in request.team_ids]
        teams = team_crud.get_routable(self.db, business_id=business.id, team_ids=team_ids)

        tasks = task_crud.find_eligible(
            self.db,
            business_id=business.id,
            start=window.start,
            end=window.end,
            task_ids=request.task_ids,
        )

        carried_over = []
        if not request.task_ids:
            # A re-run replaces these teams' plans for the day, so their unstarted work is planned again
            known = {t.id for t in tasks}
            carried_over = [t for t in self._planned_tasks(business.id, teams, route_date) if t.id not in known]
            tasks = sorted([*tasks, *carried_over], key=lambda t: t.id)

        logger.info(
            f"Loaded optimization data: business={business.id} period={window.label} "
            f"tasks={len(tasks)} carried_over={len(carried_over)} teams={len(teams)}"
        )
        return OptimizationData(
            business=business,
            tasks=tasks,
            teams=teams,
            window=window,
            route_date=route_date,
            carried_over=carried_over,
        )

    def _planned_tasks(self, business_id: int, teams: List[Team], route_date: date) -> List[Task]:
        """Assigned, unstarted tasks on the live routes of ``teams`` for ``route_date``."""
        planned = []
        for team in teams:
            for live_route in route_crud.get_active_for_team_date(
                self.db, business_id=business_id, team_id=team.id, route_date=route_date
            ):
                planned.extend(
                    t for t in task_crud.get_for_route(self.db, route_id=live_route.id, business_id=business_id)
                    if t.status == TaskStatus.assigned
                )
        return planned
