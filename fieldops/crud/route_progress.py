from datetime import date
from typing import Optional
from sqlalchemy.orm import Session, selectinload
from fieldops.crud.base import CRUDBase
from fieldops.models.route_progress import RouteProgress
from pydantic import BaseModel


class CRUDRouteProgress(CRUDBase[RouteProgress, BaseModel, BaseModel]):
    """
    CRUD operations for route progress (live tracking) records.
    """

    def get_for_team_date(
        self,
        db: Session,
        *,
        business_id: int,
        team_id: int,
        route_date: date
    ) -> Optional[RouteProgress]:
        stmt = self._scoped(business_id).where(
            RouteProgress.team_id == team_id,
            RouteProgress.route_date == route_date
        ).options(selectinload(RouteProgress.tasks)).order_by(RouteProgress.id.desc())
        return db.execute(stmt).scalars().first()

    def get_for_route(self, db: Session, *, route_id: int, business_id: int) -> Optional[RouteProgress]:
        stmt = self._scoped(business_id).where(
            RouteProgress.route_id == route_id
        ).options(selectinload(RouteProgress.tasks))
        return db.execute(stmt).scalars().first()

    def get_latest_in_window(
        self,
        db: Session,
        *,
        business_id: int,
        team_id: int,
        start: date,
        end: date
    ) -> Optional[RouteProgress]:
        stmt = self._scoped(business_id).where(
            RouteProgress.team_id == team_id,
            RouteProgress.route_date >= start,
            RouteProgress.route_date <= end
        ).options(selectinload(RouteProgress.tasks)).order_by(
            RouteProgress.route_date.desc(), RouteProgress.id.desc()
        )
        return db.execute(stmt).scalars().first()


route_progress = CRUDRouteProgress(RouteProgress)
