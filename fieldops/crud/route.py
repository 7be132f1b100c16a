from datetime import date
from typing import Optional, List
from sqlalchemy.orm import Session, selectinload
from fieldops.crud.base import CRUDBase
from fieldops.models.route import Route
from pydantic import BaseModel


class CRUDRoute(CRUDBase[Route, BaseModel, BaseModel]):
    """
    CRUD operations for routes; routes are addressed by their route code.
    """

    def get_by_code(self, db: Session, *, route_code: str, business_id: int) -> Optional[Route]:
        stmt = self._scoped(business_id).where(Route.route_code == route_code).options(
            selectinload(Route.stops)
        )
        return db.execute(stmt).scalar_one_or_none()

    def get_in_window(
        self,
        db: Session,
        *,
        business_id: int,
        start: date,
        end: date,
        team_id: Optional[int] = None
    ) -> List[Route]:
        stmt = self._scoped(business_id).where(
            Route.route_date >= start,
            Route.route_date <= end
        ).options(selectinload(Route.stops))
        if team_id is not None:
            stmt = stmt.where(Route.team_id == team_id)
        stmt = stmt.order_by(Route.route_date, Route.team_id, Route.id)
        return list(db.execute(stmt).scalars().all())

    def get_active_for_team_date(
        self,
        db: Session,
        *,
        business_id: int,
        team_id: int,
        route_date: date
    ) -> List[Route]:
        stmt = self._scoped(business_id).where(
            Route.team_id == team_id,
            Route.route_date == route_date
        )
        return list(db.execute(stmt).scalars().all())


route = CRUDRoute(Route)
