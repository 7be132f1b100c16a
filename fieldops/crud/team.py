from typing import Optional, List
from sqlalchemy.orm import Session
from sqlalchemy import select
from fieldops.crud.base import CRUDBase
from fieldops.models.team import Team
from fieldops.schemas.team import TeamCreate, TeamUpdate


class CRUDTeam(CRUDBase[Team, TeamCreate, TeamUpdate]):
    """
    CRUD operations for Team model, including alias-aware lookup.
    """

    def resolve(self, db: Session, *, team_ref: str, business_id: int) -> Optional[Team]:
        """
        Resolve a team by any of its known identifiers.
        
        Tries the primary id first, then the external identifier, then the
        alternate legacy ids recorded on each team of the business.
        
        Args:
            db: Database session
            team_ref: Primary id or legacy identifier, as a string
            business_id: Business ID for isolation
            
        Returns:
            Team or None if no team carries that alias
        """
        ref = str(team_ref).strip()
        if not ref:
            return None

        if ref.isdigit():
            team = self.get(db, id=int(ref), business_id=business_id)
            if team:
                return team

        stmt = self._scoped(business_id).where(Team.external_identifier == ref)
        team = db.execute(stmt).scalars().first()
        if team:
            return team

        # Alternate ids live in a JSON list; compare in Python so it works on every backend
        for candidate in self.get_multi(db, business_id=business_id, limit=10000):
            if ref in candidate.aliases:
                return candidate
        return None

    def get_routable(
        self,
        db: Session,
        *,
        business_id: int,
        team_ids: Optional[List[int]] = None
    ) -> List[Team]:
        """
        Active teams that are available for routing, optionally restricted to ids.
        """
        stmt = select(Team).where(
            Team.business_id == business_id,
            Team.is_active.is_(True),
            Team.is_available_for_routing.is_(True)
        )
        if team_ids is not None:
            stmt = stmt.where(Team.id.in_(team_ids))
        stmt = stmt.order_by(Team.id)
        return list(db.execute(stmt).scalars().all())


team = CRUDTeam(Team)
