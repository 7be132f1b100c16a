from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy import select
from fieldops.models.business import Business


class CRUDBusiness:
    """Read access to businesses; they are owned by an external system."""

    def get_active(self, db: Session, business_id: int) -> Optional[Business]:
        stmt = select(Business).where(
            Business.id == business_id,
            Business.is_active.is_(True)
        )
        return db.execute(stmt).scalar_one_or_none()


business = CRUDBusiness()
