import enum
from typing import Optional, Set, Tuple
from sqlalchemy import Column, Integer, String, Float, ForeignKey, Boolean, Time, Enum
from fieldops.database import Base, TimestampMixin, JSONType

class FuelType(str, enum.Enum):
    gasoline = "gasoline"
    diesel = "diesel"
    electric = "electric"
    hybrid = "hybrid"


class Team(Base, TimestampMixin):
    __tablename__ = "team"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("business.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    # Legacy identifiers the team may still be addressed by
    external_identifier = Column(String, nullable=True, index=True)
    alternate_ids = Column(JSONType, nullable=True, default=list)

    is_active = Column(Boolean, nullable=False, default=True)
    is_available_for_routing = Column(Boolean, nullable=False, default=True)
    skills = Column(JSONType, nullable=True, default=list)
    equipment = Column(JSONType, nullable=True, default=list)

    max_daily_tasks = Column(Integer, nullable=True)
    max_route_time = Column(Integer, nullable=True)  # minutes
    max_route_distance = Column(Float, nullable=True)  # km
    work_start_time = Column(Time, nullable=True)
    work_end_time = Column(Time, nullable=True)

    current_latitude = Column(Float, nullable=True)
    current_longitude = Column(Float, nullable=True)

    # Vehicle fuel profile
    fuel_type = Column(Enum(FuelType), nullable=True, default=FuelType.gasoline)
    fuel_consumption = Column(Float, nullable=True)  # L or kWh per 100 km
    fuel_price_per_unit = Column(Float, nullable=True)

    @property
    def aliases(self) -> Set[str]:
        """All identifiers this team is recognised by."""
        known = {str(self.id)}
        if self.external_identifier:
            known.add(str(self.external_identifier))
        for alias in self.alternate_ids or []:
            known.add(str(alias))
        return known

    @property
    def current_location(self) -> Optional[Tuple[float, float]]:
        if self.current_latitude is None or self.current_longitude is None:
            return None
        return (self.current_latitude, self.current_longitude)
