import enum
from sqlalchemy import Column, Integer, String, Float, ForeignKey, Date, DateTime, Enum, Text
from sqlalchemy.orm import relationship
from fieldops.database import Base, TimestampMixin, SoftDeleteMixin, JSONType

class RouteStatus(str, enum.Enum):
    draft = "draft"
    optimized = "optimized"
    assigned = "assigned"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"

class RouteStopStatus(str, enum.Enum):
    pending = "pending"
    arrived = "arrived"
    in_service = "in_service"
    completed = "completed"
    skipped = "skipped"

class OptimizationObjective(str, enum.Enum):
    minimize_time = "minimize_time"
    minimize_fuel = "minimize_fuel"
    balanced = "balanced"


class Route(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "route"

    id = Column(Integer, primary_key=True, index=True)
    route_code = Column(String, nullable=False, unique=True, index=True)
    business_id = Column(Integer, ForeignKey("business.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("team.id", ondelete="CASCADE"), nullable=False, index=True)
    route_date = Column(Date, nullable=False, index=True)
    status = Column(Enum(RouteStatus), nullable=False, default=RouteStatus.draft)

    optimization_score = Column(Integer, nullable=True)
    optimization_objective = Column(Enum(OptimizationObjective), nullable=True, default=OptimizationObjective.balanced)
    estimated_total_time = Column(Integer, nullable=True)  # minutes
    estimated_distance = Column(Float, nullable=True)  # km
    estimated_fuel_cost = Column(Float, nullable=True)
    actual_total_time = Column(Integer, nullable=True)
    actual_distance = Column(Float, nullable=True)
    actual_fuel_cost = Column(Float, nullable=True)

    optimization_metadata = Column(JSONType, nullable=True)
    weather_considerations = Column(JSONType, nullable=True)

    assigned_at = Column(DateTime, nullable=True)
    assigned_by = Column(String, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    stops = relationship(
        "RouteStop",
        back_populates="route",
        order_by="RouteStop.sequence_number",
        cascade="all, delete-orphan",
    )
    team = relationship("Team")

class RouteStop(Base, TimestampMixin):
    __tablename__ = "route_stop"

    id = Column(Integer, primary_key=True, index=True)
    route_id = Column(Integer, ForeignKey("route.id", ondelete="CASCADE"), nullable=False, index=True)
    task_id = Column(Integer, ForeignKey("task.id", ondelete="CASCADE"), nullable=False)
    sequence_number = Column(Integer, nullable=False)
    status = Column(Enum(RouteStopStatus), nullable=False, default=RouteStopStatus.pending)

    estimated_arrival_time = Column(DateTime, nullable=True)
    estimated_departure_time = Column(DateTime, nullable=True)
    actual_arrival_time = Column(DateTime, nullable=True)
    actual_departure_time = Column(DateTime, nullable=True)
    distance_from_previous = Column(Float, nullable=True)  # km
    travel_time_from_previous = Column(Integer, nullable=True)  # minutes
    service_time = Column(Integer, nullable=True)  # minutes

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    address = Column(String, nullable=True)
    weather_delay_minutes = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    route = relationship("Route", back_populates="stops")
    task = relationship("Task")
