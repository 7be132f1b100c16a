import enum
from sqlalchemy import Column, Integer, String, Float, ForeignKey, Date, DateTime, Boolean, Enum, Text
from fieldops.database import Base, TimestampMixin, SoftDeleteMixin, JSONType

class TaskType(str, enum.Enum):
    installation = "installation"
    maintenance = "maintenance"
    inspection = "inspection"
    delivery = "delivery"
    pickup = "pickup"
    consultation = "consultation"
    repair = "repair"
    survey = "survey"

class TaskPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"
    emergency = "emergency"

class TaskStatus(str, enum.Enum):
    pending = "pending"
    assigned = "assigned"
    in_progress = "in_progress"
    on_hold = "on_hold"
    completed = "completed"
    cancelled = "cancelled"
    rescheduled = "rescheduled"


PRIORITY_RANK = {
    TaskPriority.emergency: 5,
    TaskPriority.urgent: 4,
    TaskPriority.high: 3,
    TaskPriority.medium: 2,
    TaskPriority.low: 1,
}


class Task(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "task"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("business.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    task_type = Column(Enum(TaskType), nullable=False, default=TaskType.maintenance)
    priority = Column(Enum(TaskPriority), nullable=False, default=TaskPriority.medium)
    status = Column(Enum(TaskStatus), nullable=False, default=TaskStatus.pending, index=True)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    address = Column(String, nullable=True)

    scheduled_date = Column(Date, nullable=False, index=True)
    time_window_start = Column(String, nullable=True)  # "HH:MM"
    time_window_end = Column(String, nullable=True)
    time_window_flexible = Column(Boolean, nullable=False, default=False)
    estimated_duration = Column(Integer, nullable=False, default=60)  # minutes

    skills_required = Column(JSONType, nullable=True, default=list)
    equipment_required = Column(JSONType, nullable=True, default=list)

    assigned_team_id = Column(Integer, ForeignKey("team.id", ondelete="SET NULL"), nullable=True, index=True)
    assigned_route_id = Column(Integer, ForeignKey("route.id", ondelete="SET NULL"), nullable=True, index=True)
    assigned_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    # {start_time, end_time, actual_duration, delays: [...]}
    actual_performance = Column(JSONType, nullable=True)

    customer_name = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    @property
    def location(self):
        return (self.latitude, self.longitude)

    @property
    def priority_rank(self) -> int:
        return PRIORITY_RANK.get(self.priority, 0)
