import enum
from sqlalchemy import Column, Integer, String, Float, ForeignKey, Date, DateTime, Enum, Text
from sqlalchemy.orm import relationship
from fieldops.database import Base, TimestampMixin, SoftDeleteMixin, JSONType

class ProgressStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"

class ProgressTaskStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    skipped = "skipped"


class RouteProgress(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "route_progress"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("business.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("team.id", ondelete="CASCADE"), nullable=False, index=True)
    team_name = Column(String, nullable=True)
    route_id = Column(Integer, ForeignKey("route.id", ondelete="CASCADE"), nullable=True, index=True)
    route_date = Column(Date, nullable=False, index=True)
    route_status = Column(Enum(ProgressStatus), nullable=False, default=ProgressStatus.pending)

    current_task_index = Column(Integer, nullable=False, default=0)
    completed_tasks_count = Column(Integer, nullable=False, default=0)
    route_start_time = Column(DateTime, nullable=True)
    route_end_time = Column(DateTime, nullable=True)
    estimated_completion_time = Column(DateTime, nullable=True)
    total_estimated_duration = Column(Integer, nullable=True)
    total_actual_duration = Column(Integer, nullable=True)
    total_distance_km = Column(Float, nullable=True)
    total_delay_minutes = Column(Integer, nullable=False, default=0)

    # Append-only log, replaced as a whole value on every event
    progress_updates = Column(JSONType, nullable=False, default=list)
    performance = Column(JSONType, nullable=True)

    version_id = Column(Integer, nullable=False)

    tasks = relationship(
        "RouteProgressTask",
        back_populates="progress",
        order_by="RouteProgressTask.scheduled_order",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

class RouteProgressTask(Base):
    __tablename__ = "route_progress_task"

    id = Column(Integer, primary_key=True, index=True)
    progress_id = Column(Integer, ForeignKey("route_progress.id", ondelete="CASCADE"), nullable=False, index=True)
    task_id = Column(Integer, ForeignKey("task.id", ondelete="CASCADE"), nullable=False)
    scheduled_order = Column(Integer, nullable=False)
    status = Column(Enum(ProgressTaskStatus), nullable=False, default=ProgressTaskStatus.pending)

    estimated_start_time = Column(DateTime, nullable=True)
    estimated_end_time = Column(DateTime, nullable=True)
    actual_start_time = Column(DateTime, nullable=True)
    actual_end_time = Column(DateTime, nullable=True)
    estimated_duration = Column(Integer, nullable=True)
    actual_duration = Column(Integer, nullable=True)

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    address = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    delay_reasons = Column(JSONType, nullable=True)

    progress = relationship("RouteProgress", back_populates="tasks")
