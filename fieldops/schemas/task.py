from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import date, datetime
from fieldops.models.task import TaskPriority, TaskStatus, TaskType


def _clock(value: str):
    try:
        return datetime.strptime(value, "%H:%M").time()
    except ValueError:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")


class TaskBase(BaseModel):
    name: str
    task_type: TaskType = TaskType.maintenance
    priority: TaskPriority = TaskPriority.medium
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = None
    scheduled_date: date
    time_window_start: Optional[str] = Field(None, description="HH:MM")
    time_window_end: Optional[str] = Field(None, description="HH:MM")
    time_window_flexible: bool = False
    estimated_duration: int = Field(60, gt=0, description="Minutes")
    skills_required: List[str] = []
    equipment_required: List[str] = []
    customer_name: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_time_window(self):
        start = _clock(self.time_window_start) if self.time_window_start else None
        end = _clock(self.time_window_end) if self.time_window_end else None
        if start and end:
            if end <= start:
                raise ValueError("time_window_end must be after time_window_start")
        return self


class TaskCreate(TaskBase):
    status: TaskStatus = TaskStatus.pending


class TaskUpdate(BaseModel):
    status: Optional[TaskStatus] = None
    assigned_team_id: Optional[int] = None
    assigned_route_id: Optional[int] = None
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

