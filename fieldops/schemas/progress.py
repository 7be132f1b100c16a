from pydantic import BaseModel, Field
from typing import Annotated, Optional, List, Literal, Union, Dict, Any
from datetime import date, datetime
from fieldops.schemas.common import Location


class _ProgressEventBase(BaseModel):
    business_id: int
    team_id: str
    task_id: int
    location: Optional[Location] = None
    notes: Optional[str] = None


class StartedEvent(_ProgressEventBase):
    event: Literal["started"] = "started"


class ArrivedEvent(_ProgressEventBase):
    event: Literal["arrived"] = "arrived"


class CompletedEvent(_ProgressEventBase):
    event: Literal["completed"] = "completed"


class PausedEvent(_ProgressEventBase):
    event: Literal["paused"] = "paused"
    reason: Optional[str] = None


ProgressEventVariant = Union[StartedEvent, ArrivedEvent, CompletedEvent, PausedEvent]

ProgressEvent = Annotated[ProgressEventVariant, Field(discriminator="event")]


class ProgressAck(BaseModel):
    success: bool = True
    message: str
    task_id: int
    event: str
    task_status: Optional[str] = None
    route_status: Optional[str] = None
    progress_status: Optional[str] = None
    completed_tasks_count: Optional[int] = None
    warnings: List[str] = []


class ProgressUpdateEntry(BaseModel):
    timestamp: str
    status: str
    task_id: Optional[int] = None
    location: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None


class ProgressTaskSnapshot(BaseModel):
    task_id: int
    scheduled_order: int
    status: str
    estimated_start_time: Optional[datetime] = None
    estimated_end_time: Optional[datetime] = None
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    estimated_duration: Optional[int] = None
    actual_duration: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None

    class Config:
        from_attributes = True


class ProgressSnapshot(BaseModel):
    success: bool = True
    message: str
    team_id: int
    team_name: Optional[str] = None
    route_id: Optional[str] = None
    route_date: date
    route_status: str
    current_task_index: int
    completed_tasks_count: int
    total_tasks: int
    completion_percentage: int
    route_start_time: Optional[datetime] = None
    route_end_time: Optional[datetime] = None
    estimated_completion_time: Optional[datetime] = None
    total_estimated_duration: Optional[int] = None
    total_actual_duration: Optional[int] = None
    total_distance_km: Optional[float] = None
    total_delay_minutes: int = 0
    performance: Optional[Dict[str, Any]] = None
    tasks: List[ProgressTaskSnapshot]
    progress_updates: List[ProgressUpdateEntry]
