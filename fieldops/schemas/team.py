from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import time
from fieldops.models.team import FuelType


class TeamBase(BaseModel):
    name: str
    external_identifier: Optional[str] = None
    alternate_ids: List[str] = []
    is_active: bool = True
    is_available_for_routing: bool = True
    skills: List[str] = []
    equipment: List[str] = []
    max_daily_tasks: Optional[int] = Field(None, gt=0)
    max_route_time: Optional[int] = Field(None, gt=0, description="Minutes")
    max_route_distance: Optional[float] = Field(None, gt=0, description="Kilometres")
    work_start_time: Optional[time] = None
    work_end_time: Optional[time] = None
    current_latitude: Optional[float] = Field(None, ge=-90, le=90)
    current_longitude: Optional[float] = Field(None, ge=-180, le=180)
    fuel_type: Optional[FuelType] = FuelType.gasoline
    fuel_consumption: Optional[float] = Field(None, gt=0)
    fuel_price_per_unit: Optional[float] = Field(None, gt=0)


class TeamCreate(TeamBase):
    pass


class TeamUpdate(BaseModel):
    name: Optional[str] = None
    is_active: Optional[bool] = None
    is_available_for_routing: Optional[bool] = None
    skills: Optional[List[str]] = None
    equipment: Optional[List[str]] = None
    current_latitude: Optional[float] = Field(None, ge=-90, le=90)
    current_longitude: Optional[float] = Field(None, ge=-180, le=180)
