from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class DistributionCreate(BaseModel):
    assignment_id: int
    class_id: int
    assignment_type: Literal["class", "group", "individual"]
    group_ids: list[int] = []
    user_ids: list[int] = []
    scheduled_date: datetime
    deadline: datetime


class DistributionUpdate(BaseModel):
    scheduled_date: Optional[datetime] = None
    deadline: Optional[datetime] = None
    status: Optional[Literal["assigned", "in_progress", "completed", "cancelled"]] = None


class DistributionRead(BaseModel):
    id: int
    assignment_id: int
    class_id: int
    group_id: Optional[int] = None
    user_id: Optional[int] = None
    assignment_type: str
    scheduled_date: datetime
    deadline: datetime
    status: str
    assigned_at: datetime

    class Config:
        from_attributes = True
