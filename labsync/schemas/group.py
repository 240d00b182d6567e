from datetime import datetime

from pydantic import BaseModel, Field


class GroupCreate(BaseModel):
    class_id: int
    name: str = Field(min_length=1, max_length=255)
    leader_id: int | None = None


class GroupRead(BaseModel):
    id: int
    class_id: int
    name: str
    leader_id: int | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class GroupMemberAdd(BaseModel):
    user_id: int


class GroupMemberRead(BaseModel):
    id: int
    group_id: int
    user_id: int
    joined_at: datetime

    class Config:
        from_attributes = True
