from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    first_name: str | None = None
    last_name: str | None = None
    student_id: str | None = None


class AdminUserCreate(UserCreate):
    role: Literal["admin", "instructor", "student"] = "student"


class UserUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    role: Literal["admin", "instructor", "student"] | None = None
    is_active: bool | None = None


class UserRead(BaseModel):
    id: int
    email: EmailStr
    first_name: str | None = None
    last_name: str | None = None
    student_id: str | None = None
    role: str
    is_active: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True
