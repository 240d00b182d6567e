from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class AssignmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    status: Literal["draft", "published"] = "draft"


class AssignmentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[Literal["draft", "published", "archived"]] = None


class AssignmentRead(BaseModel):
    id: int
    name: str
    description: Optional[str]
    pdf_filename: Optional[str] = None
    pdf_file_size: Optional[int] = None
    status: str
    created_by: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True
