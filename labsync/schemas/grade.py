from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class GradeSubmit(BaseModel):
    submission_id: int
    score: float
    max_score: float = 100
    feedback: Optional[str] = None
    grade_letter_override: Optional[str] = None


class GradeUpdate(BaseModel):
    score: Optional[float] = None
    max_score: Optional[float] = None
    feedback: Optional[str] = None
    grade_letter: Optional[str] = None


class GradeRead(BaseModel):
    id: int
    assignment_submission_id: int
    instructor_id: Optional[int]
    score: float
    max_score: float
    percentage: float
    grade_letter: str
    feedback: Optional[str] = None
    graded_at: datetime

    class Config:
        from_attributes = True


class GradeSaveResult(BaseModel):
    grade: GradeRead
    created: bool
    message: str


class GradeBandRead(BaseModel):
    letter: str
    min_percentage: float
    max_percentage: float
    gpa: float


class LetterCount(BaseModel):
    grade_letter: str
    count: int
    percentage: float


class GradeAnalytics(BaseModel):
    total_grades: int
    total_students: int
    average_percentage: Optional[float] = None
    min_percentage: Optional[float] = None
    max_percentage: Optional[float] = None
    average_gpa: Optional[float] = None
    grade_distribution: list[LetterCount] = Field(default_factory=list)
