from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class StudentDashboard(BaseModel):
    total_assignments: int
    by_status: dict[str, int]
    graded: int
    average_percentage: float | None
    next_deadline_at: Optional[datetime] = None
    next_deadline_title: Optional[str] = None


class InstructorAssignmentStats(BaseModel):
    assignment_id: int
    assignment_name: str
    distributions: int
    expected_submissions: int
    submitted: int
    completed: int
    graded: int
    ungraded: int
    average_percentage: float | None
