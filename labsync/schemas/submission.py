from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class StatusViewRead(BaseModel):
    status: str
    label: str
    css_class: str


class SubmissionRead(BaseModel):
    id: int
    assignment_distribution_id: int
    user_id: int
    assignment_response_filename: Optional[str] = None
    assignment_response_size: Optional[int] = None
    output_test_filename: Optional[str] = None
    output_test_size: Optional[int] = None
    submitted_at: Optional[datetime] = None
    updated_at: datetime
    is_locked: bool
    is_complete: bool = False

    class Config:
        from_attributes = True


class UploadResult(BaseModel):
    submission: SubmissionRead
    file_type: str
    filename: str
    original_name: str
    size_bytes: int
    is_late: bool


class StudentAssignmentRow(BaseModel):
    distribution_id: int
    assignment_id: int
    assignment_name: str
    description: Optional[str] = None
    assignment_type: str
    class_id: int
    group_id: Optional[int] = None
    scheduled_date: datetime
    deadline: datetime
    status: StatusViewRead
    can_upload: bool
    can_access_pdf: bool
    is_late: bool
    submission: Optional[SubmissionRead] = None
    grade_letter: Optional[str] = None
    percentage: Optional[float] = None


class SubmissionOverviewRow(BaseModel):
    distribution_id: int
    assignment_id: int
    assignment_name: str
    student_id: int
    student_email: str
    student_name: str
    deadline: datetime
    status: StatusViewRead
    is_late: bool
    submission: Optional[SubmissionRead] = None
    grade_letter: Optional[str] = None
    percentage: Optional[float] = None


class SubmissionStatistics(BaseModel):
    total: int
    by_status: dict[str, int]
