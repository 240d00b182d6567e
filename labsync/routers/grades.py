from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from labsync.core.current_user import get_current_user
from labsync.core.deps import get_db
from labsync.core.errors import NotFoundError
from labsync.core.permissions import require_instructor
from labsync.models.distribution import AssignmentDistribution
from labsync.models.grade import AssignmentGrade
from labsync.models.submission import AssignmentSubmission
from labsync.models.user import User, UserRole
from labsync.schemas.grade import (
    GradeAnalytics,
    GradeBandRead,
    GradeRead,
    GradeSaveResult,
    GradeSubmit,
    GradeUpdate,
)
from labsync.services import grading
from labsync.services.grade_scale import GRADE_SCALE

router = APIRouter()


@router.get("/scale", response_model=list[GradeBandRead])
def grade_scale():
    return [
        GradeBandRead(
            letter=b.letter,
            min_percentage=float(b.min_percentage),
            max_percentage=float(b.max_percentage),
            gpa=b.gpa,
        )
        for b in GRADE_SCALE.bands
    ]


@router.post("/", response_model=GradeSaveResult, status_code=status.HTTP_201_CREATED)
def submit_grade(
    payload: GradeSubmit,
    response: Response,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    result = grading.submit_grade(
        db,
        payload.submission_id,
        payload.score,
        payload.max_score,
        instructor.id,
        feedback=payload.feedback,
        grade_letter_override=payload.grade_letter_override,
    )
    if not result.created:
        response.status_code = status.HTTP_200_OK

    return GradeSaveResult(
        grade=GradeRead.model_validate(result.grade),
        created=result.created,
        message="Grade created successfully" if result.created else "Grade updated successfully",
    )


@router.put("/{grade_id}", response_model=GradeRead)
def update_grade(
    grade_id: int,
    payload: GradeUpdate,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    grade = grading.get_grade(db, grade_id)
    return grading.update_grade(
        db,
        grade,
        instructor.id,
        score=payload.score,
        max_score=payload.max_score,
        feedback=payload.feedback,
        grade_letter=payload.grade_letter,
    )


@router.get("/submission/{submission_id}", response_model=GradeRead)
def grade_for_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    grade = grading.get_grade_for_submission(db, submission_id)
    if current_user.role == UserRole.STUDENT and grade.submission.user_id != current_user.id:
        raise NotFoundError("Grade not found")
    return grade


@router.get("/analytics", response_model=GradeAnalytics)
def analytics(
    assignment_id: Optional[int] = None,
    class_id: Optional[int] = None,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    return grading.grade_analytics(db, assignment_id=assignment_id, class_id=class_id)


@router.get("/", response_model=list[GradeRead])
def list_grades(
    assignment_id: Optional[int] = None,
    distribution_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = (
        db.query(AssignmentGrade)
        .join(AssignmentSubmission, AssignmentSubmission.id == AssignmentGrade.assignment_submission_id)
        .join(
            AssignmentDistribution,
            AssignmentDistribution.id == AssignmentSubmission.assignment_distribution_id,
        )
    )
    # students only ever see their own grades
    if current_user.role == UserRole.STUDENT:
        q = q.filter(AssignmentSubmission.user_id == current_user.id)
    if assignment_id is not None:
        q = q.filter(AssignmentDistribution.assignment_id == assignment_id)
    if distribution_id is not None:
        q = q.filter(AssignmentDistribution.id == distribution_id)

    return q.order_by(AssignmentGrade.graded_at.desc(), AssignmentGrade.id.desc()).all()
