import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from labsync.core.config import ALLOWED_SUBMISSION_EXTENSIONS
from labsync.core.current_user import get_current_user
from labsync.core.deps import get_db, get_storage
from labsync.core.errors import LabSyncError, LockedError, NotFoundError, UploadWindowError
from labsync.core.permissions import require_instructor, require_student
from labsync.core.timeutils import utcnow
from labsync.models.submission import AssignmentSubmission
from labsync.models.user import User, UserRole
from labsync.schemas.submission import (
    StatusViewRead,
    StudentAssignmentRow,
    SubmissionOverviewRow,
    SubmissionRead,
    SubmissionStatistics,
    UploadResult,
)
from labsync.services import reports
from labsync.services import submissions as tracker
from labsync.services.distributions import get_distribution, is_in_audience
from labsync.services.file_storage import SUBMISSION_AREA, LocalFileStorage, submission_key
from labsync.services.status import Audience, statuses_for_label

logger = logging.getLogger(__name__)

router = APIRouter()


def _submission_out(sub: AssignmentSubmission | None) -> SubmissionRead | None:
    if sub is None:
        return None
    return SubmissionRead.model_validate(sub).model_copy(
        update={"is_complete": tracker.is_complete(sub)}
    )


def _grade_fields(sub: AssignmentSubmission | None) -> dict:
    if sub is None or sub.grade is None:
        return {"grade_letter": None, "percentage": None}
    return {"grade_letter": sub.grade.grade_letter, "percentage": sub.grade.percentage}


def _status_out(row: reports.SubmissionRow, audience: Audience) -> StatusViewRead:
    view = row.view(audience)
    return StatusViewRead(status=view.status, label=view.label, css_class=view.css_class)


def _filter_by_label(rows, label: Optional[str], audience: Audience):
    if not label:
        return rows
    wanted = statuses_for_label(label, audience)
    if not wanted:
        raise HTTPException(status_code=400, detail=f"Unknown status filter '{label}'")
    return [r for r in rows if r.status in wanted]


def _ensure_can_view(sub: AssignmentSubmission, user: User) -> None:
    if user.role == UserRole.STUDENT and sub.user_id != user.id:
        raise NotFoundError("Submission not found")


@router.post("/upload", response_model=UploadResult)
def upload_submission_file(
    distribution_id: int = Form(...),
    file_type: str = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    me: User = Depends(require_student),
    storage: LocalFileStorage = Depends(get_storage),
):
    ftype = tracker.parse_file_type(file_type)
    distribution = get_distribution(db, distribution_id)
    if not is_in_audience(db, distribution, me.id):
        raise NotFoundError("Assignment distribution not found")

    # cheap early refusal so blocked uploads never touch storage;
    # attach_file re-checks inside its transaction
    existing = tracker.find_submission(db, distribution.id, me.id)
    check = tracker.can_upload(distribution, utcnow(), existing)
    if not check.allowed:
        if check.reason == "locked":
            raise LockedError(
                "Grading has started on this submission; contact your instructor to make changes"
            )
        raise UploadWindowError("This assignment is not accepting uploads", reason=check.reason)

    key = submission_key(distribution.id, me.id)
    stored = storage.save(
        SUBMISSION_AREA, key, ftype.value, file.filename, file.file, ALLOWED_SUBMISSION_EXTENSIONS
    )
    try:
        result = tracker.attach_file(
            db,
            distribution,
            me.id,
            ftype,
            tracker.FileMetadata(filename=stored.filename, size_bytes=stored.size_bytes),
        )
    except LabSyncError:
        storage.delete(SUBMISSION_AREA, key, stored.filename)
        raise

    if result.replaced_filename:
        storage.delete(SUBMISSION_AREA, key, result.replaced_filename)

    return UploadResult(
        submission=_submission_out(result.submission),
        file_type=ftype.value,
        filename=stored.filename,
        original_name=stored.original_name,
        size_bytes=stored.size_bytes,
        is_late=result.is_late,
    )


@router.get("/me", response_model=list[StudentAssignmentRow])
def my_assignments(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    me: User = Depends(require_student),
):
    rows = reports.student_rows(db, me, utcnow())
    rows = _filter_by_label(rows, status, Audience.STUDENT)

    return [
        StudentAssignmentRow(
            distribution_id=r.distribution.id,
            assignment_id=r.distribution.assignment_id,
            assignment_name=r.distribution.assignment.name,
            description=r.distribution.assignment.description if r.can_access_pdf else None,
            assignment_type=r.distribution.assignment_type,
            class_id=r.distribution.class_id,
            group_id=r.distribution.group_id,
            scheduled_date=r.distribution.scheduled_date,
            deadline=r.distribution.deadline,
            status=_status_out(r, Audience.STUDENT),
            can_upload=r.can_upload,
            can_access_pdf=r.can_access_pdf,
            is_late=r.is_late,
            submission=_submission_out(r.submission),
            **_grade_fields(r.submission),
        )
        for r in rows
    ]


@router.get("/", response_model=list[SubmissionOverviewRow])
def list_submissions(
    distribution_id: Optional[int] = None,
    assignment_id: Optional[int] = None,
    class_id: Optional[int] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    rows = reports.instructor_rows(
        db, utcnow(), distribution_id=distribution_id, assignment_id=assignment_id, class_id=class_id
    )
    rows = _filter_by_label(rows, status, Audience.ADMIN)

    return [
        SubmissionOverviewRow(
            distribution_id=r.distribution.id,
            assignment_id=r.distribution.assignment_id,
            assignment_name=r.distribution.assignment.name,
            student_id=r.student.id,
            student_email=r.student.email,
            student_name=r.student.full_name,
            deadline=r.distribution.deadline,
            status=_status_out(r, Audience.ADMIN),
            is_late=r.is_late,
            submission=_submission_out(r.submission),
            **_grade_fields(r.submission),
        )
        for r in rows
    ]


@router.get("/statistics", response_model=SubmissionStatistics)
def submission_statistics(
    distribution_id: Optional[int] = None,
    assignment_id: Optional[int] = None,
    class_id: Optional[int] = None,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    rows = reports.instructor_rows(
        db, utcnow(), distribution_id=distribution_id, assignment_id=assignment_id, class_id=class_id
    )
    return SubmissionStatistics(total=len(rows), by_status=reports.status_counts(rows, Audience.ADMIN))


@router.get("/{submission_id}", response_model=SubmissionRead)
def get_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    sub = tracker.get_submission(db, submission_id)
    _ensure_can_view(sub, current_user)
    return _submission_out(sub)


@router.get("/{submission_id}/files/{file_type}")
def download_submission_file(
    submission_id: int,
    file_type: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_storage),
):
    sub = tracker.get_submission(db, submission_id)
    _ensure_can_view(sub, current_user)

    filename = tracker.previous_filename(sub, tracker.parse_file_type(file_type))
    if not filename:
        raise NotFoundError("File not uploaded")

    path = storage.path_for(
        SUBMISSION_AREA, submission_key(sub.assignment_distribution_id, sub.user_id), filename
    )
    return FileResponse(path, filename=filename)


@router.post("/{submission_id}/lock", response_model=SubmissionRead)
def lock_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    sub = tracker.get_submission(db, submission_id)
    return _submission_out(tracker.lock(db, sub))


@router.post("/{submission_id}/unlock", response_model=SubmissionRead)
def unlock_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    sub = tracker.get_submission(db, submission_id)
    return _submission_out(tracker.unlock(db, sub))
