"""Student uploads against a distribution: upload window, attach, lock."""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from labsync.core.errors import LockedError, NotFoundError, UploadWindowError, ValidationError
from labsync.core.timeutils import as_utc, utcnow
from labsync.db.writes import commit, insert_or_ignore
from labsync.models.distribution import AssignmentDistribution, DistributionStatus
from labsync.models.submission import AssignmentSubmission

logger = logging.getLogger(__name__)


class FileType(str, enum.Enum):
    ASSIGNMENT_RESPONSE = "assignment_response"
    OUTPUT_TEST = "output_test"


# file type -> (filename column, size column)
_FILE_COLUMNS = {
    FileType.ASSIGNMENT_RESPONSE: ("assignment_response_filename", "assignment_response_size"),
    FileType.OUTPUT_TEST: ("output_test_filename", "output_test_size"),
}


@dataclass(frozen=True)
class FileMetadata:
    filename: str
    size_bytes: int


@dataclass(frozen=True)
class UploadCheck:
    allowed: bool
    is_late: bool
    reason: str | None = None


@dataclass
class AttachResult:
    submission: AssignmentSubmission
    is_late: bool
    created: bool
    # filename this attach displaced, read under the row lock
    replaced_filename: str | None = None


def parse_file_type(value: str) -> FileType:
    try:
        return FileType(value)
    except ValueError:
        raise ValidationError(
            "file_type must be 'assignment_response' or 'output_test'", field="file_type"
        )


def attached_file_count(submission: AssignmentSubmission | None) -> int:
    if submission is None:
        return 0
    return sum(
        1
        for name in (submission.assignment_response_filename, submission.output_test_filename)
        if name
    )


def is_complete(submission: AssignmentSubmission | None) -> bool:
    return attached_file_count(submission) == 2


def can_upload(
    distribution: AssignmentDistribution,
    now: datetime,
    submission: AssignmentSubmission | None = None,
) -> UploadCheck:
    """Late uploads are allowed; ``is_late`` tells the caller to flag them."""
    now = as_utc(now)
    is_late = now > as_utc(distribution.deadline)

    if submission is not None and submission.is_locked:
        return UploadCheck(False, is_late, "locked")
    if distribution.status == DistributionStatus.CANCELLED:
        return UploadCheck(False, is_late, "cancelled")
    if now < as_utc(distribution.scheduled_date):
        return UploadCheck(False, is_late, "not_yet_open")
    return UploadCheck(True, is_late)


_WINDOW_MESSAGES = {
    "cancelled": "This assignment has been cancelled and no longer accepts submissions",
    "not_yet_open": "This assignment is not open for submissions yet",
}


def find_submission(db: Session, distribution_id: int, user_id: int) -> AssignmentSubmission | None:
    return (
        db.query(AssignmentSubmission)
        .filter(
            AssignmentSubmission.assignment_distribution_id == distribution_id,
            AssignmentSubmission.user_id == user_id,
        )
        .first()
    )


def get_submission(db: Session, submission_id: int, for_update: bool = False) -> AssignmentSubmission:
    q = db.query(AssignmentSubmission).filter(AssignmentSubmission.id == submission_id)
    if for_update:
        q = q.with_for_update().populate_existing()
    submission = q.first()
    if not submission:
        raise NotFoundError("Submission not found")
    return submission


def attach_file(
    db: Session,
    distribution: AssignmentDistribution,
    student_id: int,
    file_type: FileType,
    metadata: FileMetadata,
    now: datetime | None = None,
) -> AttachResult:
    """Record an uploaded file on the student's submission, creating it if needed.

    Runs as one transaction: the row is created with ON CONFLICT DO NOTHING,
    then re-read under a row lock so a concurrent ``lock()`` or grade is seen
    before the filename is written.
    """
    now = as_utc(now) if now else utcnow()
    file_type = parse_file_type(file_type)

    created = insert_or_ignore(
        db,
        AssignmentSubmission,
        {
            "assignment_distribution_id": distribution.id,
            "user_id": student_id,
            "is_locked": False,
            "updated_at": now,
        },
        ["assignment_distribution_id", "user_id"],
    )

    submission = (
        db.query(AssignmentSubmission)
        .filter(
            AssignmentSubmission.assignment_distribution_id == distribution.id,
            AssignmentSubmission.user_id == student_id,
        )
        .with_for_update()
        .populate_existing()
        .one()
    )

    check = can_upload(distribution, now, submission)
    if not check.allowed:
        db.rollback()
        if check.reason == "locked":
            raise LockedError(
                "Grading has started on this submission; contact your instructor to make changes"
            )
        raise UploadWindowError(_WINDOW_MESSAGES[check.reason], reason=check.reason)

    filename_col, size_col = _FILE_COLUMNS[file_type]
    replaced = getattr(submission, filename_col)
    setattr(submission, filename_col, metadata.filename)
    setattr(submission, size_col, metadata.size_bytes)
    submission.updated_at = now
    if submission.submitted_at is None:
        submission.submitted_at = now

    commit(db)
    db.refresh(submission)

    logger.info(
        "Attached %s to submission %s (distribution %s, user %s, late=%s)",
        file_type.value,
        submission.id,
        distribution.id,
        student_id,
        check.is_late,
    )
    return AttachResult(
        submission=submission,
        is_late=check.is_late,
        created=created,
        replaced_filename=replaced if replaced != metadata.filename else None,
    )


def previous_filename(submission: AssignmentSubmission | None, file_type: FileType) -> str | None:
    if submission is None:
        return None
    return getattr(submission, _FILE_COLUMNS[file_type][0])


def lock(db: Session, submission: AssignmentSubmission) -> AssignmentSubmission:
    if submission.is_locked:
        return submission
    submission.is_locked = True
    submission.updated_at = utcnow()
    commit(db)
    db.refresh(submission)
    logger.info("Locked submission %s", submission.id)
    return submission


def unlock(db: Session, submission: AssignmentSubmission) -> AssignmentSubmission:
    if not submission.is_locked:
        return submission
    submission.is_locked = False
    submission.updated_at = utcnow()
    commit(db)
    db.refresh(submission)
    logger.info("Unlocked submission %s", submission.id)
    return submission
