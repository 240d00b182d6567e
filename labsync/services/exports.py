"""CSV exports of distributions, submissions and grades for staff."""
import csv
import io
from datetime import datetime

from sqlalchemy.orm import Session, selectinload

from labsync.core.timeutils import as_utc
from labsync.models.assignment import Assignment
from labsync.models.distribution import AssignmentDistribution, AssignmentType
from labsync.services import reports
from labsync.services.status import Audience

ASSIGNMENT_COLUMNS = [
    "assignment_name",
    "assignment_description",
    "class_name",
    "assignee",
    "assignee_type",
    "scheduled_date",
    "deadline",
    "status",
    "created_by",
    "assignment_created",
]

SUBMISSION_COLUMNS = [
    "assignment_name",
    "class_name",
    "student_email",
    "student_name",
    "student_number",
    "deadline",
    "status",
    "submitted_at",
    "is_late",
    "is_locked",
    "assignment_response_filename",
    "output_test_filename",
    "grade_letter",
    "percentage",
]

GRADE_COLUMNS = [
    "assignment_name",
    "class_name",
    "student_email",
    "student_name",
    "student_number",
    "score",
    "max_score",
    "percentage",
    "grade_letter",
    "feedback",
    "graded_by",
    "graded_at",
]


def _cell(value):
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    return value


def to_csv(rows: list[dict], columns: list[str]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=columns, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({c: _cell(row.get(c)) for c in columns})
    return buf.getvalue()


def _assignee(distribution: AssignmentDistribution) -> str | None:
    if distribution.assignment_type == AssignmentType.INDIVIDUAL:
        student = distribution.user
        if student is None:
            return None
        if student.student_id:
            return f"{student.full_name} ({student.student_id})"
        return student.full_name
    if distribution.assignment_type == AssignmentType.GROUP:
        return distribution.group.name if distribution.group else None
    return distribution.school_class.name if distribution.school_class else None


def assignment_rows(
    db: Session,
    class_id: int | None = None,
    status: str | None = None,
    scheduled_from: datetime | None = None,
    scheduled_to: datetime | None = None,
) -> list[dict]:
    """One row per distribution; ``status`` filters the stored distribution status."""
    q = (
        db.query(AssignmentDistribution)
        .join(Assignment, Assignment.id == AssignmentDistribution.assignment_id)
        .options(
            selectinload(AssignmentDistribution.assignment).selectinload(Assignment.creator),
            selectinload(AssignmentDistribution.school_class),
            selectinload(AssignmentDistribution.group),
            selectinload(AssignmentDistribution.user),
        )
    )
    if class_id is not None:
        q = q.filter(AssignmentDistribution.class_id == class_id)
    if status is not None:
        q = q.filter(AssignmentDistribution.status == status)
    if scheduled_from is not None:
        q = q.filter(AssignmentDistribution.scheduled_date >= scheduled_from)
    if scheduled_to is not None:
        q = q.filter(AssignmentDistribution.scheduled_date <= scheduled_to)
    distributions = q.order_by(
        AssignmentDistribution.scheduled_date.desc(), Assignment.name.asc(), AssignmentDistribution.id.asc()
    ).all()

    rows = []
    for d in distributions:
        creator = d.assignment.creator
        rows.append(
            {
                "assignment_name": d.assignment.name,
                "assignment_description": d.assignment.description,
                "class_name": d.school_class.name if d.school_class else None,
                "assignee": _assignee(d),
                "assignee_type": d.assignment_type,
                "scheduled_date": d.scheduled_date,
                "deadline": d.deadline,
                "status": d.status,
                "created_by": creator.full_name if creator else None,
                "assignment_created": d.assignment.created_at,
            }
        )
    return rows


def _student_fields(row: reports.SubmissionRow) -> dict:
    return {
        "assignment_name": row.distribution.assignment.name,
        "class_name": row.distribution.school_class.name if row.distribution.school_class else None,
        "student_email": row.student.email,
        "student_name": row.student.full_name,
        "student_number": row.student.student_id,
    }


def submission_rows(rows: list[reports.SubmissionRow]) -> list[dict]:
    out = []
    for r in rows:
        sub = r.submission
        grade = sub.grade if sub is not None else None
        out.append(
            {
                **_student_fields(r),
                "deadline": r.distribution.deadline,
                "status": r.view(Audience.ADMIN).status,
                "submitted_at": sub.submitted_at if sub else None,
                "is_late": r.is_late,
                "is_locked": sub.is_locked if sub else False,
                "assignment_response_filename": sub.assignment_response_filename if sub else None,
                "output_test_filename": sub.output_test_filename if sub else None,
                "grade_letter": grade.grade_letter if grade else None,
                "percentage": grade.percentage if grade else None,
            }
        )
    return out


def grade_rows(rows: list[reports.SubmissionRow]) -> list[dict]:
    out = []
    for r in rows:
        if r.submission is None or r.submission.grade is None:
            continue
        grade = r.submission.grade
        out.append(
            {
                **_student_fields(r),
                "score": grade.score,
                "max_score": grade.max_score,
                "percentage": grade.percentage,
                "grade_letter": grade.grade_letter,
                "feedback": grade.feedback,
                "graded_by": grade.instructor.full_name if grade.instructor else None,
                "graded_at": grade.graded_at,
            }
        )
    return out
