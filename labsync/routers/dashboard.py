from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from labsync.core.deps import get_db
from labsync.core.permissions import require_instructor, require_student
from labsync.core.timeutils import as_utc, utcnow
from labsync.models.user import User
from labsync.schemas.dashboard import InstructorAssignmentStats, StudentDashboard
from labsync.services import reports
from labsync.services.status import Audience, SubmissionStatus

router = APIRouter()


def _average(values):
    values = [v for v in values if v is not None]
    if not values:
        return None
    return round(sum(values) / len(values), 2)


@router.get("/student", response_model=StudentDashboard)
def student_dashboard(
    db: Session = Depends(get_db),
    me: User = Depends(require_student),
):
    now = utcnow()
    rows = reports.student_rows(db, me, now)

    graded = [r.submission.grade for r in rows if r.submission and r.submission.grade]

    # earliest deadline still accepting work
    upcoming = [r for r in rows if r.can_upload and as_utc(r.distribution.deadline) >= now]
    nxt = min(upcoming, key=lambda r: as_utc(r.distribution.deadline), default=None)

    return StudentDashboard(
        total_assignments=len(rows),
        by_status=reports.status_counts(rows, Audience.STUDENT),
        graded=len(graded),
        average_percentage=_average([g.percentage for g in graded]),
        next_deadline_at=nxt.distribution.deadline if nxt else None,
        next_deadline_title=nxt.distribution.assignment.name if nxt else None,
    )


@router.get("/instructor", response_model=list[InstructorAssignmentStats])
def instructor_dashboard(
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    rows = reports.instructor_rows(db, utcnow())

    by_assignment: dict[int, list[reports.SubmissionRow]] = {}
    for r in rows:
        by_assignment.setdefault(r.distribution.assignment_id, []).append(r)

    out = []
    for assignment_id in sorted(by_assignment):
        group = by_assignment[assignment_id]
        subs = [r.submission for r in group if r.submission is not None and r.submission.submitted_at]
        grades = [s.grade for s in subs if s.grade is not None]
        out.append(
            InstructorAssignmentStats(
                assignment_id=assignment_id,
                assignment_name=group[0].distribution.assignment.name,
                distributions=len({r.distribution.id for r in group}),
                expected_submissions=len(group),
                submitted=len(subs),
                completed=sum(1 for r in group if r.status == SubmissionStatus.COMPLETED),
                graded=len(grades),
                ungraded=len(subs) - len(grades),
                average_percentage=_average([g.percentage for g in grades]),
            )
        )
    return out
