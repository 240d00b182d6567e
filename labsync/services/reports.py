"""Row builders for list endpoints, statistics and dashboards.

Every row carries the canonical status from ``resolve_status``; callers
pick the audience labels when rendering.
"""
from collections import Counter
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session, selectinload

from labsync.core.timeutils import as_utc
from labsync.models.assignment import Assignment
from labsync.models.distribution import AssignmentDistribution
from labsync.models.submission import AssignmentSubmission
from labsync.models.user import User
from labsync.services.distributions import audience_user_ids, distributions_for_student
from labsync.services.status import Audience, SubmissionStatus, present, resolve_status
from labsync.services.submissions import can_upload


@dataclass
class SubmissionRow:
    distribution: AssignmentDistribution
    student: User
    submission: AssignmentSubmission | None
    status: SubmissionStatus
    can_upload: bool
    is_late: bool
    can_access_pdf: bool

    def view(self, audience: Audience):
        return present(self.status, audience)


def _row(distribution, student, submission, now) -> SubmissionRow:
    check = can_upload(distribution, now, submission)
    return SubmissionRow(
        distribution=distribution,
        student=student,
        submission=submission,
        status=resolve_status(distribution, submission, now),
        can_upload=check.allowed,
        is_late=check.is_late,
        can_access_pdf=as_utc(now) >= as_utc(distribution.scheduled_date),
    )


def _submissions_by_key(db: Session, distribution_ids: list[int]) -> dict:
    if not distribution_ids:
        return {}
    subs = (
        db.query(AssignmentSubmission)
        .options(selectinload(AssignmentSubmission.grade))
        .filter(AssignmentSubmission.assignment_distribution_id.in_(distribution_ids))
        .all()
    )
    return {(s.assignment_distribution_id, s.user_id): s for s in subs}


def student_rows(db: Session, student: User, now: datetime) -> list[SubmissionRow]:
    distributions = distributions_for_student(db, student.id)
    subs = _submissions_by_key(db, [d.id for d in distributions])
    return [_row(d, student, subs.get((d.id, student.id)), now) for d in distributions]


def instructor_rows(
    db: Session,
    now: datetime,
    distribution_id: int | None = None,
    assignment_id: int | None = None,
    class_id: int | None = None,
) -> list[SubmissionRow]:
    """One row per audience member of each matching distribution."""
    q = (
        db.query(AssignmentDistribution)
        .join(Assignment, Assignment.id == AssignmentDistribution.assignment_id)
        .options(selectinload(AssignmentDistribution.assignment))
    )
    if distribution_id is not None:
        q = q.filter(AssignmentDistribution.id == distribution_id)
    if assignment_id is not None:
        q = q.filter(AssignmentDistribution.assignment_id == assignment_id)
    if class_id is not None:
        q = q.filter(AssignmentDistribution.class_id == class_id)
    distributions = q.order_by(AssignmentDistribution.deadline.asc(), AssignmentDistribution.id.asc()).all()

    subs = _submissions_by_key(db, [d.id for d in distributions])

    audiences = {d.id: audience_user_ids(db, d) for d in distributions}
    # students who submitted but have since left the audience still show up
    for dist_id, user_id in subs:
        audiences.setdefault(dist_id, set()).add(user_id)

    all_ids = set().union(*audiences.values()) if audiences else set()
    users = {u.id: u for u in db.query(User).filter(User.id.in_(all_ids)).all()} if all_ids else {}

    rows: list[SubmissionRow] = []
    for d in distributions:
        members = sorted(
            (users[uid] for uid in audiences[d.id] if uid in users),
            key=lambda u: u.email,
        )
        for student in members:
            rows.append(_row(d, student, subs.get((d.id, student.id)), now))
    return rows


def status_counts(rows: list[SubmissionRow], audience: Audience = Audience.ADMIN) -> dict[str, int]:
    counts = Counter(row.view(audience).status for row in rows)
    return dict(sorted(counts.items()))
