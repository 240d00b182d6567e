"""Display status of a (distribution, submission) pair at a point in time.

This is the only place the classification rules live. List endpoints,
statistics and dashboards all call ``resolve_status`` and then
``present`` for the audience they render to. The persisted
``AssignmentDistribution.status`` is read, never written.
"""
import enum
from dataclasses import dataclass
from datetime import datetime

from labsync.core.timeutils import as_utc
from labsync.models.distribution import AssignmentDistribution, DistributionStatus
from labsync.models.submission import AssignmentSubmission
from labsync.services.submissions import attached_file_count


class SubmissionStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    PARTIAL = "partial"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"
    PENDING = "pending"


class Audience(str, enum.Enum):
    ADMIN = "admin"
    STUDENT = "student"


@dataclass(frozen=True)
class StatusView:
    status: str
    label: str
    css_class: str


# status -> (value, label) per audience
_ADMIN_VIEW = {
    SubmissionStatus.UPCOMING: ("upcoming", "Upcoming"),
    SubmissionStatus.COMPLETED: ("completed", "Completed"),
    SubmissionStatus.PARTIAL: ("partial", "Partial"),
    SubmissionStatus.CANCELLED: ("cancelled", "Cancelled"),
    SubmissionStatus.OVERDUE: ("overdue", "Overdue"),
    SubmissionStatus.PENDING: ("pending", "Pending"),
}

_STUDENT_VIEW = {
    **_ADMIN_VIEW,
    SubmissionStatus.OVERDUE: ("cancelled", "No longer accepting submissions"),
    SubmissionStatus.PENDING: ("in_progress", "In progress"),
}


def resolve_status(
    distribution: AssignmentDistribution,
    submission: AssignmentSubmission | None,
    now: datetime,
) -> SubmissionStatus:
    now = as_utc(now)
    files = attached_file_count(submission)

    if distribution.status == DistributionStatus.CANCELLED and files == 0:
        return SubmissionStatus.CANCELLED
    if now < as_utc(distribution.scheduled_date):
        return SubmissionStatus.UPCOMING
    if files == 2:
        return SubmissionStatus.COMPLETED
    if files == 1:
        return SubmissionStatus.PARTIAL
    if now > as_utc(distribution.deadline):
        return SubmissionStatus.OVERDUE
    return SubmissionStatus.PENDING


def present(status: SubmissionStatus, audience: Audience = Audience.ADMIN) -> StatusView:
    table = _STUDENT_VIEW if audience == Audience.STUDENT else _ADMIN_VIEW
    value, label = table[status]
    return StatusView(status=value, label=label, css_class=f"status-{value.replace('_', '-')}")


def statuses_for_label(value: str, audience: Audience = Audience.ADMIN) -> set[SubmissionStatus]:
    """Canonical statuses shown as ``value`` to ``audience``; used by filters."""
    table = _STUDENT_VIEW if audience == Audience.STUDENT else _ADMIN_VIEW
    return {status for status, (shown, _label) in table.items() if shown == value}
