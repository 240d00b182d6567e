"""Fan-out of a published assignment to a class, groups or students.

Persisted status moves only through explicit edits:

    assigned -> in_progress | completed | cancelled
    in_progress -> completed | cancelled

``completed`` and ``cancelled`` are terminal. Deadlines never change the
persisted status; see ``services.status`` for the time-derived view.
"""
import logging
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from labsync.core.errors import NotFoundError, ValidationError
from labsync.core.timeutils import as_utc
from labsync.db.writes import commit
from labsync.models.assignment import Assignment, AssignmentStatus
from labsync.models.distribution import (
    AssignmentDistribution,
    AssignmentType,
    DistributionStatus,
)
from labsync.models.group import Group, GroupMember
from labsync.models.school_class import ClassStudent, SchoolClass
from labsync.models.user import User, UserRole

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    DistributionStatus.ASSIGNED: {
        DistributionStatus.IN_PROGRESS,
        DistributionStatus.COMPLETED,
        DistributionStatus.CANCELLED,
    },
    DistributionStatus.IN_PROGRESS: {
        DistributionStatus.COMPLETED,
        DistributionStatus.CANCELLED,
    },
    DistributionStatus.COMPLETED: set(),
    DistributionStatus.CANCELLED: set(),
}


def validate_schedule(scheduled_date: datetime, deadline: datetime) -> None:
    if as_utc(deadline) <= as_utc(scheduled_date):
        raise ValidationError("deadline must be after scheduled_date", field="deadline")


def validate_audience(
    assignment_type: AssignmentType,
    group_ids: list[int] | None,
    user_ids: list[int] | None,
) -> None:
    group_ids = group_ids or []
    user_ids = user_ids or []

    if assignment_type == AssignmentType.CLASS:
        if group_ids or user_ids:
            raise ValidationError(
                "class assignments cannot name groups or students", field="assignment_type"
            )
    elif assignment_type == AssignmentType.GROUP:
        if not group_ids:
            raise ValidationError("group assignments need at least one group", field="group_ids")
        if user_ids:
            raise ValidationError("group assignments cannot name students", field="user_ids")
    elif assignment_type == AssignmentType.INDIVIDUAL:
        if not user_ids:
            raise ValidationError(
                "individual assignments need at least one student", field="user_ids"
            )
        if group_ids:
            raise ValidationError("individual assignments cannot name groups", field="group_ids")
    else:
        raise ValidationError(f"unknown assignment_type '{assignment_type}'", field="assignment_type")


def _parse_type(value) -> AssignmentType:
    try:
        return AssignmentType(value)
    except ValueError:
        raise ValidationError(
            "assignment_type must be one of class, group, individual", field="assignment_type"
        )


def parse_status(value) -> DistributionStatus:
    try:
        return DistributionStatus(value)
    except ValueError:
        raise ValidationError(
            "status must be one of assigned, in_progress, completed, cancelled", field="status"
        )


def get_distribution(db: Session, distribution_id: int) -> AssignmentDistribution:
    d = db.query(AssignmentDistribution).filter(AssignmentDistribution.id == distribution_id).first()
    if not d:
        raise NotFoundError("Assignment distribution not found")
    return d


def create_distributions(
    db: Session,
    assignment_id: int,
    class_id: int,
    assignment_type,
    scheduled_date: datetime,
    deadline: datetime,
    group_ids: list[int] | None = None,
    user_ids: list[int] | None = None,
) -> list[AssignmentDistribution]:
    """One row for a class, one per group, or one per student."""
    assignment_type = _parse_type(assignment_type)
    validate_schedule(scheduled_date, deadline)
    validate_audience(assignment_type, group_ids, user_ids)

    assignment = db.query(Assignment).filter(Assignment.id == assignment_id).first()
    if not assignment:
        raise NotFoundError("Assignment not found")
    if assignment.status != AssignmentStatus.PUBLISHED:
        raise ValidationError(
            "Only published assignments can be distributed to students", field="assignment_id"
        )

    school_class = db.query(SchoolClass).filter(SchoolClass.id == class_id).first()
    if not school_class:
        raise NotFoundError("Class not found")

    base = {
        "assignment_id": assignment_id,
        "class_id": class_id,
        "assignment_type": assignment_type.value,
        "scheduled_date": as_utc(scheduled_date),
        "deadline": as_utc(deadline),
        "status": DistributionStatus.ASSIGNED.value,
    }

    rows: list[AssignmentDistribution] = []
    if assignment_type == AssignmentType.CLASS:
        rows.append(AssignmentDistribution(**base))

    elif assignment_type == AssignmentType.GROUP:
        for group_id in dict.fromkeys(group_ids):
            group = db.query(Group).filter(Group.id == group_id).first()
            if not group:
                raise NotFoundError(f"Group {group_id} not found")
            if group.class_id != class_id:
                raise ValidationError(
                    f"Group {group_id} does not belong to class {class_id}", field="group_ids"
                )
            rows.append(AssignmentDistribution(**base, group_id=group_id))

    else:
        for user_id in dict.fromkeys(user_ids):
            user = db.query(User).filter(User.id == user_id).first()
            if not user:
                raise NotFoundError(f"User {user_id} not found")
            if user.role != UserRole.STUDENT:
                raise ValidationError(f"User {user_id} is not a student", field="user_ids")
            rows.append(AssignmentDistribution(**base, user_id=user_id))

    db.add_all(rows)
    commit(db)
    for row in rows:
        db.refresh(row)

    logger.info(
        "Distributed assignment %s to class %s as %s (%d row(s))",
        assignment_id,
        class_id,
        assignment_type.value,
        len(rows),
    )
    return rows


def update_distribution(
    db: Session,
    distribution: AssignmentDistribution,
    scheduled_date: datetime | None = None,
    deadline: datetime | None = None,
    status=None,
) -> AssignmentDistribution:
    new_scheduled = as_utc(scheduled_date) if scheduled_date else as_utc(distribution.scheduled_date)
    new_deadline = as_utc(deadline) if deadline else as_utc(distribution.deadline)
    validate_schedule(new_scheduled, new_deadline)

    if status is not None:
        target = parse_status(status)
        current = DistributionStatus(distribution.status)
        if target != current and target not in ALLOWED_TRANSITIONS[current]:
            raise ValidationError(
                f"Cannot change status from {current.value} to {target.value}", field="status"
            )
        if target != current:
            logger.info(
                "Distribution %s status %s -> %s", distribution.id, current.value, target.value
            )
        distribution.status = target.value

    distribution.scheduled_date = new_scheduled
    distribution.deadline = new_deadline

    commit(db)
    db.refresh(distribution)
    return distribution


def delete_distribution(db: Session, distribution: AssignmentDistribution) -> None:
    """Hard delete; submissions and grades go with it."""
    distribution_id = distribution.id
    db.delete(distribution)
    commit(db)
    logger.info("Deleted distribution %s with its submissions", distribution_id)


def class_student_ids(db: Session, class_id: int) -> set[int]:
    direct = select(ClassStudent.user_id).where(ClassStudent.class_id == class_id)
    via_groups = (
        select(GroupMember.user_id)
        .join(Group, Group.id == GroupMember.group_id)
        .where(Group.class_id == class_id)
    )
    ids = set(db.scalars(direct)) | set(db.scalars(via_groups))
    if not ids:
        return ids
    students = db.scalars(
        select(User.id).where(User.id.in_(ids), User.role == UserRole.STUDENT.value)
    )
    return set(students)


def audience_user_ids(db: Session, distribution: AssignmentDistribution) -> set[int]:
    if distribution.assignment_type == AssignmentType.INDIVIDUAL:
        return {distribution.user_id}
    if distribution.assignment_type == AssignmentType.GROUP:
        return set(
            db.scalars(select(GroupMember.user_id).where(GroupMember.group_id == distribution.group_id))
        )
    return class_student_ids(db, distribution.class_id)


def is_in_audience(db: Session, distribution: AssignmentDistribution, user_id: int) -> bool:
    return user_id in audience_user_ids(db, distribution)


def distributions_for_student(db: Session, user_id: int) -> list[AssignmentDistribution]:
    """Distributions of non-draft assignments whose audience includes the student."""
    group_ids = select(GroupMember.group_id).where(GroupMember.user_id == user_id)
    class_ids_direct = select(ClassStudent.class_id).where(ClassStudent.user_id == user_id)
    class_ids_groups = (
        select(Group.class_id)
        .join(GroupMember, GroupMember.group_id == Group.id)
        .where(GroupMember.user_id == user_id)
    )

    return (
        db.query(AssignmentDistribution)
        .join(Assignment, Assignment.id == AssignmentDistribution.assignment_id)
        .filter(Assignment.status != AssignmentStatus.DRAFT.value)
        .filter(
            or_(
                AssignmentDistribution.user_id == user_id,
                (AssignmentDistribution.assignment_type == AssignmentType.GROUP.value)
                & AssignmentDistribution.group_id.in_(group_ids),
                (AssignmentDistribution.assignment_type == AssignmentType.CLASS.value)
                & (
                    AssignmentDistribution.class_id.in_(class_ids_direct)
                    | AssignmentDistribution.class_id.in_(class_ids_groups)
                ),
            )
        )
        .order_by(AssignmentDistribution.deadline.asc(), AssignmentDistribution.id.asc())
        .all()
    )
