from typing import Literal, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from labsync.core.current_user import get_current_user
from labsync.core.deps import get_db, get_storage
from labsync.core.errors import NotFoundError
from labsync.core.permissions import require_instructor
from labsync.models.distribution import AssignmentDistribution
from labsync.models.user import User, UserRole
from labsync.schemas.distribution import DistributionCreate, DistributionRead, DistributionUpdate
from labsync.services import distributions as dist_service
from labsync.services.file_storage import SUBMISSION_AREA, LocalFileStorage, distribution_key

router = APIRouter()


def _visible_distribution(db: Session, distribution_id: int, user: User) -> AssignmentDistribution:
    d = dist_service.get_distribution(db, distribution_id)
    if user.role == UserRole.STUDENT and not dist_service.is_in_audience(db, d, user.id):
        # same answer as a missing row; students don't learn about other audiences
        raise NotFoundError("Assignment distribution not found")
    return d


@router.get("/", response_model=list[DistributionRead])
def list_distributions(
    assignment_id: Optional[int] = None,
    class_id: Optional[int] = None,
    status_filter: Optional[Literal["assigned", "in_progress", "completed", "cancelled"]] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if current_user.role == UserRole.STUDENT:
        rows = dist_service.distributions_for_student(db, current_user.id)
    else:
        rows = (
            db.query(AssignmentDistribution)
            .order_by(AssignmentDistribution.assigned_at.desc(), AssignmentDistribution.id.desc())
            .all()
        )

    if assignment_id is not None:
        rows = [d for d in rows if d.assignment_id == assignment_id]
    if class_id is not None:
        rows = [d for d in rows if d.class_id == class_id]
    if status_filter is not None:
        rows = [d for d in rows if d.status == status_filter]
    return rows


@router.post("/", response_model=list[DistributionRead], status_code=status.HTTP_201_CREATED)
def create_distribution(
    payload: DistributionCreate,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    return dist_service.create_distributions(
        db,
        assignment_id=payload.assignment_id,
        class_id=payload.class_id,
        assignment_type=payload.assignment_type,
        scheduled_date=payload.scheduled_date,
        deadline=payload.deadline,
        group_ids=payload.group_ids,
        user_ids=payload.user_ids,
    )


@router.get("/{distribution_id}", response_model=DistributionRead)
def get_distribution(
    distribution_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _visible_distribution(db, distribution_id, current_user)


@router.put("/{distribution_id}", response_model=DistributionRead)
def update_distribution(
    distribution_id: int,
    payload: DistributionUpdate,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    d = dist_service.get_distribution(db, distribution_id)
    return dist_service.update_distribution(
        db,
        d,
        scheduled_date=payload.scheduled_date,
        deadline=payload.deadline,
        status=payload.status,
    )


@router.delete("/{distribution_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_distribution(
    distribution_id: int,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
    storage: LocalFileStorage = Depends(get_storage),
):
    d = dist_service.get_distribution(db, distribution_id)
    dist_service.delete_distribution(db, d)
    storage.delete_tree(SUBMISSION_AREA, distribution_key(distribution_id))
