import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from labsync.core.config import ALLOWED_ASSIGNMENT_EXTENSIONS
from labsync.core.current_user import get_current_user
from labsync.core.deps import get_db, get_storage
from labsync.core.errors import InfrastructureError, NotFoundError
from labsync.core.permissions import require_instructor
from labsync.core.timeutils import as_utc, utcnow
from labsync.db.writes import commit
from labsync.models.assignment import Assignment, AssignmentStatus
from labsync.models.distribution import AssignmentDistribution
from labsync.models.user import User, UserRole
from labsync.schemas.assignment import AssignmentCreate, AssignmentRead, AssignmentUpdate
from labsync.services.distributions import distributions_for_student
from labsync.services.file_storage import ASSIGNMENT_AREA, LocalFileStorage, assignment_key

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_TRANSITIONS = {
    AssignmentStatus.DRAFT: {AssignmentStatus.PUBLISHED},
    AssignmentStatus.PUBLISHED: {AssignmentStatus.DRAFT, AssignmentStatus.ARCHIVED},
    AssignmentStatus.ARCHIVED: {AssignmentStatus.PUBLISHED},
}


def _ensure_assignment_exists(db: Session, assignment_id: int) -> Assignment:
    a = db.query(Assignment).filter(Assignment.id == assignment_id).first()
    if not a:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return a


def _ensure_can_edit(assignment: Assignment, user: User) -> None:
    if user.role != UserRole.ADMIN and assignment.created_by != user.id:
        raise HTTPException(status_code=403, detail="Only the author or an admin can change this assignment")


def _opened_assignment_ids(db: Session, student: User) -> set[int]:
    """Assignments reaching the student through a distribution that has opened."""
    now = utcnow()
    return {
        d.assignment_id
        for d in distributions_for_student(db, student.id)
        if as_utc(d.scheduled_date) <= now
    }


def _ensure_visible(db: Session, assignment: Assignment, user: User) -> None:
    # archived content stays reachable through distributions made before archiving
    if user.role == UserRole.STUDENT and assignment.id not in _opened_assignment_ids(db, user):
        raise NotFoundError("Assignment not found")


@router.get("/", response_model=list[AssignmentRead])
def list_assignments(
    status_filter: AssignmentStatus | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = db.query(Assignment)
    if current_user.role == UserRole.STUDENT:
        q = q.filter(Assignment.id.in_(_opened_assignment_ids(db, current_user)))
    elif status_filter is not None:
        q = q.filter(Assignment.status == status_filter.value)
    return q.order_by(Assignment.created_at.desc(), Assignment.id.desc()).all()


@router.post("/", response_model=AssignmentRead, status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    a = Assignment(
        name=payload.name,
        description=payload.description,
        status=payload.status,
        created_by=instructor.id,
    )
    db.add(a)
    commit(db)
    db.refresh(a)
    return a


@router.get("/{assignment_id}", response_model=AssignmentRead)
def get_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    a = _ensure_assignment_exists(db, assignment_id)
    _ensure_visible(db, a, current_user)
    return a


@router.put("/{assignment_id}", response_model=AssignmentRead)
def update_assignment(
    assignment_id: int,
    payload: AssignmentUpdate,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    a = _ensure_assignment_exists(db, assignment_id)
    _ensure_can_edit(a, instructor)

    if payload.status is not None and payload.status != a.status:
        current = AssignmentStatus(a.status)
        target = AssignmentStatus(payload.status)
        if target not in STATUS_TRANSITIONS[current]:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot change status from {current.value} to {target.value}",
            )
        if target == AssignmentStatus.DRAFT:
            distributed = (
                db.query(AssignmentDistribution)
                .filter(AssignmentDistribution.assignment_id == a.id)
                .first()
            )
            if distributed:
                raise HTTPException(
                    status_code=400,
                    detail="Distributed assignments cannot return to draft; archive instead",
                )
        logger.info("Assignment %s status change: %s -> %s", a.id, current.value, target.value)
        a.status = target.value

    if payload.name is not None:
        a.name = payload.name
    if payload.description is not None:
        a.description = payload.description

    commit(db)
    db.refresh(a)
    return a


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
    storage: LocalFileStorage = Depends(get_storage),
):
    a = _ensure_assignment_exists(db, assignment_id)
    _ensure_can_edit(a, instructor)

    db.delete(a)
    commit(db)
    storage.delete_tree(ASSIGNMENT_AREA, assignment_key(assignment_id))
    logger.info("Deleted assignment %s", assignment_id)


@router.post("/{assignment_id}/pdf", response_model=AssignmentRead)
def upload_assignment_pdf(
    assignment_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
    storage: LocalFileStorage = Depends(get_storage),
):
    a = _ensure_assignment_exists(db, assignment_id)
    _ensure_can_edit(a, instructor)

    stored = storage.save(
        ASSIGNMENT_AREA,
        assignment_key(a.id),
        "assignment",
        file.filename,
        file.file,
        ALLOWED_ASSIGNMENT_EXTENSIONS,
    )

    old = a.pdf_filename
    a.pdf_filename = stored.filename
    a.pdf_file_size = stored.size_bytes
    try:
        commit(db)
    except InfrastructureError:
        storage.delete(ASSIGNMENT_AREA, assignment_key(a.id), stored.filename)
        raise

    if old:
        storage.delete(ASSIGNMENT_AREA, assignment_key(a.id), old)
    db.refresh(a)
    return a


@router.get("/{assignment_id}/pdf")
def download_assignment_pdf(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_storage),
):
    a = _ensure_assignment_exists(db, assignment_id)
    _ensure_visible(db, a, current_user)
    if not a.pdf_filename:
        raise HTTPException(status_code=404, detail="Assignment has no PDF")

    path = storage.path_for(ASSIGNMENT_AREA, assignment_key(a.id), a.pdf_filename)
    return FileResponse(path, media_type="application/pdf", filename=f"{a.name}.pdf")
