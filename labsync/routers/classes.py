from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from labsync.core.current_user import get_current_user
from labsync.core.deps import get_db
from labsync.core.permissions import require_instructor
from labsync.db.writes import commit
from labsync.models.school_class import ClassStudent, SchoolClass
from labsync.models.user import User, UserRole
from labsync.schemas.school_class import ClassCreate, ClassRead, ClassStudentAdd
from labsync.schemas.user import UserRead
from labsync.services.distributions import class_student_ids

router = APIRouter()


def _ensure_class_exists(db: Session, class_id: int) -> SchoolClass:
    school_class = db.query(SchoolClass).filter(SchoolClass.id == class_id).first()
    if not school_class:
        raise HTTPException(status_code=404, detail="Class not found")
    return school_class


@router.get("/", response_model=list[ClassRead])
def list_classes(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return db.query(SchoolClass).order_by(SchoolClass.class_code.asc()).all()


@router.post("/", response_model=ClassRead, status_code=status.HTTP_201_CREATED)
def create_class(
    payload: ClassCreate,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    school_class = SchoolClass(
        class_code=payload.class_code,
        name=payload.name,
        description=payload.description,
        instructor_id=payload.instructor_id or instructor.id,
    )
    db.add(school_class)

    commit(db, on_conflict=HTTPException(status_code=409, detail="Class code already exists"))

    db.refresh(school_class)
    return school_class


@router.get("/{class_id}", response_model=ClassRead)
def get_class(
    class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _ensure_class_exists(db, class_id)


@router.post("/{class_id}/students", status_code=status.HTTP_201_CREATED)
def enroll_student(
    class_id: int,
    payload: ClassStudentAdd,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    _ensure_class_exists(db, class_id)

    student = db.query(User).filter(User.id == payload.user_id).first()
    if not student or student.role != UserRole.STUDENT:
        raise HTTPException(status_code=404, detail="Student not found")

    db.add(ClassStudent(class_id=class_id, user_id=student.id))
    commit(db, on_conflict=HTTPException(status_code=409, detail="Already enrolled"))

    return {"class_id": class_id, "user_id": student.id}


@router.get("/{class_id}/students", response_model=list[UserRead])
def list_class_students(
    class_id: int,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    _ensure_class_exists(db, class_id)
    ids = class_student_ids(db, class_id)
    if not ids:
        return []
    return db.query(User).filter(User.id.in_(ids)).order_by(User.email.asc()).all()
