from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from labsync.core.deps import get_db
from labsync.core.permissions import require_admin
from labsync.core.security import hash_password
from labsync.db.writes import commit
from labsync.models.user import User
from labsync.schemas.user import AdminUserCreate, UserRead, UserUpdate

router = APIRouter()


@router.get("/", response_model=list[UserRead])
def list_users(
    role: Optional[Literal["admin", "instructor", "student"]] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    q = db.query(User)
    if role:
        q = q.filter(User.role == role)
    return q.order_by(User.email.asc()).all()


@router.post("/", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: AdminUserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if db.query(User).filter(User.email == payload.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        student_id=payload.student_id,
        role=payload.role,
        hashed_password=hash_password(payload.password),
    )
    db.add(user)
    commit(db, on_conflict=HTTPException(status_code=400, detail="Email already registered"))
    db.refresh(user)
    return user


@router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if user.id == admin.id and (payload.role not in (None, user.role) or payload.is_active is False):
        raise HTTPException(status_code=400, detail="Admins cannot demote or deactivate themselves")

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(user, field, value)

    commit(db)
    db.refresh(user)
    return user
