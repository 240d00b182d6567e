from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from labsync.core.config import ACCESS_TOKEN_EXPIRE
from labsync.core.current_user import get_current_user
from labsync.core.deps import get_db
from labsync.core.security import create_access_token, hash_password, verify_password
from labsync.db.writes import commit
from labsync.models.user import User, UserRole
from labsync.schemas.auth import LoginRequest
from labsync.schemas.token import Token
from labsync.schemas.user import UserCreate, UserRead

router = APIRouter()


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Email already registered"},
    },
)
def register(payload: UserCreate, db: Session = Depends(get_db)):
    existing_user = db.query(User).filter(User.email == payload.email).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    # self-registration is always a student account
    user = User(
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        student_id=payload.student_id,
        role=UserRole.STUDENT.value,
        hashed_password=hash_password(payload.password),
    )
    db.add(user)
    commit(db, on_conflict=HTTPException(status_code=400, detail="Email already registered"))
    db.refresh(user)
    return user


@router.post(
    "/login",
    response_model=Token,
    responses={
        401: {"description": "Invalid email or password"},
    },
)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email).first()
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated",
        )

    access_token = create_access_token(
        data={"sub": str(user.id), "role": user.role},
        expires_delta=ACCESS_TOKEN_EXPIRE,
    )

    return {
        "access_token": access_token,
        "token_type": "bearer",
    }


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    return current_user
