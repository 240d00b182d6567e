from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from labsync.core.current_user import get_current_user
from labsync.core.deps import get_db
from labsync.core.permissions import require_instructor
from labsync.db.writes import commit
from labsync.models.group import Group, GroupMember
from labsync.models.school_class import SchoolClass
from labsync.models.user import User, UserRole
from labsync.schemas.group import GroupCreate, GroupMemberAdd, GroupMemberRead, GroupRead

router = APIRouter()


def _ensure_group_exists(db: Session, group_id: int) -> Group:
    group = db.query(Group).filter(Group.id == group_id).first()
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


@router.get("/", response_model=list[GroupRead])
def list_groups(
    class_id: int | None = None,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    q = db.query(Group)
    if class_id is not None:
        q = q.filter(Group.class_id == class_id)
    return q.order_by(Group.class_id.asc(), Group.name.asc()).all()


@router.get("/me", response_model=list[GroupRead])
def my_groups(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    return (
        db.query(Group)
        .join(GroupMember, GroupMember.group_id == Group.id)
        .filter(GroupMember.user_id == me.id)
        .order_by(Group.name.asc())
        .all()
    )


@router.post("/", response_model=GroupRead, status_code=status.HTTP_201_CREATED)
def create_group(
    payload: GroupCreate,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    if not db.query(SchoolClass).filter(SchoolClass.id == payload.class_id).first():
        raise HTTPException(status_code=404, detail="Class not found")

    group = Group(class_id=payload.class_id, name=payload.name, leader_id=payload.leader_id)
    db.add(group)
    commit(db, on_conflict=HTTPException(status_code=409, detail="Group name already used in this class"))

    db.refresh(group)
    return group


@router.get("/{group_id}/members", response_model=list[GroupMemberRead])
def list_members(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _ensure_group_exists(db, group_id)
    members = db.query(GroupMember).filter(GroupMember.group_id == group_id).all()

    if current_user.role == UserRole.STUDENT and current_user.id not in {m.user_id for m in members}:
        raise HTTPException(status_code=403, detail="Not a member of this group")
    return members


@router.post(
    "/{group_id}/members",
    response_model=GroupMemberRead,
    status_code=status.HTTP_201_CREATED,
)
def add_member(
    group_id: int,
    payload: GroupMemberAdd,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    _ensure_group_exists(db, group_id)

    student = db.query(User).filter(User.id == payload.user_id).first()
    if not student or student.role != UserRole.STUDENT:
        raise HTTPException(status_code=404, detail="Student not found")

    member = GroupMember(group_id=group_id, user_id=student.id)
    db.add(member)
    commit(db, on_conflict=HTTPException(status_code=409, detail="Already a member"))

    db.refresh(member)
    return member


@router.delete("/{group_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    group_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    member = (
        db.query(GroupMember)
        .filter(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
        .first()
    )
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")

    db.delete(member)
    commit(db)
