import enum

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from labsync.db.base_class import Base


class AssignmentType(str, enum.Enum):
    CLASS = "class"
    GROUP = "group"
    INDIVIDUAL = "individual"


class DistributionStatus(str, enum.Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AssignmentDistribution(Base):
    __tablename__ = "assignment_distributions"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(
        Integer, ForeignKey("created_assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # audience: class_id always set; group_id or user_id depending on assignment_type
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    assignment_type = Column(String(20), nullable=False)

    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    deadline = Column(DateTime(timezone=True), nullable=False)

    status = Column(String(20), nullable=False, default=DistributionStatus.ASSIGNED.value)

    assigned_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("deadline > scheduled_date", name="ck_distribution_deadline_after_schedule"),
    )

    assignment = relationship("Assignment", back_populates="distributions")
    school_class = relationship("SchoolClass")
    group = relationship("Group")
    user = relationship("User")

    submissions = relationship(
        "AssignmentSubmission", back_populates="distribution", cascade="all, delete-orphan"
    )
