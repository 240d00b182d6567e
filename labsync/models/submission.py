from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from labsync.db.base_class import Base


class AssignmentSubmission(Base):
    __tablename__ = "assignment_submissions"

    id = Column(Integer, primary_key=True, index=True)

    assignment_distribution_id = Column(
        Integer, ForeignKey("assignment_distributions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    assignment_response_filename = Column(String(255), nullable=True)
    assignment_response_size = Column(Integer, nullable=True)
    output_test_filename = Column(String(255), nullable=True)
    output_test_size = Column(Integer, nullable=True)

    # set on the first successful file attach
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    is_locked = Column(Boolean, nullable=False, default=False, server_default="0")

    __table_args__ = (
        UniqueConstraint(
            "assignment_distribution_id", "user_id", name="uq_submission_distribution_user"
        ),
    )

    distribution = relationship("AssignmentDistribution", back_populates="submissions")
    student = relationship("User", back_populates="submissions")
    grade = relationship(
        "AssignmentGrade", back_populates="submission", uselist=False, cascade="all, delete-orphan"
    )
