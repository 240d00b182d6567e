from sqlalchemy import CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from labsync.db.base_class import Base


class AssignmentGrade(Base):
    __tablename__ = "assignment_grades"

    id = Column(Integer, primary_key=True, index=True)

    # one grade per submission; the unique index is the upsert conflict target
    assignment_submission_id = Column(
        Integer,
        ForeignKey("assignment_submissions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    instructor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    score = Column(Float, nullable=False)
    max_score = Column(Float, nullable=False)
    percentage = Column(Float, nullable=False)
    grade_letter = Column(String(5), nullable=False)
    feedback = Column(Text, nullable=True)

    graded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("max_score > 0", name="ck_grade_max_score_positive"),
        CheckConstraint("score >= 0 AND score <= max_score", name="ck_grade_score_in_range"),
    )

    submission = relationship("AssignmentSubmission", back_populates="grade")
    instructor = relationship("User")
