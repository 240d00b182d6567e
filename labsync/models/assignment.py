import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from labsync.db.base_class import Base


class AssignmentStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Assignment(Base):
    """Reusable assignment content. Distributions schedule it for an audience."""

    __tablename__ = "created_assignments"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    pdf_filename = Column(String(255), nullable=True)
    pdf_file_size = Column(Integer, nullable=True)

    status = Column(String(20), nullable=False, default=AssignmentStatus.DRAFT.value, index=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    creator = relationship("User")

    distributions = relationship(
        "AssignmentDistribution", back_populates="assignment", cascade="all, delete-orphan"
    )
