import enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from submission_engine.db.base_class import Base


class PublicationStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    due_at = Column(DateTime(timezone=True), nullable=True)

    # Grading rules
    total_points = Column(Float, nullable=False, default=100)
    allow_late_submission = Column(Boolean, nullable=False, default=True)
    late_penalty = Column(Float, nullable=False, default=0)  # percent of raw score, 0-100
    max_attempts = Column(Integer, nullable=True)  # None = unlimited
    allow_peer_review = Column(Boolean, nullable=False, default=False)
    publication_status = Column(
        Enum(
            PublicationStatus,
            name="publication_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=PublicationStatus.DRAFT,
    )

    # Presentation-owned, never read by the grading code
    rubrics = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("total_points > 0", name="ck_assignments_total_points_positive"),
        CheckConstraint("late_penalty >= 0 AND late_penalty <= 100", name="ck_assignments_late_penalty_range"),
        CheckConstraint("max_attempts IS NULL OR max_attempts >= 1", name="ck_assignments_max_attempts"),
    )

    course = relationship("Course", back_populates="assignments")

    submissions = relationship("Submission", back_populates="assignment", cascade="all, delete-orphan")
