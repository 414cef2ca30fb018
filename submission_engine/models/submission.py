import enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import relationship

from submission_engine.db.base_class import Base


class SubmissionStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    LATE = "late"
    GRADED = "graded"


# statuses that consume an attempt slot
FINALIZED_STATUSES = (
    SubmissionStatus.SUBMITTED,
    SubmissionStatus.LATE,
    SubmissionStatus.GRADED,
)


class Submission(Base):
    """One attempt of a student at an assignment.

    Rows form an append-only log keyed by (assignment_id, user_id, attempt_number).
    Reopening an attempt inserts a new draft row and only stamps `archived_at`
    on the previous one.
    """

    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)

    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)

    status = Column(
        Enum(
            SubmissionStatus,
            name="submission_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=SubmissionStatus.DRAFT,
        index=True,
    )

    content = Column(Text, nullable=False, default="")
    attachments = Column(JSON, nullable=False, default=list)

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    # computed once at submit time
    is_late = Column(Boolean, nullable=False, default=False)

    # Grading fields (nullable until graded)
    raw_score = Column(Float, nullable=True)
    final_score = Column(Float, nullable=True)
    percentage_score = Column(Float, nullable=True)
    late_penalty_applied = Column(Float, nullable=True)
    feedback = Column(Text, nullable=True)
    rubric_scores = Column(JSON, nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)
    graded_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    archived_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint(
            "assignment_id", "user_id", "attempt_number", name="uq_submission_assignment_user_attempt"
        ),
        # at most one open draft per student and assignment
        Index(
            "uq_submission_open_draft",
            "assignment_id",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'draft'"),
            postgresql_where=text("status = 'draft'"),
        ),
    )

    assignment = relationship("Assignment", back_populates="submissions")
    student = relationship("User", back_populates="submissions", foreign_keys=[user_id])
    peer_reviews = relationship(
        "PeerReview", back_populates="submission", cascade="all, delete-orphan", order_by="PeerReview.id"
    )

    @property
    def is_finalized(self) -> bool:
        return self.status in FINALIZED_STATUSES
