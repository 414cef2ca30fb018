"""Peer Review Ledger: append-only scores from fellow students."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from submission_engine.core.errors import AuthorizationError, ConflictError, ValidationError
from submission_engine.core.permissions import Actor
from submission_engine.models.peer_review import PeerReview
from submission_engine.services.catalog import get_assignment, is_course_instructor, is_enrolled
from submission_engine.services.submissions import commit_or_conflict, get_submission

logger = logging.getLogger(__name__)


@dataclass
class PeerReviewSummary:
    submission_id: int
    count: int
    average_score: float | None
    reviews: list[PeerReview] = field(default_factory=list)


def add_peer_review(
    db: Session,
    actor: Actor,
    submission_id: int,
    score: float,
    feedback: str,
    *,
    now: datetime | None = None,
) -> PeerReview:
    sub = get_submission(db, submission_id)
    assignment = get_assignment(db, sub.assignment_id)

    if not assignment.allow_peer_review:
        raise ConflictError(
            ConflictError.PEER_REVIEW_DISABLED,
            "Peer review is not enabled for this assignment",
        )
    if not sub.is_finalized:
        raise ConflictError(ConflictError.NOT_SUBMITTED, "Only submitted work can be peer reviewed")
    if sub.user_id == actor.user_id:
        raise AuthorizationError("You cannot review your own submission")
    # reviewers are classmates; course staff grade instead
    if not is_enrolled(db, assignment.course_id, actor.user_id):
        raise AuthorizationError("Only students enrolled in this course can add peer reviews")

    if not 0 <= score <= assignment.total_points:
        raise ValidationError(f"score must be between 0 and {assignment.total_points}")
    if not (feedback or "").strip():
        raise ValidationError("Feedback is required")

    review = PeerReview(
        submission_id=sub.id,
        reviewer_id=actor.user_id,
        score=float(score),
        feedback=feedback.strip(),
        reviewed_at=now or datetime.now(timezone.utc),
    )
    db.add(review)
    commit_or_conflict(db)

    logger.info(
        "Peer review %s added to submission %s by user %s",
        review.id,
        sub.id,
        actor.user_id,
    )
    return review


def get_peer_review_summary(db: Session, actor: Actor, submission_id: int) -> PeerReviewSummary:
    """Aggregate view kept apart from the instructor grade."""
    sub = get_submission(db, submission_id)
    assignment = get_assignment(db, sub.assignment_id)
    if sub.user_id != actor.user_id and not is_course_instructor(db, assignment.course_id, actor):
        raise AuthorizationError("You don't have permission to view these reviews")

    reviews = (
        db.query(PeerReview)
        .filter(PeerReview.submission_id == sub.id)
        .order_by(PeerReview.reviewed_at.asc(), PeerReview.id.asc())
        .all()
    )
    average = round(sum(r.score for r in reviews) / len(reviews), 2) if reviews else None
    return PeerReviewSummary(
        submission_id=sub.id,
        count=len(reviews),
        average_score=average,
        reviews=reviews,
    )
