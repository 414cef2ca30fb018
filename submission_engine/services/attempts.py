"""Attempt Counter and resubmission policy."""
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from submission_engine.models.assignment import Assignment
from submission_engine.models.submission import FINALIZED_STATUSES, Submission, SubmissionStatus


@dataclass(frozen=True)
class AttemptsSummary:
    assignment_id: int
    user_id: int
    max_attempts: int | None
    submitted_count: int
    attempts_left: int | None  # None = unlimited
    can_resubmit: bool


def submitted_count(db: Session, assignment_id: int, user_id: int) -> int:
    """Attempts that consume a slot. Drafts never do."""
    return (
        db.query(func.count(Submission.id))
        .filter(
            Submission.assignment_id == assignment_id,
            Submission.user_id == user_id,
            Submission.status.in_(FINALIZED_STATUSES),
        )
        .scalar()
    ) or 0


def latest_attempt_number(db: Session, assignment_id: int, user_id: int) -> int:
    return (
        db.query(func.max(Submission.attempt_number))
        .filter(
            Submission.assignment_id == assignment_id,
            Submission.user_id == user_id,
        )
        .scalar()
    ) or 0


def attempts_left(assignment: Assignment, used: int) -> int | None:
    if assignment.max_attempts is None:
        return None
    return max(0, assignment.max_attempts - used)


def has_attempt_slot(assignment: Assignment, used: int) -> bool:
    left = attempts_left(assignment, used)
    return left is None or left > 0


def can_resubmit(assignment: Assignment, used: int) -> bool:
    return has_attempt_slot(assignment, used)


def summarize(db: Session, assignment: Assignment, user_id: int) -> AttemptsSummary:
    used = submitted_count(db, assignment.id, user_id)
    return AttemptsSummary(
        assignment_id=assignment.id,
        user_id=user_id,
        max_attempts=assignment.max_attempts,
        submitted_count=used,
        attempts_left=attempts_left(assignment, used),
        can_resubmit=can_resubmit(assignment, used),
    )


def open_draft(db: Session, assignment_id: int, user_id: int) -> Submission | None:
    return (
        db.query(Submission)
        .filter(
            Submission.assignment_id == assignment_id,
            Submission.user_id == user_id,
            Submission.status == SubmissionStatus.DRAFT,
        )
        .first()
    )


def attempt_history(db: Session, assignment_id: int, user_id: int) -> list[Submission]:
    return (
        db.query(Submission)
        .filter(
            Submission.assignment_id == assignment_id,
            Submission.user_id == user_id,
        )
        .order_by(Submission.attempt_number.asc())
        .all()
    )
