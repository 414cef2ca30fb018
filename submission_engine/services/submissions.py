"""
Submission State Machine and Resubmission Controller.

    (none) --save_draft/submit--> draft --submit--> submitted | late --grade--> graded
    submitted | late | graded --resubmit--> archived attempt + new draft (attempt + 1)

Every operation runs in the caller's session and commits at most once. Rows
carry an optimistic version (see models.submission), so two requests racing
on the same attempt cannot both commit: the loser gets ConcurrentModification.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from submission_engine.core.config import ALLOWED_ATTACHMENT_TYPES, MAX_ATTACHMENT_BYTES
from submission_engine.core.errors import (
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
    concurrent_modification,
)
from submission_engine.core.permissions import Actor
from submission_engine.models.assignment import Assignment, PublicationStatus
from submission_engine.models.submission import Submission, SubmissionStatus
from submission_engine.services import attempts
from submission_engine.services.catalog import (
    ensure_course_instructor,
    ensure_enrolled,
    get_assignment,
    is_course_instructor,
)
from submission_engine.services.grading import as_utc, is_late_submission, score_attempt
from submission_engine.services.media import MediaService, UploadedFile
from submission_engine.services.notifications import (
    EVENT_GRADED,
    EVENT_SUBMITTED,
    Notifier,
    dispatch,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def commit_or_conflict(db: Session) -> None:
    try:
        db.commit()
    except (StaleDataError, IntegrityError) as exc:
        db.rollback()
        raise concurrent_modification() from exc
    except Exception:
        db.rollback()
        raise


def get_submission(db: Session, submission_id: int) -> Submission:
    sub = db.query(Submission).filter(Submission.id == submission_id).first()
    if not sub:
        raise NotFoundError("Submission", submission_id)
    return sub


def accepting_submissions(assignment: Assignment, now: datetime) -> bool:
    if assignment.publication_status != PublicationStatus.PUBLISHED:
        return False
    if assignment.due_at is None or assignment.allow_late_submission:
        return True
    return as_utc(now) <= as_utc(assignment.due_at)


def _ensure_accepting_submissions(assignment: Assignment, now: datetime) -> None:
    if accepting_submissions(assignment, now):
        return
    if assignment.publication_status != PublicationStatus.PUBLISHED:
        raise ConflictError(
            ConflictError.ASSIGNMENT_NOT_PUBLISHED,
            "Assignment is not open for submissions",
        )
    raise ConflictError(
        ConflictError.ASSIGNMENT_OVERDUE,
        "The due date has passed and late submissions are not allowed",
    )


def _ensure_can_view(db: Session, actor: Actor, sub: Submission, assignment: Assignment) -> None:
    if sub.user_id == actor.user_id:
        return
    if not is_course_instructor(db, assignment.course_id, actor):
        raise AuthorizationError("You don't have permission to access this submission")


def _ensure_owner(actor: Actor, sub: Submission) -> None:
    if sub.user_id != actor.user_id:
        raise AuthorizationError("Only the submission owner can modify it")


def _finalized_attempt_conflict() -> ConflictError:
    return ConflictError(
        ConflictError.NOT_IN_DRAFT,
        "Latest attempt is already submitted; resubmit to open a new attempt",
    )


def _new_attempt(assignment_id: int, user_id: int, attempt_number: int) -> Submission:
    return Submission(
        assignment_id=assignment_id,
        user_id=user_id,
        attempt_number=attempt_number,
        status=SubmissionStatus.DRAFT,
        content="",
        attachments=[],
    )


def _log_transition(sub: Submission, source: str) -> None:
    logger.info(
        "Submission %s (assignment=%s user=%s attempt=%s): %s -> %s",
        sub.id,
        sub.assignment_id,
        sub.user_id,
        sub.attempt_number,
        source,
        sub.status.value,
    )


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def save_draft(
    db: Session,
    actor: Actor,
    assignment_id: int,
    content: str | None,
) -> Submission:
    assignment = get_assignment(db, assignment_id)
    ensure_enrolled(db, assignment.course_id, actor)

    draft = attempts.open_draft(db, assignment.id, actor.user_id)
    if draft is None:
        if attempts.latest_attempt_number(db, assignment.id, actor.user_id) > 0:
            raise _finalized_attempt_conflict()
        draft = _new_attempt(assignment.id, actor.user_id, attempt_number=1)
        db.add(draft)
        source = "none"
    else:
        source = draft.status.value

    draft.content = content or ""
    commit_or_conflict(db)

    _log_transition(draft, source)
    return draft


def submit(
    db: Session,
    actor: Actor,
    assignment_id: int,
    content: str | None = None,
    *,
    now: datetime | None = None,
    notifier: Notifier | None = None,
) -> Submission:
    """
    Move the caller's draft to `submitted` (or `late`).

    `content=None` submits the draft content as saved. With no attempt at
    all, attempt 1 is created and submitted in the same transaction.
    """
    now = now or _utcnow()
    assignment = get_assignment(db, assignment_id)
    ensure_enrolled(db, assignment.course_id, actor)
    _ensure_accepting_submissions(assignment, now)

    draft = attempts.open_draft(db, assignment.id, actor.user_id)
    if draft is None and attempts.latest_attempt_number(db, assignment.id, actor.user_id) > 0:
        raise _finalized_attempt_conflict()

    body = content if content is not None else (draft.content if draft else "")
    has_attachments = bool(draft and draft.attachments)
    if not (body or "").strip() and not has_attachments:
        raise ValidationError("Submission must have content or attachments")

    used = attempts.submitted_count(db, assignment.id, actor.user_id)
    if not attempts.has_attempt_slot(assignment, used):
        raise ConflictError(
            ConflictError.MAX_ATTEMPTS_REACHED,
            f"Maximum submission attempts ({assignment.max_attempts}) reached",
        )

    if draft is None:
        draft = _new_attempt(assignment.id, actor.user_id, attempt_number=1)
        db.add(draft)

    late = is_late_submission(assignment.due_at, now)
    draft.content = body
    draft.submitted_at = now
    draft.is_late = late
    draft.status = SubmissionStatus.LATE if late else SubmissionStatus.SUBMITTED
    commit_or_conflict(db)

    _log_transition(draft, SubmissionStatus.DRAFT.value)
    dispatch(notifier, EVENT_SUBMITTED, draft)
    return draft


def grade(
    db: Session,
    actor: Actor,
    submission_id: int,
    raw_score: float,
    feedback: str | None = None,
    rubric_scores: list | None = None,
    *,
    now: datetime | None = None,
    notifier: Notifier | None = None,
) -> Submission:
    now = now or _utcnow()
    sub = get_submission(db, submission_id)
    assignment = get_assignment(db, sub.assignment_id)
    ensure_course_instructor(db, assignment.course_id, actor)

    if sub.status == SubmissionStatus.DRAFT:
        raise ConflictError(ConflictError.NOT_SUBMITTED, "Cannot grade a draft")
    if sub.status == SubmissionStatus.GRADED:
        raise ConflictError(ConflictError.ALREADY_GRADED, "Submission is already graded")
    if sub.archived_at is not None:
        raise ConflictError(
            ConflictError.ATTEMPT_ARCHIVED,
            "Attempt was reopened by the student and is kept for history only",
        )
    # chained form so NaN is rejected too
    if not 0 <= raw_score <= assignment.total_points:
        raise ValidationError(f"score must be between 0 and {assignment.total_points}")

    result = score_attempt(
        raw_score,
        assignment.total_points,
        assignment.late_penalty,
        is_late=sub.is_late,
    )

    source = sub.status.value
    sub.raw_score = result.raw_score
    sub.final_score = result.final_score
    sub.percentage_score = result.final_percentage
    sub.late_penalty_applied = result.late_penalty_applied
    sub.feedback = feedback
    sub.rubric_scores = rubric_scores
    sub.graded_at = now
    sub.graded_by_id = actor.user_id
    sub.status = SubmissionStatus.GRADED
    commit_or_conflict(db)

    _log_transition(sub, source)
    dispatch(notifier, EVENT_GRADED, sub)
    return sub


def resubmit(
    db: Session,
    actor: Actor,
    submission_id: int,
    *,
    now: datetime | None = None,
) -> Submission:
    """Reopen a finalized attempt: archive it unchanged and open attempt + 1 as a draft."""
    now = now or _utcnow()
    sub = get_submission(db, submission_id)
    _ensure_owner(actor, sub)
    assignment = get_assignment(db, sub.assignment_id)

    if sub.status == SubmissionStatus.DRAFT:
        raise ConflictError(ConflictError.NOT_SUBMITTED, "Attempt is still a draft")
    if sub.archived_at is not None:
        raise ConflictError(ConflictError.ATTEMPT_ARCHIVED, "Attempt was already reopened")

    used = attempts.submitted_count(db, assignment.id, sub.user_id)
    if not attempts.can_resubmit(assignment, used):
        raise ConflictError(
            ConflictError.MAX_ATTEMPTS_REACHED,
            f"Maximum submission attempts ({assignment.max_attempts}) reached",
        )

    # bumps the version of the prior attempt, so a grade racing this call fails
    sub.archived_at = now
    draft = _new_attempt(assignment.id, sub.user_id, attempt_number=sub.attempt_number + 1)
    db.add(draft)
    commit_or_conflict(db)

    logger.info(
        "Submission %s (assignment=%s user=%s) reopened as attempt %s (submission %s)",
        sub.id,
        sub.assignment_id,
        sub.user_id,
        draft.attempt_number,
        draft.id,
    )
    return draft


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


def _get_owned_draft(db: Session, actor: Actor, submission_id: int) -> Submission:
    sub = get_submission(db, submission_id)
    _ensure_owner(actor, sub)
    if sub.status != SubmissionStatus.DRAFT:
        raise ConflictError(
            ConflictError.NOT_IN_DRAFT,
            "Cannot modify attachments of a submitted attempt",
        )
    return sub


def add_attachment(
    db: Session,
    actor: Actor,
    submission_id: int,
    upload: UploadedFile,
    media: MediaService,
) -> Submission:
    sub = _get_owned_draft(db, actor, submission_id)

    if upload.size > MAX_ATTACHMENT_BYTES:
        raise ValidationError(f"File size exceeds {MAX_ATTACHMENT_BYTES // (1024 * 1024)}MB limit")
    if not (upload.mime_type or "").startswith(ALLOWED_ATTACHMENT_TYPES):
        raise ValidationError("Unsupported file type")

    # nothing is written to the draft until the media service has the file
    try:
        ref = media.upload(upload, sub.id)
    except ExternalServiceError:
        raise
    except Exception as exc:
        raise ExternalServiceError(f"Upload failed: {exc}") from exc

    sub.attachments = [*(sub.attachments or []), ref.to_dict()]
    try:
        commit_or_conflict(db)
    except ConflictError:
        logger.warning("Draft %s changed during upload, removing orphaned %s", sub.id, ref.url)
        try:
            media.remove(ref.url, sub.id)
        except Exception:
            logger.exception("Could not remove orphaned upload %s", ref.url)
        raise

    logger.info("Submission %s: attachment %s added", sub.id, ref.media_id)
    return sub


def remove_attachment(
    db: Session,
    actor: Actor,
    submission_id: int,
    url: str,
    media: MediaService,
) -> Submission:
    sub = _get_owned_draft(db, actor, submission_id)

    remaining = [a for a in (sub.attachments or []) if a.get("url") != url]
    if len(remaining) == len(sub.attachments or []):
        raise NotFoundError("Attachment", url)

    # the draft drops the reference before the file goes, so a lost race
    # never leaves it pointing at a deleted file
    sub.attachments = remaining
    commit_or_conflict(db)

    try:
        media.remove(url, sub.id)
    except Exception:
        logger.exception("Submission %s: could not remove stored file %s", sub.id, url)

    logger.info("Submission %s: attachment %s removed", sub.id, url)
    return sub


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def get_submission_state(db: Session, actor: Actor, submission_id: int) -> Submission:
    sub = get_submission(db, submission_id)
    assignment = get_assignment(db, sub.assignment_id)
    _ensure_can_view(db, actor, sub, assignment)
    return sub


def _resolve_student(db: Session, actor: Actor, assignment: Assignment, user_id: int | None) -> int:
    if user_id is None or user_id == actor.user_id:
        return actor.user_id
    ensure_course_instructor(db, assignment.course_id, actor)
    return user_id


def get_attempts_left(
    db: Session,
    actor: Actor,
    assignment_id: int,
    user_id: int | None = None,
) -> attempts.AttemptsSummary:
    assignment = get_assignment(db, assignment_id)
    student_id = _resolve_student(db, actor, assignment, user_id)
    return attempts.summarize(db, assignment, student_id)


def list_attempts(
    db: Session,
    actor: Actor,
    assignment_id: int,
    user_id: int | None = None,
) -> list[Submission]:
    assignment = get_assignment(db, assignment_id)
    student_id = _resolve_student(db, actor, assignment, user_id)
    return attempts.attempt_history(db, assignment.id, student_id)


def get_my_submission(db: Session, actor: Actor, assignment_id: int) -> Submission | None:
    """Latest attempt of the caller, or None."""
    assignment = get_assignment(db, assignment_id)
    return (
        db.query(Submission)
        .filter(
            Submission.assignment_id == assignment.id,
            Submission.user_id == actor.user_id,
        )
        .order_by(Submission.attempt_number.desc())
        .first()
    )


def list_my_submissions(
    db: Session,
    actor: Actor,
    status: SubmissionStatus | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[Submission]:
    """The caller's attempts across all assignments, most recently submitted first."""
    if skip < 0 or limit < 1:
        raise ValidationError("skip must be >= 0 and limit >= 1")

    q = db.query(Submission).filter(Submission.user_id == actor.user_id)
    if status is not None:
        q = q.filter(Submission.status == status)

    return (
        q.order_by(
            Submission.submitted_at.is_(None),
            Submission.submitted_at.desc(),
            Submission.id.desc(),
        )
        .offset(skip)
        .limit(limit)
        .all()
    )


def list_submissions_for_assignment(
    db: Session,
    actor: Actor,
    assignment_id: int,
    ungraded_only: bool = False,
) -> list[Submission]:
    assignment = get_assignment(db, assignment_id)
    ensure_course_instructor(db, assignment.course_id, actor)

    q = db.query(Submission).filter(Submission.assignment_id == assignment.id)
    if ungraded_only:
        q = q.filter(
            Submission.status.in_((SubmissionStatus.SUBMITTED, SubmissionStatus.LATE)),
            Submission.archived_at.is_(None),
        )
    return q.order_by(Submission.user_id.asc(), Submission.attempt_number.asc()).all()
