from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from submission_engine.core.deps import get_db, get_media_service, get_notifier
from submission_engine.core.permissions import Actor, get_actor
from submission_engine.models.submission import SubmissionStatus
from submission_engine.schemas.submission import (
    AttemptsLeftRead,
    DraftSave,
    SubmissionCreate,
    SubmissionGradeUpdate,
    SubmissionRead,
)
from submission_engine.services import submissions as service
from submission_engine.services.media import MediaService, UploadedFile
from submission_engine.services.notifications import Notifier

router = APIRouter()


@router.put(
    "/assignments/{assignment_id}/draft",
    response_model=SubmissionRead,
)
def save_draft(
    assignment_id: int,
    payload: DraftSave,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service.save_draft(db, actor, assignment_id, payload.content)


@router.post(
    "/assignments/{assignment_id}/submissions",
    response_model=SubmissionRead,
    status_code=status.HTTP_201_CREATED,
)
def submit_assignment(
    assignment_id: int,
    payload: SubmissionCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    notifier: Notifier = Depends(get_notifier),
):
    return service.submit(db, actor, assignment_id, payload.content, notifier=notifier)


@router.get(
    "/assignments/{assignment_id}/submissions",
    response_model=list[SubmissionRead],
)
def list_submissions_for_assignment(
    assignment_id: int,
    ungraded: bool = Query(False, description="only attempts waiting for a grade"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service.list_submissions_for_assignment(db, actor, assignment_id, ungraded_only=ungraded)


@router.get(
    "/assignments/{assignment_id}/submissions/me",
    response_model=list[SubmissionRead],
)
def my_attempts(
    assignment_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service.list_attempts(db, actor, assignment_id)


@router.get(
    "/assignments/{assignment_id}/submissions/me/latest",
    response_model=SubmissionRead | None,
)
def my_latest_submission(
    assignment_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service.get_my_submission(db, actor, assignment_id)


@router.get(
    "/assignments/{assignment_id}/attempts-left",
    response_model=AttemptsLeftRead,
)
def attempts_left(
    assignment_id: int,
    user_id: int | None = Query(None, description="student to inspect (instructors only)"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service.get_attempts_left(db, actor, assignment_id, user_id)


# declared before /submissions/{submission_id} so "me" is not read as an id
@router.get(
    "/submissions/me",
    response_model=list[SubmissionRead],
)
def my_submissions(
    status_filter: SubmissionStatus | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service.list_my_submissions(db, actor, status=status_filter, skip=skip, limit=limit)


@router.get(
    "/submissions/{submission_id}",
    response_model=SubmissionRead,
)
def read_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service.get_submission_state(db, actor, submission_id)


@router.patch(
    "/submissions/{submission_id}/grade",
    response_model=SubmissionRead,
)
def grade_submission(
    submission_id: int,
    payload: SubmissionGradeUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    notifier: Notifier = Depends(get_notifier),
):
    rubric_scores = None
    if payload.rubric_scores is not None:
        rubric_scores = [r.model_dump() for r in payload.rubric_scores]

    return service.grade(
        db,
        actor,
        submission_id,
        payload.score,
        feedback=payload.feedback,
        rubric_scores=rubric_scores,
        notifier=notifier,
    )


@router.post(
    "/submissions/{submission_id}/resubmit",
    response_model=SubmissionRead,
    status_code=status.HTTP_201_CREATED,
)
def resubmit(
    submission_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service.resubmit(db, actor, submission_id)


@router.post(
    "/submissions/{submission_id}/attachments",
    response_model=SubmissionRead,
    status_code=status.HTTP_201_CREATED,
)
def upload_attachment(
    submission_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    media: MediaService = Depends(get_media_service),
):
    upload = UploadedFile(
        file_name=file.filename or "upload",
        mime_type=file.content_type or "application/octet-stream",
        size=file.size or 0,
        stream=file.file,
    )
    return service.add_attachment(db, actor, submission_id, upload, media)


@router.delete(
    "/submissions/{submission_id}/attachments",
    response_model=SubmissionRead,
)
def delete_attachment(
    submission_id: int,
    url: str = Query(...),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    media: MediaService = Depends(get_media_service),
):
    return service.remove_attachment(db, actor, submission_id, url, media)
