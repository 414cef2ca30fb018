from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from submission_engine.core.deps import get_db
from submission_engine.core.permissions import Actor, get_actor
from submission_engine.schemas.peer_review import (
    PeerReviewCreate,
    PeerReviewRead,
    PeerReviewSummaryRead,
)
from submission_engine.services import peer_reviews as service

router = APIRouter()


@router.post(
    "/submissions/{submission_id}/peer-reviews",
    response_model=PeerReviewRead,
    status_code=status.HTTP_201_CREATED,
)
def add_peer_review(
    submission_id: int,
    payload: PeerReviewCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service.add_peer_review(db, actor, submission_id, payload.score, payload.feedback)


@router.get(
    "/submissions/{submission_id}/peer-reviews",
    response_model=PeerReviewSummaryRead,
)
def peer_review_summary(
    submission_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service.get_peer_review_summary(db, actor, submission_id)
