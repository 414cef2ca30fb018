from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from submission_engine.models.submission import SubmissionStatus


class DraftSave(BaseModel):
    content: Optional[str] = None


class SubmissionCreate(BaseModel):
    # None submits the content already saved in the draft
    content: Optional[str] = None


class RubricScore(BaseModel):
    criterion: str
    score: float = Field(ge=0)
    max_score: Optional[float] = Field(default=None, ge=0)
    feedback: Optional[str] = None


class SubmissionGradeUpdate(BaseModel):
    score: float = Field(ge=0)
    feedback: Optional[str] = None
    rubric_scores: Optional[list[RubricScore]] = None


class AttachmentRef(BaseModel):
    url: str
    media_id: str
    file_name: str
    mime_type: str
    size: int


class SubmissionRead(BaseModel):
    id: int
    assignment_id: int
    user_id: int
    attempt_number: int
    status: SubmissionStatus
    content: str
    attachments: list[AttachmentRef] = []
    submitted_at: Optional[datetime] = None
    is_late: bool = False

    raw_score: Optional[float] = None
    final_score: Optional[float] = None
    percentage_score: Optional[float] = None
    late_penalty_applied: Optional[float] = None
    feedback: Optional[str] = None
    rubric_scores: Optional[list[RubricScore]] = None
    graded_at: Optional[datetime] = None
    graded_by_id: Optional[int] = None

    archived_at: Optional[datetime] = None
    version: int

    class Config:
        from_attributes = True


class AttemptsLeftRead(BaseModel):
    assignment_id: int
    user_id: int
    max_attempts: Optional[int]
    submitted_count: int
    attempts_left: Optional[int]
    can_resubmit: bool

    class Config:
        from_attributes = True
