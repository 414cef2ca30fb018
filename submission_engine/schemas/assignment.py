from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from submission_engine.models.assignment import PublicationStatus


class AssignmentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    due_at: Optional[datetime] = None
    total_points: float = Field(default=100, gt=0)
    allow_late_submission: bool = True
    late_penalty: float = Field(default=0, ge=0, le=100)
    max_attempts: Optional[int] = Field(default=None, ge=1)
    allow_peer_review: bool = False
    publication_status: PublicationStatus = PublicationStatus.DRAFT
    rubrics: Optional[list[dict[str, Any]]] = None


class AssignmentRead(BaseModel):
    id: int
    course_id: int
    title: str
    description: Optional[str]
    due_at: Optional[datetime]
    total_points: float
    allow_late_submission: bool
    late_penalty: float
    max_attempts: Optional[int]
    allow_peer_review: bool
    publication_status: PublicationStatus
    rubrics: Optional[list[dict[str, Any]]] = None
    created_at: datetime

    class Config:
        from_attributes = True
