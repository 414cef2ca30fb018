from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class PeerReviewCreate(BaseModel):
    score: float = Field(ge=0)
    feedback: str = Field(min_length=1)


class PeerReviewRead(BaseModel):
    id: int
    submission_id: int
    reviewer_id: int
    score: float
    feedback: str
    reviewed_at: datetime

    class Config:
        from_attributes = True


class PeerReviewSummaryRead(BaseModel):
    submission_id: int
    count: int
    average_score: Optional[float]
    reviews: list[PeerReviewRead]

    class Config:
        from_attributes = True
