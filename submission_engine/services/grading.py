"""
Grading Engine.

Pure functions only: no database access and no clock reads. The late flag is
decided once, when an attempt is submitted (`is_late_submission`), and the
stored flag is what `score_attempt` consumes at grading time.
"""
from dataclasses import dataclass
from datetime import datetime, timezone

SCORE_PRECISION = 2


@dataclass(frozen=True)
class GradeResult:
    raw_score: float
    total_points: float
    is_late: bool
    penalty_amount: float
    final_score: float
    percentage_score: float  # raw score as % of total points
    final_percentage: float  # final score as % of total points
    late_penalty_applied: float  # raw_score - final_score


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_late_submission(due_at: datetime | None, submitted_at: datetime) -> bool:
    if due_at is None:
        return False
    return as_utc(submitted_at) > as_utc(due_at)


def clamp_penalty_rate(rate: float | None) -> float:
    if not rate or rate < 0:
        return 0.0
    return min(float(rate), 100.0)


def _percentage(score: float, total_points: float) -> float:
    if total_points <= 0:
        return 0.0
    return round(score / total_points * 100, SCORE_PRECISION)


def score_attempt(
    raw_score: float,
    total_points: float,
    late_penalty_rate: float | None,
    is_late: bool,
) -> GradeResult:
    """
    Score one attempt.

    The late penalty is a percentage of the raw score, clamped so that the
    deduction never exceeds the raw score:

        penalty = min(raw, raw * rate / 100) if late else 0
        final   = max(0, raw - penalty)
    """
    raw = float(raw_score)
    rate = clamp_penalty_rate(late_penalty_rate)

    penalty = min(raw, raw * rate / 100) if is_late else 0.0
    final = max(0.0, raw - penalty)

    penalty = round(penalty, SCORE_PRECISION)
    final = round(final, SCORE_PRECISION)

    return GradeResult(
        raw_score=raw,
        total_points=float(total_points),
        is_late=is_late,
        penalty_amount=penalty,
        final_score=final,
        percentage_score=_percentage(raw, total_points),
        final_percentage=_percentage(final, total_points),
        late_penalty_applied=round(raw - final, SCORE_PRECISION),
    )
