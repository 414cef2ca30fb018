from datetime import datetime, timedelta, timezone

import pytest

from submission_engine.services.grading import (
    as_utc,
    clamp_penalty_rate,
    is_late_submission,
    score_attempt,
)

DUE = datetime(2026, 3, 1, 23, 59, tzinfo=timezone.utc)


def test_late_penalty_is_a_percentage_of_raw_score():
    result = score_attempt(
        raw_score=80,
        total_points=100,
        late_penalty_rate=10,
        is_late=is_late_submission(DUE, DUE + timedelta(hours=1)),
    )

    assert result.is_late is True
    assert result.penalty_amount == 8
    assert result.final_score == 72
    assert result.final_percentage == 72
    assert result.percentage_score == 80
    assert result.late_penalty_applied == 8
    # the raw score is kept next to the final one
    assert result.raw_score == 80


def test_on_time_submission_has_no_penalty():
    result = score_attempt(80, 100, 10, is_late=is_late_submission(DUE, DUE - timedelta(minutes=5)))

    assert result.is_late is False
    assert result.penalty_amount == 0
    assert result.final_score == 80
    assert result.late_penalty_applied == 0


def test_submission_exactly_at_due_date_is_not_late():
    assert is_late_submission(DUE, DUE) is False
    assert is_late_submission(DUE, DUE + timedelta(seconds=1)) is True


def test_no_due_date_is_never_late():
    assert is_late_submission(None, DUE + timedelta(days=365)) is False


def test_penalty_never_exceeds_raw_score():
    result = score_attempt(50, 100, late_penalty_rate=100, is_late=True)
    assert result.final_score == 0
    assert result.late_penalty_applied == 50

    result = score_attempt(50, 100, late_penalty_rate=250, is_late=True)
    assert result.final_score == 0
    assert result.penalty_amount == 50


@pytest.mark.parametrize("rate, expected", [(None, 0.0), (-5, 0.0), (0, 0.0), (12.5, 12.5), (150, 100.0)])
def test_clamp_penalty_rate(rate, expected):
    assert clamp_penalty_rate(rate) == expected


def test_zero_total_points_yields_zero_percentage():
    result = score_attempt(0, 0, late_penalty_rate=10, is_late=False)
    assert result.percentage_score == 0
    assert result.final_percentage == 0


@pytest.mark.parametrize("raw", [0, 0.5, 33.3, 99.99, 100])
@pytest.mark.parametrize("rate", [0, 7, 50, 100])
@pytest.mark.parametrize("late", [True, False])
def test_scores_stay_within_bounds(raw, rate, late):
    result = score_attempt(raw, 100, rate, is_late=late)

    assert 0 <= result.percentage_score <= 100
    assert 0 <= result.final_percentage <= 100
    assert 0 <= result.final_score <= result.raw_score
    if late and rate > 0 and raw > 0:
        assert result.final_score < result.raw_score


def test_scores_are_rounded_to_two_decimals():
    result = score_attempt(33.333, 90, late_penalty_rate=7, is_late=True)
    assert result.penalty_amount == 2.33
    assert result.final_score == 31.0
    assert result.final_percentage == 34.44


def test_naive_datetimes_are_treated_as_utc():
    naive = datetime(2026, 3, 1, 12, 0)
    assert as_utc(naive) == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    plus_two = timezone(timedelta(hours=2))
    assert as_utc(datetime(2026, 3, 1, 14, 0, tzinfo=plus_two)) == as_utc(naive)
