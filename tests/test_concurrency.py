import threading

import pytest

from conftest import TestingSessionLocal
from submission_engine.core.errors import ConflictError
from submission_engine.models.submission import FINALIZED_STATUSES, Submission, SubmissionStatus
from submission_engine.services import attempts
from submission_engine.services import submissions as service

RACE_CONFLICTS = {ConflictError.NOT_IN_DRAFT, ConflictError.CONCURRENT_MODIFICATION}


def run_concurrently(n, fn):
    """Run fn(session) in n threads released together; returns (results, conflicts)."""
    barrier = threading.Barrier(n)
    results, conflicts, unexpected = [], [], []
    lock = threading.Lock()

    def worker():
        db = TestingSessionLocal()
        try:
            barrier.wait()
            value = fn(db)
            with lock:
                results.append(value)
        except ConflictError as exc:
            with lock:
                conflicts.append(exc.kind)
        except Exception as exc:  # surfaced through the assertion below
            with lock:
                unexpected.append(exc)
        finally:
            db.close()

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert unexpected == []
    return results, conflicts


def test_concurrent_submits_on_one_draft(ids, student):
    db = TestingSessionLocal()
    try:
        service.save_draft(db, student, ids["assignment"], "answer")
    finally:
        db.close()

    results, conflicts = run_concurrently(
        5, lambda db: service.submit(db, student, ids["assignment"]).id
    )

    assert len(results) == 1
    assert len(conflicts) == 4
    assert set(conflicts) <= RACE_CONFLICTS

    db = TestingSessionLocal()
    try:
        assert attempts.submitted_count(db, ids["assignment"], ids["student"]) == 1
    finally:
        db.close()


def test_racing_submits_never_exceed_max_attempts(ids, student, instructor):
    db = TestingSessionLocal()
    try:
        first = service.submit(db, student, ids["assignment"], "attempt 1")
        service.grade(db, instructor, first.id, 40)
        service.resubmit(db, student, first.id)
    finally:
        db.close()

    run_concurrently(4, lambda db: service.submit(db, student, ids["assignment"], "attempt 2").id)

    db = TestingSessionLocal()
    try:
        finalized = (
            db.query(Submission)
            .filter(
                Submission.assignment_id == ids["assignment"],
                Submission.user_id == ids["student"],
                Submission.status.in_(FINALIZED_STATUSES),
            )
            .count()
        )
        assert finalized == 2
    finally:
        db.close()


def test_concurrent_first_drafts_leave_a_single_draft(ids, student):
    run_concurrently(4, lambda db: service.save_draft(db, student, ids["assignment"], "hello").id)

    db = TestingSessionLocal()
    try:
        drafts = (
            db.query(Submission)
            .filter(
                Submission.assignment_id == ids["assignment"],
                Submission.user_id == ids["student"],
            )
            .all()
        )
        assert len(drafts) == 1
        assert drafts[0].status == SubmissionStatus.DRAFT
        assert drafts[0].attempt_number == 1
    finally:
        db.close()


def test_stale_submit_after_another_request_submitted(ids, student):
    slow = TestingSessionLocal()
    fast = TestingSessionLocal()
    try:
        service.save_draft(fast, student, ids["assignment"], "answer")
        # the slow request has read the draft before the fast one commits
        assert attempts.open_draft(slow, ids["assignment"], ids["student"]) is not None

        service.submit(fast, student, ids["assignment"])

        with pytest.raises(ConflictError) as exc:
            service.submit(slow, student, ids["assignment"])
        assert exc.value.kind in RACE_CONFLICTS
    finally:
        slow.close()
        fast.close()


def test_grade_racing_resubmit_is_rejected(ids, student, instructor):
    grader = TestingSessionLocal()
    owner = TestingSessionLocal()
    try:
        sub = service.submit(owner, student, ids["assignment"], "attempt 1")

        # grader loads the attempt, then the student reopens it before the grade lands
        service.get_submission_state(grader, instructor, sub.id)
        service.resubmit(owner, student, sub.id)

        with pytest.raises(ConflictError) as exc:
            service.grade(grader, instructor, sub.id, 88)
        assert exc.value.kind == ConflictError.CONCURRENT_MODIFICATION

        check = TestingSessionLocal()
        try:
            prior = check.get(Submission, sub.id)
            assert prior.status == SubmissionStatus.SUBMITTED
            assert prior.raw_score is None
        finally:
            check.close()
    finally:
        grader.close()
        owner.close()


def test_resubmit_racing_grade_is_rejected(ids, student, instructor):
    grader = TestingSessionLocal()
    owner = TestingSessionLocal()
    try:
        sub = service.submit(owner, student, ids["assignment"], "attempt 1")

        # student's request loaded the attempt, then the grade commits first
        service.get_submission_state(owner, student, sub.id)
        service.grade(grader, instructor, sub.id, 88)

        with pytest.raises(ConflictError) as exc:
            service.resubmit(owner, student, sub.id)
        assert exc.value.kind == ConflictError.CONCURRENT_MODIFICATION

        check = TestingSessionLocal()
        try:
            assert len(attempts.attempt_history(check, ids["assignment"], ids["student"])) == 1
        finally:
            check.close()
    finally:
        grader.close()
        owner.close()
