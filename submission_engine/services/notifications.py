import logging
from typing import Protocol

logger = logging.getLogger(__name__)

EVENT_SUBMITTED = "submission.submitted"
EVENT_GRADED = "submission.graded"


class Notifier(Protocol):
    def notify(self, event: str, submission) -> None: ...


class LoggingNotifier:
    """Default notifier: records the event in the application log."""

    def notify(self, event: str, submission) -> None:
        logger.info(
            "notify %s: submission=%s assignment=%s user=%s attempt=%s",
            event,
            submission.id,
            submission.assignment_id,
            submission.user_id,
            submission.attempt_number,
        )


def dispatch(notifier: Notifier | None, event: str, submission) -> None:
    """Best effort: a failing notifier never affects the transition that triggered it."""
    if notifier is None:
        return
    try:
        notifier.notify(event, submission)
    except Exception:
        logger.exception("Notification %s for submission %s failed", event, submission.id)
