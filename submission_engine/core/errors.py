from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class SubmissionEngineError(Exception):
    """Base class for domain errors raised by the submission services."""

    status_code = 400
    code = "error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(SubmissionEngineError):
    status_code = 400
    code = "ValidationError"


class NotFoundError(SubmissionEngineError):
    status_code = 404
    code = "NotFound"

    def __init__(self, entity: str, entity_id=None):
        if entity_id is None:
            message = f"{entity} not found"
        else:
            message = f"{entity} {entity_id} not found"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(SubmissionEngineError):
    """A domain rule rejected the transition. `kind` names the rule."""

    status_code = 409

    # kinds
    ASSIGNMENT_OVERDUE = "AssignmentOverdue"
    ASSIGNMENT_NOT_PUBLISHED = "AssignmentNotPublished"
    MAX_ATTEMPTS_REACHED = "MaxAttemptsReached"
    NOT_IN_DRAFT = "NotInDraft"
    NOT_SUBMITTED = "NotSubmitted"
    ALREADY_GRADED = "AlreadyGraded"
    ATTEMPT_ARCHIVED = "AttemptArchived"
    CONCURRENT_MODIFICATION = "ConcurrentModification"
    PEER_REVIEW_DISABLED = "PeerReviewDisabled"

    def __init__(self, kind: str, message: str):
        super().__init__(message, code=kind)
        self.kind = kind


class AuthorizationError(SubmissionEngineError):
    status_code = 403
    code = "AuthorizationError"


class ExternalServiceError(SubmissionEngineError):
    status_code = 502
    code = "ExternalServiceError"


def concurrent_modification(what: str = "Submission") -> ConflictError:
    return ConflictError(
        ConflictError.CONCURRENT_MODIFICATION,
        f"{what} was modified by another request; reload and retry",
    )


async def submission_engine_error_handler(request: Request, exc: SubmissionEngineError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SubmissionEngineError, submission_engine_error_handler)
