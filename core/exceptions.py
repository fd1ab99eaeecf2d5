"""
Domain error taxonomy.

Every error carries an HTTP status and a stable error code so the error
handlers in ``core.middleware.error_handling`` can render it without knowing
the individual classes.
"""

from typing import Any


class AssessmentEngineError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


# Validation errors (client caused)

class InvalidRequestError(AssessmentEngineError):
    status_code = 400
    error_code = "INVALID_REQUEST"


class PreconditionFailedError(AssessmentEngineError):
    """A rule that must hold before an operation may run is violated."""

    status_code = 422
    error_code = "PRECONDITION_FAILED"


# State conflicts

class StateConflictError(AssessmentEngineError):
    status_code = 409
    error_code = "STATE_CONFLICT"


class InvalidTransitionError(StateConflictError):
    error_code = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Invalid transition from {current} to {requested}",
            details={"current": current, "requested": requested},
        )
        self.current = current
        self.requested = requested


class InstanceSubmittedError(StateConflictError):
    status_code = 403
    error_code = "ALREADY_SUBMITTED"

    def __init__(self, message: str = "Test already submitted"):
        super().__init__(message)


class StageLockedError(StateConflictError):
    status_code = 403
    error_code = "STAGE_LOCKED"

    def __init__(self, current_stage: int, requested_stage: int):
        super().__init__(
            f"You must complete stage {current_stage} before accessing stage {requested_stage}",
            details={"current_stage": current_stage, "requested_stage": requested_stage},
        )


# Lookups

class NotFoundError(AssessmentEngineError):
    """Missing entity, or one the caller does not own."""

    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")
        self.resource = resource


# Invite redemption. Each failure keeps its own code.

class InviteError(AssessmentEngineError):
    status_code = 403
    error_code = "INVITE_ERROR"


class InviteInvalidError(InviteError):
    status_code = 404
    error_code = "INVITE_INVALID"

    def __init__(self):
        super().__init__("Invalid invite link")


class InviteExpiredError(InviteError):
    status_code = 410
    error_code = "INVITE_EXPIRED"

    def __init__(self):
        super().__init__("This invite link has expired")


class InviteAlreadyUsedError(InviteError):
    status_code = 410
    error_code = "INVITE_ALREADY_USED"

    def __init__(self):
        super().__init__("This invite link has already been used")


class AssessmentNotActiveError(InviteError):
    error_code = "ASSESSMENT_NOT_ACTIVE"

    def __init__(self):
        super().__init__("This assessment is not currently active")


class InviteWindowNotOpenError(InviteError):
    error_code = "WINDOW_NOT_OPEN"

    def __init__(self):
        super().__init__("This assessment is not yet available")


class InviteWindowClosedError(InviteError):
    error_code = "WINDOW_CLOSED"

    def __init__(self):
        super().__init__("This assessment window has closed")


# Collaborators

class CollaboratorError(AssessmentEngineError):
    """An external collaborator (LLM, queue) failed. Never shown verbatim."""

    status_code = 502
    error_code = "UPSTREAM_FAILURE"
    public_message = "An upstream service failed to produce a usable result"


class AuthenticationError(AssessmentEngineError):
    status_code = 401
    error_code = "AUTHENTICATION_REQUIRED"
