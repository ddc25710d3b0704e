"""
Incident Triage - Error Taxonomy
Typed failures reported synchronously to callers.
"""


class TriageError(Exception):
    """Base class for all triage failures."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TriageError):
    """Incident, user, or timeline owner does not exist."""

    status_code = 404


class UnauthorizedError(TriageError):
    """Actor lacks the role required for a transition."""

    status_code = 403


class DuplicateConfirmationError(TriageError):
    """User already confirmed this incident."""

    status_code = 409


class InvalidInputError(TriageError):
    """Malformed value rejected before any mutation."""

    status_code = 400


class IncidentCodeCollisionError(TriageError):
    """Generated public incident code is already taken."""

    status_code = 409


class UsernameTakenError(TriageError):
    """Another account already holds this username."""

    status_code = 409
