"""Error taxonomy shared by the service layer and the HTTP handlers."""


class ForumError(Exception):
    """Base class for errors surfaced to the actor."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(ForumError):
    """No session, or the session does not resolve to a profile."""

    status_code = 401


class AccessDenied(Unauthorized):
    """Authenticated, but the role or category does not allow the action."""

    status_code = 403


class ValidationError(ForumError):
    status_code = 400


class NotFound(ForumError):
    status_code = 404


class ConflictError(ForumError):
    """A uniqueness constraint rejected the write (e.g. a duplicate vote)."""

    status_code = 409


class TransientStorageError(ForumError):
    """The database or object store failed; the caller may retry."""

    status_code = 503


__all__ = [
    "ForumError",
    "Unauthorized",
    "AccessDenied",
    "ValidationError",
    "NotFound",
    "ConflictError",
    "TransientStorageError",
]
