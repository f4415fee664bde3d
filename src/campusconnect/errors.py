from abc import ABC
from enum import StrEnum


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when credentials are rejected at sign-in."""

    def __init__(self, message: str = "Invalid credentials.") -> None:
        super().__init__(message)


class ValidationError(UserError):
    """Raised when user input fails validation."""


class ConflictError(UserError):
    """Raised when a unique value (email, admin code) is already taken."""


class AuthErrorKind(StrEnum):
    """Why a session-layer operation refused the caller."""

    UNAUTHENTICATED = "unauthenticated"
    INVALID_TOKEN = "invalid_token"
    SESSION_INVALID = "session_invalid"
    ACCESS_DENIED = "access_denied"
    SESSION_MISMATCH = "session_mismatch"
    SESSION_EXPIRED = "session_expired"
    SESSION_ACTIVE = "session_active"
    DEPENDENCY_FAILURE = "dependency_failure"

    @property
    def status_code(self) -> int:
        match self:
            case AuthErrorKind.UNAUTHENTICATED:
                return 401
            case AuthErrorKind.SESSION_ACTIVE:
                return 409
            case AuthErrorKind.DEPENDENCY_FAILURE:
                return 503
            case _:
                return 403

    @property
    def default_message(self) -> str:
        return _DEFAULT_MESSAGES[self]


_DEFAULT_MESSAGES = {
    AuthErrorKind.UNAUTHENTICATED: "Authentication required.",
    AuthErrorKind.INVALID_TOKEN: "Invalid or expired token.",
    AuthErrorKind.SESSION_INVALID: "Session invalid. Please sign in again.",
    AuthErrorKind.ACCESS_DENIED: "Access denied.",
    AuthErrorKind.SESSION_MISMATCH: "This account has been signed in elsewhere. Please sign in again.",
    AuthErrorKind.SESSION_EXPIRED: "Session expired. Please sign in again.",
    AuthErrorKind.SESSION_ACTIVE: "This account already has an active session.",
    AuthErrorKind.DEPENDENCY_FAILURE: "Unable to verify the session right now. Please try again.",
}


class SessionError(UserError):
    """Raised by the session layer; ``kind`` says which check failed.

    Callers branch on ``kind`` (``match err.kind``) rather than on
    exception subclasses.
    """

    def __init__(self, kind: AuthErrorKind, message: str | None = None) -> None:
        super().__init__(message or kind.default_message)
        self.kind = kind

    @property
    def status_code(self) -> int:
        return self.kind.status_code
