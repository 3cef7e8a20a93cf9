"""
core/errors.py -- Error taxonomy shared by auth/ and api/.

Services raise these to express validation, policy and infrastructure
failures. api/main.py maps every AuthGateError to a `{"error": message}`
body with the class's HTTP status. `message` is always safe to show a
client; underlying causes stay in the exception chain and the logs.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

from __future__ import annotations

from enum import Enum


class AuthGateError(Exception):
    """Base class for all errors that have a client-facing rendering."""

    status_code: int = 500
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthGateError):
    """Missing or malformed input. `field` names the first failing field."""

    status_code = 400
    default_message = "Invalid input."

    def __init__(self, message: str | None = None, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ConflictReason(str, Enum):
    EMAIL_EXISTS = "email_exists"


class ConflictError(AuthGateError):
    """A unique key (the canonical email) is already taken."""

    status_code = 400
    default_message = "User with this email already exists"

    def __init__(self, reason: ConflictReason = ConflictReason.EMAIL_EXISTS) -> None:
        super().__init__()
        self.reason = reason


class AuthErrorReason(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    UNAUTHENTICATED = "unauthenticated"
    INVALID_TOKEN = "invalid_token"


# Unknown email and wrong password share one message; missing, malformed and
# expired tokens share another. The reason is kept for logs and tests only.
_AUTH_MESSAGES = {
    AuthErrorReason.INVALID_CREDENTIALS: "Invalid email or password",
    AuthErrorReason.UNAUTHENTICATED: "Authentication required",
    AuthErrorReason.INVALID_TOKEN: "Authentication required",
}


class AuthError(AuthGateError):
    status_code = 401

    def __init__(self, reason: AuthErrorReason) -> None:
        super().__init__(_AUTH_MESSAGES[reason])
        self.reason = reason


class RateLimitError(AuthGateError):
    status_code = 429
    default_message = "Too many requests, please try again later"

    def __init__(self, retry_after: int) -> None:
        super().__init__()
        self.retry_after = retry_after


class TransientError(AuthGateError):
    """Repository unavailable or timed out. Safe for the client to retry."""

    status_code = 503
    default_message = "Service temporarily unavailable, please retry"


class FatalError(AuthGateError):
    """Unexpected internal failure. Details are logged, never returned."""

    status_code = 500
