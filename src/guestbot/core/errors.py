"""Error taxonomy for the request security pipeline.

Every error carries a machine-readable ``kind`` for internal logging and a
``public_message`` drawn from a small fixed catalogue. Only the public
message may ever reach a guest or owner; the constructor message is for
logs.
"""

from __future__ import annotations

from enum import Enum
from typing import Final


class FailurePolicy(Enum):
    """What a check does when its backing infrastructure fails."""

    OPEN = "open"  # permit the operation
    CLOSED = "closed"  # deny the operation


MSG_TOO_MANY_REQUESTS: Final[str] = "Too many requests. Please wait a moment and try again."
MSG_NOT_FOUND: Final[str] = "No active booking found. Please check your phone number."
MSG_INVALID_INPUT: Final[str] = "Please check your input and try again."
MSG_INJECTION: Final[str] = (
    "I'm here to help with questions about your stay! What would you like to know?"
)
MSG_BLOCKED_URL: Final[str] = "That calendar URL cannot be used. Please provide a public iCal link."
MSG_FETCH_FAILED: Final[str] = "We couldn't download that calendar. Please try again later."
MSG_RESOURCE_NOT_FOUND: Final[str] = "The requested resource was not found."
MSG_ACCESS_DENIED: Final[str] = "You do not have permission to perform this action."
MSG_AUTHENTICATION: Final[str] = "Please sign in to continue."
MSG_INTERNAL: Final[str] = "Something went wrong. Please try again later."


class GuestBotError(RuntimeError):
    """Base class for all errors raised by the pipeline."""

    kind: str = "internal_error"
    category: str = "infrastructure"
    status_code: int = 500
    public_message: str = MSG_INTERNAL

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.kind)
        self.detail = detail or self.kind


# --- Policy denials -------------------------------------------------------------------


class PolicyDenied(GuestBotError):
    """A rate limit or lockout refused the request."""

    kind = "policy_denied"
    category = "policy"
    status_code = 429
    public_message = MSG_TOO_MANY_REQUESTS


class RateLimited(PolicyDenied):
    kind = "rate_limited"


# --- Validation rejections ------------------------------------------------------------


class ValidationRejected(GuestBotError):
    """Malformed or adversarial input."""

    kind = "validation_rejected"
    category = "validation"
    status_code = 400
    public_message = MSG_INVALID_INPUT


class InvalidInput(ValidationRejected):
    kind = "invalid_input"


class InjectionDetected(ValidationRejected):
    kind = "injection_detected"
    public_message = MSG_INJECTION


# --- Security blocks ------------------------------------------------------------------


class SecurityBlocked(GuestBotError):
    """A security boundary refused the operation."""

    kind = "security_blocked"
    category = "security"
    status_code = 400
    public_message = MSG_BLOCKED_URL


class BlockedPrivateAddress(SecurityBlocked):
    kind = "blocked_private_address"


class BlockedProtocol(SecurityBlocked):
    kind = "blocked_protocol"


class TooManyRedirects(SecurityBlocked):
    kind = "too_many_redirects"


class InvalidRedirect(SecurityBlocked):
    kind = "invalid_redirect"


class FetchTimeout(SecurityBlocked):
    kind = "fetch_timeout"
    status_code = 504
    public_message = MSG_FETCH_FAILED


class SizeExceeded(SecurityBlocked):
    kind = "size_exceeded"
    status_code = 413
    public_message = MSG_FETCH_FAILED


# --- Infrastructure -------------------------------------------------------------------


class InfrastructureFailure(GuestBotError):
    kind = "infrastructure_failure"


class StoreError(InfrastructureFailure):
    kind = "store_error"


class UpstreamError(InfrastructureFailure):
    kind = "upstream_error"
    status_code = 502


# --- Lookup / ownership ---------------------------------------------------------------


class ResourceNotFound(GuestBotError):
    kind = "not_found"
    category = "lookup"
    status_code = 404
    public_message = MSG_RESOURCE_NOT_FOUND


class AccessDenied(GuestBotError):
    kind = "access_denied"
    category = "lookup"
    status_code = 403
    public_message = MSG_ACCESS_DENIED


class AuthenticationRequired(GuestBotError):
    kind = "authentication_required"
    category = "lookup"
    status_code = 401
    public_message = MSG_AUTHENTICATION


def error_payload(error: BaseException) -> dict[str, object]:
    """Return the client-safe JSON body for ``error``.

    Unexpected exceptions collapse to the generic internal error.
    """
    if isinstance(error, GuestBotError):
        code, message = error.kind, error.public_message
    else:
        code, message = GuestBotError.kind, MSG_INTERNAL
    return {"success": False, "error": {"code": code, "message": message}}
