"""
Error taxonomy surfaced to API callers.

Every failure resolves to one of these. Each carries:
- status_code: HTTP status the exception handler responds with
- code: stable machine-readable key (clients branch on it)
- message: user-safe text (diagnostic detail goes to the log, never here)

Unauthorized is special: clients react to code "unauthorized" by refreshing
the identity token (or signing out) and retrying instead of showing an error.
"""

from typing import Optional


class CollabError(Exception):
    """Base class for all errors the API reports to callers."""

    status_code: int = 500
    code: str = "error"
    default_message: str = "Something went wrong. Please try again later."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(CollabError):
    status_code = 400
    code = "invalid_request"
    default_message = "Invalid request"


class Unauthorized(CollabError):
    status_code = 401
    code = "unauthorized"
    default_message = "Session expired. Please refresh the page."


class Forbidden(CollabError):
    status_code = 403
    code = "forbidden"
    default_message = "You are not allowed to do that."


class NotFound(CollabError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class AlignmentTimeout(CollabError):
    status_code = 408
    code = "timeout"
    default_message = "Analysis timed out. Please try again."


class ExternalServiceError(CollabError):
    status_code = 500
    code = "external_service_error"
    default_message = "Could not generate analysis. Please try again later."


class ConfigurationError(CollabError):
    status_code = 500
    code = "configuration_error"
    default_message = "Alignment service is not configured."


# Retry makes sense only where the failure is transient
RETRYABLE_CODES = {AlignmentTimeout.code, ExternalServiceError.code}


def error_body(exc: CollabError) -> dict:
    """JSON body for an error response."""
    return {
        "error": exc.message,
        "code": exc.code,
        "retryable": exc.code in RETRYABLE_CODES,
    }
