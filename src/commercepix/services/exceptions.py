"""Service error hierarchy for CommercePix.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors, carries the HTTP status it maps to
- Request errors (400-429): raised by services, translated by the app's exception handler
- UpstreamError: image provider failures, split into TransientError and PermanentError
  (never surfaced over HTTP; recorded on the failed job instead)
"""

from datetime import datetime
from typing import Optional


class ServiceError(Exception):
    """Base exception for all service errors."""

    status_code: int = 500
    error_type: str = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Malformed or inconsistent request input."""

    status_code = 400
    error_type = "VALIDATION_ERROR"


class UnauthorizedError(ServiceError):
    """Missing or invalid credentials."""

    status_code = 401
    error_type = "UNAUTHORIZED"


class PaymentRequiredError(ServiceError):
    """Not enough credits for the requested operation."""

    status_code = 402
    error_type = "NO_CREDITS"


class ForbiddenError(ServiceError):
    """Authenticated, but the resource belongs to someone else."""

    status_code = 403
    error_type = "FORBIDDEN"


class NotFoundError(ServiceError):
    status_code = 404
    error_type = "NOT_FOUND"


class RateLimitExceededError(ServiceError):
    """Per-minute or per-day generation limit reached.

    Attributes:
        limit: Threshold of the tier that blocked the request
        remaining: Always 0 for a blocked request
        reset_at: When the blocking window ends (naive UTC)
        blocked_by: "per_minute" or "per_day"
    """

    status_code = 429
    error_type = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str, *, limit: int, reset_at: datetime, blocked_by: str):
        super().__init__(message)
        self.limit = limit
        self.remaining = 0
        self.reset_at = reset_at
        self.blocked_by = blocked_by


class InternalError(ServiceError):
    status_code = 500
    error_type = "INTERNAL_ERROR"


class StorageError(ServiceError):
    """Object storage operation failed."""

    status_code = 502
    error_type = "STORAGE_ERROR"


class UpstreamError(ServiceError):
    """Base exception for image provider errors."""

    status_code = 502
    error_type = "UPSTREAM_ERROR"
    retryable: bool = False

    def __init__(self, message: str, provider_status: Optional[int] = None):
        super().__init__(message)
        self.provider_status = provider_status


class TransientError(UpstreamError):
    """Provider failure that may succeed later.

    Examples:
    - Network timeouts
    - Rate limit exceeded (429)
    - Service unavailable (503)
    """

    error_type = "UPSTREAM_TRANSIENT"
    retryable = True


class ContentPolicyError(UpstreamError):
    """Provider refused the input or prompt on safety grounds."""

    error_type = "CONTENT_POLICY"


class PermanentError(UpstreamError):
    """Provider failure that will not succeed on retry.

    Examples:
    - Authentication failures (401, 403)
    - Invalid request parameters (400)
    - Unexpected output format
    """

    error_type = "UPSTREAM_PERMANENT"
