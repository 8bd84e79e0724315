"""Marcus — Error Taxonomy.

Every upstream failure an adapter can hit is classified into one of the
``AdapterError`` subclasses below before it leaves the adapter. The aggregator
only ever sees these, plus ``InvalidArgument`` for caller contract violations.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classification of a failed call."""

    MISSING_CREDENTIALS = "missing_credentials"
    AUTH_EXPIRED = "auth_expired"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    MALFORMED_RESPONSE = "malformed_response"


class MarcusError(Exception):
    """Base class for all errors raised by this package."""


class AdapterError(MarcusError):
    """Typed failure raised at a platform adapter boundary."""

    kind: ErrorKind = ErrorKind.UPSTREAM_UNAVAILABLE
    retryable: bool = False

    def __init__(
        self,
        message: str,
        platform: Optional[str] = None,
        status_code: int = 0,
        retry_after: Optional[float] = None,
    ):
        self.message = message
        self.platform = platform
        self.status_code = status_code
        self.retry_after = retry_after
        self.attempts = 1
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class MissingCredentials(AdapterError):
    kind = ErrorKind.MISSING_CREDENTIALS


class AuthExpired(AdapterError):
    """Credentials were rejected (revoked refresh token, expired access token)."""

    kind = ErrorKind.AUTH_EXPIRED


class RateLimited(AdapterError):
    kind = ErrorKind.RATE_LIMITED
    retryable = True


class UpstreamUnavailable(AdapterError):
    """Network failure, timeout or 5xx from the platform."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE
    retryable = True


class MalformedResponse(AdapterError):
    """The platform answered with a payload we cannot interpret."""

    kind = ErrorKind.MALFORMED_RESPONSE


class InvalidArgument(MarcusError, ValueError):
    """Caller misuse: bad platform set, invalid window, mismatched snapshots."""


class RetriesExhausted(MarcusError):
    """A bounded retry loop ran out of attempts."""

    def __init__(self, operation: str, attempts: int, last_error: Optional[BaseException] = None):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} failed after {attempts} attempts: {last_error}"
        )
