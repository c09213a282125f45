"""Error taxonomy for hackathon account automation.

Every failure raised by an external call is mapped onto one of three
classes so the orchestrator can decide what to do with it:

- AuthorizationError: the caller is not allowed to act on the account.
  Fatal for that account, never for the run.
- TransientError: the service was unreachable, throttled or timed out.
  Retried with a bounded backoff.
- ExternalServiceError: anything else the service rejected. Recorded as a
  failed operation.

ConfigurationError lives in core.config next to the loader that raises it.
"""

from typing import Optional

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
)


class BaselineError(Exception):
    """Base exception for hackathon baseline operations."""

    pass


class AuthorizationError(BaselineError):
    """Raised when the calling identity may not perform an action."""

    pass


class TransientError(BaselineError):
    """Raised when an external call failed in a way worth retrying."""

    pass


class ExternalServiceError(BaselineError):
    """Raised when an external service rejected a call.

    Attributes:
        code: AWS error code, if the service reported one
    """

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code


AUTHORIZATION_ERROR_CODES = frozenset({
    "AccessDenied",
    "AccessDeniedException",
    "UnauthorizedOperation",
    "AuthorizationError",
    "InvalidClientTokenId",
    "ExpiredToken",
    "ExpiredTokenException",
})

TRANSIENT_ERROR_CODES = frozenset({
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "RequestTimeout",
    "RequestTimeoutException",
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "InternalFailure",
    "InternalError",
})

# Connection, TLS, proxy and timeout failures below the AWS API layer
TRANSIENT_BOTOCORE_ERRORS = (HTTPClientError, BotoConnectionError)


def classify_client_error(error: ClientError, action: str) -> BaselineError:
    """Map a botocore ClientError onto the error taxonomy.

    Args:
        error: ClientError raised by a boto3 call
        action: Short description of what was attempted, used as message prefix

    Returns:
        AuthorizationError, TransientError or ExternalServiceError
    """
    error_code = error.response.get("Error", {}).get("Code", "Unknown")
    error_message = error.response.get("Error", {}).get("Message", str(error))
    message = f"{action}: {error_code}: {error_message}"

    if error_code in AUTHORIZATION_ERROR_CODES:
        return AuthorizationError(message)
    if error_code in TRANSIENT_ERROR_CODES:
        return TransientError(message)
    return ExternalServiceError(message, code=error_code)


def classify_botocore_error(error: BotoCoreError, action: str) -> BaselineError:
    """Map any other botocore failure onto the error taxonomy.

    Args:
        error: BotoCoreError raised by a boto3 call
        action: Short description of what was attempted, used as message prefix

    Returns:
        TransientError for connection and timeout failures,
        ExternalServiceError for everything else
    """
    message = f"{action}: {error}"
    if isinstance(error, TRANSIENT_BOTOCORE_ERRORS):
        return TransientError(message)
    return ExternalServiceError(message, code=type(error).__name__)
