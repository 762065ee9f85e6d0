"""Error taxonomy for the CV profile service.

Two families live here:

- ``AppError`` and its subclasses: errors we raise ourselves. They carry a
  machine-readable ``ErrorCode``, an HTTP status and structured ``details``
  so the API layer can render them without guessing.
- ``classify_error``: a pure mapping from *any* exception (ours, the OpenAI
  SDK's, httpx's, or a duck-typed object with a ``status``) to a closed set
  of ``ErrorKind`` values. Retry decisions are made from the kind only.
"""

from enum import Enum
from typing import Any, NamedTuple

import httpx
import openai


class ErrorCode(str, Enum):
    # File
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    FILE_INVALID_TYPE = "FILE_INVALID_TYPE"
    FILE_EXTRACTION_FAILED = "FILE_EXTRACTION_FAILED"
    FILE_CORRUPTED = "FILE_CORRUPTED"

    # Upstream AI
    OPENAI_API_ERROR = "OPENAI_API_ERROR"
    OPENAI_RATE_LIMIT = "OPENAI_RATE_LIMIT"
    OPENAI_TIMEOUT = "OPENAI_TIMEOUT"
    OPENAI_INVALID_RESPONSE = "OPENAI_INVALID_RESPONSE"
    OPENAI_NO_CREDITS = "OPENAI_NO_CREDITS"
    OPENAI_BAD_REQUEST = "OPENAI_BAD_REQUEST"

    # Resilience
    OPERATION_TIMEOUT = "OPERATION_TIMEOUT"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"

    # Processing
    CV_PARSING_FAILED = "CV_PARSING_FAILED"
    PROFILE_GENERATION_FAILED = "PROFILE_GENERATION_FAILED"

    # System
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class AppError(Exception):
    """Base class for errors raised by this service."""

    status_code = 500

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": self.message,
            "code": self.code.value,
            "details": self.details,
        }


class FileError(AppError):
    status_code = 400


class UpstreamAIError(AppError):
    status_code = 502


class ValidationError(AppError):
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(ErrorCode.VALIDATION_ERROR, message, details=details)


class OperationTimeoutError(AppError):
    """Raised by ``with_timeout`` when the bound elapses first."""

    status_code = 504

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(
            ErrorCode.OPERATION_TIMEOUT,
            f"Operation timed out after {timeout:g}s",
            details={"timeout": timeout},
        )


class CircuitOpenError(AppError):
    """Raised without calling the guarded operation while the circuit is open."""

    status_code = 503

    def __init__(self, retry_in: float, name: str = "", probing: bool = False):
        self.retry_in = retry_in
        label = f"Circuit '{name}'" if name else "Circuit"
        if probing:
            message = f"{label} is half-open and a recovery probe is in flight."
        else:
            message = f"{label} is open. Retry in {round(retry_in)}s."
        super().__init__(
            ErrorCode.CIRCUIT_OPEN,
            message,
            details={"retry_in_seconds": round(retry_in, 1), "circuit": name},
        )


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class ErrorKind(str, Enum):
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    QUOTA_EXCEEDED = "quota_exceeded"
    CLIENT_ERROR = "client_error"
    CIRCUIT_OPEN = "circuit_open"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({
    ErrorKind.RATE_LIMIT,
    ErrorKind.TIMEOUT,
    ErrorKind.SERVER_ERROR,
    ErrorKind.CONNECTION,
})

_CODE_KINDS = {
    ErrorCode.OPENAI_RATE_LIMIT: ErrorKind.RATE_LIMIT,
    ErrorCode.OPENAI_TIMEOUT: ErrorKind.TIMEOUT,
    ErrorCode.OPERATION_TIMEOUT: ErrorKind.TIMEOUT,
    ErrorCode.OPENAI_API_ERROR: ErrorKind.SERVER_ERROR,
    ErrorCode.OPENAI_NO_CREDITS: ErrorKind.QUOTA_EXCEEDED,
    ErrorCode.OPENAI_BAD_REQUEST: ErrorKind.CLIENT_ERROR,
    ErrorCode.OPENAI_INVALID_RESPONSE: ErrorKind.CLIENT_ERROR,
    ErrorCode.CONFIGURATION_ERROR: ErrorKind.AUTHENTICATION,
    ErrorCode.CIRCUIT_OPEN: ErrorKind.CIRCUIT_OPEN,
}

_KIND_CODES = {
    ErrorKind.RATE_LIMIT: ErrorCode.OPENAI_RATE_LIMIT,
    ErrorKind.TIMEOUT: ErrorCode.OPENAI_TIMEOUT,
    ErrorKind.SERVER_ERROR: ErrorCode.OPENAI_API_ERROR,
    ErrorKind.CONNECTION: ErrorCode.OPENAI_API_ERROR,
    ErrorKind.AUTHENTICATION: ErrorCode.CONFIGURATION_ERROR,
    ErrorKind.QUOTA_EXCEEDED: ErrorCode.OPENAI_NO_CREDITS,
    ErrorKind.CLIENT_ERROR: ErrorCode.OPENAI_BAD_REQUEST,
    ErrorKind.CIRCUIT_OPEN: ErrorCode.CIRCUIT_OPEN,
    ErrorKind.UNKNOWN: ErrorCode.UNKNOWN_ERROR,
}

_TIMEOUT_TYPES = (TimeoutError, httpx.TimeoutException, openai.APITimeoutError)
_CONNECTION_TYPES = (ConnectionError, httpx.ConnectError, openai.APIConnectionError)

_MAX_CAUSE_DEPTH = 5


class NormalizedError(NamedTuple):
    status: int | None
    message: str
    cause: BaseException | None


def _status_of(error: object) -> int | None:
    for candidate in (
        getattr(error, "status_code", None),
        getattr(error, "status", None),
        getattr(getattr(error, "response", None), "status_code", None),
    ):
        if isinstance(candidate, int) and not isinstance(candidate, bool):
            return candidate
    return None


def normalize_error(error: object) -> NormalizedError:
    """Reduce an arbitrary error object to (status, message, cause)."""
    message = getattr(error, "message", None)
    if not isinstance(message, str) or not message:
        message = str(error)
    cause = getattr(error, "__cause__", None)
    return NormalizedError(_status_of(error), message, cause)


def classify_error(error: object, _depth: int = 0) -> ErrorKind:
    """Map any error to an ``ErrorKind``.

    Our own ``AppError``s classify by code, since their ``status_code`` is
    the HTTP status we answer with, not the upstream's.
    """
    if isinstance(error, AppError):
        return _CODE_KINDS.get(error.code, ErrorKind.UNKNOWN)
    if isinstance(error, _TIMEOUT_TYPES):
        return ErrorKind.TIMEOUT
    if isinstance(error, _CONNECTION_TYPES):
        return ErrorKind.CONNECTION

    status, message, cause = normalize_error(error)
    text = message.lower()

    # quota before rate limit: OpenAI reports exhausted credits as a 429
    if "insufficient_quota" in text or "credits" in text:
        return ErrorKind.QUOTA_EXCEEDED
    if status == 429 or "rate limit" in text:
        return ErrorKind.RATE_LIMIT
    if status == 401 or "api key" in text or "authentication" in text:
        return ErrorKind.AUTHENTICATION
    if status == 408 or "timeout" in text or "timed out" in text:
        return ErrorKind.TIMEOUT
    if status is not None and status >= 500:
        return ErrorKind.SERVER_ERROR
    if status is not None and 400 <= status < 500:
        return ErrorKind.CLIENT_ERROR

    if cause is not None and _depth < _MAX_CAUSE_DEPTH:
        return classify_error(cause, _depth + 1)
    return ErrorKind.UNKNOWN


def is_retryable_error(error: object) -> bool:
    return classify_error(error) in RETRYABLE_KINDS


def upstream_error_code(kind: ErrorKind) -> ErrorCode:
    """ErrorCode used when wrapping a raw upstream failure of this kind."""
    return _KIND_CODES[kind]


def user_friendly_message(error: BaseException) -> str:
    """Short message safe to show to an end user."""
    if isinstance(error, AppError):
        return error.message

    kind = classify_error(error)
    if kind == ErrorKind.RATE_LIMIT:
        return "Too many requests. Please try again in a few seconds."
    if kind == ErrorKind.TIMEOUT:
        return "Processing took too long. Please try again."
    if kind in (ErrorKind.AUTHENTICATION, ErrorKind.QUOTA_EXCEEDED):
        return "System configuration error. Please contact support."
    if isinstance(error, FileNotFoundError):
        return "The file could not be found."

    text = str(error).lower()
    if kind == ErrorKind.CONNECTION or "network" in text or "fetch" in text:
        return "Network error. Please check your connection."
    return "An unexpected error occurred. Please try again."
