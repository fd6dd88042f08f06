"""Error taxonomy and classification for provider and engine failures.

Every failure that leaves the engine is expressed as one of the ``ErrorKind``
values together with a user-facing message and a ``should_retry`` flag.
Raw upstream payloads are never copied into the user-facing message.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Kinds of failure the engine can report."""
    INVALID_DATE = "INVALID_DATE"
    INVALID_LOCATION = "INVALID_LOCATION"
    NO_RESULTS = "NO_RESULTS"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    AUTH_FAILED = "AUTH_FAILED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    CACHE_ERROR = "CACHE_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


RETRYABLE_KINDS = frozenset({
    ErrorKind.RATE_LIMIT_EXCEEDED,
    ErrorKind.SERVICE_UNAVAILABLE,
    ErrorKind.NETWORK_ERROR,
})

USER_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.INVALID_DATE: "The requested date is in the past or invalid. Please select a future date.",
    ErrorKind.INVALID_LOCATION: "The airport or city code is not recognized. Please check your input.",
    ErrorKind.NO_RESULTS: "No results are available for this search. Try different dates or nearby locations.",
    ErrorKind.RATE_LIMIT_EXCEEDED: "Too many requests. Please wait a moment and try again.",
    ErrorKind.AUTH_FAILED: "Travel service authentication failed. Please contact support.",
    ErrorKind.SERVICE_UNAVAILABLE: "Travel service is temporarily unavailable. Please try again later.",
    ErrorKind.VALIDATION_ERROR: "Invalid request parameters. Please check your input.",
    ErrorKind.NETWORK_ERROR: "Network connection issue while contacting a travel service.",
    ErrorKind.CACHE_ERROR: "Unable to retrieve cached results. Please try again.",
    ErrorKind.UNKNOWN_ERROR: "An unexpected error occurred. Please try again or contact support.",
}


class AggregatorError(Exception):
    """Base error carrying an ``ErrorKind``."""

    default_kind = ErrorKind.UNKNOWN_ERROR

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind

    @property
    def should_retry(self) -> bool:
        return self.kind in RETRYABLE_KINDS


class ProviderError(AggregatorError):
    """A single provider failed to answer a query."""

    def __init__(self, provider: str, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message, kind)
        self.provider = provider

    @classmethod
    def from_http_error(cls, provider: str, exc: httpx.HTTPError) -> "ProviderError":
        """Wrap an httpx failure, keeping only the status line as message."""
        kind = classify_http_error(exc)
        if isinstance(exc, httpx.HTTPStatusError):
            message = f"{provider} returned HTTP {exc.response.status_code}"
        else:
            message = f"{provider} request failed: {type(exc).__name__}"
        return cls(provider, message, kind)


class CacheError(AggregatorError):
    """The cache backend could not be read or written."""
    default_kind = ErrorKind.CACHE_ERROR


class QueryValidationError(AggregatorError):
    """A capability query could not be built from the supplied parameters."""
    default_kind = ErrorKind.VALIDATION_ERROR


class ErrorInfo(BaseModel):
    """Structured error returned to callers."""
    kind: ErrorKind
    message: str
    should_retry: bool = False
    technical_details: Optional[Dict[str, Any]] = None


def classify_http_error(exc: httpx.HTTPError) -> ErrorKind:
    """Map an httpx exception onto an error kind."""
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        if status_code in (401, 403):
            return ErrorKind.AUTH_FAILED
        if status_code == 429:
            return ErrorKind.RATE_LIMIT_EXCEEDED
        if status_code in (400, 422):
            return ErrorKind.VALIDATION_ERROR
        if status_code == 404:
            return ErrorKind.NO_RESULTS
        if status_code >= 500:
            return ErrorKind.SERVICE_UNAVAILABLE
        return ErrorKind.UNKNOWN_ERROR
    if isinstance(exc, (httpx.TransportError, httpx.TimeoutException)):
        return ErrorKind.NETWORK_ERROR
    return ErrorKind.UNKNOWN_ERROR


def classify_exception(
    exc: BaseException,
    context: Optional[Dict[str, Any]] = None,
    debug: bool = False,
) -> ErrorInfo:
    """Classify any exception into an ``ErrorInfo``.
    Args:
        exc (BaseException): The failure to classify.
        context (Optional[Dict[str, Any]]): Request context for logs and debug output.
        debug (bool): Whether to attach technical details.
    Returns:
        ErrorInfo: Kind, user message and retry hint.
    """
    if isinstance(exc, AggregatorError):
        kind = exc.kind
    elif isinstance(exc, httpx.HTTPError):
        kind = classify_http_error(exc)
    else:
        text = str(exc).lower()
        if "network" in text or "connection" in text:
            kind = ErrorKind.NETWORK_ERROR
        elif "cache" in text:
            kind = ErrorKind.CACHE_ERROR
        elif "validation" in text:
            kind = ErrorKind.VALIDATION_ERROR
        else:
            kind = ErrorKind.UNKNOWN_ERROR

    if kind == ErrorKind.NO_RESULTS:
        logger.info(f"No results ({type(exc).__name__}): {exc}")
    elif kind in RETRYABLE_KINDS:
        logger.warning(f"Retryable failure {kind.value}: {exc}")
    else:
        logger.error(f"Failure {kind.value}: {exc}")

    technical_details = None
    if debug:
        technical_details = {"original_error": str(exc), "context": context or {}}

    return ErrorInfo(
        kind=kind,
        message=USER_MESSAGES[kind],
        should_retry=kind in RETRYABLE_KINDS,
        technical_details=technical_details,
    )


def create_error_response(
    exc: BaseException,
    context: Optional[Dict[str, Any]] = None,
    debug: bool = False,
) -> Dict[str, Any]:
    """Create the standardized error body for API responses."""
    info = classify_exception(exc, context=context, debug=debug)
    return {
        "success": False,
        "error": info.model_dump(mode="json", exclude_none=True),
        "timestamp": datetime.utcnow().isoformat(),
    }
