"""
Error taxonomy for the AI service.

Public errors carry exact, stable messages so callers can assert on them.
Raw failures coming out of the provider call are classified once, at the
boundary, into a closed set of failure kinds that drives the retry policy.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

import openai


class AIServiceError(Exception):
    """Base for every error surfaced by the AI service."""


class BudgetExceeded(AIServiceError):
    """Daily spend reached the configured ceiling."""
    def __init__(self, message: str = "Daily budget limit exceeded"):
        super().__init__(message)


class RateLimitExceeded(AIServiceError):
    """Too many requests admitted in the current window."""
    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(message)


class ProviderRateLimited(AIServiceError):
    """The provider answered with HTTP 429."""
    def __init__(self, message: str = "AI service rate limited"):
        super().__init__(message)


class ProviderRequestFailed(AIServiceError):
    """The provider rejected the request with a non-429 HTTP status."""
    def __init__(self, status: int, provider_message: Optional[str] = None):
        super().__init__(f"AI service request failed with status {status}")
        self.status = status
        self.provider_message = provider_message


class RequestTimeout(AIServiceError):
    """The provider call did not finish within the request timeout."""
    def __init__(self, message: str = "Request timeout"):
        super().__init__(message)


class ServiceUnavailable(AIServiceError):
    """A retryable failure persisted through every attempt."""
    def __init__(self, attempts: int):
        super().__init__(f"AI service unavailable after {attempts} attempts")
        self.attempts = attempts


class InvalidJSONResponse(AIServiceError):
    """JSON-mode content could not be parsed."""
    def __init__(self, message: str = "Invalid JSON response"):
        super().__init__(message)


class MalformedResponse(AIServiceError):
    """The provider response lacks the fields needed to shape a result."""
    def __init__(self, message: str = "AI response missing usage information"):
        super().__init__(message)


class FailureKind(Enum):
    """Closed set of raw failure kinds."""
    NETWORK = auto()   # Connectivity and other unstructured errors, retryable
    PROVIDER = auto()  # Structured provider error carrying an HTTP status
    TIMEOUT = auto()   # Configured request timeout elapsed


@dataclass(frozen=True)
class ClassifiedFailure:
    """A raw exception tagged with its failure kind."""
    kind: FailureKind
    error: BaseException
    status: Optional[int] = None
    message: Optional[str] = None

    @property
    def retryable(self) -> bool:
        return self.kind is FailureKind.NETWORK


def _response_status(exc: BaseException) -> Optional[int]:
    """Read an HTTP status from ``exc.response`` if it has one."""
    response = getattr(exc, "response", None)
    if response is None:
        return None
    for attr in ("status_code", "status"):
        status = getattr(response, attr, None)
        if isinstance(status, int) and not isinstance(status, bool):
            return status
    return None


def _provider_message(exc: BaseException) -> Optional[str]:
    """Extract ``error.message`` from a provider error body."""
    body = getattr(exc, "body", None)
    if body is None:
        response = getattr(exc, "response", None)
        body = getattr(response, "data", None)
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
    return str(exc) or None


def classify_error(exc: BaseException) -> ClassifiedFailure:
    """Tag a raw exception as NETWORK, PROVIDER or TIMEOUT.

    Only the configured request timeout is TIMEOUT. Timeouts raised by the
    transport itself, openai.APITimeoutError included, are connectivity
    failures and retried like any other NETWORK error.
    """
    if isinstance(exc, RequestTimeout):
        return ClassifiedFailure(FailureKind.TIMEOUT, exc)

    if isinstance(exc, openai.APIStatusError):
        return ClassifiedFailure(
            FailureKind.PROVIDER, exc,
            status=exc.status_code,
            message=_provider_message(exc)
        )

    status = _response_status(exc)
    if status is not None:
        return ClassifiedFailure(
            FailureKind.PROVIDER, exc,
            status=status,
            message=_provider_message(exc)
        )

    return ClassifiedFailure(FailureKind.NETWORK, exc, message=str(exc) or None)


def to_service_error(failure: ClassifiedFailure) -> AIServiceError:
    """Map a terminal failure onto its public error."""
    if failure.kind is FailureKind.TIMEOUT:
        return RequestTimeout()
    if failure.kind is FailureKind.PROVIDER:
        if failure.status == 429:
            return ProviderRateLimited()
        return ProviderRequestFailed(failure.status, failure.message)
    raise ValueError(f"{failure.kind.name} failures are retryable, not terminal")
