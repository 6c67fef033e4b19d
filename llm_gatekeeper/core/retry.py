"""
Bounded retry with exponential backoff.

Only unstructured failures (connectivity and the like) are retried.
Provider errors that carry an HTTP status, and timeouts, are terminal and
surface immediately as their public error.
"""

from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .clock import Clock
from .errors import AIServiceError, ServiceUnavailable, classify_error, to_service_error

logger = structlog.get_logger(__name__)
T = TypeVar("T")


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, AIServiceError):
        return False
    return classify_error(exc).retryable


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "completion_retry",
        attempt=retry_state.attempt_number,
        delay=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(exc) if exc else "unknown"
    )


class RetryExecutor:
    """Runs one logical operation with bounded retries.

    Waits ``base_delay_seconds * 2**attempt_index`` between attempts using
    the injected clock, so delays are 1s, 2s, 4s... with the defaults.
    """

    def __init__(self, clock: Clock, max_attempts: int = 3, base_delay_seconds: float = 1.0):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")
        self.clock = clock
        self.max_attempts = max_attempts
        self.base_delay_seconds = base_delay_seconds

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: Optional[int] = None,
        base_delay_seconds: Optional[float] = None
    ) -> T:
        """Await ``operation`` until it succeeds or fails terminally.

        Args:
            operation: Zero-argument coroutine function, called once per attempt
            max_attempts: Overrides the executor default
            base_delay_seconds: Overrides the executor default

        Returns:
            The operation's result

        Raises:
            ServiceUnavailable: If every attempt failed with a retryable error
            ProviderRateLimited: If the provider answered 429
            ProviderRequestFailed: If the provider answered another error status
            RequestTimeout: If an attempt timed out
            AIServiceError: Raised by the operation itself, propagated unchanged
        """
        attempts = self.max_attempts if max_attempts is None else max_attempts
        base_delay = self.base_delay_seconds if base_delay_seconds is None else base_delay_seconds

        retrying = AsyncRetrying(
            sleep=self.clock.sleep,
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=base_delay, exp_base=2),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_log_retry,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await operation()
        except AIServiceError:
            raise
        except Exception as exc:
            failure = classify_error(exc)
            if failure.retryable:
                logger.error("completion_exhausted", attempts=attempts, error=str(exc))
                raise ServiceUnavailable(attempts) from exc
            raise to_service_error(failure) from exc
