"""Retry utilities for nodegc."""

from collections.abc import Callable
from typing import Any, TypeVar

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from nodegc.utils.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def retry_on_exception(
    exceptions: tuple[type[BaseException], ...] = (Exception,),
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 10,
    ignore: tuple[type[BaseException], ...] = (),
) -> Callable[[F], F]:
    """Decorator to retry a function on specific exceptions.

    Args:
        exceptions: Tuple of exception types to retry on
        max_attempts: Maximum number of attempts
        min_wait: Minimum wait time between retries (seconds)
        max_wait: Maximum wait time between retries (seconds)
        ignore: Exception types that are raised immediately even when they
            subclass one of ``exceptions`` (e.g. not-found errors)

    Returns:
        Decorated function with retry logic
    """

    def before_sleep(retry_state: RetryCallState) -> None:
        if retry_state.outcome and retry_state.outcome.failed:
            exception = retry_state.outcome.exception()
            logger.warning(
                "retry_attempt",
                function=getattr(retry_state.fn, "__name__", None),
                attempt=retry_state.attempt_number,
                max_attempts=max_attempts,
                exception=type(exception).__name__,
                message=str(exception),
            )

    condition = retry_if_exception_type(exceptions)
    if ignore:
        condition = condition & retry_if_not_exception_type(ignore)

    return retry(
        retry=condition,
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        before_sleep=before_sleep,
        reraise=True,
    )
