"""Token-bucket rate limiter for cloud and cluster API clients."""

import threading
import time
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from nodegc.utils.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class TokenBucket:
    """Thread-safe token bucket rate limiter.

    - Bucket holds up to `capacity` tokens
    - Tokens refill at `refill_rate` tokens per second
    - If no tokens are available, callers wait up to `max_wait` seconds

    Deletions run in worker threads, so many callers may block on the same
    bucket at once.
    """

    def __init__(self, capacity: int, refill_rate: float, max_wait: float = 60.0):
        """Initialize token bucket.

        Args:
            capacity: Maximum number of tokens in bucket
            refill_rate: Tokens added per second
            max_wait: Maximum time to wait for a token (seconds)
        """
        if capacity <= 0 or refill_rate <= 0:
            raise ValueError("capacity and refill_rate must be positive")

        self.capacity = capacity
        self.refill_rate = refill_rate
        self.max_wait = max_wait

        self._tokens = float(capacity)
        self._lock = threading.Lock()
        self._last_refill = time.monotonic()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    def acquire(self, tokens: int = 1, wait: bool = True) -> bool:
        """Acquire tokens from the bucket.

        Args:
            tokens: Number of tokens to acquire
            wait: Whether to wait for tokens if unavailable

        Returns:
            True if tokens acquired, False if not available and wait=False

        Raises:
            TimeoutError: If waiting exceeds max_wait
        """
        start_time = time.monotonic()

        while True:
            with self._lock:
                self._refill()
                if self._tokens >= tokens:
                    self._tokens -= tokens
                    return True
                deficit = tokens - self._tokens

            if not wait:
                logger.warning("tokens_unavailable", requested=tokens)
                return False

            elapsed = time.monotonic() - start_time
            if elapsed >= self.max_wait:
                logger.error("token_acquisition_timeout", elapsed=elapsed, max_wait=self.max_wait)
                raise TimeoutError(f"Rate limit: waited {elapsed:.1f}s for tokens")

            # Sleep roughly until the deficit refills, capped so waiters re-check often
            time.sleep(min(deficit / self.refill_rate, 0.1))

    def get_available_tokens(self) -> float:
        """Get current number of available tokens."""
        with self._lock:
            self._refill()
            return self._tokens


class RateLimiter:
    """Registry of named token buckets."""

    def __init__(self) -> None:
        self._limiters: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    def register(
        self,
        name: str,
        capacity: int,
        refill_rate: float,
        max_wait: float = 60.0,
        replace: bool = False,
    ) -> None:
        """Register a named rate limiter.

        Args:
            name: Unique identifier for this limiter
            capacity: Maximum tokens in bucket
            refill_rate: Tokens per second refill rate
            max_wait: Maximum wait time for tokens
            replace: Replace an existing limiter with the same name
        """
        with self._lock:
            if name in self._limiters and not replace:
                logger.warning("rate_limiter_already_registered", name=name)
                return

            self._limiters[name] = TokenBucket(
                capacity=capacity, refill_rate=refill_rate, max_wait=max_wait
            )

        logger.info(
            "rate_limiter_registered", name=name, capacity=capacity, refill_rate=refill_rate
        )

    def acquire(self, name: str, tokens: int = 1, wait: bool = True) -> bool:
        """Acquire tokens from a named limiter.

        Unregistered names are not limited, so clients work before the
        limiters are initialized from configuration.

        Args:
            name: Name of the rate limiter
            tokens: Number of tokens to acquire
            wait: Whether to wait for tokens

        Returns:
            True if tokens acquired, False otherwise

        Raises:
            TimeoutError: If wait exceeds max_wait
        """
        with self._lock:
            limiter = self._limiters.get(name)

        if limiter is None:
            logger.debug("rate_limiter_not_registered", name=name)
            return True

        return limiter.acquire(tokens=tokens, wait=wait)

    def get_limiter(self, name: str) -> TokenBucket:
        """Get rate limiter by name.

        Raises:
            ValueError: If limiter not registered
        """
        with self._lock:
            if name not in self._limiters:
                raise ValueError(f"Rate limiter '{name}' not registered")
            return self._limiters[name]

    def clear(self) -> None:
        """Drop every registered limiter."""
        with self._lock:
            self._limiters.clear()


_rate_limiter = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    """Get global rate limiter instance."""
    return _rate_limiter


def rate_limited(limiter_name: str, tokens: int = 1) -> Callable[[F], F]:
    """Decorator to apply rate limiting to a function.

    Args:
        limiter_name: Name of the rate limiter to use
        tokens: Number of tokens to consume per call

    Example:
        @rate_limited("aws_api")
        def terminate_instance(...):
            ...
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            get_rate_limiter().acquire(limiter_name, tokens=tokens, wait=True)
            return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator
