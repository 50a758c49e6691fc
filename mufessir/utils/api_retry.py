"""
Retry and circuit breaker helpers for provider calls.

A call is retried only for transient failures (connection errors, timeouts,
429 and 5xx responses). Repeated failures open the circuit; while it is
open calls are refused immediately so tafsir requests fall back to the
stored excerpts instead of waiting on a provider that is down.
"""

import asyncio
import random
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple, Type

import openai

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = (429, 500, 502, 503, 504)
TRANSIENT_EXCEPTIONS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    ConnectionError,
    TimeoutError,
)


@dataclass
class RetryConfig:
    max_retries: int = 3
    initial_delay: float = 1.0  # seconds
    max_delay: float = 20.0
    exponential_base: float = 2.0
    jitter_factor: float = 0.5
    retry_on_status_codes: Tuple[int, ...] = TRANSIENT_STATUS_CODES
    retry_on_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_EXCEPTIONS
    respect_retry_after: bool = True

    failure_threshold: int = 5
    recovery_timeout: float = 120.0  # seconds the circuit stays open
    half_open_successes: int = 3


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(Exception):
    """Raised when the circuit is open and provider calls are rejected."""
    pass


class CircuitBreaker:
    """
    Three-state breaker shared by every call of one service instance.

    CLOSED counts failures (each success forgives one). At
    ``failure_threshold`` it opens. After ``recovery_timeout`` one trial call is
    let through (HALF_OPEN); ``half_open_successes`` successes close it
    again and any failure reopens it.
    """

    def __init__(self, config: RetryConfig):
        self.config = config
        self.reset()

    def reset(self):
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.opened_at: Optional[float] = None

    def _open(self):
        self.state = CircuitState.OPEN
        self.opened_at = time.monotonic()
        logger.warning(f"Circuit breaker OPEN after {self.failure_count} failures")

    def can_execute(self) -> bool:
        if self.state != CircuitState.OPEN:
            return True
        if self.opened_at is not None and time.monotonic() - self.opened_at >= self.config.recovery_timeout:
            self.state = CircuitState.HALF_OPEN
            self.success_count = 0
            logger.info("Circuit breaker HALF_OPEN - trying provider again")
            return True
        return False

    def record_success(self):
        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.config.half_open_successes:
                self.reset()
                logger.info("Circuit breaker CLOSED - provider recovered")
        elif self.failure_count:
            self.failure_count -= 1

    def record_failure(self):
        self.failure_count += 1
        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.config.failure_threshold:
            self._open()


def calculate_delay(attempt: int, config: RetryConfig, retry_after: Optional[float] = None) -> float:
    """Seconds to wait before retry number ``attempt`` (0-based)."""
    if retry_after and config.respect_retry_after:
        base = retry_after
    else:
        base = config.initial_delay * config.exponential_base ** attempt
    return min(base + random.uniform(0, config.jitter_factor * base), config.max_delay)


def _retry_after_header(exception: Exception) -> Optional[float]:
    response = getattr(exception, "response", None)
    value = response.headers.get("Retry-After") if response is not None else None
    try:
        return float(value) if value else None
    except ValueError:
        return None


def should_retry(exception: Exception, config: RetryConfig) -> Tuple[bool, Optional[float]]:
    """(retry?, server requested delay) for a failed call."""
    if isinstance(exception, openai.APIStatusError):
        if exception.status_code in config.retry_on_status_codes:
            return True, _retry_after_header(exception)
        return False, None
    return isinstance(exception, config.retry_on_exceptions), None


async def call_with_retry(
    func: Callable[[], Awaitable],
    config: RetryConfig,
    circuit_breaker: Optional[CircuitBreaker] = None,
):
    """
    Await ``func()`` until it succeeds, a non-transient error occurs or
    ``config.max_retries`` retries are used up.

    Raises:
        CircuitBreakerOpenError: If the circuit refuses an attempt
        Exception: The last provider error
    """
    attempt = 0
    while True:
        if circuit_breaker and not circuit_breaker.can_execute():
            raise CircuitBreakerOpenError("AI provider temporarily unavailable due to repeated failures")

        try:
            result = await func()
        except Exception as e:
            if circuit_breaker:
                circuit_breaker.record_failure()
            retryable, retry_after = should_retry(e, config)
            if not retryable or attempt >= config.max_retries:
                logger.error(f"Provider call failed after {attempt + 1} attempts: {e}")
                raise

            delay = calculate_delay(attempt, config, retry_after)
            logger.warning(f"Attempt {attempt + 1} failed: {e}. Retrying in {delay:.2f}s")
            await asyncio.sleep(delay)
            attempt += 1
            continue

        if circuit_breaker:
            circuit_breaker.record_success()
        return result
