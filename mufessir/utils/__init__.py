"""
Mufessir Utilities Package

Contains:
- api_retry: Exponential backoff and circuit breaker for provider calls
- openai_client: Lazy-initialized OpenAI client
"""

from mufessir.utils.api_retry import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    RetryConfig,
    call_with_retry,
)
from mufessir.utils.openai_client import get_openai_client, reset_client

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerOpenError",
    "RetryConfig",
    "call_with_retry",
    "get_openai_client",
    "reset_client",
]
