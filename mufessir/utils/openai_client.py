"""
Lazy-initialized OpenAI client to prevent import-time errors
when OPENAI_API_KEY is not set.
"""

from typing import Optional
import httpx
from openai import AsyncOpenAI

from mufessir.config import get_settings

_client: Optional[AsyncOpenAI] = None

# Timeout configuration: 60s total request, 10s connect
DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=10.0)


def get_openai_client() -> AsyncOpenAI:
    """
    Get a lazily-initialized async OpenAI client with timeout configuration.

    The async client keeps streaming completions off the event loop's
    critical path; the 60-second timeout prevents indefinite hangs.

    Raises:
        ValueError: If OPENAI_API_KEY is not set
    """
    global _client

    if _client is None:
        api_key = get_settings().openai_api_key
        if not api_key:
            raise ValueError(
                "OPENAI_API_KEY environment variable is not set. "
                "Please set it before using AI features."
            )
        _client = AsyncOpenAI(api_key=api_key, timeout=DEFAULT_TIMEOUT)

    return _client


def reset_client() -> None:
    """
    Reset the client (useful for testing or when API key changes).
    """
    global _client
    _client = None
