"""
Centralized OpenAI Service with Circuit Breaker and Retry Logic

Every call to the provider (chat completions, streamed completions and
embeddings) goes through this service so that:
1. Transient failures are retried with exponential backoff
2. A circuit breaker stops hammering a provider that keeps failing
3. Failures are reported to Sentry
4. Call outcomes are kept in a short in-memory history

Usage:
    from mufessir.services.openai_service import get_openai_service, AIUnavailableError

    try:
        completion = await get_openai_service().chat_completion(prompt, max_tokens=400)
    except AIUnavailableError:
        # serve the fallback document instead
        ...
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

import sentry_sdk

from mufessir.config import get_settings
from mufessir.utils.api_retry import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    CircuitState,
    RetryConfig,
    call_with_retry,
)
from mufessir.utils.openai_client import get_openai_client

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert Islamic scholar and linguist. Provide accurate, scholarly "
    "tafsir based on the provided context."
)

# Provider limit is in tokens; clipping characters keeps requests well under it
EMBEDDING_MAX_CHARS = 8000


class AIUnavailableError(Exception):
    """Raised when AI is switched off or no API key is configured."""
    pass


@dataclass
class CompletionResult:
    content: str
    usage: Optional[Dict[str, int]] = None


def usage_to_dict(usage: Any) -> Optional[Dict[str, int]]:
    """Provider usage object as the camelCase counters returned to clients."""
    if usage is None:
        return None
    return {
        "promptTokens": usage.prompt_tokens,
        "completionTokens": usage.completion_tokens,
        "totalTokens": usage.total_tokens,
    }


class OpenAIService:
    """
    Wrapper around the async OpenAI client with retry and circuit breaker.
    """

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()
        self.circuit_breaker = CircuitBreaker(self.config)
        self._call_history: List[Dict[str, Any]] = []

    def _ensure_available(self):
        if not get_settings().ai_available:
            raise AIUnavailableError("AI provider is disabled or OPENAI_API_KEY is missing")

    def _check_circuit(self, operation: str):
        if self.circuit_breaker.can_execute():
            return

        self._record_call(operation, success=False, circuit_open=True)
        sentry_sdk.capture_message(
            "Circuit breaker open - OpenAI requests blocked",
            level="warning",
        )
        logger.warning(
            f"Circuit breaker OPEN - rejecting {operation}. "
            f"Failures: {self.circuit_breaker.failure_count}"
        )
        raise CircuitBreakerOpenError(
            "AI provider temporarily unavailable due to repeated failures"
        )

    def _report_failure(self, operation: str, error: Exception):
        self._record_call(operation, success=False, error=str(error))
        sentry_sdk.capture_exception(error)
        logger.error(
            f"OpenAI {operation} failed: {error}. "
            f"Circuit state: {self.circuit_breaker.state.value}"
        )

    async def chat_completion(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
    ) -> CompletionResult:
        """
        Single-shot tafsir completion.

        Raises:
            AIUnavailableError: If AI is disabled
            CircuitBreakerOpenError: If the circuit is open
            openai.OpenAIError: If all retries are exhausted
        """
        self._ensure_available()
        self._check_circuit("chat_completion")
        settings = get_settings()

        async def _make_call():
            return await get_openai_client().chat.completions.create(
                model=settings.openai_model,
                messages=self._messages(prompt),
                temperature=settings.openai_temperature,
                max_tokens=max_tokens or settings.openai_max_tokens,
            )

        start_time = datetime.utcnow()
        try:
            response = await call_with_retry(_make_call, self.config, self.circuit_breaker)
        except Exception as e:
            self._report_failure("chat_completion", e)
            raise

        latency_ms = (datetime.utcnow() - start_time).total_seconds() * 1000
        self._record_call("chat_completion", success=True, latency_ms=latency_ms)

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        return CompletionResult(content=content, usage=usage_to_dict(response.usage))

    async def chat_completion_stream(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
        usage_sink: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[str]:
        """
        Streamed tafsir completion yielding text deltas as they arrive.

        Opening the stream is retried; a failure after the first chunk is not,
        since text has already been forwarded to the client. Token usage from
        the final chunk is written into ``usage_sink["usage"]`` when given.
        """
        self._ensure_available()
        self._check_circuit("chat_completion_stream")
        settings = get_settings()

        async def _open_stream():
            return await get_openai_client().chat.completions.create(
                model=settings.openai_model,
                messages=self._messages(prompt),
                temperature=settings.openai_temperature,
                max_tokens=max_tokens or settings.openai_max_tokens,
                stream=True,
                stream_options={"include_usage": True},
            )

        start_time = datetime.utcnow()
        try:
            stream = await call_with_retry(_open_stream, self.config, self.circuit_breaker)
        except Exception as e:
            self._report_failure("chat_completion_stream", e)
            raise

        try:
            async for chunk in stream:
                if chunk.usage is not None and usage_sink is not None:
                    usage_sink["usage"] = usage_to_dict(chunk.usage)
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except Exception as e:
            self.circuit_breaker.record_failure()
            self._report_failure("chat_completion_stream", e)
            raise

        latency_ms = (datetime.utcnow() - start_time).total_seconds() * 1000
        self._record_call("chat_completion_stream", success=True, latency_ms=latency_ms)

    async def create_embedding(self, text: str) -> List[float]:
        """Embedding vector for ``text`` (clipped to the provider budget)."""
        self._ensure_available()
        self._check_circuit("create_embedding")
        settings = get_settings()

        async def _make_call():
            return await get_openai_client().embeddings.create(
                model=settings.openai_embedding_model,
                input=text[:EMBEDDING_MAX_CHARS],
            )

        try:
            response = await call_with_retry(_make_call, self.config, self.circuit_breaker)
        except Exception as e:
            self._report_failure("create_embedding", e)
            raise

        self._record_call("create_embedding", success=True)
        return list(response.data[0].embedding)

    @staticmethod
    def _messages(prompt: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    def _record_call(
        self,
        operation: str,
        success: bool,
        latency_ms: float = 0,
        error: Optional[str] = None,
        circuit_open: bool = False
    ):
        self._call_history.append({
            "timestamp": datetime.utcnow().isoformat(),
            "operation": operation,
            "success": success,
            "latency_ms": latency_ms,
            "error": error,
            "circuit_open": circuit_open,
        })
        # Keep only last 1000 calls in memory
        if len(self._call_history) > 1000:
            self._call_history = self._call_history[-1000:]

    def is_healthy(self) -> bool:
        return self.circuit_breaker.state != CircuitState.OPEN


_openai_service: Optional[OpenAIService] = None


def get_openai_service() -> OpenAIService:
    """Get the process-wide OpenAIService instance."""
    global _openai_service
    if _openai_service is None:
        _openai_service = OpenAIService()
    return _openai_service
