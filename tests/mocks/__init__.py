"""
Mock infrastructure for Mufessir testing.
Provides a deterministic stand-in for the OpenAI service.
"""

from .ai_mocks import (
    MOCK_TAFSIR_ANSWER,
    MOCK_USAGE,
    FakeAIService,
    parse_sse,
)

__all__ = [
    "MOCK_TAFSIR_ANSWER",
    "MOCK_USAGE",
    "FakeAIService",
    "parse_sse",
]
