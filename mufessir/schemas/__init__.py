"""
Mufessir Schemas Package

Pydantic models for request/response validation.
"""

from mufessir.schemas.tafseer import (
    TafseerFilters,
    TafseerRequest,
    build_cache_key,
    verse_to_dict,
)

__all__ = [
    "TafseerFilters",
    "TafseerRequest",
    "build_cache_key",
    "verse_to_dict",
]
