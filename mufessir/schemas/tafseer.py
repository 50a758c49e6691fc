"""
Request and response shapes for tafsir generation and the verse catalogue.

Wire format is camelCase; Python attributes are snake_case.
"""
import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from mufessir.models.models import Verse


class TafseerFilters(BaseModel):
    scholars: Optional[List[str]] = None
    exclude_scholars: Optional[List[str]] = Field(None, alias="excludeScholars")
    tone: Optional[int] = Field(None, ge=1, le=10)
    intellect_level: Optional[int] = Field(None, alias="intellectLevel", ge=1, le=10)
    language: Optional[str] = None
    response_length: Optional[int] = Field(None, alias="responseLength", ge=1, le=10)
    compare_with: Optional[str] = Field(None, alias="compareWith")

    class Config:
        populate_by_name = True

    def echo(self) -> Dict[str, Any]:
        """Filters as sent back to the client, unset fields dropped."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def canonical(self) -> Dict[str, Any]:
        """Order-independent form used for cache keys."""
        data = self.echo()
        for key in ("scholars", "excludeScholars"):
            if key in data:
                data[key] = sorted(set(data[key]))
        return data


class TafseerRequest(BaseModel):
    # Optional so a missing id can be answered with 400 instead of 422
    verse_id: Optional[str] = Field(None, alias="verseId")
    filters: Optional[TafseerFilters] = None
    stream: bool = False

    class Config:
        populate_by_name = True


def build_cache_key(verse_id: str, filters: TafseerFilters, user_id: str) -> str:
    """Deterministic fingerprint of (verse, filters, user)."""
    payload = {"filters": filters.canonical(), "userId": user_id, "verseId": verse_id}
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def verse_to_dict(verse: Verse) -> Dict[str, Any]:
    return {
        "id": verse.id,
        "surahNumber": verse.surah_number,
        "surahName": verse.surah_name,
        "verseNumber": verse.verse_number,
        "arabicText": verse.arabic_text,
        "transliteration": verse.transliteration,
        "translation": verse.translation,
    }
