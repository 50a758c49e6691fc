"""
Verses Router
Lookup by (surah, verse) or paged substring search.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from mufessir.database import get_db
from mufessir.models.models import Verse
from mufessir.schemas.tafseer import verse_to_dict

router = APIRouter(prefix="/verses", tags=["verses"])

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
LIKE_ESCAPE = "\\"


def escape_like(value: str) -> str:
    """Make ``%`` and ``_`` in user text match literally inside LIKE."""
    for char in (LIKE_ESCAPE, "%", "_"):
        value = value.replace(char, LIKE_ESCAPE + char)
    return value


@router.get("")
def get_verses(
    surah_number: Optional[int] = Query(None, alias="surahNumber", ge=1),
    verse_number: Optional[int] = Query(None, alias="verseNumber", ge=0),
    q: Optional[str] = None,
    skip: int = Query(0, ge=0),
    take: Optional[int] = Query(None, ge=0),
    db: Session = Depends(get_db),
):
    """
    With surahNumber and verseNumber, return that verse (404 if unknown).
    Otherwise page through verses in canonical order, optionally narrowed
    to one surah and filtered by a substring of the Arabic text or
    translation. verseNumber on its own is rejected.
    """
    if verse_number is not None and surah_number is None:
        raise HTTPException(status_code=400, detail="surahNumber is required with verseNumber")

    if surah_number is not None and verse_number is not None:
        verse = db.query(Verse).filter(
            Verse.surah_number == surah_number,
            Verse.verse_number == verse_number,
        ).first()
        if not verse:
            raise HTTPException(status_code=404, detail="Verse not found")
        return verse_to_dict(verse)

    take = min(take or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)

    query = db.query(Verse)
    if surah_number is not None:
        query = query.filter(Verse.surah_number == surah_number)
    if q:
        pattern = f"%{escape_like(q)}%"
        query = query.filter(or_(
            Verse.arabic_text.like(pattern, escape=LIKE_ESCAPE),
            Verse.translation.like(pattern, escape=LIKE_ESCAPE),
        ))

    total = query.count()
    verses = (
        query.order_by(Verse.surah_number.asc(), Verse.verse_number.asc())
        .offset(skip)
        .limit(take)
        .all()
    )
    return {
        "items": [verse_to_dict(v) for v in verses],
        "total": total,
        "skip": skip,
        "take": take,
    }
