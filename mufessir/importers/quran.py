"""
Quran text importer.

Reads the Arabic text and one translation as JSON arrays of
``{"surah": int, "ayah": int, "text": str}`` and upserts verses by
(surah, verse). Existing verses get their text and translation refreshed.
"""

import json
import logging
import os
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from mufessir.models.models import Verse, verse_id_for

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 1000


def read_verse_file(path: str) -> List[Dict]:
    if not os.path.exists(path):
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        entries = json.load(f)
    if not isinstance(entries, list):
        raise ValueError(f"{path} must contain a JSON array")
    return entries


def translation_index(entries: List[Dict]) -> Dict[Tuple[int, int], str]:
    return {(int(e["surah"]), int(e["ayah"])): e["text"] for e in entries}


def upsert_verses(db: Session, arabic: List[Dict], translations: Optional[Dict[Tuple[int, int], str]] = None) -> int:
    """Insert or update one verse per Arabic entry; returns how many were written."""
    translations = translations or {}
    count = 0

    for entry in arabic:
        surah, ayah = int(entry["surah"]), int(entry["ayah"])
        translation = translations.get((surah, ayah))

        verse = db.query(Verse).filter(
            Verse.surah_number == surah,
            Verse.verse_number == ayah,
        ).first()
        if verse:
            verse.arabic_text = entry["text"]
            if translation is not None:
                verse.translation = translation
        else:
            db.add(Verse(
                id=verse_id_for(surah, ayah),
                surah_number=surah,
                verse_number=ayah,
                surah_name=f"Surah {surah}",
                arabic_text=entry["text"],
                translation=translation,
            ))

        count += 1
        if count % PROGRESS_EVERY == 0:
            db.commit()
            logger.info(f"Upserted {count} verses...")

    db.commit()
    logger.info(f"Done. Upserted {count} verses.")
    return count


def import_quran(db: Session, arabic_path: str, translation_path: Optional[str] = None) -> int:
    logger.info(f"Reading Arabic from {arabic_path}")
    arabic = read_verse_file(arabic_path)

    translations = None
    if translation_path:
        logger.info(f"Reading translation from {translation_path}")
        translations = translation_index(read_verse_file(translation_path))

    return upsert_verses(db, arabic, translations)
