"""
Tafsir embedding backfill.

Embeds every tafsir that has no vector yet, oldest first, so the live
similarity search can rank by cosine similarity.
"""

import asyncio
import logging
from typing import List, Set

from sqlalchemy.orm import Session

from mufessir.models.models import Tafsir

logger = logging.getLogger(__name__)

PAUSE_SECONDS = 0.1


def embedding_input(arabic_text: str, tafsir_text: str) -> str:
    return f"{arabic_text or ''}\n\n{tafsir_text or ''}".strip()


def pending_tafsirs(db: Session, batch_size: int, skip_ids: Set[str]) -> List[Tafsir]:
    query = db.query(Tafsir).filter(Tafsir.embedding.is_(None))
    if skip_ids:
        query = query.filter(Tafsir.id.notin_(skip_ids))
    return query.order_by(Tafsir.created_at.asc(), Tafsir.id.asc()).limit(batch_size).all()


async def backfill_embeddings(
    db: Session,
    embedder,
    batch_size: int = 50,
    pause_seconds: float = PAUSE_SECONDS,
) -> int:
    """
    Embed tafsirs in batches until none are left.

    ``embedder`` exposes ``async create_embedding(text)``. A failed row is
    logged and not retried in this run. Returns the number embedded.
    """
    embedded = 0
    failed: Set[str] = set()

    while True:
        batch = pending_tafsirs(db, batch_size, failed)
        if not batch:
            break

        for tafsir in batch:
            text = embedding_input(tafsir.verse.arabic_text if tafsir.verse else "", tafsir.tafsir_text)
            if not text:
                failed.add(tafsir.id)
                continue
            try:
                tafsir.embedding = await embedder.create_embedding(text)
                db.commit()
            except Exception as e:
                db.rollback()
                failed.add(tafsir.id)
                logger.error(f"Failed to embed {tafsir.id}: {e}")
                continue

            embedded += 1
            logger.info(f"Embedded {tafsir.id} ({tafsir.scholar.name if tafsir.scholar else 'unknown scholar'})")
            if pause_seconds:
                await asyncio.sleep(pause_seconds)

    if failed:
        logger.warning(f"{len(failed)} tafsirs could not be embedded")
    logger.info(f"Embedding backfill complete: {embedded} embedded")
    return embedded
