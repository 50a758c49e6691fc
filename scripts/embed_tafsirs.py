#!/usr/bin/env python3
"""
Backfill embeddings for tafsirs that do not have one yet.

Usage:
    python scripts/embed_tafsirs.py

Environment Variables:
    DATABASE_URL: Database connection string
    OPENAI_API_KEY: Required
    OPENAI_EMBEDDING_MODEL: Embedding model (default: text-embedding-3-small)
    EMBED_BATCH_SIZE: Rows fetched per batch (default: 50)
"""

import os
import sys
import asyncio
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from mufessir.config import get_settings
from mufessir.database import SessionLocal
from mufessir.importers.embeddings import backfill_embeddings
from mufessir.services.openai_service import get_openai_service


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    logger = logging.getLogger(__name__)

    settings = get_settings()
    if not settings.ai_available:
        logger.error("OPENAI_API_KEY is not set or AI is disabled")
        sys.exit(1)

    logger.info("Starting tafsir embedding process...")
    db = SessionLocal()
    try:
        asyncio.run(backfill_embeddings(db, get_openai_service(), batch_size=settings.embed_batch_size))
    finally:
        db.close()


if __name__ == "__main__":
    main()
