#!/usr/bin/env python3
"""
Import the legacy MySQL dump into verses, scholars and tafsirs.

Usage:
    python scripts/import_sql_dump.py --path MufessirAI_backup.sql
    RESET_DB=true python scripts/import_sql_dump.py --path MufessirAI_backup.sql

Environment Variables:
    DATABASE_URL: Database connection string
    SQL_DUMP_PATH: Dump file used when --path is not given
    RESET_DB: Must be "true" to clear previously imported content
    BATCH_VERSES / BATCH_TAFSIRS: Insert batch sizes (default 500 / 50)
"""

import os
import sys
import argparse
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from mufessir.config import get_settings
from mufessir.database import Base, SessionLocal, engine
from mufessir.importers.sql_dump import import_sql_dump


def main():
    parser = argparse.ArgumentParser(description="Import the legacy Mufessir MySQL dump")
    parser.add_argument("--path", default=os.getenv("SQL_DUMP_PATH"), help="Path to the .sql dump")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    if not args.path:
        parser.error("--path or SQL_DUMP_PATH is required")
    if not os.path.exists(args.path):
        parser.error(f"SQL dump not found: {args.path}")

    settings = get_settings()
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        import_sql_dump(
            db,
            args.path,
            reset=os.getenv("RESET_DB", "").lower() == "true",
            batch_verses=settings.batch_verses,
            batch_tafsirs=settings.batch_tafsirs,
        )
    except Exception as e:
        logging.getLogger(__name__).error(f"Import failed: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
