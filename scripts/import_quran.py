#!/usr/bin/env python3
"""
Upsert Quran verses from JSON files of {"surah", "ayah", "text"} entries.

Usage:
    python scripts/import_quran.py --ar data/quran-ar.json --tr data/quran-tr-diyanet.json

Environment Variables:
    DATABASE_URL: Database connection string
"""

import os
import sys
import argparse
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from mufessir.database import Base, SessionLocal, engine
from mufessir.importers.quran import import_quran


def main():
    parser = argparse.ArgumentParser(description="Import Quran text and translation")
    parser.add_argument("--ar", default="data/quran-ar.json", help="Arabic text JSON")
    parser.add_argument("--tr", default="data/quran-tr-diyanet.json", help="Translation JSON (optional)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    translation_path = args.tr if args.tr and os.path.exists(args.tr) else None
    if args.tr and not translation_path:
        logging.getLogger(__name__).warning(f"Translation file not found, importing Arabic only: {args.tr}")

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        import_quran(db, args.ar, translation_path)
    except (OSError, ValueError) as e:
        logging.getLogger(__name__).error(f"Quran import failed: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
