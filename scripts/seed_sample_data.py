#!/usr/bin/env python3
"""
Insert a small set of verses, scholars and tafsirs for local development.

Usage:
    python scripts/seed_sample_data.py

Environment Variables:
    DATABASE_URL: Database connection string (default: sqlite:///./mufessir.db)
"""

import os
import sys
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from mufessir.database import Base, SessionLocal, engine
from mufessir.importers.sample_data import seed_sample_data


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_sample_data(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
