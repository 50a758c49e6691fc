"""
Filters Router
Public catalogue of scholars and the option ranges the UI offers.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mufessir.config import SUPPORTED_LANGUAGES
from mufessir.database import get_db
from mufessir.models.models import Scholar

router = APIRouter(prefix="/filters", tags=["filters"])

TONE_RANGE = {"min": 1, "max": 10, "description": "Emotional vs Rational tone"}
INTELLECT_RANGE = {"min": 1, "max": 10, "description": "Vocabulary richness and intellectual level"}
LENGTH_RANGE = {"min": 1, "max": 10, "description": "Terse vs essay-length answers"}


def scholar_to_dict(scholar: Scholar) -> Dict[str, Any]:
    return {
        "id": scholar.id,
        "name": scholar.name,
        "birthYear": scholar.birth_year,
        "deathYear": scholar.death_year,
        "century": scholar.century,
        "madhab": scholar.madhab,
        "period": scholar.period,
        "environment": scholar.environment,
        "originCountry": scholar.origin_country,
        "reputationScore": scholar.reputation_score,
    }


def _distinct_sorted(values) -> List:
    return sorted({v for v in values if v not in (None, "")})


def _year_range(values) -> Optional[Dict[str, int]]:
    years = [v for v in values if isinstance(v, int)]
    if not years:
        return None
    return {"min": min(years), "max": max(years)}


@router.get("")
def get_filters(db: Session = Depends(get_db)):
    scholars = db.query(Scholar).order_by(Scholar.name.asc()).all()

    return {
        "scholars": [scholar_to_dict(s) for s in scholars],
        "filterOptions": {
            "centuries": _distinct_sorted(s.century for s in scholars),
            "madhabs": _distinct_sorted(s.madhab for s in scholars),
            "periods": _distinct_sorted(s.period for s in scholars),
            "environments": _distinct_sorted(s.environment for s in scholars),
            "countries": _distinct_sorted(s.origin_country for s in scholars),
            "birthYearRange": _year_range(s.birth_year for s in scholars),
            "deathYearRange": _year_range(s.death_year for s in scholars),
        },
        "toneRange": TONE_RANGE,
        "intellectRange": INTELLECT_RANGE,
        "lengthRange": LENGTH_RANGE,
        "supportedLanguages": SUPPORTED_LANGUAGES,
    }
