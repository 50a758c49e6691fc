"""
Similarity engine.

Ranks historical tafsir excerpts against a query before generation and
attributes a generated answer to its closest historical tafsir afterwards.

Two strategies share one async interface:
- LexicalSimilarity: term-frequency cosine, no external calls
- EmbeddingSimilarity: provider embeddings, degrading to lexical on error
"""

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from mufessir.config import Settings, get_settings
from mufessir.models.models import Scholar, Tafsir

logger = logging.getLogger(__name__)

DEFAULT_RANK_LIMIT = 5
DEFAULT_MIN_SIMILARITY = 0.3
SAMPLE_LIMIT = 3
SAMPLE_SCORE = 0.7
EXCERPT_MAX_CHARS = 500

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


class SimilaritySearchError(Exception):
    """Raised when ranked retrieval cannot be performed."""
    pass


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def normalize_text(text: str) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    text = _NON_WORD.sub(" ", (text or "").lower())
    return _WHITESPACE.sub(" ", text).strip()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    mag_a = math.sqrt(sum(x * x for x in a))
    mag_b = math.sqrt(sum(y * y for y in b))
    if mag_a == 0 or mag_b == 0:
        return 0.0
    return dot / (mag_a * mag_b)


def lexical_similarity(a: str, b: str) -> float:
    """
    Cosine similarity of term-frequency vectors over the union vocabulary.

    Symmetric, 1.0 for identical non-empty texts, 0.0 when either text
    has no tokens or the vocabularies are disjoint.
    """
    tf_a = Counter(normalize_text(a).split())
    tf_b = Counter(normalize_text(b).split())
    if not tf_a or not tf_b:
        return 0.0

    vocabulary = sorted(set(tf_a) | set(tf_b))
    vec_a = [tf_a.get(term, 0) for term in vocabulary]
    vec_b = [tf_b.get(term, 0) for term in vocabulary]
    # Float noise can push identical texts just above 1.0
    return min(1.0, cosine_similarity(vec_a, vec_b))


# ============================================================================
# STRATEGIES
# ============================================================================

class LexicalSimilarity:
    name = "lexical"

    async def similarity(self, a: str, b: str) -> float:
        return lexical_similarity(a, b)


class EmbeddingSimilarity:
    """
    Embedding cosine similarity.

    Embeddings are memoised per instance, so one instance per request
    avoids re-embedding the generated answer for every candidate.
    """

    name = "embedding"

    def __init__(self, embedder):
        self.embedder = embedder
        self._cache: Dict[str, List[float]] = {}
        self._lexical = LexicalSimilarity()

    async def _embed(self, text: str) -> List[float]:
        if text not in self._cache:
            self._cache[text] = await self.embedder.create_embedding(text)
        return self._cache[text]

    async def similarity(self, a: str, b: str) -> float:
        try:
            return cosine_similarity(await self._embed(a), await self._embed(b))
        except Exception as e:
            logger.warning(f"Embedding similarity failed, using lexical: {e}")
            return await self._lexical.similarity(a, b)


def get_similarity_strategy(embedder=None, settings: Optional[Settings] = None):
    """Embedding strategy when live AI is available, lexical otherwise."""
    settings = settings or get_settings()
    if embedder is None or settings.sample_mode:
        return LexicalSimilarity()
    return EmbeddingSimilarity(embedder)


# ============================================================================
# RANKING
# ============================================================================

@dataclass
class SearchScope:
    verse_id: Optional[str] = None
    scholar_ids: List[str] = field(default_factory=list)
    exclude_scholar_ids: List[str] = field(default_factory=list)
    limit: int = DEFAULT_RANK_LIMIT
    min_similarity: float = DEFAULT_MIN_SIMILARITY

    def validate(self):
        overlap = set(self.scholar_ids) & set(self.exclude_scholar_ids)
        if overlap:
            raise ValueError(
                f"Scholars cannot be both included and excluded: {', '.join(sorted(overlap))}"
            )


@dataclass
class RankedExcerpt:
    tafsir_id: str
    scholar_id: str
    scholar_name: str
    text: str
    score: float
    century: Optional[int] = None
    madhab: Optional[str] = None
    period: Optional[str] = None
    environment: Optional[str] = None
    origin_country: Optional[str] = None
    reputation_score: Optional[float] = None

    @classmethod
    def from_rows(cls, tafsir: Tafsir, scholar: Scholar, score: float) -> "RankedExcerpt":
        return cls(
            tafsir_id=tafsir.id,
            scholar_id=scholar.id,
            scholar_name=scholar.name,
            text=tafsir.tafsir_text,
            score=score,
            century=scholar.century,
            madhab=scholar.madhab,
            period=scholar.period,
            environment=scholar.environment,
            origin_country=scholar.origin_country,
            reputation_score=scholar.reputation_score,
        )

    def excerpt(self, max_chars: int = EXCERPT_MAX_CHARS) -> str:
        if len(self.text) > max_chars:
            return self.text[:max_chars] + "..."
        return self.text


@dataclass
class Attribution:
    tafsir_id: str
    scholar_id: str
    scholar_name: str
    score: float


def _scoped_query(db: Session, scope: SearchScope):
    query = db.query(Tafsir, Scholar).join(Scholar, Tafsir.scholar_id == Scholar.id)
    if scope.verse_id:
        query = query.filter(Tafsir.verse_id == scope.verse_id)
    if scope.scholar_ids:
        query = query.filter(Tafsir.scholar_id.in_(scope.scholar_ids))
    if scope.exclude_scholar_ids:
        query = query.filter(Tafsir.scholar_id.notin_(scope.exclude_scholar_ids))
    return query.order_by(Tafsir.created_at, Tafsir.id)


async def rank_candidates(
    db: Session,
    query_text: str,
    scope: SearchScope,
    embedder=None,
    settings: Optional[Settings] = None,
) -> List[RankedExcerpt]:
    """
    Rank tafsirs in scope by similarity to ``query_text``.

    Embedding mode compares the query embedding with stored tafsir
    embeddings and drops anything below ``scope.min_similarity``. Sample
    mode scores candidates lexically without a threshold. Ties keep the
    database order.

    Raises:
        ValueError: If the scope includes and excludes the same scholar
        SimilaritySearchError: If the query embedding cannot be computed
    """
    scope.validate()
    settings = settings or get_settings()

    if embedder is None or settings.sample_mode:
        rows = _scoped_query(db, scope).all()
        ranked = [
            RankedExcerpt.from_rows(tafsir, scholar, lexical_similarity(query_text, tafsir.tafsir_text))
            for tafsir, scholar in rows
        ]
        ranked.sort(key=lambda r: r.score, reverse=True)
        return ranked[:scope.limit]

    try:
        query_embedding = await embedder.create_embedding(query_text)
    except Exception as e:
        raise SimilaritySearchError(f"Query embedding failed: {e}") from e

    rows = _scoped_query(db, scope).filter(Tafsir.embedding.isnot(None)).all()
    ranked = []
    for tafsir, scholar in rows:
        score = cosine_similarity(query_embedding, tafsir.embedding or [])
        if score >= scope.min_similarity:
            ranked.append(RankedExcerpt.from_rows(tafsir, scholar, score))

    ranked.sort(key=lambda r: r.score, reverse=True)
    return ranked[:scope.limit]


def sample_excerpts(db: Session, scope: SearchScope, limit: int = SAMPLE_LIMIT) -> List[RankedExcerpt]:
    """Unranked excerpts in scope with a fixed score, used when ranking fails."""
    rows = _scoped_query(db, scope).limit(limit).all()
    return [RankedExcerpt.from_rows(tafsir, scholar, SAMPLE_SCORE) for tafsir, scholar in rows]


async def attribute_response(
    generated_text: str,
    candidates: Sequence[RankedExcerpt],
    strategy,
) -> Optional[Attribution]:
    """
    Historical tafsir most similar to ``generated_text``.

    Highest score wins and the first candidate wins exact ties. Returns
    None for an empty candidate list or when nothing scores above zero.
    """
    best: Optional[Attribution] = None
    best_score = 0.0
    for candidate in candidates:
        score = await strategy.similarity(generated_text, candidate.text)
        if score > best_score:
            best_score = score
            best = Attribution(
                tafsir_id=candidate.tafsir_id,
                scholar_id=candidate.scholar_id,
                scholar_name=candidate.scholar_name,
                score=score,
            )
    return best
