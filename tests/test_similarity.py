"""
Tests for ranking and attribution.
"""

import pytest

from mufessir.config import Settings
from mufessir.services.similarity import (
    SAMPLE_SCORE,
    EmbeddingSimilarity,
    LexicalSimilarity,
    RankedExcerpt,
    SearchScope,
    SimilaritySearchError,
    attribute_response,
    cosine_similarity,
    get_similarity_strategy,
    lexical_similarity,
    normalize_text,
    rank_candidates,
    sample_excerpts,
)
from tests.mocks.ai_mocks import FakeAIService


def excerpt(tafsir_id: str, text: str, scholar_name: str = "Scholar") -> RankedExcerpt:
    return RankedExcerpt(
        tafsir_id=tafsir_id,
        scholar_id=f"scholar-{tafsir_id}",
        scholar_name=scholar_name,
        text=text,
        score=0.5,
    )


LIVE_SETTINGS = Settings(jwt_secret="x", openai_api_key="sk-test")
SAMPLE_SETTINGS = Settings(jwt_secret="x", openai_api_key=None)


class TestPureFunctions:

    @pytest.mark.unit
    def test_normalize_text(self):
        assert normalize_text("  Mercy, MERCY!\n and   grace. ") == "mercy mercy and grace"

    @pytest.mark.unit
    def test_identical_texts_score_one(self):
        assert lexical_similarity("mercy of Allah", "Mercy of Allah!") == pytest.approx(1.0)

    @pytest.mark.unit
    def test_disjoint_texts_score_zero(self):
        assert lexical_similarity("mercy", "throne") == 0.0

    @pytest.mark.unit
    def test_empty_text_scores_zero(self):
        assert lexical_similarity("", "mercy") == 0.0
        assert lexical_similarity("...", "mercy") == 0.0

    @pytest.mark.unit
    def test_lexical_is_symmetric_and_bounded(self):
        a = "the mercy of Allah encompasses all creation"
        b = "all creation is under the throne"
        assert lexical_similarity(a, b) == pytest.approx(lexical_similarity(b, a))
        assert 0.0 < lexical_similarity(a, b) < 1.0

    @pytest.mark.unit
    def test_cosine_mismatched_lengths(self):
        assert cosine_similarity([1.0, 0.0], [1.0]) == 0.0
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
        assert cosine_similarity([1.0, 2.0], [2.0, 4.0]) == pytest.approx(1.0)


class TestStrategies:

    @pytest.mark.unit
    def test_lexical_when_no_live_ai(self):
        assert isinstance(get_similarity_strategy(FakeAIService(), SAMPLE_SETTINGS), LexicalSimilarity)
        assert isinstance(get_similarity_strategy(None, LIVE_SETTINGS), LexicalSimilarity)

    @pytest.mark.unit
    def test_embedding_when_live(self):
        assert isinstance(get_similarity_strategy(FakeAIService(), LIVE_SETTINGS), EmbeddingSimilarity)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_embedding_strategy_caches_vectors(self):
        ai = FakeAIService()
        strategy = EmbeddingSimilarity(ai)
        await strategy.similarity("answer", "one")
        await strategy.similarity("answer", "two")
        assert ai.embedded.count("answer") == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_embedding_strategy_falls_back_to_lexical(self):
        ai = FakeAIService()
        ai.fail = True
        strategy = EmbeddingSimilarity(ai)
        assert await strategy.similarity("mercy", "mercy") == pytest.approx(1.0)


class TestAttribution:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_picks_highest_score(self):
        candidates = [
            excerpt("a", "the throne extends over the heavens"),
            excerpt("b", "mercy of Allah for all creation", scholar_name="Al-Tabari"),
        ]
        result = await attribute_response("Allah's mercy for creation", candidates, LexicalSimilarity())
        assert result.tafsir_id == "b"
        assert result.scholar_name == "Al-Tabari"
        assert 0.0 < result.score <= 1.0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_first_candidate_wins_ties(self):
        candidates = [excerpt("a", "mercy"), excerpt("b", "mercy")]
        result = await attribute_response("mercy", candidates, LexicalSimilarity())
        assert result.tafsir_id == "a"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_candidates(self):
        assert await attribute_response("mercy", [], LexicalSimilarity()) is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_nothing_above_zero(self):
        assert await attribute_response("mercy", [excerpt("a", "throne")], LexicalSimilarity()) is None


class TestSearchScope:

    @pytest.mark.unit
    def test_overlap_is_rejected(self):
        scope = SearchScope(scholar_ids=["scholar-a", "scholar-b"], exclude_scholar_ids=["scholar-b"])
        with pytest.raises(ValueError, match="scholar-b"):
            scope.validate()

    @pytest.mark.unit
    def test_disjoint_scope_is_valid(self):
        SearchScope(scholar_ids=["scholar-a"], exclude_scholar_ids=["scholar-b"]).validate()


class TestRanking:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sample_mode_ranks_lexically(self, db, fatiha_tafsirs):
        ranked = await rank_candidates(
            db, "mercy of Allah for all His creation", SearchScope(verse_id="verse-1-1"),
            embedder=FakeAIService(), settings=SAMPLE_SETTINGS,
        )
        assert ranked[0].tafsir_id == "tafsir-1-1-tabari"
        assert [r.score for r in ranked] == sorted((r.score for r in ranked), reverse=True)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_scholar_filters_are_honoured(self, db, fatiha_tafsirs):
        ranked = await rank_candidates(
            db, "Basmala", SearchScope(verse_id="verse-1-1", exclude_scholar_ids=["scholar-tabari"]),
            settings=SAMPLE_SETTINGS,
        )
        assert {r.scholar_id for r in ranked} == {"scholar-kathir", "scholar-qurtubi"}

        ranked = await rank_candidates(
            db, "Basmala", SearchScope(verse_id="verse-1-1", scholar_ids=["scholar-kathir"]),
            settings=SAMPLE_SETTINGS,
        )
        assert [r.scholar_id for r in ranked] == ["scholar-kathir"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_limit_is_applied(self, db, fatiha_tafsirs):
        ranked = await rank_candidates(
            db, "Basmala", SearchScope(verse_id="verse-1-1", limit=2), settings=SAMPLE_SETTINGS,
        )
        assert len(ranked) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_embedding_mode_only_uses_embedded_rows(self, db, fatiha_tafsirs):
        ai = FakeAIService()
        query_vector = await ai.create_embedding("query")
        tabari = fatiha_tafsirs["tafsir-1-1-tabari"]
        tabari.embedding = query_vector
        db.commit()

        ranked = await rank_candidates(
            db, "query", SearchScope(verse_id="verse-1-1"), embedder=ai, settings=LIVE_SETTINGS,
        )
        assert [r.tafsir_id for r in ranked] == ["tafsir-1-1-tabari"]
        assert ranked[0].score == pytest.approx(1.0)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_embedding_failure_raises(self, db, fatiha_tafsirs):
        ai = FakeAIService()
        ai.fail = True
        with pytest.raises(SimilaritySearchError):
            await rank_candidates(
                db, "query", SearchScope(verse_id="verse-1-1"), embedder=ai, settings=LIVE_SETTINGS,
            )

    @pytest.mark.unit
    def test_sample_excerpts_use_fixed_score(self, db, fatiha_tafsirs):
        samples = sample_excerpts(db, SearchScope(verse_id="verse-1-1"), limit=2)
        assert [s.tafsir_id for s in samples] == ["tafsir-1-1-tabari", "tafsir-1-1-kathir"]
        assert all(s.score == SAMPLE_SCORE for s in samples)
