"""
Tafsir generation orchestrator.

Per request:
    resolve verse -> demo answer? -> rank excerpts -> cache check
        -> cache hit: replay the stored answer
        -> otherwise: create Search, generate, post-process,
           attribute, persist SearchResult, respond

Provider failures during generation never surface as errors: a labelled
fallback document is persisted and returned instead, because quota has
already been spent by then.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Dict, List, Optional

import openai
from sqlalchemy.orm import Session

from mufessir.config import CACHE_WINDOW_SECONDS, DEFAULT_LANGUAGE, Settings
from mufessir.models.models import Search, SearchResult, User, Verse
from mufessir.schemas.tafseer import TafseerFilters, build_cache_key, verse_to_dict
from mufessir.services.demo_answers import DemoAnswers
from mufessir.services.openai_service import AIUnavailableError
from mufessir.services.prompt import PromptOptions, StyleParams, build_tafsir_prompt
from mufessir.services.similarity import (
    Attribution,
    RankedExcerpt,
    SearchScope,
    SimilaritySearchError,
    attribute_response,
    get_similarity_strategy,
    rank_candidates,
    sample_excerpts,
)
from mufessir.services.text import SentenceStream, finalize_response, token_budget
from mufessir.utils.api_retry import CircuitBreakerOpenError

logger = logging.getLogger(__name__)

FALLBACK_EXCERPT_CHARS = 200


class VerseNotFoundError(Exception):
    pass


class GenerationError(Exception):
    """Raised when the provider answered but produced nothing usable."""
    pass


# Failures that turn into a fallback document instead of an error response
GENERATION_ERRORS = (
    AIUnavailableError,
    CircuitBreakerOpenError,
    GenerationError,
    openai.OpenAIError,
)


@dataclass
class TafseerPlan:
    """Everything resolved before generation starts."""
    verse: Verse
    filters: TafseerFilters
    cache_key: str
    excerpts: List[RankedExcerpt] = field(default_factory=list)
    cached_result: Optional[SearchResult] = None
    demo_answer: Optional[str] = None
    # Response fields for a demo or cache hit, resolved while the session is open
    replay_fields: Optional[Dict[str, Any]] = None

    @property
    def language(self) -> str:
        return self.filters.language or DEFAULT_LANGUAGE

    @property
    def replay(self) -> bool:
        return self.replay_fields is not None


def build_preface(verse: Verse, language: str) -> str:
    """Verse header placed before the generated tafsir."""
    turkish = language == "Turkish"
    lines = [f"Arabic: {verse.arabic_text}"]
    if verse.translation:
        lines.append(f"{'Meal' if turkish else 'Meaning'}: {verse.translation}")
    return "\n".join(lines) + f"\n\n{'Tefsir' if turkish else 'Tafsir'}:\n"


def build_fallback_document(verse: Verse, excerpts: List[RankedExcerpt], filters: TafseerFilters) -> str:
    lines = [
        "**Fallback Response** (AI generation is currently unavailable)",
        "",
        f"**Verse:** {verse.surah_name} {verse.surah_number}:{verse.verse_number}",
        f"**Arabic:** {verse.arabic_text}",
        f"**Translation:** {verse.translation or 'Not available'}",
        "",
        "**Available Scholar Excerpts:**",
    ]
    if not excerpts:
        lines.append("No scholar excerpts are available for this verse.")
    for i, excerpt in enumerate(excerpts, start=1):
        century = f"{excerpt.century}. century" if excerpt.century else "unknown century"
        lines.append(
            f"{i}. **{excerpt.scholar_name}** ({century}, {excerpt.madhab or 'Unknown'} school):"
        )
        lines.append(f"   {excerpt.excerpt(FALLBACK_EXCERPT_CHARS)}")

    def _param(value):
        return value if value is not None else "Not specified"

    lines += [
        "",
        "**Requested Parameters:**",
        f"- Tone: {_param(filters.tone)}/10 (1=emotional, 10=rational)",
        f"- Intellect Level: {_param(filters.intellect_level)}/10",
        f"- Language: {_param(filters.language)}",
        f"- Response Length: {_param(filters.response_length)}/10",
        f"- Compare with: {_param(filters.compare_with)}",
        "",
        "*This is a fallback response assembled from stored scholar excerpts.*",
    ]
    return "\n".join(lines)


class TafseerService:
    """
    Runs one tafsir request for one user.

    ``ai`` is anything exposing the OpenAIService coroutine interface
    (chat_completion, chat_completion_stream, create_embedding).
    """

    def __init__(
        self,
        db: Session,
        user: User,
        settings: Settings,
        ai,
        demo_answers: Optional[DemoAnswers] = None,
    ):
        self.db = db
        self.user = user
        self.settings = settings
        self.ai = ai
        self.demo_answers = demo_answers or DemoAnswers()

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def plan(self, verse_id: str, filters: Optional[TafseerFilters] = None) -> TafseerPlan:
        """
        Resolve the verse, demo answer, excerpts and cache state.

        Raises:
            VerseNotFoundError: Unknown verse id
            ValueError: A scholar is both included and excluded
        """
        filters = filters or TafseerFilters()
        verse = self.db.query(Verse).filter(Verse.id == verse_id).first()
        if not verse:
            raise VerseNotFoundError(verse_id)

        plan = TafseerPlan(
            verse=verse,
            filters=filters,
            cache_key=build_cache_key(verse.id, filters, self.user.id),
        )

        if self.settings.demo_mode:
            plan.demo_answer = self.demo_answers.get(verse.id, plan.language)
            if plan.demo_answer is not None:
                logger.info(f"Serving demo answer for {verse.id} ({plan.language})")
                plan.replay_fields = self._replay_fields(plan)
                return plan

        plan.excerpts = await self._rank_excerpts(verse, filters)
        plan.cached_result = self._find_cached_result(verse.id, plan.cache_key)
        if plan.cached_result is not None:
            plan.replay_fields = self._replay_fields(plan)
        return plan

    async def _rank_excerpts(self, verse: Verse, filters: TafseerFilters) -> List[RankedExcerpt]:
        scope = SearchScope(
            verse_id=verse.id,
            scholar_ids=filters.scholars or [],
            exclude_scholar_ids=filters.exclude_scholars or [],
        )
        scope.validate()

        query_text = f"{verse.arabic_text} {verse.translation or ''}".strip()
        try:
            excerpts = await rank_candidates(
                self.db, query_text, scope, embedder=self.ai, settings=self.settings
            )
        except SimilaritySearchError as e:
            logger.warning(f"Similarity search failed for {verse.id}, sampling instead: {e}")
            excerpts = []

        if not excerpts:
            excerpts = sample_excerpts(self.db, scope)
        return excerpts

    def _find_cached_result(self, verse_id: str, cache_key: str) -> Optional[SearchResult]:
        search = (
            self.db.query(Search)
            .filter(
                Search.user_id == self.user.id,
                Search.verse_id == verse_id,
                Search.cache_key == cache_key,
            )
            .order_by(Search.created_at.desc())
            .first()
        )
        if not search:
            return None

        if search.created_at < datetime.utcnow() - timedelta(seconds=CACHE_WINDOW_SECONDS):
            return None

        result = (
            self.db.query(SearchResult)
            .filter(SearchResult.search_id == search.id)
            .order_by(SearchResult.created_at.desc())
            .first()
        )
        if result:
            logger.info(f"Cache hit for search {search.id}")
        return result

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def _replay_fields(self, plan: TafseerPlan) -> Dict[str, Any]:
        if plan.demo_answer is not None:
            return {
                "aiResponse": plan.demo_answer,
                "similarityScore": None,
                "mostSimilarScholar": None,
                "searchId": None,
                "demo": True,
            }

        result = plan.cached_result
        scholar_name = None
        if result.tafsir is not None and result.tafsir.scholar is not None:
            scholar_name = result.tafsir.scholar.name
        fields = {
            "aiResponse": result.ai_response,
            "similarityScore": result.similarity_score,
            "mostSimilarScholar": scholar_name,
            "searchId": result.search_id,
        }
        if result.is_fallback:
            fields["fallback"] = True
        return fields

    async def respond(self, plan: TafseerPlan) -> Dict[str, Any]:
        """Non-streaming response document."""
        body = {"verse": verse_to_dict(plan.verse), "filters": plan.filters.echo()}

        if plan.replay:
            body.update(plan.replay_fields)
            body.update({"usage": None, "cached": True})
            return body

        search_id = self._create_search(plan)
        prompt = self._build_prompt(plan)
        preface = build_preface(plan.verse, plan.language)

        try:
            completion = await self.ai.chat_completion(
                prompt, max_tokens=self._token_budget(plan)
            )
            content = finalize_response(completion.content, plan.filters.response_length)
            if not content:
                raise GenerationError("Model returned an empty answer")
        except GENERATION_ERRORS as e:
            logger.warning(f"Generation failed for search {search_id}, using fallback: {e}")
            return {**body, **self._persist_fallback(plan, search_id), "usage": None, "fallback": True}

        attribution = await self._attribute(plan, content)
        answer = preface + content
        self._persist_result(plan, search_id, answer, attribution)

        body.update({
            "aiResponse": answer,
            "similarityScore": attribution.score if attribution else None,
            "mostSimilarScholar": attribution.scholar_name if attribution else None,
            "searchId": search_id,
            "usage": completion.usage,
        })
        return body

    def stream(self, plan: TafseerPlan) -> AsyncIterator[Dict[str, Any]]:
        """
        Streaming response as event dicts: start, chunk..., complete.

        Everything touching lazily loaded rows happens here, before the
        returned iterator is consumed, so the iterator only writes new rows.
        Provider failures end in a fallback chunk and a complete event
        flagged ``fallback``; any other exception propagates to the consumer.
        """
        if plan.replay:
            return self._replay_events(plan.replay_fields)

        prompt = self._build_prompt(plan)
        preface = build_preface(plan.verse, plan.language)
        fallback = build_fallback_document(plan.verse, plan.excerpts, plan.filters)
        search_id = self._create_search(plan)
        return self._generation_events(plan, search_id, prompt, preface, fallback)

    async def _replay_events(self, fields: Dict[str, Any]) -> AsyncIterator[Dict[str, Any]]:
        yield {"type": "start", "searchId": fields["searchId"], "cached": True}
        yield {"type": "chunk", "content": fields["aiResponse"]}
        yield {"type": "complete", **fields, "usage": None, "cached": True}

    async def _generation_events(
        self,
        plan: TafseerPlan,
        search_id: str,
        prompt: str,
        preface: str,
        fallback: str,
    ) -> AsyncIterator[Dict[str, Any]]:
        yield {"type": "start", "searchId": search_id}
        yield {"type": "chunk", "content": preface}

        # Chunks carry only text the post-processing keeps, so the
        # streamed body always matches the stored answer.
        sentences = SentenceStream(plan.filters.response_length)
        usage_sink: Dict[str, Any] = {}
        try:
            async for delta in self.ai.chat_completion_stream(
                prompt, max_tokens=self._token_budget(plan), usage_sink=usage_sink
            ):
                released = sentences.feed(delta)
                if released:
                    yield {"type": "chunk", "content": released}

            content, tail = sentences.finish()
            if not content:
                raise GenerationError("Model returned an empty answer")
        except GENERATION_ERRORS as e:
            logger.warning(f"Streaming generation failed for search {search_id}, using fallback: {e}")
            fields = self._persist_fallback(plan, search_id, fallback)
            separator = "\n\n" if sentences.sent else ""
            yield {"type": "chunk", "content": separator + fields["aiResponse"]}
            yield {
                "type": "complete",
                "searchId": search_id,
                "aiResponse": fields["aiResponse"],
                "usage": None,
                "similarityScore": fields["similarityScore"],
                "mostSimilarScholar": fields["mostSimilarScholar"],
                "fallback": True,
            }
            return

        if tail:
            yield {"type": "chunk", "content": tail}

        answer = preface + content
        attribution = await self._attribute(plan, content)
        self._persist_result(plan, search_id, answer, attribution)

        yield {
            "type": "complete",
            "searchId": search_id,
            "aiResponse": answer,
            "usage": usage_sink.get("usage"),
            "similarityScore": attribution.score if attribution else None,
            "mostSimilarScholar": attribution.scholar_name if attribution else None,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _token_budget(self, plan: TafseerPlan) -> int:
        return token_budget(plan.filters.response_length, self.settings.openai_max_tokens)

    def _build_prompt(self, plan: TafseerPlan) -> str:
        filters = plan.filters
        return build_tafsir_prompt(PromptOptions(
            verse_text=plan.verse.arabic_text,
            translation=plan.verse.translation,
            excerpts=plan.excerpts,
            style=StyleParams(
                tone=filters.tone,
                intellect_level=filters.intellect_level,
                language=plan.language,
                response_length=filters.response_length,
                compare_with=filters.compare_with,
            ),
        ))

    async def _attribute(self, plan: TafseerPlan, content: str) -> Optional[Attribution]:
        strategy = get_similarity_strategy(embedder=self.ai, settings=self.settings)
        return await attribute_response(content, plan.excerpts, strategy)

    def _create_search(self, plan: TafseerPlan) -> str:
        # Committed before generation so an interrupted request still leaves a trace
        search = Search(
            user_id=self.user.id,
            verse_id=plan.verse.id,
            cache_key=plan.cache_key,
            query={
                "filters": plan.filters.echo(),
                "verseId": plan.verse.id,
                "cacheKey": plan.cache_key,
                "timestamp": datetime.utcnow().isoformat(),
            },
        )
        self.db.add(search)
        self.db.commit()
        return search.id

    def _persist_result(
        self,
        plan: TafseerPlan,
        search_id: str,
        answer: str,
        attribution: Optional[Attribution],
    ) -> None:
        tafsir_id = attribution.tafsir_id if attribution else None
        if tafsir_id is None and plan.excerpts:
            tafsir_id = plan.excerpts[0].tafsir_id

        self.db.add(SearchResult(
            search_id=search_id,
            tafsir_id=tafsir_id,
            ai_response=answer,
            similarity_score=attribution.score if attribution else None,
        ))
        self.db.commit()

    def _persist_fallback(
        self,
        plan: TafseerPlan,
        search_id: str,
        document: Optional[str] = None,
    ) -> Dict[str, Any]:
        if document is None:
            document = build_fallback_document(plan.verse, plan.excerpts, plan.filters)
        top = plan.excerpts[0] if plan.excerpts else None
        self.db.add(SearchResult(
            search_id=search_id,
            tafsir_id=top.tafsir_id if top else None,
            ai_response=document,
            similarity_score=top.score if top else None,
            is_fallback=True,
        ))
        self.db.commit()
        return {
            "aiResponse": document,
            "similarityScore": top.score if top else None,
            "mostSimilarScholar": top.scholar_name if top else None,
            "searchId": search_id,
        }
