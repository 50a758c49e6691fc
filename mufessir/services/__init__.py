# Services module

# Tafsir generation
from mufessir.services.tafseer_service import (
    TafseerService,
    TafseerPlan,
    VerseNotFoundError,
    GenerationError,
    build_fallback_document,
    build_preface,
)

# Retrieval and attribution
from mufessir.services.similarity import (
    RankedExcerpt,
    SearchScope,
    SimilaritySearchError,
    attribute_response,
    get_similarity_strategy,
    rank_candidates,
)

from mufessir.services.prompt import PromptOptions, StyleParams, build_tafsir_prompt
from mufessir.services.text import finalize_response, token_budget

# Providers
from mufessir.services.openai_service import OpenAIService, AIUnavailableError, get_openai_service
from mufessir.services.email_service import EmailService, get_email_service
