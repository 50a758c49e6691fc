"""
Tafseer Router
Generates a tafsir for one verse, as a JSON document or an SSE stream.
"""
import json
import logging
from typing import Any, AsyncIterator, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from mufessir.config import Settings, get_settings
from mufessir.database import get_db
from mufessir.dependencies.auth import get_current_user
from mufessir.models.models import User
from mufessir.schemas.tafseer import TafseerRequest
from mufessir.services.demo_answers import DemoAnswers, get_demo_answers
from mufessir.services.openai_service import OpenAIService, get_openai_service
from mufessir.services.tafseer_service import TafseerService, VerseNotFoundError

router = APIRouter(prefix="/tafseer", tags=["tafseer"])
logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def sse_event(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def _sse_stream(events: AsyncIterator[Dict[str, Any]], db: Session) -> AsyncIterator[str]:
    """Serialize service events, turning unexpected failures into an error event."""
    try:
        async for event in events:
            yield sse_event(event)
    except Exception as e:
        logger.error("Streaming tafseer error: %s", e, exc_info=True)
        yield sse_event({"type": "error", "error": "Failed to generate tafseer"})
    finally:
        # The request scoped session may already be closed; writes above reopen it
        db.close()


@router.post("")
async def create_tafseer(
    request: TafseerRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    ai: OpenAIService = Depends(get_openai_service),
    demo_answers: DemoAnswers = Depends(get_demo_answers),
):
    """
    Generate (or replay) a tafsir for ``verseId`` shaped by ``filters``.

    Quota is checked and spent by QuotaMiddleware around this endpoint.
    With ``stream: true`` the response is text/event-stream carrying
    start, chunk, complete and error events.
    """
    if not request.verse_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Verse ID is required")

    service = TafseerService(db, current_user, settings, ai, demo_answers)
    try:
        plan = await service.plan(request.verse_id, request.filters)
    except VerseNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Verse not found")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if request.stream:
        return StreamingResponse(
            _sse_stream(service.stream(plan), db),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    return await service.respond(plan)
