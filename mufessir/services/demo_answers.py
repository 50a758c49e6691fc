"""
Precomputed answers served in demo mode.

The answers file is JSON shaped ``{"verse-1-1": {"English": "...", "Turkish": "..."}}``
and is loaded once at startup.
"""
import json
import logging
from pathlib import Path
from typing import Dict, Optional

from fastapi import Request

from mufessir.config import Settings

logger = logging.getLogger(__name__)


class DemoAnswers:
    def __init__(self, answers: Optional[Dict[str, Dict[str, str]]] = None):
        self._answers = answers or {}

    def __len__(self):
        return len(self._answers)

    def get(self, verse_id: str, language: str) -> Optional[str]:
        return self._answers.get(verse_id, {}).get(language)

    @classmethod
    def from_file(cls, path: str) -> "DemoAnswers":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("Demo answers file must contain a JSON object keyed by verse id")

        answers = {}
        for verse_id, by_language in raw.items():
            if not isinstance(by_language, dict):
                raise ValueError(f"Demo answers for {verse_id} must map language to text")
            answers[verse_id] = {lang: str(text) for lang, text in by_language.items()}
        return cls(answers)


def load_demo_answers(settings: Settings) -> DemoAnswers:
    """Answers table for the app, empty unless demo mode is on and a file is set."""
    if not settings.demo_mode:
        return DemoAnswers()
    if not settings.demo_answers_path:
        logger.warning("DEMO_MODE is on but DEMO_ANSWERS_PATH is not set")
        return DemoAnswers()

    answers = DemoAnswers.from_file(settings.demo_answers_path)
    logger.info(f"Loaded demo answers for {len(answers)} verses from {settings.demo_answers_path}")
    return answers


def get_demo_answers(request: Request) -> DemoAnswers:
    """Dependency returning the table loaded by the app lifespan."""
    return getattr(request.app.state, "demo_answers", None) or DemoAnswers()
