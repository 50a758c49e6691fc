"""
Post-processing of generated tafsir text.
"""
import re
from typing import List, Optional, Tuple

TERMINATORS = ".!?…"

# Token budget per length tier: a floor plus a linear term
LENGTH_TOKEN_FLOOR = 60
LENGTH_TOKENS_PER_TIER = 90

_SENTENCE = re.compile(r"[^.?!…]+[.?!…]+")


def clamp_tier(tier: Optional[int]) -> Optional[int]:
    if tier is None:
        return None
    return max(1, min(10, int(tier)))


def token_budget(tier: Optional[int], default: int) -> int:
    """max_tokens for a response length tier, ``default`` when no tier is requested."""
    tier = clamp_tier(tier)
    if tier is None:
        return default
    return LENGTH_TOKEN_FLOOR + LENGTH_TOKENS_PER_TIER * tier


def split_sentences(text: str) -> List[str]:
    sentences = [s.strip() for s in _SENTENCE.findall(text)]
    return sentences or [text.strip()]


def trim_to_sentence_boundary(text: str) -> str:
    """Cut after the last terminal punctuation mark, if there is one."""
    last = max(text.rfind(mark) for mark in TERMINATORS)
    if last == -1:
        return text.strip()
    return text[:last + 1]


def finalize_response(text: str, tier: Optional[int] = None) -> str:
    """
    Shape raw model output for the requested length tier.

    Tiers 1-2 keep two sentences and tier 3 keeps three. Every tier ends
    on a sentence boundary when the text contains one.
    """
    tier = clamp_tier(tier)
    cleaned = text.strip()

    if tier is not None and tier <= 3:
        target = 3 if tier == 3 else 2
        cleaned = " ".join(split_sentences(cleaned)[:target]).strip()

    return trim_to_sentence_boundary(cleaned)


class SentenceStream:
    """
    Incremental counterpart of ``finalize_response`` for streamed output.

    ``feed`` only releases text that ``finalize_response`` is certain to
    keep, so everything streamed is a prefix of the final answer. Tiers
    1-3 rejoin sentences and are held back until ``finish``.
    """

    def __init__(self, tier: Optional[int] = None):
        self.tier = clamp_tier(tier)
        self.raw = ""
        self.sent = ""

    @property
    def holds_back(self) -> bool:
        return self.tier is not None and self.tier <= 3

    def feed(self, delta: str) -> str:
        """Add a model delta; return the newly releasable text (may be empty)."""
        self.raw += delta
        if self.holds_back:
            return ""

        text = self.raw.lstrip()
        end = max(text.rfind(mark) for mark in TERMINATORS) + 1
        if end <= len(self.sent):
            return ""
        released = text[len(self.sent):end]
        self.sent = text[:end]
        return released

    def finish(self) -> Tuple[str, str]:
        """(final answer, the part of it not released yet)."""
        content = finalize_response(self.raw, self.tier)
        return content, content[len(self.sent):]
