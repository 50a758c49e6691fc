"""
Prompt builder for tafsir generation.

``build_tafsir_prompt`` is a pure function: identical options always give
byte-identical text, and optional fields that are missing produce no line.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from mufessir.services.similarity import RankedExcerpt

TASK_FRAMING = (
    "You are an expert Islamic scholar and linguist. Your task is to generate a tafsir "
    "(exegesis) for the following Quranic verse, using the provided context and scholar excerpts."
)

INSTRUCTIONS = [
    "Base your answer strictly on the provided tafsir excerpts and metadata.",
    "Do NOT use information from outside sources or the internet.",
    "Do NOT repeat the verse text or its translation in your answer. Start directly with the tafsir.",
    "If the user requested a comparison, provide a comparative analysis.",
    "Output should be scholarly, clear, and reference the scholars by name where relevant.",
    "When tone (1-10) is provided, 1 = emotional, 10 = rational. Adjust the writing accordingly.",
    "When intellect level (1-10) is provided, 1 = simple vocabulary, 10 = highly academic "
    "vocabulary. Adjust the complexity accordingly.",
    "When response length (1-10) is provided, 1 = a few sentences, 10 = a long essay. "
    "Always finish on a complete sentence.",
]


@dataclass
class StyleParams:
    tone: Optional[int] = None  # 1 emotional .. 10 rational
    intellect_level: Optional[int] = None  # 1 simple .. 10 academic
    language: Optional[str] = None
    response_length: Optional[int] = None  # 1 terse .. 10 essay
    compare_with: Optional[str] = None


@dataclass
class PromptOptions:
    verse_text: str
    translation: Optional[str] = None
    excerpts: List[RankedExcerpt] = field(default_factory=list)
    style: StyleParams = field(default_factory=StyleParams)


def scholar_label(excerpt: RankedExcerpt) -> str:
    """Scholar name followed by whatever metadata is known."""
    label = excerpt.scholar_name
    if excerpt.century:
        label += f" ({excerpt.century}. century)"
    for value in (excerpt.madhab, excerpt.period, excerpt.environment, excerpt.origin_country):
        if value:
            label += f" [{value}]"
    if excerpt.reputation_score:
        label += f" [Reputation: {excerpt.reputation_score}/10]"
    return label


def _parameter_lines(style: StyleParams) -> List[str]:
    lines = []
    if style.tone:
        lines.append(f"- Tone: {style.tone}/10 (1=emotional, 10=rational)")
    if style.intellect_level:
        lines.append(f"- Intellect Level: {style.intellect_level}/10 (1=simple, 10=academic vocabulary)")
    if style.language:
        lines.append(f"- Output Language: {style.language}")
    if style.response_length:
        lines.append(f"- Response Length: {style.response_length}/10 (1=terse, 10=essay)")
    if style.compare_with:
        lines.append(f"- Compare with: {style.compare_with}")
    return lines


def build_tafsir_prompt(options: PromptOptions) -> str:
    parts = [TASK_FRAMING, "", "Verse (Arabic):", options.verse_text]
    if options.translation:
        parts += ["Translation:", options.translation]

    parts += ["", "Relevant Tafsir Excerpts from Scholars:"]
    for i, excerpt in enumerate(options.excerpts, start=1):
        parts += ["", f"[{i}] {scholar_label(excerpt)}:", excerpt.excerpt()]

    parts += ["", "User Parameters:"]
    parts += _parameter_lines(options.style)

    parts += ["", "Instructions:"]
    parts += [f"- {line}" for line in INSTRUCTIONS]

    return "\n".join(parts) + "\n"
