"""
Tests for the tafsir prompt builder.
"""

import pytest

from mufessir.services.prompt import (
    INSTRUCTIONS,
    TASK_FRAMING,
    PromptOptions,
    StyleParams,
    build_tafsir_prompt,
    scholar_label,
)
from mufessir.services.similarity import RankedExcerpt


def make_excerpt(**overrides) -> RankedExcerpt:
    values = dict(
        tafsir_id="tafsir-1",
        scholar_id="scholar-tabari",
        scholar_name="Al-Tabari",
        text="Rahman indicates the all-encompassing mercy.",
        score=0.8,
        century=9,
        madhab="Shafi'i",
        period="Abbasid",
        environment="Dar al-Islam",
        origin_country="Persia",
        reputation_score=9.5,
    )
    values.update(overrides)
    return RankedExcerpt(**values)


class TestScholarLabel:

    @pytest.mark.unit
    def test_full_metadata(self):
        label = scholar_label(make_excerpt())
        assert label == (
            "Al-Tabari (9. century) [Shafi'i] [Abbasid] [Dar al-Islam] [Persia] [Reputation: 9.5/10]"
        )

    @pytest.mark.unit
    def test_missing_metadata_is_omitted(self):
        label = scholar_label(make_excerpt(
            century=None, madhab=None, period=None, environment=None,
            origin_country=None, reputation_score=None,
        ))
        assert label == "Al-Tabari"


class TestBuildPrompt:

    @pytest.mark.unit
    def test_sections_in_fixed_order(self):
        prompt = build_tafsir_prompt(PromptOptions(
            verse_text="بِسْمِ اللَّهِ",
            translation="In the name of Allah",
            excerpts=[make_excerpt()],
            style=StyleParams(tone=3, intellect_level=7, language="English"),
        ))

        order = [
            TASK_FRAMING,
            "Verse (Arabic):",
            "بِسْمِ اللَّهِ",
            "Translation:",
            "Relevant Tafsir Excerpts from Scholars:",
            "[1] Al-Tabari",
            "User Parameters:",
            "Instructions:",
        ]
        positions = [prompt.index(marker) for marker in order]
        assert positions == sorted(positions)

    @pytest.mark.unit
    def test_is_deterministic(self):
        options = PromptOptions(verse_text="v", excerpts=[make_excerpt()], style=StyleParams(tone=5))
        assert build_tafsir_prompt(options) == build_tafsir_prompt(options)

    @pytest.mark.unit
    def test_missing_translation_has_no_line(self):
        prompt = build_tafsir_prompt(PromptOptions(verse_text="v"))
        assert "Translation:" not in prompt

    @pytest.mark.unit
    def test_parameter_lines(self):
        prompt = build_tafsir_prompt(PromptOptions(
            verse_text="v",
            style=StyleParams(
                tone=2, intellect_level=9, language="Turkish",
                response_length=4, compare_with="Ibn Kathir",
            ),
        ))
        assert "- Tone: 2/10 (1=emotional, 10=rational)" in prompt
        assert "- Intellect Level: 9/10 (1=simple, 10=academic vocabulary)" in prompt
        assert "- Output Language: Turkish" in prompt
        assert "- Response Length: 4/10 (1=terse, 10=essay)" in prompt
        assert "- Compare with: Ibn Kathir" in prompt

    @pytest.mark.unit
    def test_unset_parameters_are_omitted(self):
        prompt = build_tafsir_prompt(PromptOptions(verse_text="v", style=StyleParams(tone=5)))
        assert "- Tone: 5/10" in prompt
        assert "Intellect Level" not in prompt
        assert "Output Language" not in prompt
        assert "Response Length: " not in prompt

    @pytest.mark.unit
    def test_long_excerpts_are_clipped(self):
        prompt = build_tafsir_prompt(PromptOptions(
            verse_text="v",
            excerpts=[make_excerpt(text="x" * 800)],
        ))
        assert "x" * 500 + "..." in prompt
        assert "x" * 501 not in prompt

    @pytest.mark.unit
    def test_every_instruction_is_included(self):
        prompt = build_tafsir_prompt(PromptOptions(verse_text="v"))
        for line in INSTRUCTIONS:
            assert f"- {line}" in prompt
