"""
Tests for the Quran text importer, the sample seed and the embedding backfill.
"""

import json
import pytest

from mufessir.importers.embeddings import backfill_embeddings, embedding_input
from mufessir.importers.quran import import_quran, read_verse_file, upsert_verses
from mufessir.importers.sample_data import SAMPLE_SCHOLARS, SAMPLE_TAFSIRS, SAMPLE_VERSES, seed_sample_data
from mufessir.models.models import Scholar, Tafsir, Verse
from tests.mocks.ai_mocks import EMBEDDING_DIMENSIONS, FakeAIService


ARABIC = [
    {"surah": 1, "ayah": 1, "text": "بِسْمِ اللَّهِ الرَّحْمَٰنِ الرَّحِيمِ"},
    {"surah": 1, "ayah": 2, "text": "الْحَمْدُ لِلَّهِ رَبِّ الْعَالَمِينَ"},
]
TRANSLATION = [
    {"surah": 1, "ayah": 1, "text": "Rahman ve Rahim olan Allah'ın adıyla"},
]


def write_json(path, data):
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return str(path)


class TestQuranImport:

    @pytest.mark.integration
    def test_creates_verses(self, db, tmp_path):
        count = import_quran(
            db,
            write_json(tmp_path / "ar.json", ARABIC),
            write_json(tmp_path / "tr.json", TRANSLATION),
        )

        assert count == 2
        first = db.get(Verse, "verse-1-1")
        assert first.surah_name == "Surah 1"
        assert first.translation == "Rahman ve Rahim olan Allah'ın adıyla"
        assert db.get(Verse, "verse-1-2").translation is None

    @pytest.mark.integration
    def test_updates_existing_verses(self, db, fatiha_verse):
        upsert_verses(db, [{"surah": 1, "ayah": 1, "text": "updated"}], {(1, 1): "new translation"})

        db.expire_all()
        verse = db.get(Verse, "verse-1-1")
        assert verse.arabic_text == "updated"
        assert verse.translation == "new translation"
        assert verse.surah_name == "Al-Fatiha"
        assert db.query(Verse).count() == 1

    @pytest.mark.integration
    def test_missing_translation_keeps_existing(self, db, fatiha_verse):
        upsert_verses(db, [{"surah": 1, "ayah": 1, "text": "updated"}])

        db.expire_all()
        assert db.get(Verse, "verse-1-1").translation == fatiha_verse.translation

    @pytest.mark.unit
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_verse_file(str(tmp_path / "absent.json"))

    @pytest.mark.unit
    def test_file_must_hold_a_list(self, tmp_path):
        with pytest.raises(ValueError):
            read_verse_file(write_json(tmp_path / "bad.json", {"surah": 1}))


class TestSampleData:

    @pytest.mark.integration
    def test_seed_is_idempotent(self, db):
        first = seed_sample_data(db)
        second = seed_sample_data(db)

        assert first == {
            "verses": len(SAMPLE_VERSES),
            "scholars": len(SAMPLE_SCHOLARS),
            "tafsirs": len(SAMPLE_TAFSIRS),
        }
        assert second == {"verses": 0, "scholars": 0, "tafsirs": 0}
        assert db.query(Tafsir).count() == len(SAMPLE_TAFSIRS)

    @pytest.mark.integration
    def test_every_tafsir_has_its_verse_and_scholar(self, db):
        seed_sample_data(db)
        for tafsir in db.query(Tafsir).all():
            assert tafsir.verse is not None
            assert tafsir.scholar is not None

    @pytest.mark.integration
    def test_fills_gaps_only(self, db, scholars):
        added = seed_sample_data(db)
        assert added["scholars"] == len(SAMPLE_SCHOLARS) - 3
        assert db.query(Scholar).count() == len(SAMPLE_SCHOLARS)


class TestEmbeddingBackfill:

    @pytest.mark.unit
    def test_embedding_input(self):
        assert embedding_input("آية", "tafsir") == "آية\n\ntafsir"
        assert embedding_input("", "tafsir") == "tafsir"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_embeds_every_pending_tafsir(self, db, fatiha_tafsirs):
        ai = FakeAIService()

        count = await backfill_embeddings(db, ai, batch_size=2, pause_seconds=0)

        assert count == 3
        assert len(ai.embedded) == 3
        assert ai.embedded[0].startswith("بِسْمِ اللَّهِ")
        db.expire_all()
        for tafsir in db.query(Tafsir).all():
            assert len(tafsir.embedding) == EMBEDDING_DIMENSIONS

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_already_embedded_rows_are_skipped(self, db, fatiha_tafsirs):
        tafsir = db.get(Tafsir, "tafsir-1-1-tabari")
        tafsir.embedding = [1.0] * EMBEDDING_DIMENSIONS
        db.commit()

        ai = FakeAIService()
        assert await backfill_embeddings(db, ai, pause_seconds=0) == 2

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_failures_are_not_retried_forever(self, db, fatiha_tafsirs):
        ai = FakeAIService()
        ai.fail = True

        count = await backfill_embeddings(db, ai, batch_size=2, pause_seconds=0)

        assert count == 0
        assert len(ai.embedded) == 3
        db.expire_all()
        assert db.query(Tafsir).filter(Tafsir.embedding.is_(None)).count() == 3
