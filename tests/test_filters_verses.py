"""
Tests for the public catalogue endpoints: /filters and /verses.
"""

import pytest

from mufessir.config import SUPPORTED_LANGUAGES
from mufessir.importers.sample_data import SAMPLE_VERSES, seed_sample_data
from mufessir.models.models import Verse


@pytest.fixture
def seeded(db):
    seed_sample_data(db)
    return db


class TestFilters:

    @pytest.mark.api
    def test_empty_catalogue(self, client, db):
        response = client.get("/filters")

        assert response.status_code == 200
        data = response.json()
        assert data["scholars"] == []
        assert data["filterOptions"]["centuries"] == []
        assert data["filterOptions"]["birthYearRange"] is None
        assert data["supportedLanguages"] == SUPPORTED_LANGUAGES

    @pytest.mark.api
    def test_scholars_sorted_by_name(self, client, scholars):
        data = client.get("/filters").json()

        names = [s["name"] for s in data["scholars"]]
        assert names == ["Abu Ja'far al-Tabari", "Al-Qurtubi", "Ibn Kathir"]
        kathir = data["scholars"][2]
        assert kathir["id"] == "scholar-kathir"
        assert kathir["deathYear"] == 1373
        assert kathir["originCountry"] == "Syria"
        assert kathir["reputationScore"] == 9.8

    @pytest.mark.api
    def test_filter_options_are_distinct(self, client, scholars):
        options = client.get("/filters").json()["filterOptions"]

        assert options["centuries"] == [9, 13, 14]
        assert options["madhabs"] == ["Maliki", "Shafi'i"]
        assert options["environments"] == ["Dar al-Islam"]
        assert options["birthYearRange"] == {"min": 839, "max": 1300}
        assert options["deathYearRange"] == {"min": 923, "max": 1373}

    @pytest.mark.api
    def test_ranges(self, client, db):
        data = client.get("/filters").json()
        for key in ("toneRange", "intellectRange", "lengthRange"):
            assert data[key]["min"] == 1
            assert data[key]["max"] == 10

    @pytest.mark.api
    def test_no_authentication_needed(self, client, db):
        assert client.get("/filters").status_code == 200


class TestVerses:

    @pytest.mark.api
    def test_lookup_by_reference(self, client, seeded):
        response = client.get("/verses", params={"surahNumber": 2, "verseNumber": 255})

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "verse-2-255"
        assert data["surahName"] == "Al-Baqarah"
        assert data["verseNumber"] == 255

    @pytest.mark.api
    def test_unknown_reference(self, client, seeded):
        response = client.get("/verses", params={"surahNumber": 2, "verseNumber": 999})
        assert response.status_code == 404
        assert response.json()["detail"] == "Verse not found"

    @pytest.mark.api
    def test_listing_is_canonical_order(self, client, seeded):
        data = client.get("/verses").json()

        assert data["total"] == len(SAMPLE_VERSES)
        assert [v["id"] for v in data["items"]] == [
            "verse-1-1", "verse-1-2", "verse-2-255", "verse-3-64", "verse-112-1",
        ]
        assert data["skip"] == 0
        assert data["take"] == 20

    @pytest.mark.api
    def test_paging(self, client, seeded):
        data = client.get("/verses", params={"skip": 1, "take": 2}).json()

        assert [v["id"] for v in data["items"]] == ["verse-1-2", "verse-2-255"]
        assert data["total"] == len(SAMPLE_VERSES)

    @pytest.mark.api
    def test_take_is_capped(self, client, seeded):
        assert client.get("/verses", params={"take": 500}).json()["take"] == 100

    @pytest.mark.api
    def test_search_translation(self, client, seeded):
        data = client.get("/verses", params={"q": "Allah"}).json()

        ids = {v["id"] for v in data["items"]}
        assert ids == {"verse-1-1", "verse-1-2", "verse-2-255", "verse-112-1"}
        assert data["total"] == 4

    @pytest.mark.api
    def test_search_arabic(self, client, seeded):
        data = client.get("/verses", params={"q": "أَحَدٌ"}).json()
        assert [v["id"] for v in data["items"]] == ["verse-112-1"]

    @pytest.mark.api
    def test_negative_skip_rejected(self, client, db):
        assert client.get("/verses", params={"skip": -1}).status_code == 422

    @pytest.mark.api
    @pytest.mark.parametrize("wildcard", ["%", "_", "\\"])
    def test_search_wildcards_match_literally(self, client, seeded, wildcard):
        data = client.get("/verses", params={"q": wildcard}).json()
        assert data["items"] == []
        assert data["total"] == 0

    @pytest.mark.api
    def test_search_literal_percent(self, client, seeded):
        seeded.add(Verse(
            id="verse-test-1",
            surah_number=200,
            surah_name="Test",
            verse_number=1,
            arabic_text="نص",
            transliteration="nass",
            translation="Give 100% of the_tithe",
        ))
        seeded.commit()

        data = client.get("/verses", params={"q": "100% of the_"}).json()
        assert [v["id"] for v in data["items"]] == ["verse-test-1"]

    @pytest.mark.api
    def test_surah_only_narrows_listing(self, client, seeded):
        data = client.get("/verses", params={"surahNumber": 1}).json()

        assert [v["id"] for v in data["items"]] == ["verse-1-1", "verse-1-2"]
        assert data["total"] == 2

    @pytest.mark.api
    def test_verse_number_alone_rejected(self, client, seeded):
        response = client.get("/verses", params={"verseNumber": 255})
        assert response.status_code == 400
        assert response.json()["detail"] == "surahNumber is required with verseNumber"
