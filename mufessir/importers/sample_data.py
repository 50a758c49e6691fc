"""
Sample content for a fresh database.

A handful of verses, five classical scholars and one or two tafsirs per
verse, enough to exercise filters, ranking and generation end to end.
"""

import logging
from typing import Dict, List

from sqlalchemy.orm import Session

from mufessir.models.models import Scholar, Tafsir, Verse

logger = logging.getLogger(__name__)

SAMPLE_VERSES: List[Dict] = [
    {
        "id": "verse-1-1",
        "surah_number": 1,
        "surah_name": "Al-Fatiha",
        "verse_number": 1,
        "arabic_text": "بِسْمِ اللَّهِ الرَّحْمَٰنِ الرَّحِيمِ",
        "transliteration": "Bismillahi r-rahmani r-rahim",
        "translation": "In the name of Allah, the Most Gracious, the Most Merciful",
    },
    {
        "id": "verse-1-2",
        "surah_number": 1,
        "surah_name": "Al-Fatiha",
        "verse_number": 2,
        "arabic_text": "الْحَمْدُ لِلَّهِ رَبِّ الْعَالَمِينَ",
        "transliteration": "Alhamdu lillahi rabbi l-alamin",
        "translation": "Praise be to Allah, Lord of the worlds",
    },
    {
        "id": "verse-2-255",
        "surah_number": 2,
        "surah_name": "Al-Baqarah",
        "verse_number": 255,
        "arabic_text": "اللَّهُ لَا إِلَٰهَ إِلَّا هُوَ الْحَيُّ الْقَيُّومُ ۚ لَا تَأْخُذُهُ سِنَةٌ وَلَا نَوْمٌ ۚ لَّهُ مَا فِي السَّمَاوَاتِ وَمَا فِي الْأَرْضِ",
        "transliteration": "Allahu la ilaha illa huwa l-hayyu l-qayyum",
        "translation": "Allah - there is no deity except Him, the Ever-Living, the Self-Sustaining",
    },
    {
        "id": "verse-3-64",
        "surah_number": 3,
        "surah_name": "Al-Imran",
        "verse_number": 64,
        "arabic_text": "قُلْ يَا أَهْلَ الْكِتَابِ تَعَالَوْا إِلَىٰ كَلِمَةٍ سَوَاءٍ بَيْنَنَا وَبَيْنَكُمْ",
        "transliteration": "Qul ya ahla l-kitabi ta'alaw ila kalimatin sawa'in baynana wa baynakum",
        "translation": "Say, O People of the Scripture, come to a word that is equitable between us and you",
    },
    {
        "id": "verse-112-1",
        "surah_number": 112,
        "surah_name": "Al-Ikhlas",
        "verse_number": 1,
        "arabic_text": "قُلْ هُوَ اللَّهُ أَحَدٌ",
        "transliteration": "Qul huwa Allahu ahad",
        "translation": "Say, He is Allah, [who is] One",
    },
]

SAMPLE_SCHOLARS: List[Dict] = [
    {
        "id": "scholar-tabari",
        "name": "Abu Ja'far al-Tabari",
        "birth_year": 839,
        "death_year": 923,
        "century": 9,
        "madhab": "Shafi'i",
        "period": "Abbasid",
        "environment": "Dar al-Islam",
        "origin_country": "Persia",
        "reputation_score": 9.5,
    },
    {
        "id": "scholar-qurtubi",
        "name": "Al-Qurtubi",
        "birth_year": 1214,
        "death_year": 1273,
        "century": 13,
        "madhab": "Maliki",
        "period": "Almohad",
        "environment": "Dar al-Islam",
        "origin_country": "Al-Andalus",
        "reputation_score": 9.2,
    },
    {
        "id": "scholar-kathir",
        "name": "Ibn Kathir",
        "birth_year": 1300,
        "death_year": 1373,
        "century": 14,
        "madhab": "Shafi'i",
        "period": "Mamluk",
        "environment": "Dar al-Islam",
        "origin_country": "Syria",
        "reputation_score": 9.8,
    },
    {
        "id": "scholar-razi",
        "name": "Fakhr al-Din al-Razi",
        "birth_year": 1149,
        "death_year": 1210,
        "century": 12,
        "madhab": "Shafi'i",
        "period": "Ayyubid",
        "environment": "Dar al-Islam",
        "origin_country": "Persia",
        "reputation_score": 9.3,
    },
    {
        "id": "scholar-baydawi",
        "name": "Al-Baydawi",
        "birth_year": 1226,
        "death_year": 1286,
        "century": 13,
        "madhab": "Shafi'i",
        "period": "Ilkhanate",
        "environment": "Dar al-Islam",
        "origin_country": "Persia",
        "reputation_score": 8.9,
    },
]

SAMPLE_TAFSIRS: List[Dict] = [
    {
        "id": "tafsir-1-1-tabari",
        "verse_id": "verse-1-1",
        "scholar_id": "scholar-tabari",
        "tafsir_type": "Linguistic",
        "tafsir_text": (
            "The opening of the Quran begins with the Basmala, which is a declaration of reliance upon Allah. "
            "Al-Tabari explains that \"Bismillah\" means \"I begin with the name of Allah\" and that ar-Rahman "
            "and ar-Rahim are two of the most beautiful names of Allah, both deriving from mercy (rahma). "
            "Rahman indicates the all-encompassing mercy of Allah for all His creation, while Rahim refers to "
            "the specific mercy reserved for the believers in the Hereafter."
        ),
    },
    {
        "id": "tafsir-1-1-baydawi",
        "verse_id": "verse-1-1",
        "scholar_id": "scholar-baydawi",
        "tafsir_type": "Philosophical",
        "tafsir_text": (
            "Al-Baydawi provides a philosophical approach to the Basmala, explaining that beginning with "
            "Allah's name indicates seeking blessing and success in all endeavors. He discusses the grammatical "
            "structure, noting that the preposition \"bi\" (with) implies instrumentality. The dual mention of "
            "mercy (Rahman, Rahim) emphasizes that Allah's mercy is the predominant attribute in His dealings "
            "with creation."
        ),
    },
    {
        "id": "tafsir-1-2-tabari",
        "verse_id": "verse-1-2",
        "scholar_id": "scholar-tabari",
        "tafsir_type": "Linguistic",
        "tafsir_text": (
            "Al-Tabari interprets \"Alhamdu lillahi\" as a statement of praise that belongs to Allah alone. "
            "He explains that \"rabb\" (Lord) signifies the One who creates, sustains and manages all affairs. "
            "\"Al-alamin\" (the worlds) refers to all that exists besides Allah. This verse establishes Allah's "
            "absolute sovereignty over all creation."
        ),
    },
    {
        "id": "tafsir-2-255-kathir",
        "verse_id": "verse-2-255",
        "scholar_id": "scholar-kathir",
        "tafsir_type": "Doctrinal",
        "tafsir_text": (
            "This is the famous Ayat al-Kursi (Verse of the Throne), which Ibn Kathir describes as the greatest "
            "verse in the Quran. The verse begins with an emphatic declaration of monotheism. The attributes "
            "Al-Hayy (the Ever-Living) and Al-Qayyum (the Self-Sustaining) encompass all of Allah's perfect "
            "attributes, and maintaining the heavens and earth is not burdensome for Him."
        ),
    },
    {
        "id": "tafsir-3-64-razi",
        "verse_id": "verse-3-64",
        "scholar_id": "scholar-razi",
        "tafsir_type": "Theological",
        "tafsir_text": (
            "Fakhr al-Din al-Razi explains this verse as a call to dialogue and common ground between Muslims "
            "and the People of the Book. The \"word that is equitable\" refers to the fundamental principle of "
            "monotheism, worshipping Allah alone without partners, while maintaining theological distinctiveness."
        ),
    },
    {
        "id": "tafsir-112-1-qurtubi",
        "verse_id": "verse-112-1",
        "scholar_id": "scholar-qurtubi",
        "tafsir_type": "Theological",
        "tafsir_text": (
            "Al-Qurtubi explains that Surah Al-Ikhlas, though brief, encapsulates the essence of monotheistic "
            "belief. \"Ahad\" (One) signifies absolute unity and uniqueness, indicating that Allah is one in His "
            "essence, attributes and actions, with no partners or equals."
        ),
    },
]


def _insert_missing(db: Session, model, rows: List[Dict]) -> int:
    existing = {r[0] for r in db.query(model.id).filter(model.id.in_([row["id"] for row in rows])).all()}
    added = 0
    for row in rows:
        if row["id"] not in existing:
            db.add(model(**row))
            added += 1
    db.flush()
    return added


def seed_sample_data(db: Session) -> Dict[str, int]:
    """Insert the sample rows that are not present yet; safe to run repeatedly."""
    added = {
        "verses": _insert_missing(db, Verse, SAMPLE_VERSES),
        "scholars": _insert_missing(db, Scholar, SAMPLE_SCHOLARS),
        "tafsirs": _insert_missing(db, Tafsir, SAMPLE_TAFSIRS),
    }
    db.commit()

    logger.info(
        f"Sample data: +{added['verses']} verses, +{added['scholars']} scholars, "
        f"+{added['tafsirs']} tafsirs"
    )
    logger.info(
        f"Database now holds {db.query(Verse).count()} verses, {db.query(Scholar).count()} scholars, "
        f"{db.query(Tafsir).count()} tafsirs"
    )
    return added
