"""
Pytest configuration and fixtures for Mufessir tests.

Provides:
- Test database setup/teardown
- FastAPI test client with a deterministic AI provider
- User, verse, scholar and tafsir fixtures
"""

import pytest
import os
from typing import Generator, Dict
from datetime import datetime, timedelta
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite:///./test_mufessir.db"
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ["FREE_DAILY_QUOTA"] = "3"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("SMTP_HOST", None)
os.environ.pop("DEMO_MODE", None)

from mufessir.main import app
from mufessir.database import Base, SessionLocal, engine, get_db
from mufessir.models.models import Scholar, Tafsir, User, Verse
from mufessir.services.auth import create_access_token, hash_password
from mufessir.services.openai_service import get_openai_service

from tests.mocks.ai_mocks import FakeAIService


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database tables once per test session"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists("./test_mufessir.db"):
        os.remove("./test_mufessir.db")


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Session for arranging and asserting.

    The app and the quota middleware open their own sessions, so data is
    committed for real and every table is emptied after the test.
    """
    session = SessionLocal()

    yield session

    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def fake_ai() -> FakeAIService:
    return FakeAIService()


@pytest.fixture(scope="function")
def client(fake_ai: FakeAIService) -> Generator[TestClient, None, None]:
    """Provide FastAPI test client with the fake AI provider"""
    def override_get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_openai_service] = lambda: fake_ai
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# =========================================================================
# User Fixtures
# =========================================================================

@pytest.fixture
def test_user(db: Session) -> User:
    """Create a test user with a full quota"""
    user = User(
        id="test-user-123",
        email="reader@mufessir.test",
        password_hash=hash_password("CorrectHorse1"),
        name="Test Reader",
        daily_quota=3,
        quota_reset_at=datetime.utcnow() + timedelta(hours=24),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user: User) -> Dict[str, str]:
    token = create_access_token(test_user.id, test_user.email)
    return {"Authorization": f"Bearer {token}"}


# =========================================================================
# Content Fixtures
# =========================================================================

@pytest.fixture
def fatiha_verse(db: Session) -> Verse:
    verse = Verse(
        id="verse-1-1",
        surah_number=1,
        verse_number=1,
        surah_name="Al-Fatiha",
        arabic_text="بِسْمِ اللَّهِ الرَّحْمَٰنِ الرَّحِيمِ",
        transliteration="Bismillahi r-rahmani r-rahim",
        translation="In the name of Allah, the Most Gracious, the Most Merciful",
    )
    db.add(verse)
    db.commit()
    db.refresh(verse)
    return verse


@pytest.fixture
def scholars(db: Session) -> Dict[str, Scholar]:
    rows = [
        Scholar(
            id="scholar-tabari", name="Abu Ja'far al-Tabari", birth_year=839, death_year=923,
            century=9, madhab="Shafi'i", period="Abbasid", environment="Dar al-Islam",
            origin_country="Persia", reputation_score=9.5,
        ),
        Scholar(
            id="scholar-kathir", name="Ibn Kathir", birth_year=1300, death_year=1373,
            century=14, madhab="Shafi'i", period="Mamluk", environment="Dar al-Islam",
            origin_country="Syria", reputation_score=9.8,
        ),
        Scholar(
            id="scholar-qurtubi", name="Al-Qurtubi", birth_year=1214, death_year=1273,
            century=13, madhab="Maliki", period="Almohad", environment="Dar al-Islam",
            origin_country="Al-Andalus", reputation_score=9.2,
        ),
    ]
    db.add_all(rows)
    db.commit()
    return {s.id: s for s in rows}


@pytest.fixture
def fatiha_tafsirs(db: Session, fatiha_verse: Verse, scholars: Dict[str, Scholar]) -> Dict[str, Tafsir]:
    rows = [
        Tafsir(
            id="tafsir-1-1-tabari",
            verse_id=fatiha_verse.id,
            scholar_id="scholar-tabari",
            tafsir_type="Linguistic",
            tafsir_text=(
                "The Basmala is a declaration of reliance upon Allah. Rahman indicates the "
                "all-encompassing mercy of Allah for all His creation."
            ),
            created_at=datetime.utcnow() - timedelta(minutes=3),
        ),
        Tafsir(
            id="tafsir-1-1-kathir",
            verse_id=fatiha_verse.id,
            scholar_id="scholar-kathir",
            tafsir_type="Doctrinal",
            tafsir_text=(
                "Ibn Kathir notes that the companions opened the recitation of the Book with the "
                "Basmala and that mercy here is twofold."
            ),
            created_at=datetime.utcnow() - timedelta(minutes=2),
        ),
        Tafsir(
            id="tafsir-1-1-qurtubi",
            verse_id=fatiha_verse.id,
            scholar_id="scholar-qurtubi",
            tafsir_type="Legal",
            tafsir_text="Al-Qurtubi discusses whether the Basmala is a verse of every surah.",
            created_at=datetime.utcnow() - timedelta(minutes=1),
        ),
    ]
    db.add_all(rows)
    db.commit()
    return {t.id: t for t in rows}
