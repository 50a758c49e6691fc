from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, JSON, ForeignKey, Text, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from mufessir.database import Base


def generate_uuid():
    return str(uuid.uuid4())


def verse_id_for(surah_number: int, verse_number: int) -> str:
    return f"verse-{surah_number}-{verse_number}"


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=generate_uuid)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=True)
    email_verified = Column(Boolean, default=False)

    # Rolling daily allowance for tafsir generation
    daily_quota = Column(Integer, nullable=False, default=3)
    quota_reset_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    searches = relationship("Search", back_populates="user")
    password_resets = relationship("PasswordReset", back_populates="user")


class Verse(Base):
    __tablename__ = "verses"
    __table_args__ = (
        UniqueConstraint("surah_number", "verse_number", name="uq_verse_surah_verse"),
    )

    id = Column(String, primary_key=True)  # verse-{surah}-{verse}
    surah_number = Column(Integer, nullable=False, index=True)
    verse_number = Column(Integer, nullable=False)
    surah_name = Column(String, nullable=False)
    arabic_text = Column(Text, nullable=False)
    transliteration = Column(Text, nullable=True)
    translation = Column(Text, nullable=True)

    tafsirs = relationship("Tafsir", back_populates="verse")


class Scholar(Base):
    __tablename__ = "scholars"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False, index=True)
    birth_year = Column(Integer, nullable=True)
    death_year = Column(Integer, nullable=True)
    century = Column(Integer, nullable=False, index=True)  # Hijri century
    madhab = Column(String, nullable=True, index=True)
    period = Column(String, nullable=True)
    environment = Column(String, nullable=True)
    origin_country = Column(String, nullable=True)
    reputation_score = Column(Float, nullable=True)  # 1-10

    tafsirs = relationship("Tafsir", back_populates="scholar")


class Tafsir(Base):
    __tablename__ = "tafsirs"
    __table_args__ = (
        Index("ix_tafsirs_verse_scholar", "verse_id", "scholar_id"),
    )

    id = Column(String, primary_key=True, default=generate_uuid)
    verse_id = Column(String, ForeignKey("verses.id"), nullable=False, index=True)
    scholar_id = Column(String, ForeignKey("scholars.id"), nullable=False, index=True)
    tafsir_text = Column(Text, nullable=False)
    tafsir_type = Column(String, nullable=True)
    embedding = Column(JSON(none_as_null=True), nullable=True)  # List[float], filled by the backfill job
    created_at = Column(DateTime, default=datetime.utcnow)

    verse = relationship("Verse", back_populates="tafsirs")
    scholar = relationship("Scholar", back_populates="tafsirs")


class Search(Base):
    __tablename__ = "searches"
    __table_args__ = (
        Index("ix_searches_cache_lookup", "user_id", "verse_id", "cache_key"),
    )

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    verse_id = Column(String, ForeignKey("verses.id"), nullable=False)
    query = Column(JSON, nullable=False)  # {filters, verseId, cacheKey, timestamp}
    cache_key = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="searches")
    results = relationship("SearchResult", back_populates="search", order_by="SearchResult.created_at")


class SearchResult(Base):
    __tablename__ = "search_results"

    id = Column(String, primary_key=True, default=generate_uuid)
    search_id = Column(String, ForeignKey("searches.id"), nullable=False, index=True)
    tafsir_id = Column(String, ForeignKey("tafsirs.id"), nullable=True)
    ai_response = Column(Text, nullable=False)
    similarity_score = Column(Float, nullable=True)
    is_fallback = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    search = relationship("Search", back_populates="results")
    tafsir = relationship("Tafsir")


class PasswordReset(Base):
    __tablename__ = "password_resets"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    code_hash = Column(String, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="password_resets")
