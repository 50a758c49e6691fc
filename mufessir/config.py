"""
Runtime configuration for the Mufessir API.

All settings come from environment variables (a local ``.env`` is loaded by
``mufessir.main`` before anything else is imported). ``get_settings()`` is
cached and doubles as a FastAPI dependency so tests can override it.
"""
import os
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = "mufessir-dev-secret-change-me-0000000000"

# Quota window is fixed; only the ceiling is configurable
QUOTA_WINDOW_HOURS = 24
CACHE_WINDOW_SECONDS = 3600

SUPPORTED_LANGUAGES = ["Turkish", "English", "Arabic"]
DEFAULT_LANGUAGE = "Turkish"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={value!r}, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid float for {name}={value!r}, using {default}")
        return default


@dataclass
class Settings:
    # Auth
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    access_token_expire_days: int = 7
    password_reset_expire_minutes: int = 15

    # OpenAI
    openai_api_key: Optional[str] = None
    ai_enabled: bool = True
    openai_model: str = "gpt-4o-mini"
    openai_embedding_model: str = "text-embedding-3-small"
    openai_temperature: float = 0.7
    openai_max_tokens: int = 800

    # Quota
    free_daily_quota: int = 3

    # Similarity / demo
    similarity_mode: str = "live"
    demo_mode: bool = False
    demo_answers_path: Optional[str] = None

    # Offline jobs
    embed_batch_size: int = 50
    batch_verses: int = 500
    batch_tafsirs: int = 50

    # Email
    resend_api_key: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    email_from: str = "no-reply@mufessir.local"
    app_url: str = "http://localhost:3000"

    # App wiring
    environment: str = "development"
    sentry_dsn: Optional[str] = None
    cors_allowed_origins: List[str] = field(default_factory=list)

    @property
    def ai_available(self) -> bool:
        """True when a provider key is configured and AI is not switched off."""
        return self.ai_enabled and bool(self.openai_api_key)

    @property
    def sample_mode(self) -> bool:
        return self.similarity_mode == "sample" or not self.ai_available

    @classmethod
    def from_env(cls) -> "Settings":
        jwt_secret = os.getenv("JWT_SECRET", "").strip()
        if not jwt_secret:
            logger.warning("JWT_SECRET not set - using insecure development secret")
            jwt_secret = DEFAULT_JWT_SECRET

        ai_enabled = not (
            os.getenv("AI_MODE", "").strip().lower() == "off"
            or os.getenv("OPENAI_DISABLED", "").strip() == "1"
        )

        origins = os.getenv("CORS_ALLOWED_ORIGINS", "")

        return cls(
            jwt_secret=jwt_secret,
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            ai_enabled=ai_enabled,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            openai_embedding_model=os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"),
            openai_temperature=_env_float("OPENAI_TEMPERATURE", 0.7),
            openai_max_tokens=_env_int("OPENAI_MAX_TOKENS", 800),
            free_daily_quota=_env_int("FREE_DAILY_QUOTA", 3),
            similarity_mode=os.getenv("SIMILARITY_MODE", "live").strip().lower(),
            demo_mode=_env_bool("DEMO_MODE"),
            demo_answers_path=os.getenv("DEMO_ANSWERS_PATH") or None,
            embed_batch_size=_env_int("EMBED_BATCH_SIZE", 50),
            batch_verses=_env_int("BATCH_VERSES", 500),
            batch_tafsirs=_env_int("BATCH_TAFSIRS", 50),
            resend_api_key=os.getenv("RESEND_API_KEY") or None,
            smtp_host=os.getenv("SMTP_HOST") or None,
            smtp_port=_env_int("SMTP_PORT", 587),
            smtp_user=os.getenv("SMTP_USER") or None,
            smtp_pass=os.getenv("SMTP_PASS") or None,
            email_from=os.getenv("EMAIL_FROM", "no-reply@mufessir.local"),
            app_url=os.getenv("APP_URL", "http://localhost:3000"),
            environment=os.getenv("ENVIRONMENT", "development"),
            sentry_dsn=os.getenv("SENTRY_DSN") or None,
            cors_allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


@lru_cache()
def get_settings() -> Settings:
    """Dependency returning the process-wide settings."""
    return Settings.from_env()
