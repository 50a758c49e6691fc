# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import logging
import sentry_sdk
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mufessir import __version__
from mufessir.config import get_settings
from mufessir.database import engine, Base
from mufessir.routers import auth, filters, verses, tafseer
from mufessir.middleware.quota import QuotaMiddleware
from mufessir.services.demo_answers import load_demo_answers

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

settings = get_settings()

# Initialize Sentry for error monitoring
if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        traces_sample_rate=0.1,
        environment=settings.environment,
    )

# Create database tables
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown."""
    app.state.demo_answers = load_demo_answers(settings)

    if settings.ai_available:
        logger.info("AI generation enabled (model=%s)", settings.openai_model)
    else:
        logger.info("AI generation disabled - serving fallback answers")
    logger.info("Similarity mode: %s", "sample" if settings.sample_mode else "live")

    yield  # Application runs here

    logger.info("Shutting down...")


tags_metadata = [
    {
        "name": "auth",
        "description": "Registration, login, profile and password reset.",
    },
    {
        "name": "filters",
        "description": "Scholar catalogue and the filter options offered to clients.",
    },
    {
        "name": "verses",
        "description": "Verse lookup and search.",
    },
    {
        "name": "tafseer",
        "description": "AI tafsir generation grounded in classical scholar excerpts. **Counts against the daily quota.**",
    },
]

app = FastAPI(
    title="Mufessir API",
    description="""
## Mufessir

Generates explanations of Quranic verses grounded in excerpts from classical tafsir works,
shaped by tone, intellect level, language and scholar filters.

### Quota
Each account may request a limited number of tafsirs per 24 hour window.
    """,
    version=__version__,
    lifespan=lifespan,
    openapi_tags=tags_metadata,
)

# Daily quota middleware (registered first so CORS wraps its 429 responses)
app.add_middleware(QuotaMiddleware)

# SECURITY: Explicitly list allowed origins - no wildcards
ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
]

# Allow additional origins from environment
ALLOWED_ORIGINS.extend(o for o in settings.cors_allowed_origins if o not in ALLOWED_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "Accept"],
    expose_headers=["Retry-After", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
)

# Include routers
app.include_router(auth.router)  # Authentication
app.include_router(filters.router)  # Scholar catalogue
app.include_router(verses.router)  # Verse lookup
app.include_router(tafseer.router)  # Tafsir generation


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/")
def root():
    return {
        "message": "Mufessir API",
        "version": __version__,
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    return {"status": "ok"}
