from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
import os
import time
import logging

query_logger = logging.getLogger("mufessir.sql")
query_logger.setLevel(logging.DEBUG if os.getenv("DEBUG_QUERIES") else logging.WARNING)

SLOW_QUERY_THRESHOLD_MS = int(os.getenv("SLOW_QUERY_THRESHOLD_MS", "100"))
LOGGED_STATEMENT_CHARS = 500
LOGGED_PARAMS_CHARS = 200


def resolve_database_url(url: str = None) -> str:
    """DATABASE_URL with hosted ``postgres://`` URLs rewritten for SQLAlchemy."""
    url = url or os.getenv("DATABASE_URL", "sqlite:///./mufessir.db")
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def build_engine(url: str):
    if url.startswith("sqlite"):
        # Sessions cross threads: sync endpoints run in the threadpool
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=1800,
        pool_size=5,
        max_overflow=10,
    )


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def track_slow_queries(target_engine, threshold_ms: int = SLOW_QUERY_THRESHOLD_MS):
    """Log statements slower than ``threshold_ms`` on ``target_engine``."""

    @event.listens_for(target_engine, "before_cursor_execute")
    def _start_timer(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(target_engine, "after_cursor_execute")
    def _log_if_slow(conn, cursor, statement, parameters, context, executemany):
        started = conn.info.get("query_start_time")
        if not started:
            return
        elapsed_ms = (time.perf_counter() - started.pop()) * 1000
        if elapsed_ms > threshold_ms:
            # Embedding vectors make parameter lists huge
            query_logger.warning(
                f"SLOW QUERY ({elapsed_ms:.2f}ms): {_clip(statement, LOGGED_STATEMENT_CHARS)} "
                f"| params={_clip(str(parameters), LOGGED_PARAMS_CHARS)}"
            )


DATABASE_URL = resolve_database_url()
engine = build_engine(DATABASE_URL)
track_slow_queries(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Request scoped session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
