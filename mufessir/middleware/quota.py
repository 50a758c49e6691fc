"""
Daily quota middleware for tafsir generation.

Before the handler runs the user's quota window is checked (and refilled
when it has expired); exhausted users get a 429 and nothing downstream
runs. After a 2xx response one unit is deducted in a background task that
runs once the body has been sent, so the decrement never delays or fails
the response.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.background import BackgroundTask, BackgroundTasks
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from mufessir.config import QUOTA_WINDOW_HOURS, get_settings
from mufessir.database import SessionLocal
from mufessir.models.models import User
from mufessir.services.auth import TokenError, get_user_id_from_token

logger = logging.getLogger(__name__)

# (method, path) pairs that consume quota
QUOTA_GUARDED_ENDPOINTS = {("POST", "/tafseer")}


@dataclass
class QuotaStatus:
    daily_quota: int
    quota_reset_at: datetime

    @property
    def exhausted(self) -> bool:
        return self.daily_quota <= 0


def check_and_reset_quota(
    db: Session,
    user_id: str,
    now: Optional[datetime] = None,
    ceiling: Optional[int] = None,
) -> Optional[QuotaStatus]:
    """
    Load the user's quota, refilling it when the reset instant has passed.

    A refill sets the quota to the configured ceiling and moves the reset
    instant to exactly one window after ``now``. Returns None for an
    unknown user.
    """
    now = now or datetime.utcnow()
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        return None

    if user.quota_reset_at is None or user.quota_reset_at < now:
        user.daily_quota = ceiling if ceiling is not None else get_settings().free_daily_quota
        user.quota_reset_at = now + timedelta(hours=QUOTA_WINDOW_HOURS)
        db.commit()
        logger.info(f"Quota window reset for user {user_id}")

    return QuotaStatus(daily_quota=user.daily_quota, quota_reset_at=user.quota_reset_at)


def decrement_quota(session_factory: Callable[[], Session], user_id: str) -> None:
    """
    Deduct one unit, never going below zero. Best-effort: errors are logged.
    """
    db = session_factory()
    try:
        db.query(User).filter(User.id == user_id, User.daily_quota > 0).update(
            {User.daily_quota: User.daily_quota - 1},
            synchronize_session=False,
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to decrement quota for user {user_id}: {e}")
    finally:
        db.close()


def quota_exhausted_response(status: QuotaStatus, now: Optional[datetime] = None) -> JSONResponse:
    now = now or datetime.utcnow()
    retry_after = max(0, int((status.quota_reset_at - now).total_seconds()))
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Quota exhausted",
            "dailyQuota": status.daily_quota,
            "quotaResetAt": status.quota_reset_at.isoformat(),
        },
        headers={
            "Retry-After": str(retry_after),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(int(status.quota_reset_at.timestamp())),
        },
    )


def _attach_background(response, task: BackgroundTask):
    existing = getattr(response, "background", None)
    if existing is None:
        response.background = task
    elif isinstance(existing, BackgroundTasks):
        existing.add_task(task.func, *task.args, **task.kwargs)
    else:
        response.background = BackgroundTasks([existing, task])


class QuotaMiddleware(BaseHTTPMiddleware):
    """
    Enforces the per-user daily generation quota on guarded endpoints.

    Requests without a valid bearer token pass straight through so the
    route's auth dependency can answer 401.
    """

    def __init__(
        self,
        app,
        session_factory: Callable[[], Session] = SessionLocal,
        guarded: Iterable[Tuple[str, str]] = QUOTA_GUARDED_ENDPOINTS,
    ):
        super().__init__(app)
        self.session_factory = session_factory
        self.guarded = {(method.upper(), path.rstrip("/") or "/") for method, path in guarded}

    def _is_guarded(self, request: Request) -> bool:
        path = request.url.path.rstrip("/") or "/"
        return (request.method.upper(), path) in self.guarded

    def _check(self, user_id: str) -> Optional[QuotaStatus]:
        db = self.session_factory()
        try:
            return check_and_reset_quota(db, user_id)
        finally:
            db.close()

    async def dispatch(self, request: Request, call_next):
        if not self._is_guarded(request):
            return await call_next(request)

        user_id = self._extract_user_id(request)
        if not user_id:
            return await call_next(request)

        status = await run_in_threadpool(self._check, user_id)
        if status is None:
            return await call_next(request)

        if status.exhausted:
            logger.info(f"Quota exhausted for user {user_id}")
            return quota_exhausted_response(status)

        response = await call_next(request)

        if 200 <= response.status_code < 300:
            _attach_background(response, BackgroundTask(decrement_quota, self.session_factory, user_id))
            response.headers["X-RateLimit-Remaining"] = str(max(0, status.daily_quota - 1))

        return response

    @staticmethod
    def _extract_user_id(request: Request) -> Optional[str]:
        auth_header = request.headers.get("Authorization", "")
        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None
        try:
            return get_user_id_from_token(token.strip())
        except TokenError:
            return None
