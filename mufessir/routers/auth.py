"""
Authentication Router
Handles registration, login, the current-user profile and password reset.
"""
import hashlib
import secrets
import logging
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from mufessir.config import QUOTA_WINDOW_HOURS, Settings, get_settings
from mufessir.database import get_db
from mufessir.dependencies.auth import get_current_user
from mufessir.models.models import PasswordReset, User
from mufessir.services.auth import (
    create_access_token,
    generate_reset_code,
    hash_password,
    hash_reset_code,
    verify_password,
    verify_reset_code,
)
from mufessir.services.email_service import EmailService, get_email_service

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_RESET_CODE = "Invalid or expired code"


# ==================== Request/Response Models ====================

class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = Field(None, max_length=100)


class LoginRequest(BaseModel):
    # Plain strings so malformed input gets the same 401 as a wrong password
    email: str = ""
    password: str = ""


class ResetRequest(BaseModel):
    email: Optional[str] = None


class ResetConfirmRequest(BaseModel):
    email: Optional[str] = None
    code: Optional[str] = None
    new_password: Optional[str] = Field(None, alias="newPassword")

    class Config:
        populate_by_name = True


class TokenResponse(BaseModel):
    token: str


class OkResponse(BaseModel):
    ok: bool = True


class MeResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    dailyQuota: int
    quotaResetAt: datetime


# ==================== Helper Functions ====================

def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def email_fingerprint(email: str) -> str:
    """Short hash for logs so addresses never appear in plain text."""
    return hashlib.sha256(email.encode()).hexdigest()[:8]


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@lru_cache(maxsize=1)
def _placeholder_password_hash() -> str:
    """Hash checked for unknown emails so login takes the same time either way."""
    return hash_password(secrets.token_urlsafe(16))


# ==================== Auth Endpoints ====================

@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Register a new user and return a bearer token.
    New accounts start with a full daily quota.
    """
    email = normalize_email(request.email)
    if not email or not request.password:
        raise _bad_request("Email and password required")

    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")

    user = User(
        email=email,
        password_hash=hash_password(request.password),
        name=(request.name or "").strip() or None,
        daily_quota=settings.free_daily_quota,
        quota_reset_at=datetime.utcnow() + timedelta(hours=QUOTA_WINDOW_HOURS),
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Registered user {user.id}")
    return TokenResponse(token=create_access_token(user.id, user.email))


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Login with email and password.
    Unknown email and wrong password give the same error.
    """
    email = normalize_email(request.email)
    user = db.query(User).filter(User.email == email).first() if email else None

    if not user:
        verify_password(request.password, _placeholder_password_hash())
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)
    if not verify_password(request.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    return TokenResponse(token=create_access_token(user.id, user.email))


@router.get("/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)):
    return MeResponse(
        id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        dailyQuota=current_user.daily_quota,
        quotaResetAt=current_user.quota_reset_at,
    )


@router.post("/password/reset/request", response_model=OkResponse)
async def request_password_reset(
    request: ResetRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email_service: EmailService = Depends(get_email_service),
):
    """
    Email a six digit reset code.
    Always returns ok so callers cannot learn which emails exist.
    """
    email = normalize_email(request.email)
    if not email:
        raise _bad_request("Email required")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        logger.info(f"Password reset requested for non-existent email (hash: {email_fingerprint(email)})")
        return OkResponse()

    code = generate_reset_code()
    db.add(PasswordReset(
        user_id=user.id,
        code_hash=hash_reset_code(code),
        expires_at=datetime.utcnow() + timedelta(minutes=settings.password_reset_expire_minutes),
    ))
    db.commit()

    sent = await email_service.send_password_reset_code(user.email, code)
    if not sent:
        logger.warning(f"Password reset code for user {user.id} could not be delivered")

    return OkResponse()


@router.post("/password/reset/confirm", response_model=OkResponse)
def confirm_password_reset(request: ResetConfirmRequest, db: Session = Depends(get_db)):
    """
    Set a new password using the newest unused reset code.
    Older codes are implicitly superseded.
    """
    email = normalize_email(request.email)
    if not email or not request.code or not request.new_password:
        raise _bad_request("Email, code and new password required")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise _bad_request(INVALID_RESET_CODE)

    reset = (
        db.query(PasswordReset)
        .filter(PasswordReset.user_id == user.id, PasswordReset.used == False)  # noqa: E712
        .order_by(PasswordReset.created_at.desc())
        .first()
    )
    if (
        not reset
        or reset.expires_at < datetime.utcnow()
        or not verify_reset_code(request.code.strip(), reset.code_hash)
    ):
        raise _bad_request(INVALID_RESET_CODE)

    user.password_hash = hash_password(request.new_password)
    reset.used = True
    db.commit()

    logger.info(f"Password reset completed for user {user.id}")
    return OkResponse()
