"""
Authentication Service
Handles password hashing, JWT issuing/verification and reset codes.
"""
import secrets
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from mufessir.config import get_settings

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

RESET_CODE_DIGITS = 6


class TokenError(Exception):
    """Raised when token is invalid or expired"""
    pass


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a bcrypt hash.

    Returns False instead of raising for malformed hashes.
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def create_access_token(
    user_id: str,
    email: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed bearer token for a user.

    The subject is the user id; the email travels as a claim.
    Default lifetime is seven days.
    """
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(days=settings.access_token_expire_days)

    now = datetime.utcnow()
    to_encode = {
        "sub": user_id,
        "email": email,
        "exp": now + expires_delta,
        "iat": now,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """
    Verify and decode a bearer token.

    Raises:
        TokenError: If token is invalid, expired or lacks a subject
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        if "expired" in str(e).lower():
            raise TokenError("Token has expired")
        raise TokenError(f"Invalid token: {str(e)}")

    if not payload.get("sub"):
        raise TokenError("Token missing user ID")
    return payload


def get_user_id_from_token(token: str) -> str:
    """Extract the user id from a bearer token, raising TokenError if invalid."""
    return verify_token(token)["sub"]


def generate_reset_code() -> str:
    """Random zero-padded six digit code."""
    return f"{secrets.randbelow(10 ** RESET_CODE_DIGITS):0{RESET_CODE_DIGITS}d}"


def hash_reset_code(code: str) -> str:
    return pwd_context.hash(code)


def verify_reset_code(plain_code: str, hashed_code: str) -> bool:
    return verify_password(plain_code, hashed_code)
