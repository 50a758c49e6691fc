"""
Authentication dependencies.

``get_current_user`` resolves the bearer token to a ``User`` row so that
handlers receive a typed user instead of reading request attributes.
"""
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from mufessir.database import get_db
from mufessir.models.models import User
from mufessir.services.auth import TokenError, get_user_id_from_token

logger = logging.getLogger(__name__)

# Security scheme for protected routes
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency to get current authenticated user from the bearer token.
    Use this in protected routes.
    """
    if not credentials:
        raise _unauthorized("Authentication required")

    try:
        user_id = get_user_id_from_token(credentials.credentials)
    except TokenError as e:
        logger.debug(f"Rejected bearer token: {e}")
        raise _unauthorized("Invalid token")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise _unauthorized("Invalid token")

    return user
