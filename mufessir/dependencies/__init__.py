"""
FastAPI Dependencies for Mufessir
"""

from mufessir.dependencies.auth import get_current_user, security

__all__ = [
    "get_current_user",
    "security",
]
