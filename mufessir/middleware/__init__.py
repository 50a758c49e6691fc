"""
Mufessir Middleware Package

Contains:
- quota: Daily generation quota enforcement
"""

from mufessir.middleware.quota import (
    QuotaMiddleware,
    QuotaStatus,
    check_and_reset_quota,
    decrement_quota,
)

__all__ = [
    "QuotaMiddleware",
    "QuotaStatus",
    "check_and_reset_quota",
    "decrement_quota",
]
