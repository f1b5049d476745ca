# src/marginalia/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    admin_router,
    captcha_router,
    comments_router,
    reactions_router,
)

__all__ = [
    "captcha_router",
    "comments_router",
    "reactions_router",
    "admin_router",
]
