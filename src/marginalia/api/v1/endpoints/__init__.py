# src/marginalia/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .admin import router as admin_router
from .captcha import router as captcha_router
from .comments import router as comments_router
from .reactions import router as reactions_router

__all__ = [
    "captcha_router",
    "comments_router",
    "reactions_router",
    "admin_router",
]
