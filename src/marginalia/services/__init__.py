# src/marginalia/services/__init__.py
"""Business logic services for the comment pipeline."""

from .captcha import ChallengeManager
from .comments import CommentThreadEngine
from .deletion_rights import DeletionRightsStore
from .intake import CommentIntakeOrchestrator
from .rate_limit import RateLimiter
from .reactions import ReactionEngine

__all__ = [
    "ChallengeManager",
    "CommentThreadEngine",
    "DeletionRightsStore",
    "CommentIntakeOrchestrator",
    "RateLimiter",
    "ReactionEngine",
]
