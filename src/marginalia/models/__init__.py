# src/marginalia/models/__init__.py
"""SQLAlchemy models for the Marginalia comment service."""

from .comment import Comment, CommentReaction
from .deletion_grant import DeletionGrant
from .post import Post
from .rate_limit import CommentRateLimit

__all__ = [
    "Comment", "CommentReaction",
    "CommentRateLimit",
    "DeletionGrant",
    "Post",
]
