"""Exceptions raised by the comment services for expected domain failures."""
from __future__ import annotations


class CommentServiceError(Exception):
    """Base class for domain failures the intake layer turns into results."""


class CommentValidationError(CommentServiceError):
    """A submitted field failed validation."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class PostNotFoundError(CommentServiceError):
    """The target post does not exist, is unpublished or was deleted."""


class ParentNotFoundError(CommentServiceError):
    """The parent comment is missing, deleted or belongs to another post."""
