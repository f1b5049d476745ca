# src/marginalia/schemas/comment.py
"""Comment-related Pydantic schemas."""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from marginalia.db.time import as_utc
from marginalia.schemas.common import CamelModel, Pagination


class CommentCreate(CamelModel):
    """Schema for submitting a new comment.

    Lengths are checked by the service after the challenge is spent, so they are
    deliberately not constrained here.
    """

    post_id: str = Field(..., min_length=1, max_length=64)
    parent_id: uuid.UUID | None = Field(None, description="Comment being replied to")
    author_name: str
    content: str
    session_id: str = Field(
        ..., min_length=1, max_length=64, description="Captcha session that was verified"
    )
    answer: int


class CommentResponse(CamelModel):
    """Schema for a single comment returned by the API."""

    id: uuid.UUID
    post_id: str
    parent_id: uuid.UUID | None
    author_name: str
    content: str
    created_at: datetime
    deleted_at: datetime | None = None
    is_deleted: bool = False

    @field_validator("created_at", "deleted_at")
    @classmethod
    def _tag_utc(cls, value: datetime | None) -> datetime | None:
        return None if value is None else as_utc(value)


class ThreadedCommentResponse(CommentResponse):
    """A root comment with its replies in chronological order."""

    replies: list[CommentResponse] = Field(default_factory=list)


class CommentListResponse(CamelModel):
    comments: list[ThreadedCommentResponse]
    pagination: Pagination
    deletable_ids: list[uuid.UUID] = Field(default_factory=list)


class CommentCreatedResponse(CamelModel):
    comment: CommentResponse
    can_delete_until: datetime | None = None


class CommentDeletedResponse(CamelModel):
    success: bool = True
    message: str = "Comment deleted successfully"


class CommentSessionResponse(CamelModel):
    active: bool = True
    created: bool = False


class ReactionCountsResponse(CamelModel):
    like: int = 0
    dislike: int = 0
    total: int = 0


class AdminCommentResponse(CommentResponse):
    """Comment as seen from the moderation dashboard."""

    post_title: str | None = None
    reaction_counts: ReactionCountsResponse


class AdminCommentListResponse(CamelModel):
    comments: list[AdminCommentResponse]
    pagination: Pagination


AdminSortParam = Literal["newest", "oldest", "post"]
