# src/marginalia/schemas/reaction.py
"""Reaction-related Pydantic schemas."""

import uuid
from typing import Literal

from pydantic import Field

from marginalia.schemas.common import CamelModel


class ReactionCreate(CamelModel):
    """Schema for reacting to a comment."""

    type: Literal["like", "dislike"] = Field(..., description="Reaction to toggle")


class ReactionActionResponse(CamelModel):
    action: Literal["added", "updated", "removed"]


class ReactionSummary(CamelModel):
    comment_id: uuid.UUID
    like: int = 0
    dislike: int = 0


class ReactionClearedResponse(CamelModel):
    removed: bool
