# src/marginalia/models/comment.py
"""Models for comments and the reactions attached to them."""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from marginalia.db.session import Base
from marginalia.db.time import utcnow

DELETED_PLACEHOLDER = "[deleted]"

REACTION_LIKE = "like"
REACTION_DISLIKE = "dislike"


class Comment(Base):
    """Anonymous comment on a post.

    Threads are two levels deep: roots have ``parent_id = NULL`` and every reply
    points at a root. Deletion is soft so replies keep their anchor.
    """

    __tablename__ = "comment"
    __table_args__ = (
        Index("ix_comment_post_parent_created", "post_id", "parent_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    post_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("post.id", ondelete="CASCADE"),
        nullable=False,
    )
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("comment.id"),
        nullable=True,
    )
    author_name: Mapped[str] = mapped_column(String(30), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # HMAC of the submitting address; never the address itself.
    identity: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class CommentReaction(Base):
    """One like or dislike per (comment, identity)."""

    __tablename__ = "comment_reaction"
    __table_args__ = (
        UniqueConstraint("comment_id", "identity", name="uq_comment_reaction_identity"),
        CheckConstraint(
            "reaction_type IN ('like', 'dislike')",
            name="ck_comment_reaction_type",
        ),
        Index("ix_comment_reaction_comment_id", "comment_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    comment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("comment.id", ondelete="CASCADE"),
        nullable=False,
    )
    identity: Mapped[str] = mapped_column(String(64), nullable=False)
    reaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
