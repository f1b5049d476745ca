# src/marginalia/models/deletion_grant.py
"""Time-boxed capability letting an anonymous author delete their comment."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from marginalia.db.session import Base


class DeletionGrant(Base):
    """Grant issued to the comment session that created a comment."""

    __tablename__ = "deletion_grant"
    __table_args__ = (Index("ix_deletion_grant_expires_at", "expires_at"),)

    comment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("comment.id", ondelete="CASCADE"),
        primary_key=True,
    )
    # HMAC of the holder's session token.
    holder: Mapped[str] = mapped_column(String(64), primary_key=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
