# src/marginalia/models/post.py
"""Read-only view of blog posts that comments attach to."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from marginalia.db.session import Base
from marginalia.db.time import utcnow

POST_STATUS_DRAFT = "draft"
POST_STATUS_PUBLISHED = "published"


class Post(Base):
    """Blog post owned by the publishing side of the platform.

    The comment pipeline only reads it to decide whether a post accepts comments.
    """

    __tablename__ = "post"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=POST_STATUS_DRAFT)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
