# src/marginalia/models/rate_limit.py
"""Fixed-window counters for comment submissions."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from marginalia.db.session import Base


class CommentRateLimit(Base):
    """Submission counter for one identity within its current window.

    Rows are overwritten when a window lapses, never deleted.
    """

    __tablename__ = "comment_rate_limit"

    identity: Mapped[str] = mapped_column(String(64), primary_key=True)
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
