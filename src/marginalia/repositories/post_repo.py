"""Data access helpers for the posts comments attach to."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from marginalia.models.post import POST_STATUS_PUBLISHED, Post

__all__ = ["PostRepository"]


class PostRepository:
    """Thin wrapper around read access to post entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_commentable(self, post_id: str) -> Post | None:
        """Return the post if it is published and not deleted."""
        return self.session.execute(
            select(Post).where(
                Post.id == post_id,
                Post.status == POST_STATUS_PUBLISHED,
                Post.deleted_at.is_(None),
            )
        ).scalar_one_or_none()

    def titles_for(self, post_ids: set[str]) -> dict[str, str]:
        """Return ``{post_id: title}`` for the given ids."""
        if not post_ids:
            return {}
        rows = self.session.execute(select(Post.id, Post.title).where(Post.id.in_(post_ids)))
        return {post_id: title for post_id, title in rows}
