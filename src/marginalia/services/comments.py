"""Comment threads: validation, persistence and two-level retrieval."""
from __future__ import annotations

import logging
import math
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Literal

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.orm import Session, aliased

from marginalia.db.time import Clock, utcnow
from marginalia.models import Comment
from marginalia.models.comment import DELETED_PLACEHOLDER
from marginalia.repositories.post_repo import PostRepository
from marginalia.services.errors import (
    CommentValidationError,
    ParentNotFoundError,
    PostNotFoundError,
)

logger = logging.getLogger(__name__)

AUTHOR_NAME_MIN = 2
AUTHOR_NAME_MAX = 30
CONTENT_MIN = 5
CONTENT_MAX = 500

AdminSort = Literal["newest", "oldest", "post"]


@dataclass
class CommentPage:
    """One page of root comments plus the replies hanging off them."""

    roots: list[Comment]
    replies_by_parent: dict[uuid.UUID, list[Comment]] = field(default_factory=dict)
    total: int = 0
    page: int = 1
    page_size: int = 10

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def replies_for(self, comment_id: uuid.UUID) -> list[Comment]:
        return self.replies_by_parent.get(comment_id, [])

    @property
    def comment_ids(self) -> list[uuid.UUID]:
        """Ids of every comment shown on this page, roots and replies alike."""
        ids = [root.id for root in self.roots]
        for replies in self.replies_by_parent.values():
            ids.extend(reply.id for reply in replies)
        return ids


def _check_length(field_name: str, value: str, minimum: int, maximum: int, label: str) -> None:
    if not minimum <= len(value) <= maximum:
        raise CommentValidationError(
            field_name,
            f"{label} must be between {minimum} and {maximum} characters",
        )


class CommentThreadEngine:
    """Create, list and soft-delete comments in a root/reply hierarchy.

    Roots are listed newest first so new discussion surfaces; replies under a
    root read oldest first so a conversation stays in order.
    """

    def __init__(self, db: Session, *, clock: Clock = utcnow) -> None:
        self.db = db
        self.posts = PostRepository(db)
        self._clock = clock

    def get(self, comment_id: uuid.UUID) -> Comment | None:
        return self.db.get(Comment, comment_id)

    def get_live(self, comment_id: uuid.UUID) -> Comment | None:
        """Return the comment unless it is missing or soft-deleted."""
        comment = self.get(comment_id)
        if comment is None or comment.is_deleted:
            return None
        return comment

    def create(
        self,
        *,
        post_id: str,
        parent_id: uuid.UUID | None,
        author_name: str,
        content: str,
        identity: str,
    ) -> Comment:
        """Validate and persist a comment.

        Raises:
            CommentValidationError: A field is out of bounds.
            PostNotFoundError: The post cannot take comments.
            ParentNotFoundError: The parent is missing, deleted or on another post.
        """
        author_name = (author_name or "").strip()
        content = (content or "").strip()
        _check_length("authorName", author_name, AUTHOR_NAME_MIN, AUTHOR_NAME_MAX, "Author name")
        _check_length("content", content, CONTENT_MIN, CONTENT_MAX, "Comment")

        if self.posts.get_commentable(post_id) is None:
            raise PostNotFoundError(post_id)

        root_id = None
        if parent_id is not None:
            parent = self.get_live(parent_id)
            if parent is None or parent.post_id != post_id:
                raise ParentNotFoundError(str(parent_id))
            # Only roots carry replies; a reply to a reply joins the root's thread.
            root_id = parent.parent_id or parent.id

        comment = Comment(
            post_id=post_id,
            parent_id=root_id,
            author_name=author_name,
            content=content,
            identity=identity,
            created_at=self._clock(),
        )
        self.db.add(comment)
        self.db.commit()
        self.db.refresh(comment)
        logger.info("Created comment %s on post %s", comment.id, post_id)
        return comment

    def list_for_post(self, post_id: str, page: int = 1, page_size: int = 10) -> CommentPage:
        """Return one page of roots with their live replies attached."""
        page = max(1, page)
        page_size = max(1, page_size)

        reply = aliased(Comment)
        has_live_reply = exists().where(
            reply.parent_id == Comment.id,
            reply.deleted_at.is_(None),
        )
        root_filter = and_(
            Comment.post_id == post_id,
            Comment.parent_id.is_(None),
            or_(Comment.deleted_at.is_(None), has_live_reply),
        )

        total = self.db.scalar(select(func.count()).select_from(Comment).where(root_filter)) or 0
        roots = list(
            self.db.scalars(
                select(Comment)
                .where(root_filter)
                .order_by(Comment.created_at.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
        )

        replies_by_parent: dict[uuid.UUID, list[Comment]] = defaultdict(list)
        root_ids = [root.id for root in roots]
        if root_ids:
            replies = self.db.scalars(
                select(Comment)
                .where(
                    Comment.post_id == post_id,
                    Comment.parent_id.in_(root_ids),
                    Comment.deleted_at.is_(None),
                )
                .order_by(Comment.created_at.asc())
            )
            for item in replies:
                replies_by_parent[item.parent_id].append(item)

        return CommentPage(
            roots=roots,
            replies_by_parent=dict(replies_by_parent),
            total=total,
            page=page,
            page_size=page_size,
        )

    def soft_delete(self, comment_id: uuid.UUID) -> Comment | None:
        """Blank a comment in place; replies are left untouched."""
        comment = self.get_live(comment_id)
        if comment is None:
            return None
        comment.content = DELETED_PLACEHOLDER
        comment.deleted_at = self._clock()
        self.db.commit()
        logger.info("Soft-deleted comment %s", comment_id)
        return comment

    def list_recent(
        self,
        page: int = 1,
        page_size: int = 20,
        sort: AdminSort = "newest",
    ) -> tuple[list[Comment], int]:
        """Return live comments across all posts for moderation."""
        page = max(1, page)
        page_size = max(1, page_size)
        live = Comment.deleted_at.is_(None)

        if sort == "oldest":
            ordering = (Comment.created_at.asc(),)
        elif sort == "post":
            ordering = (Comment.post_id.asc(), Comment.created_at.desc())
        else:
            ordering = (Comment.created_at.desc(),)

        total = self.db.scalar(select(func.count()).select_from(Comment).where(live)) or 0
        comments = list(
            self.db.scalars(
                select(Comment)
                .where(live)
                .order_by(*ordering)
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
        )
        return comments, total
