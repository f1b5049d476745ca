"""Time-boxed self-delete capabilities for anonymous comment authors."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from marginalia.core.logging import short_token
from marginalia.core.settings import settings
from marginalia.db.time import Clock, utcnow
from marginalia.models import Comment, DeletionGrant

logger = logging.getLogger(__name__)


class DeletionRightsStore:
    """Grant, check and expire per-comment deletion rights.

    A grant is the only write capability an anonymous visitor holds besides
    creating comments: it names exactly one comment and one holder, and it is
    worthless once ``expires_at`` has passed even if the sweep has not run yet.
    """

    def __init__(
        self,
        db: Session,
        *,
        ttl_seconds: int | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.db = db
        self.ttl = timedelta(seconds=ttl_seconds or settings.deletion_grant_ttl_seconds)
        self._clock = clock

    def grant(
        self,
        comment_id: uuid.UUID,
        holder: str,
        ttl: timedelta | None = None,
    ) -> DeletionGrant:
        """Give ``holder`` the right to delete ``comment_id`` for ``ttl``.

        Raises:
            ValueError: If the TTL is not positive.
        """
        ttl = self.ttl if ttl is None else ttl
        if ttl <= timedelta(0):
            raise ValueError("Deletion grants need a positive TTL")

        grant = DeletionGrant(
            comment_id=comment_id,
            holder=holder,
            expires_at=self._clock() + ttl,
        )
        self.db.add(grant)
        self.db.commit()
        logger.debug("Granted deletion of %s to %s", comment_id, short_token(holder))
        return grant

    def can_delete(self, comment_id: uuid.UUID, holder: str | None, is_admin: bool = False) -> bool:
        """Return True if the actor may delete the comment right now."""
        if is_admin:
            return True
        if not holder:
            return False
        found = self.db.execute(
            select(DeletionGrant.comment_id).where(
                DeletionGrant.comment_id == comment_id,
                DeletionGrant.holder == holder,
                DeletionGrant.expires_at > self._clock(),
            )
        ).first()
        return found is not None

    def deletable_ids(
        self,
        post_id: str,
        holder: str | None,
        comment_ids: Iterable[uuid.UUID] | None = None,
    ) -> list[uuid.UUID]:
        """Return the live comments on ``post_id`` the holder may still delete.

        ``comment_ids`` narrows the answer to the comments actually on screen.
        """
        if not holder:
            return []
        stmt = (
            select(DeletionGrant.comment_id)
            .join(Comment, Comment.id == DeletionGrant.comment_id)
            .where(
                DeletionGrant.holder == holder,
                DeletionGrant.expires_at > self._clock(),
                Comment.post_id == post_id,
                Comment.deleted_at.is_(None),
            )
        )
        if comment_ids is not None:
            ids = list(comment_ids)
            if not ids:
                return []
            stmt = stmt.where(DeletionGrant.comment_id.in_(ids))
        return list(self.db.scalars(stmt))

    def revoke(self, comment_id: uuid.UUID) -> int:
        """Drop every grant on a comment, typically right after deleting it."""
        result = self.db.execute(
            delete(DeletionGrant)
            .where(DeletionGrant.comment_id == comment_id)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount or 0

    def sweep_expired(self) -> int:
        """Delete grants past their expiry and return how many went away."""
        result = self.db.execute(
            delete(DeletionGrant)
            .where(DeletionGrant.expires_at <= self._clock())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        removed = result.rowcount or 0
        if removed:
            logger.info("Swept %d expired deletion grants", removed)
        return removed
