"""Like/dislike reactions on comments."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marginalia.db.time import Clock, utcnow
from marginalia.models import CommentReaction
from marginalia.models.comment import REACTION_DISLIKE, REACTION_LIKE

logger = logging.getLogger(__name__)

REACTION_TYPES = (REACTION_LIKE, REACTION_DISLIKE)


class ReactionOutcome(StrEnum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class ReactionCounts:
    like: int = 0
    dislike: int = 0

    @property
    def total(self) -> int:
        return self.like + self.dislike


class ReactionEngine:
    """Record at most one reaction per (comment, identity).

    Counts are always computed from the rows; nothing is denormalised onto the
    comment that could drift.
    """

    def __init__(self, db: Session, *, clock: Clock = utcnow) -> None:
        self.db = db
        self._clock = clock

    def _existing(self, comment_id: uuid.UUID, identity: str) -> CommentReaction | None:
        return self.db.execute(
            select(CommentReaction)
            .where(
                CommentReaction.comment_id == comment_id,
                CommentReaction.identity == identity,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _apply_to_existing(self, existing: CommentReaction, reaction_type: str) -> ReactionOutcome:
        if existing.reaction_type == reaction_type:
            self.db.delete(existing)
            self.db.commit()
            return ReactionOutcome.REMOVED
        existing.reaction_type = reaction_type
        self.db.commit()
        return ReactionOutcome.UPDATED

    def react(self, comment_id: uuid.UUID, identity: str, reaction_type: str) -> ReactionOutcome:
        """Toggle, switch or add the visitor's reaction.

        Raises:
            ValueError: If ``reaction_type`` is not ``like`` or ``dislike``.
        """
        if reaction_type not in REACTION_TYPES:
            raise ValueError(f"Unsupported reaction type: {reaction_type!r}")

        existing = self._existing(comment_id, identity)
        if existing is not None:
            return self._apply_to_existing(existing, reaction_type)

        try:
            with self.db.begin_nested():
                self.db.add(
                    CommentReaction(
                        comment_id=comment_id,
                        identity=identity,
                        reaction_type=reaction_type,
                        created_at=self._clock(),
                    )
                )
        except IntegrityError:
            # Lost an insert race with the same identity; treat the winner's row as existing.
            existing = self._existing(comment_id, identity)
            if existing is None:
                raise
            return self._apply_to_existing(existing, reaction_type)

        self.db.commit()
        return ReactionOutcome.ADDED

    def clear(self, comment_id: uuid.UUID, identity: str) -> bool:
        """Remove the visitor's reaction, returning whether one existed."""
        result = self.db.execute(
            delete(CommentReaction)
            .where(
                CommentReaction.comment_id == comment_id,
                CommentReaction.identity == identity,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return bool(result.rowcount)

    def get_counts(self, comment_id: uuid.UUID) -> ReactionCounts:
        return self.counts_for([comment_id]).get(comment_id, ReactionCounts())

    def counts_for(self, comment_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, ReactionCounts]:
        """Return live counts for several comments in one query."""
        ids = list(comment_ids)
        if not ids:
            return {}
        rows = self.db.execute(
            select(
                CommentReaction.comment_id,
                CommentReaction.reaction_type,
                func.count(),
            )
            .where(CommentReaction.comment_id.in_(ids))
            .group_by(CommentReaction.comment_id, CommentReaction.reaction_type)
        )
        tallies: dict[uuid.UUID, dict[str, int]] = {comment_id: {} for comment_id in ids}
        for comment_id, reaction_type, count in rows:
            tallies[comment_id][reaction_type] = count
        return {
            comment_id: ReactionCounts(
                like=tally.get(REACTION_LIKE, 0),
                dislike=tally.get(REACTION_DISLIKE, 0),
            )
            for comment_id, tally in tallies.items()
        }
