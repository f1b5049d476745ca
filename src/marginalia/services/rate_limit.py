"""Fixed-window rate limiting for comment submissions."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marginalia.core.logging import short_token
from marginalia.core.settings import settings
from marginalia.db.time import Clock, as_utc, utcnow
from marginalia.models import CommentRateLimit

logger = logging.getLogger(__name__)

_ATTEMPTS = 2


class RateLimiter:
    """Allow at most ``limit`` acquisitions per identity per window.

    Every transition is a single conditional ``UPDATE`` so concurrent requests
    from one source cannot both read ``count < limit`` and overshoot.
    """

    def __init__(
        self,
        db: Session,
        *,
        limit: int | None = None,
        window_seconds: int | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.db = db
        self.limit = limit or settings.comment_rate_limit
        self.window = timedelta(seconds=window_seconds or settings.comment_rate_window_seconds)
        self._clock = clock

    def _increment_within_window(self, identity: str, floor: datetime) -> bool:
        result = self.db.execute(
            update(CommentRateLimit)
            .where(
                CommentRateLimit.identity == identity,
                CommentRateLimit.window_start > floor,
                CommentRateLimit.count < self.limit,
            )
            .values(count=CommentRateLimit.count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _reset_lapsed_window(self, identity: str, now: datetime, floor: datetime) -> bool:
        result = self.db.execute(
            update(CommentRateLimit)
            .where(
                CommentRateLimit.identity == identity,
                CommentRateLimit.window_start <= floor,
            )
            .values(count=1, window_start=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _exists(self, identity: str) -> bool:
        return (
            self.db.execute(
                select(CommentRateLimit.identity).where(CommentRateLimit.identity == identity)
            ).first()
            is not None
        )

    def try_acquire(self, identity: str) -> bool:
        """Consume one slot for ``identity``; False means "try again later"."""
        now = self._clock()
        floor = now - self.window

        for _ in range(_ATTEMPTS):
            if self._increment_within_window(identity, floor):
                self.db.commit()
                return True
            if self._reset_lapsed_window(identity, now, floor):
                self.db.commit()
                return True
            if self._exists(identity):
                # Either full, or a concurrent request just opened a new window
                # after our increment ran; only a second failed increment denies.
                continue
            try:
                with self.db.begin_nested():
                    self.db.add(CommentRateLimit(identity=identity, window_start=now, count=1))
            except IntegrityError:
                # A concurrent first attempt created the row; retry as an update.
                continue
            self.db.commit()
            return True

        self.db.commit()
        logger.info("Rate limit reached for identity %s", short_token(identity))
        return False

    def remaining(self, identity: str) -> int:
        """Return how many acquisitions are left in the current window."""
        record = self.db.execute(
            select(CommentRateLimit)
            .where(CommentRateLimit.identity == identity)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if record is None:
            return self.limit
        if as_utc(record.window_start) <= self._clock() - self.window:
            return self.limit
        return max(0, self.limit - record.count)
