"""Request-level coordination of the comment pipeline.

Submission runs challenge -> rate limit -> validation/persistence -> deletion
grant; deletion runs capability check -> soft delete -> revoke. Every public
method returns a result object and never lets an exception escape, so the HTTP
layer only has to map statuses.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marginalia.core.logging import short_token
from marginalia.db.time import as_utc
from marginalia.models import Comment
from marginalia.services.captcha import ChallengeManager
from marginalia.services.comments import CommentPage, CommentThreadEngine
from marginalia.services.deletion_rights import DeletionRightsStore
from marginalia.services.errors import (
    CommentValidationError,
    ParentNotFoundError,
    PostNotFoundError,
)
from marginalia.services.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


class SubmissionStatus(StrEnum):
    CREATED = "created"
    CHALLENGE_FAILED = "challenge_failed"
    RATE_LIMITED = "rate_limited"
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    ERROR = "error"


class DeletionStatus(StrEnum):
    DELETED = "deleted"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class SubmissionRequest:
    """Everything needed to take one comment from an anonymous visitor."""

    post_id: str
    author_name: str
    content: str
    challenge_id: uuid.UUID | str
    answer: int | str
    identity: str
    holder: str | None = None
    parent_id: uuid.UUID | None = None


@dataclass
class SubmissionResult:
    status: SubmissionStatus
    comment: Comment | None = None
    field: str | None = None
    message: str | None = None
    grant_expires_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.status is SubmissionStatus.CREATED

    @property
    def grant_issued(self) -> bool:
        return self.grant_expires_at is not None


@dataclass
class DeletionResult:
    status: DeletionStatus
    comment: Comment | None = None

    @property
    def ok(self) -> bool:
        return self.status is DeletionStatus.DELETED


@dataclass
class ThreadResult:
    page: CommentPage | None
    deletable_ids: list[uuid.UUID] = field(default_factory=list)
    error: bool = False


class CommentIntakeOrchestrator:
    """Wire the anti-abuse components together for a single request."""

    def __init__(
        self,
        db: Session,
        *,
        challenges: ChallengeManager,
        rate_limiter: RateLimiter,
        threads: CommentThreadEngine,
        deletion_rights: DeletionRightsStore,
    ) -> None:
        self.db = db
        self.challenges = challenges
        self.rate_limiter = rate_limiter
        self.threads = threads
        self.deletion_rights = deletion_rights

    def _rollback(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError:  # pragma: no cover - connection already gone
            logger.exception("Rollback failed")

    def submit(self, request: SubmissionRequest) -> SubmissionResult:
        """Run one submission through the full pipeline."""
        try:
            consumed = self.challenges.consume(request.challenge_id, request.answer)
        except RedisError:
            logger.exception("Challenge store unavailable while consuming %s", request.challenge_id)
            return SubmissionResult(SubmissionStatus.ERROR, message="Internal server error")
        if not consumed:
            return SubmissionResult(
                SubmissionStatus.CHALLENGE_FAILED,
                message="Challenge missing, expired or not verified",
            )

        try:
            if not self.rate_limiter.try_acquire(request.identity):
                return SubmissionResult(
                    SubmissionStatus.RATE_LIMITED,
                    message="Too many comments; try again later",
                )

            comment = self.threads.create(
                post_id=request.post_id,
                parent_id=request.parent_id,
                author_name=request.author_name,
                content=request.content,
                identity=request.identity,
            )
        except CommentValidationError as err:
            return SubmissionResult(SubmissionStatus.INVALID, field=err.field, message=err.message)
        except PostNotFoundError:
            return SubmissionResult(SubmissionStatus.NOT_FOUND, message="Post not found")
        except ParentNotFoundError:
            return SubmissionResult(
                SubmissionStatus.NOT_FOUND,
                message="Parent comment not found",
            )
        except SQLAlchemyError:
            logger.exception(
                "Storing comment failed (post=%s identity=%s)",
                request.post_id,
                short_token(request.identity),
            )
            self._rollback()
            return SubmissionResult(SubmissionStatus.ERROR, message="Internal server error")

        result = SubmissionResult(SubmissionStatus.CREATED, comment=comment)
        if request.holder:
            try:
                grant = self.deletion_rights.grant(comment.id, request.holder)
                result.grant_expires_at = as_utc(grant.expires_at)
            except (SQLAlchemyError, ValueError):
                # The comment stands; only an admin can remove it now.
                logger.exception("Granting deletion rights for comment %s failed", comment.id)
                self._rollback()
        return result

    def delete(
        self,
        comment_id: uuid.UUID,
        *,
        holder: str | None,
        is_admin: bool = False,
    ) -> DeletionResult:
        """Soft-delete a comment if the actor holds a grant or is an admin."""
        try:
            comment = self.threads.get_live(comment_id)
            if comment is None:
                return DeletionResult(DeletionStatus.NOT_FOUND)
            if not self.deletion_rights.can_delete(comment_id, holder, is_admin):
                return DeletionResult(DeletionStatus.FORBIDDEN)
            deleted = self.threads.soft_delete(comment_id)
            if deleted is None:
                return DeletionResult(DeletionStatus.NOT_FOUND)
        except SQLAlchemyError:
            logger.exception("Deleting comment %s failed", comment_id)
            self._rollback()
            return DeletionResult(DeletionStatus.ERROR)

        try:
            self.deletion_rights.revoke(comment_id)
        except SQLAlchemyError:
            # Grants on a deleted comment are inert; the sweep will catch them.
            logger.exception("Revoking grants for comment %s failed", comment_id)
            self._rollback()
        return DeletionResult(DeletionStatus.DELETED, comment=deleted)

    def thread(
        self,
        post_id: str,
        *,
        page: int,
        page_size: int,
        holder: str | None,
    ) -> ThreadResult:
        """List a post's comments and which of them the caller may delete."""
        try:
            self.deletion_rights.sweep_expired()
        except SQLAlchemyError:
            logger.exception("Sweeping expired deletion grants failed")
            self._rollback()

        try:
            listing = self.threads.list_for_post(post_id, page=page, page_size=page_size)
            deletable = self.deletion_rights.deletable_ids(
                post_id, holder, comment_ids=listing.comment_ids
            )
        except SQLAlchemyError:
            logger.exception("Listing comments for post %s failed", post_id)
            self._rollback()
            return ThreadResult(page=None, error=True)
        return ThreadResult(page=listing, deletable_ids=deletable)
