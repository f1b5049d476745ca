# src/marginalia/api/v1/endpoints/reactions.py
"""Like/dislike endpoints for comments."""

import logging
import uuid

from fastapi import APIRouter, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from marginalia.api.v1.dependencies import (
    IdentityDep,
    ReactionEngineDep,
    SessionDep,
    ThreadEngineDep,
)
from marginalia.schemas.reaction import (
    ReactionActionResponse,
    ReactionClearedResponse,
    ReactionCreate,
    ReactionSummary,
)

router = APIRouter(prefix="/comments", tags=["reactions"])

logger = logging.getLogger(__name__)


def _comment_not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")


@router.get("/{comment_id}/reactions", response_model=ReactionSummary)
async def get_reactions(
    comment_id: uuid.UUID,
    threads: ThreadEngineDep,
    reactions: ReactionEngineDep,
) -> ReactionSummary:
    """Return like and dislike counts for a comment."""
    if threads.get(comment_id) is None:
        raise _comment_not_found()
    counts = reactions.get_counts(comment_id)
    return ReactionSummary(comment_id=comment_id, like=counts.like, dislike=counts.dislike)


@router.post("/{comment_id}/reactions", response_model=ReactionActionResponse)
async def react_to_comment(
    comment_id: uuid.UUID,
    payload: ReactionCreate,
    identity: IdentityDep,
    db: SessionDep,
    threads: ThreadEngineDep,
    reactions: ReactionEngineDep,
) -> ReactionActionResponse:
    """Add, switch or toggle off the caller's reaction.

    Sending the same type twice removes it; sending the other type switches it.

    Raises:
        HTTPException: 404 if the comment is missing or deleted.
    """
    if threads.get_live(comment_id) is None:
        raise _comment_not_found()
    try:
        outcome = reactions.react(comment_id, identity, payload.type)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Recording reaction on comment %s failed", comment_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record reaction",
        ) from None
    return ReactionActionResponse(action=outcome.value)


@router.delete("/{comment_id}/reactions", response_model=ReactionClearedResponse)
async def clear_reaction(
    comment_id: uuid.UUID,
    identity: IdentityDep,
    db: SessionDep,
    threads: ThreadEngineDep,
    reactions: ReactionEngineDep,
) -> ReactionClearedResponse:
    """Withdraw whatever reaction the caller left on a comment.

    Withdrawing stays possible after the comment was soft-deleted.

    Raises:
        HTTPException: 404 if the comment does not exist.
    """
    if threads.get(comment_id) is None:
        raise _comment_not_found()
    try:
        removed = reactions.clear(comment_id, identity)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Clearing reaction on comment %s failed", comment_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to clear reaction",
        ) from None
    return ReactionClearedResponse(removed=removed)
