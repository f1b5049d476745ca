# src/marginalia/api/v1/endpoints/admin.py
"""Moderation endpoints for holders of an admin bearer token."""

import math
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from marginalia.api.v1.dependencies import (
    IsAdminDep,
    OrchestratorDep,
    ReactionEngineDep,
    SessionDep,
    ThreadEngineDep,
)
from marginalia.repositories.post_repo import PostRepository
from marginalia.schemas.comment import (
    AdminCommentListResponse,
    AdminCommentResponse,
    AdminSortParam,
    CommentDeletedResponse,
    CommentResponse,
    ReactionCountsResponse,
)
from marginalia.schemas.common import Pagination
from marginalia.services.intake import DeletionStatus
from marginalia.services.reactions import ReactionCounts

ADMIN_DEFAULT_PAGE_SIZE = 20
ADMIN_MAX_PAGE_SIZE = 100


def require_admin(is_admin: IsAdminDep) -> None:
    """Reject the request unless it carries a valid admin token."""
    if not is_admin:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin credentials required",
            headers={"WWW-Authenticate": "Bearer"},
        )


router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


@router.get("/comments", response_model=AdminCommentListResponse)
async def list_all_comments(
    db: SessionDep,
    threads: ThreadEngineDep,
    reactions: ReactionEngineDep,
    page: int = Query(1, ge=1),
    limit: int = Query(ADMIN_DEFAULT_PAGE_SIZE, ge=1, le=ADMIN_MAX_PAGE_SIZE),
    sort: Annotated[AdminSortParam, Query()] = "newest",
) -> AdminCommentListResponse:
    """List live comments across every post with their reaction counts."""
    comments, total = threads.list_recent(page=page, page_size=limit, sort=sort)
    counts = reactions.counts_for(comment.id for comment in comments)
    titles = PostRepository(db).titles_for({comment.post_id for comment in comments})

    items = []
    for comment in comments:
        tally = counts.get(comment.id, ReactionCounts())
        items.append(
            AdminCommentResponse(
                **CommentResponse.model_validate(comment).model_dump(),
                post_title=titles.get(comment.post_id),
                reaction_counts=ReactionCountsResponse(
                    like=tally.like, dislike=tally.dislike, total=tally.total
                ),
            )
        )

    total_pages = math.ceil(total / limit)
    return AdminCommentListResponse(
        comments=items,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
    )


@router.delete("/comments/{comment_id}", response_model=CommentDeletedResponse)
async def admin_delete_comment(
    comment_id: uuid.UUID,
    orchestrator: OrchestratorDep,
) -> CommentDeletedResponse:
    """Soft-delete any comment regardless of who wrote it."""
    result = orchestrator.delete(comment_id, holder=None, is_admin=True)
    if result.status is DeletionStatus.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    if result.status is not DeletionStatus.DELETED:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete comment",
        )
    return CommentDeletedResponse()
