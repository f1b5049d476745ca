# src/marginalia/api/v1/endpoints/comments.py
"""Public comment endpoints: session, listing, submission and self-deletion."""

import secrets
import uuid

from fastapi import APIRouter, HTTPException, Query, Response, status

from marginalia.api.v1.dependencies import (
    HasherDep,
    HolderDep,
    IdentityDep,
    IsAdminDep,
    OrchestratorDep,
    SessionTokenDep,
)
from marginalia.core.settings import settings
from marginalia.models import Comment
from marginalia.schemas.comment import (
    CommentCreate,
    CommentCreatedResponse,
    CommentDeletedResponse,
    CommentListResponse,
    CommentResponse,
    CommentSessionResponse,
    ThreadedCommentResponse,
)
from marginalia.schemas.common import Pagination
from marginalia.services.intake import (
    DeletionStatus,
    SubmissionRequest,
    SubmissionStatus,
)

router = APIRouter(prefix="/comments", tags=["comments"])

SESSION_TOKEN_BYTES = 32

_SUBMISSION_STATUS_CODES = {
    SubmissionStatus.CHALLENGE_FAILED: status.HTTP_400_BAD_REQUEST,
    SubmissionStatus.INVALID: status.HTTP_400_BAD_REQUEST,
    SubmissionStatus.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    SubmissionStatus.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    SubmissionStatus.ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _new_session_token() -> str:
    return secrets.token_urlsafe(SESSION_TOKEN_BYTES)


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.comment_session_cookie,
        token,
        max_age=settings.comment_session_max_age_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def _threaded(root: Comment, replies: list[Comment]) -> ThreadedCommentResponse:
    item = ThreadedCommentResponse.model_validate(root)
    item.replies = [CommentResponse.model_validate(reply) for reply in replies]
    return item


@router.post("/session", response_model=CommentSessionResponse)
async def open_comment_session(
    response: Response,
    session_token: SessionTokenDep,
) -> CommentSessionResponse:
    """Make sure the caller holds a comment session cookie.

    The cookie is what deletion grants are bound to; it is httpOnly and never
    echoed back in the body.
    """
    if session_token:
        return CommentSessionResponse(active=True, created=False)
    _set_session_cookie(response, _new_session_token())
    return CommentSessionResponse(active=True, created=True)


@router.get("", response_model=CommentListResponse)
async def list_comments(
    orchestrator: OrchestratorDep,
    holder: HolderDep,
    post_id: str = Query(..., alias="postId", min_length=1, max_length=64),
    page: int = Query(1, ge=1),
    limit: int = Query(
        settings.comments_default_page_size,
        ge=1,
        le=settings.comments_max_page_size,
    ),
) -> CommentListResponse:
    """List a post's comments, newest threads first, replies oldest first.

    ``deletableIds`` lists the comments on this page the caller may still delete.
    """
    result = orchestrator.thread(post_id, page=page, page_size=limit, holder=holder)
    if result.error or result.page is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch comments",
        )

    listing = result.page
    return CommentListResponse(
        comments=[_threaded(root, listing.replies_for(root.id)) for root in listing.roots],
        pagination=Pagination(
            page=listing.page,
            limit=listing.page_size,
            total=listing.total,
            total_pages=listing.total_pages,
            has_next=listing.has_next,
            has_prev=listing.has_prev,
        ),
        deletable_ids=result.deletable_ids,
    )


@router.post("", response_model=CommentCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    payload: CommentCreate,
    response: Response,
    orchestrator: OrchestratorDep,
    identity: IdentityDep,
    hasher: HasherDep,
    session_token: SessionTokenDep,
) -> CommentCreatedResponse:
    """Submit a comment with a verified captcha.

    Raises:
        HTTPException: 400 for captcha or validation failures, 404 for a missing
            post or parent, 429 when the caller is over the rate limit.
    """
    token = session_token or _new_session_token()
    result = orchestrator.submit(
        SubmissionRequest(
            post_id=payload.post_id,
            parent_id=payload.parent_id,
            author_name=payload.author_name,
            content=payload.content,
            challenge_id=payload.session_id,
            answer=payload.answer,
            identity=identity,
            holder=hasher.session_holder(token),
        )
    )

    if not result.ok or result.comment is None:
        raise HTTPException(
            status_code=_SUBMISSION_STATUS_CODES.get(
                result.status, status.HTTP_500_INTERNAL_SERVER_ERROR
            ),
            detail=result.message or "Internal server error",
        )

    if session_token is None:
        _set_session_cookie(response, token)

    return CommentCreatedResponse(
        comment=CommentResponse.model_validate(result.comment),
        can_delete_until=result.grant_expires_at,
    )


@router.delete("/{comment_id}", response_model=CommentDeletedResponse)
async def delete_comment(
    comment_id: uuid.UUID,
    orchestrator: OrchestratorDep,
    holder: HolderDep,
    is_admin: IsAdminDep,
) -> CommentDeletedResponse:
    """Soft-delete a comment the caller wrote recently, or any comment as admin.

    Raises:
        HTTPException: 404 if the comment is gone, 403 without a live grant.
    """
    result = orchestrator.delete(comment_id, holder=holder, is_admin=is_admin)
    if result.status is DeletionStatus.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    if result.status is DeletionStatus.FORBIDDEN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to delete this comment",
        )
    if result.status is DeletionStatus.ERROR:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete comment",
        )
    return CommentDeletedResponse()
