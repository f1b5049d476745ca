# src/marginalia/api/v1/endpoints/captcha.py
"""Arithmetic captcha endpoints."""

from fastapi import APIRouter, HTTPException, status

from marginalia.api.v1.dependencies import ChallengeManagerDep
from marginalia.schemas.captcha import (
    CaptchaChallenge,
    CaptchaVerifyRequest,
    CaptchaVerifyResponse,
)
from marginalia.services.captcha import VerificationResult

router = APIRouter(prefix="/captcha", tags=["captcha"])

# Deliberately vague: a prober learns nothing beyond "get a new one".
_FAILURE_DETAIL = {
    VerificationResult.EXPIRED: "Captcha expired, please request a new one",
    VerificationResult.NOT_FOUND: "Captcha not found or expired, please request a new one",
    VerificationResult.INCORRECT: "Incorrect answer, please request a new captcha",
}


@router.get("", response_model=CaptchaChallenge)
async def issue_captcha(challenges: ChallengeManagerDep) -> CaptchaChallenge:
    """Issue a new arithmetic challenge.

    Only the session id and the question leave the server; the expected answer
    is kept as a keyed hash.
    """
    issued = challenges.issue()
    return CaptchaChallenge(session_id=issued.session_id, question=issued.question)


@router.post("/verify", response_model=CaptchaVerifyResponse)
async def verify_captcha(
    payload: CaptchaVerifyRequest,
    challenges: ChallengeManagerDep,
) -> CaptchaVerifyResponse:
    """Check an answer ahead of posting a comment.

    Raises:
        HTTPException: 400 when the challenge is unknown, expired or answered wrongly.
    """
    result = challenges.verify(payload.session_id, payload.answer)
    if result is not VerificationResult.OK:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_FAILURE_DETAIL[result],
        )
    return CaptchaVerifyResponse(ok=True)
