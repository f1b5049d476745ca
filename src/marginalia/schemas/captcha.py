# src/marginalia/schemas/captcha.py
"""Captcha-related Pydantic schemas."""

import uuid

from pydantic import Field

from marginalia.schemas.common import CamelModel


class CaptchaChallenge(CamelModel):
    """A freshly issued arithmetic challenge."""

    session_id: uuid.UUID
    question: str = Field(..., description="Human-readable problem, e.g. '3 + 4 = ?'")


class CaptchaVerifyRequest(CamelModel):
    """Answer submitted for a challenge."""

    session_id: str = Field(..., min_length=1, max_length=64)
    answer: int


class CaptchaVerifyResponse(CamelModel):
    ok: bool = True
