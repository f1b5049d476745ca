"""Service issuing and checking arithmetic challenges for comment submission."""
from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, ValidationError

from marginalia.core.captcha import generate_problem, normalize_answer
from marginalia.core.security import IdentityHasher, constant_time_equals
from marginalia.core.settings import settings
from marginalia.db.time import Clock, as_utc, utcnow
from marginalia.services.keyed_store import KeyedStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "captcha:"

__all__ = ["ChallengeManager", "IssuedChallenge", "VerificationResult"]


class VerificationResult(StrEnum):
    OK = "ok"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"
    INCORRECT = "incorrect"


@dataclass(frozen=True)
class IssuedChallenge:
    """What the client is allowed to see about a challenge."""

    session_id: uuid.UUID
    question: str


class ChallengeRecord(BaseModel):
    """Server-side state of a challenge; the plaintext answer is never stored."""

    answer_hash: str
    expires_at: datetime
    verified: bool = False


class ChallengeManager:
    """Issue, verify and consume single-use arithmetic challenges.

    Verification and consumption are separate steps so the client can show
    feedback before posting, while ``consume`` still guarantees one comment per
    solved challenge.
    """

    def __init__(
        self,
        store: KeyedStore,
        hasher: IdentityHasher,
        *,
        ttl_seconds: int | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._ttl = timedelta(seconds=ttl_seconds or settings.captcha_ttl_seconds)
        self._clock = clock

    def _key(self, session_id: uuid.UUID | str) -> str:
        return f"{KEY_PREFIX}{session_id}"

    def _hash_answer(self, answer: int | str) -> str:
        return self._hasher.digest("captcha", normalize_answer(answer))

    def _load(self, raw: str | None) -> ChallengeRecord | None:
        if raw is None:
            return None
        try:
            return ChallengeRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding malformed challenge record")
            return None

    def _expired(self, record: ChallengeRecord) -> bool:
        return self._clock() > as_utc(record.expires_at)

    def _remaining_seconds(self, record: ChallengeRecord) -> int:
        remaining = (as_utc(record.expires_at) - self._clock()).total_seconds()
        return max(0, math.ceil(remaining))

    def issue(self) -> IssuedChallenge:
        """Create a new challenge and return its id and question text."""
        problem = generate_problem()
        session_id = uuid.uuid4()
        record = ChallengeRecord(
            answer_hash=self._hash_answer(problem.answer),
            expires_at=self._clock() + self._ttl,
        )
        self._store.set(
            self._key(session_id),
            record.model_dump_json(),
            math.ceil(self._ttl.total_seconds()),
        )
        return IssuedChallenge(session_id=session_id, question=problem.question)

    def verify(self, session_id: uuid.UUID | str, answer: int | str) -> VerificationResult:
        """Check an answer and mark the challenge as solved on success.

        A wrong answer burns the challenge; the client has to request a new one.
        """
        key = self._key(session_id)
        record = self._load(self._store.get(key))
        if record is None:
            return VerificationResult.NOT_FOUND

        if self._expired(record):
            self._store.delete(key)
            return VerificationResult.EXPIRED

        if not constant_time_equals(self._hash_answer(answer), record.answer_hash):
            self._store.delete(key)
            logger.info("Challenge %s answered incorrectly", session_id)
            return VerificationResult.INCORRECT

        record.verified = True
        ttl = self._remaining_seconds(record)
        if ttl <= 0:
            self._store.delete(key)
            return VerificationResult.EXPIRED
        if not self._store.set_if_exists(key, record.model_dump_json(), ttl):
            # Consumed or expired since it was read; never resurrect it as verified.
            return VerificationResult.NOT_FOUND
        return VerificationResult.OK

    def consume(self, session_id: uuid.UUID | str, answer: int | str | None = None) -> bool:
        """Spend a verified challenge.

        The record is removed whatever the outcome, so a challenge can never be
        presented twice.
        """
        record = self._load(self._store.pop(self._key(session_id)))
        if record is None or self._expired(record) or not record.verified:
            return False
        if answer is not None and not constant_time_equals(
            self._hash_answer(answer), record.answer_hash
        ):
            return False
        return True
