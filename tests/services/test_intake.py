# tests/services/test_intake.py
"""Tests for the submission and deletion pipeline."""

import uuid
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from marginalia.core.captcha import MathProblem
from marginalia.services.captcha import ChallengeManager
from marginalia.services.comments import CommentThreadEngine
from marginalia.services.deletion_rights import DeletionRightsStore
from marginalia.services.intake import (
    CommentIntakeOrchestrator,
    DeletionStatus,
    SubmissionRequest,
    SubmissionStatus,
)
from marginalia.services.rate_limit import RateLimiter

IDENTITY = "1" * 64
HOLDER = "h" * 64
OTHER_HOLDER = "o" * 64


@pytest.fixture
def challenges(challenge_store, hasher, clock, mocker) -> ChallengeManager:
    mocker.patch(
        "marginalia.services.captcha.generate_problem",
        return_value=MathProblem(left=5, operator="×", right=2, answer=10),
    )
    return ChallengeManager(challenge_store, hasher, ttl_seconds=600, clock=clock)


@pytest.fixture
def orchestrator(db_session, clock, challenges) -> CommentIntakeOrchestrator:
    return CommentIntakeOrchestrator(
        db_session,
        challenges=challenges,
        rate_limiter=RateLimiter(db_session, limit=3, window_seconds=3600, clock=clock),
        threads=CommentThreadEngine(db_session, clock=clock),
        deletion_rights=DeletionRightsStore(db_session, ttl_seconds=1800, clock=clock),
    )


@pytest.fixture
def verified(challenges):
    def _verified() -> uuid.UUID:
        issued = challenges.issue()
        challenges.verify(issued.session_id, 10)
        return issued.session_id

    return _verified


def _request(post, challenge_id, **overrides) -> SubmissionRequest:
    fields = {
        "post_id": post.id,
        "author_name": "Reader",
        "content": "What a lovely article",
        "challenge_id": challenge_id,
        "answer": 10,
        "identity": IDENTITY,
        "holder": HOLDER,
    }
    fields.update(overrides)
    return SubmissionRequest(**fields)


class TestSubmit:
    def test_success_creates_comment_and_grant(
        self, orchestrator, published_post, verified, clock
    ):
        result = orchestrator.submit(_request(published_post, verified()))
        assert result.status is SubmissionStatus.CREATED
        assert result.ok
        assert result.comment.post_id == published_post.id
        assert result.grant_issued
        assert result.grant_expires_at == clock() + timedelta(seconds=1800)
        assert orchestrator.deletion_rights.can_delete(result.comment.id, HOLDER)

    def test_without_holder_no_grant(self, orchestrator, published_post, verified):
        result = orchestrator.submit(_request(published_post, verified(), holder=None))
        assert result.ok
        assert not result.grant_issued

    def test_challenge_replay_is_rejected(self, orchestrator, published_post, verified):
        challenge_id = verified()
        assert orchestrator.submit(_request(published_post, challenge_id)).ok
        replay = orchestrator.submit(_request(published_post, challenge_id))
        assert replay.status is SubmissionStatus.CHALLENGE_FAILED
        assert orchestrator.threads.list_for_post(published_post.id).total == 1

    def test_unverified_challenge(self, orchestrator, published_post, challenges):
        issued = challenges.issue()
        result = orchestrator.submit(_request(published_post, issued.session_id))
        assert result.status is SubmissionStatus.CHALLENGE_FAILED

    def test_challenge_is_checked_before_rate_limit(
        self, orchestrator, published_post, mocker
    ):
        spy = mocker.spy(orchestrator.rate_limiter, "try_acquire")
        orchestrator.submit(_request(published_post, uuid.uuid4()))
        spy.assert_not_called()

    def test_rate_limit(self, orchestrator, published_post, verified, clock):
        for _ in range(3):
            clock.advance(1)
            assert orchestrator.submit(_request(published_post, verified())).ok
        denied = orchestrator.submit(_request(published_post, verified()))
        assert denied.status is SubmissionStatus.RATE_LIMITED

        clock.advance(3600)
        assert orchestrator.submit(_request(published_post, verified())).ok

    def test_invalid_field_is_named(self, orchestrator, published_post, verified):
        result = orchestrator.submit(_request(published_post, verified(), content="hey"))
        assert result.status is SubmissionStatus.INVALID
        assert result.field == "content"
        assert orchestrator.threads.list_for_post(published_post.id).total == 0

    def test_unknown_post(self, orchestrator, published_post, verified):
        result = orchestrator.submit(_request(published_post, verified(), post_id="missing"))
        assert result.status is SubmissionStatus.NOT_FOUND

    def test_unknown_parent(self, orchestrator, published_post, verified):
        result = orchestrator.submit(
            _request(published_post, verified(), parent_id=uuid.uuid4())
        )
        assert result.status is SubmissionStatus.NOT_FOUND
        assert result.message == "Parent comment not found"

    def test_challenge_store_outage(self, published_post):
        challenges = MagicMock()
        challenges.consume.side_effect = RedisConnectionError("down")
        orchestrator = CommentIntakeOrchestrator(
            MagicMock(),
            challenges=challenges,
            rate_limiter=MagicMock(),
            threads=MagicMock(),
            deletion_rights=MagicMock(),
        )
        result = orchestrator.submit(_request(published_post, uuid.uuid4()))
        assert result.status is SubmissionStatus.ERROR

    def test_database_failure_is_contained(self, published_post, caplog):
        db = MagicMock()
        threads = MagicMock()
        threads.create.side_effect = OperationalError("INSERT", {}, Exception("locked"))
        orchestrator = CommentIntakeOrchestrator(
            db,
            challenges=MagicMock(**{"consume.return_value": True}),
            rate_limiter=MagicMock(**{"try_acquire.return_value": True}),
            threads=threads,
            deletion_rights=MagicMock(),
        )
        with caplog.at_level("ERROR", logger="marginalia"):
            result = orchestrator.submit(_request(published_post, uuid.uuid4()))
        assert result.status is SubmissionStatus.ERROR
        db.rollback.assert_called_once()
        assert "Storing comment failed" in caplog.text
        assert IDENTITY not in caplog.text

    def test_grant_failure_keeps_comment(self, published_post):
        comment = MagicMock()
        deletion_rights = MagicMock()
        deletion_rights.grant.side_effect = OperationalError("INSERT", {}, Exception("locked"))
        orchestrator = CommentIntakeOrchestrator(
            MagicMock(),
            challenges=MagicMock(**{"consume.return_value": True}),
            rate_limiter=MagicMock(**{"try_acquire.return_value": True}),
            threads=MagicMock(**{"create.return_value": comment}),
            deletion_rights=deletion_rights,
        )
        result = orchestrator.submit(_request(published_post, uuid.uuid4()))
        assert result.status is SubmissionStatus.CREATED
        assert result.comment is comment
        assert not result.grant_issued


class TestDelete:
    def test_holder_can_delete_once(self, orchestrator, published_post, verified):
        created = orchestrator.submit(_request(published_post, verified()))
        result = orchestrator.delete(created.comment.id, holder=HOLDER)
        assert result.status is DeletionStatus.DELETED
        assert result.comment.is_deleted
        assert not orchestrator.deletion_rights.can_delete(created.comment.id, HOLDER)
        again = orchestrator.delete(created.comment.id, holder=HOLDER)
        assert again.status is DeletionStatus.NOT_FOUND

    def test_other_holder_is_forbidden(self, orchestrator, published_post, verified):
        created = orchestrator.submit(_request(published_post, verified()))
        result = orchestrator.delete(created.comment.id, holder=OTHER_HOLDER)
        assert result.status is DeletionStatus.FORBIDDEN
        assert orchestrator.threads.get_live(created.comment.id) is not None

    def test_expired_grant_is_forbidden(self, orchestrator, published_post, verified, clock):
        created = orchestrator.submit(_request(published_post, verified()))
        clock.advance(1800)
        result = orchestrator.delete(created.comment.id, holder=HOLDER)
        assert result.status is DeletionStatus.FORBIDDEN

    def test_admin_can_delete_anything(self, orchestrator, published_post, make_comment):
        comment = make_comment(published_post)
        result = orchestrator.delete(comment.id, holder=None, is_admin=True)
        assert result.ok

    def test_missing_comment(self, orchestrator):
        assert orchestrator.delete(uuid.uuid4(), holder=HOLDER).status is DeletionStatus.NOT_FOUND


class TestThread:
    def test_lists_deletable_ids_for_holder(
        self, orchestrator, published_post, verified, make_comment, clock
    ):
        make_comment(published_post)
        clock.advance(1)
        mine = orchestrator.submit(_request(published_post, verified()))

        result = orchestrator.thread(published_post.id, page=1, page_size=10, holder=HOLDER)
        assert not result.error
        assert result.page.total == 2
        assert result.deletable_ids == [mine.comment.id]

        anonymous = orchestrator.thread(published_post.id, page=1, page_size=10, holder=None)
        assert anonymous.deletable_ids == []

    def test_deletable_ids_cover_only_the_listed_page(
        self, orchestrator, published_post, verified, make_comment, clock
    ):
        mine = orchestrator.submit(_request(published_post, verified()))
        clock.advance(1)
        newer_root = make_comment(published_post)
        clock.advance(1)
        my_reply = orchestrator.submit(
            _request(published_post, verified(), parent_id=newer_root.id)
        )

        first = orchestrator.thread(published_post.id, page=1, page_size=1, holder=HOLDER)
        assert first.deletable_ids == [my_reply.comment.id]
        second = orchestrator.thread(published_post.id, page=2, page_size=1, holder=HOLDER)
        assert second.deletable_ids == [mine.comment.id]

    def test_expired_grants_are_swept(self, orchestrator, published_post, verified, clock):
        orchestrator.submit(_request(published_post, verified()))
        clock.advance(1800)
        result = orchestrator.thread(published_post.id, page=1, page_size=10, holder=HOLDER)
        assert result.deletable_ids == []
        assert orchestrator.deletion_rights.sweep_expired() == 0

    def test_database_failure_reports_error(self):
        threads = MagicMock()
        threads.list_for_post.side_effect = OperationalError("SELECT", {}, Exception("gone"))
        orchestrator = CommentIntakeOrchestrator(
            MagicMock(),
            challenges=MagicMock(),
            rate_limiter=MagicMock(),
            threads=threads,
            deletion_rights=MagicMock(),
        )
        result = orchestrator.thread("post", page=1, page_size=10, holder=None)
        assert result.error
        assert result.page is None
