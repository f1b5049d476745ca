# tests/conftest.py
from __future__ import annotations

import os
import re
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-comment-pipeline")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CHALLENGE_STORE_BACKEND", "memory")

from marginalia.api.v1.dependencies import get_challenge_store, get_clock
from marginalia.core.security import IdentityHasher, create_admin_token
from marginalia.core.settings import settings
from marginalia.db.session import Base, build_engine, create_tables
from marginalia.db.session import get_db as app_get_session
from marginalia.main import app as fastapi_app
from marginalia.models import Comment, Post
from marginalia.models.post import POST_STATUS_DRAFT, POST_STATUS_PUBLISHED
from marginalia.services.keyed_store import MemoryStore

TEST_DB_URL = "sqlite://"
START_TIME = datetime(2026, 3, 14, 9, 0, tzinfo=UTC)
_QUESTION = re.compile(r"^\s*(\d+)\s*([+\-×])\s*(\d+)\s*=\s*\?\s*$")


class FrozenClock:
    """Controllable stand-in for the wall clock."""

    def __init__(self, start: datetime = START_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


def answer_for(question: str) -> int:
    """Solve a question of the form ``"3 × 4 = ?"``."""
    match = _QUESTION.match(question)
    assert match is not None, f"unexpected question format: {question!r}"
    left, operator, right = int(match.group(1)), match.group(2), int(match.group(3))
    if operator == "+":
        return left + right
    if operator == "-":
        return left - right
    return left * right


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = build_engine(TEST_DB_URL, poolclass=StaticPool)
    create_tables(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def challenge_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def hasher() -> IdentityHasher:
    return IdentityHasher(settings.secret_key)


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    clock: FrozenClock,
    challenge_store: MemoryStore,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_challenge_store] = lambda: challenge_store
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_clock, None)
        app.dependency_overrides.pop(get_challenge_store, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def published_post(db_session: Session) -> Post:
    """Create a published post that accepts comments."""
    post = Post(
        id="post-hello",
        slug="hello-world",
        title="Hello, world",
        status=POST_STATUS_PUBLISHED,
        created_at=START_TIME - timedelta(days=1),
    )
    db_session.add(post)
    db_session.commit()
    return post


@pytest.fixture()
def other_post(db_session: Session) -> Post:
    post = Post(
        id="post-second",
        slug="second-post",
        title="A second post",
        status=POST_STATUS_PUBLISHED,
        created_at=START_TIME - timedelta(days=1),
    )
    db_session.add(post)
    db_session.commit()
    return post


@pytest.fixture()
def draft_post(db_session: Session) -> Post:
    post = Post(
        id="post-draft",
        slug="work-in-progress",
        title="Not yet",
        status=POST_STATUS_DRAFT,
        created_at=START_TIME - timedelta(days=1),
    )
    db_session.add(post)
    db_session.commit()
    return post


@pytest.fixture()
def make_comment(
    db_session: Session,
    clock: FrozenClock,
) -> Callable[..., Comment]:
    """Insert a comment directly, one simulated second after the previous one."""

    def _make(
        post: Post,
        content: str = "A perfectly fine comment",
        *,
        parent: Comment | None = None,
        author_name: str = "Reader",
        identity: str = "a" * 64,
        deleted: bool = False,
    ) -> Comment:
        created_at = clock.advance(1)
        comment = Comment(
            post_id=post.id,
            parent_id=parent.id if parent is not None else None,
            author_name=author_name,
            content=content,
            identity=identity,
            created_at=created_at,
            deleted_at=created_at if deleted else None,
        )
        db_session.add(comment)
        db_session.commit()
        return comment

    return _make


@pytest.fixture()
def solved_captcha(client: TestClient) -> Callable[..., dict[str, Any]]:
    """Issue and verify a challenge, returning the fields a comment needs."""

    def _solve(**request_kwargs: Any) -> dict[str, Any]:
        issued = client.get("/api/v1/captcha", **request_kwargs)
        assert issued.status_code == 200
        body = issued.json()
        answer = answer_for(body["question"])
        verified = client.post(
            "/api/v1/captcha/verify",
            json={"sessionId": body["sessionId"], "answer": answer},
            **request_kwargs,
        )
        assert verified.status_code == 200
        return {"sessionId": body["sessionId"], "answer": answer}

    return _solve


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    """Return authorization headers carrying an admin token."""
    token = create_admin_token(
        "moderator",
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def answer_question() -> Callable[[str], int]:
    return answer_for
