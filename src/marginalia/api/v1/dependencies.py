"""Shared API dependencies: identity, admin recognition and service wiring."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from marginalia.core.security import IdentityHasher, is_admin_token
from marginalia.core.settings import settings
from marginalia.db.session import get_db
from marginalia.db.time import Clock, utcnow
from marginalia.services.captcha import ChallengeManager
from marginalia.services.comments import CommentThreadEngine
from marginalia.services.deletion_rights import DeletionRightsStore
from marginalia.services.intake import CommentIntakeOrchestrator
from marginalia.services.keyed_store import KeyedStore, get_keyed_store
from marginalia.services.rate_limit import RateLimiter
from marginalia.services.reactions import ReactionEngine

DEFAULT_CLIENT_ADDRESS = "127.0.0.1"

# Admin credentials are optional on public routes.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_clock() -> Clock:
    """Return the wall clock used by the time-windowed services."""
    return utcnow


def get_identity_hasher() -> IdentityHasher:
    """Return the keyed hasher; fails closed if no secret is configured."""
    return IdentityHasher(settings.secret_key)


def get_challenge_store() -> KeyedStore:
    """Return the store that holds pending challenges."""
    return get_keyed_store()


ClockDep = Annotated[Clock, Depends(get_clock)]
HasherDep = Annotated[IdentityHasher, Depends(get_identity_hasher)]
ChallengeStoreDep = Annotated[KeyedStore, Depends(get_challenge_store)]


def client_address(request: Request) -> str:
    """Resolve the caller's network address.

    Takes the first ``X-Forwarded-For`` hop, then ``X-Real-IP``, then the socket
    peer. Forwarded headers are ignored when the deployment does not sit behind
    a trusted proxy.
    """
    if settings.trust_forwarded_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop
        real_ip = request.headers.get("x-real-ip")
        if real_ip and real_ip.strip():
            return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return DEFAULT_CLIENT_ADDRESS


def get_identity(request: Request, hasher: HasherDep) -> str:
    """Return the pseudonymous identity token for the caller."""
    return hasher.identify(client_address(request))


def get_session_token(request: Request) -> str | None:
    """Return the raw comment session token from the cookie, if any."""
    token = request.cookies.get(settings.comment_session_cookie)
    return token or None


def get_holder(
    hasher: HasherDep,
    token: Annotated[str | None, Depends(get_session_token)],
) -> str | None:
    """Return the grant holder key for the caller's comment session."""
    if token is None:
        return None
    return hasher.session_holder(token)


def get_is_admin(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> bool:
    """Return True when the request carries a valid admin bearer token."""
    if credentials is None:
        return False
    return is_admin_token(
        credentials.credentials,
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )


IdentityDep = Annotated[str, Depends(get_identity)]
SessionTokenDep = Annotated[str | None, Depends(get_session_token)]
HolderDep = Annotated[str | None, Depends(get_holder)]
IsAdminDep = Annotated[bool, Depends(get_is_admin)]


def get_challenge_manager(
    store: ChallengeStoreDep,
    hasher: HasherDep,
    clock: ClockDep,
) -> ChallengeManager:
    return ChallengeManager(store, hasher, clock=clock)


def get_thread_engine(db: SessionDep, clock: ClockDep) -> CommentThreadEngine:
    return CommentThreadEngine(db, clock=clock)


def get_deletion_rights(db: SessionDep, clock: ClockDep) -> DeletionRightsStore:
    return DeletionRightsStore(db, clock=clock)


def get_reaction_engine(db: SessionDep, clock: ClockDep) -> ReactionEngine:
    return ReactionEngine(db, clock=clock)


ChallengeManagerDep = Annotated[ChallengeManager, Depends(get_challenge_manager)]
ThreadEngineDep = Annotated[CommentThreadEngine, Depends(get_thread_engine)]
DeletionRightsDep = Annotated[DeletionRightsStore, Depends(get_deletion_rights)]
ReactionEngineDep = Annotated[ReactionEngine, Depends(get_reaction_engine)]


def get_orchestrator(
    db: SessionDep,
    clock: ClockDep,
    challenges: ChallengeManagerDep,
    threads: ThreadEngineDep,
    deletion_rights: DeletionRightsDep,
) -> CommentIntakeOrchestrator:
    return CommentIntakeOrchestrator(
        db,
        challenges=challenges,
        rate_limiter=RateLimiter(db, clock=clock),
        threads=threads,
        deletion_rights=deletion_rights,
    )


OrchestratorDep = Annotated[CommentIntakeOrchestrator, Depends(get_orchestrator)]
