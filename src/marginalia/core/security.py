"""Keyed hashing and admin token helpers."""
from __future__ import annotations

import hashlib
import hmac
from datetime import timedelta

from jose import JWTError, jwt

from marginalia.db.time import utcnow

ADMIN_ROLE = "admin"


class ConfigurationError(RuntimeError):
    """Raised when the service is started without a required setting."""


class IdentityHasher:
    """Derive pseudonymous tokens from raw client data.

    Every digest is ``HMAC-SHA256(secret, namespace:value)``; namespaces keep
    addresses, captcha answers and session tokens from ever colliding.
    """

    def __init__(self, secret: str | bytes | None) -> None:
        if not secret:
            raise ConfigurationError(
                "SECRET_KEY is required for identity hashing; refusing to fall back "
                "to an unkeyed hash."
            )
        self._key = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)

    def digest(self, namespace: str, value: str) -> str:
        """Return the hex HMAC of ``value`` within ``namespace``."""
        message = f"{namespace}:{value}".encode()
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def identify(self, raw_address: str) -> str:
        """Return the identity token for a network address."""
        return self.digest("addr", raw_address.strip())

    def session_holder(self, session_token: str) -> str:
        """Return the grant holder key for a comment session token."""
        return self.digest("session", session_token)


def constant_time_equals(left: str, right: str) -> bool:
    """Compare two digests without leaking timing information."""
    return hmac.compare_digest(left.encode(), right.encode())


def create_admin_token(
    subject: str,
    *,
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60,
) -> str:
    """Create a signed bearer token that marks its holder as an administrator."""
    claims: dict[str, object] = {
        "sub": subject,
        "role": ADMIN_ROLE,
        "exp": utcnow() + timedelta(minutes=expires_minutes),
    }
    encoded: str = jwt.encode(claims, secret_key, algorithm=algorithm)
    return encoded


def is_admin_token(token: str, *, secret_key: str, algorithm: str = "HS256") -> bool:
    """Return True if ``token`` is a valid, unexpired admin token."""
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError:
        return False
    return payload.get("role") == ADMIN_ROLE and bool(payload.get("sub"))
