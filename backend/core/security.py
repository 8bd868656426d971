"""Password hashing, signed token helpers and opaque secret generation."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

import bcrypt
from jose import JWTError, jwt

from .config import settings

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"
TOKEN_TYPES = frozenset({ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE})

# bcrypt only considers the first 72 bytes of a password.
BCRYPT_MAX_PASSWORD_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def needs_rehash(password_hash: str) -> bool:
    """Return True when the hash was produced with a different bcrypt cost."""
    parts = password_hash.split("$")
    if len(parts) < 4 or not parts[2].isdigit():
        return True
    return int(parts[2]) != settings.bcrypt_rounds


def generate_secret(num_bytes: int = 32) -> str:
    """Return a random hex secret suitable for opaque bearer values."""
    return secrets.token_hex(num_bytes)


def hash_secret(value: str) -> str:
    """Keyed one-way hash for persisted secrets (refresh and reset tokens)."""
    return hmac.new(
        settings.token_hash_secret.encode("utf-8"),
        value.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def secrets_match(left: str | None, right: str | None) -> bool:
    if left is None or right is None:
        return False
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))


def _signing_key(token_type: str) -> str:
    if token_type == REFRESH_TOKEN_TYPE:
        return settings.jwt_refresh_secret_key
    return settings.jwt_secret_key


def _default_ttl(token_type: str) -> timedelta:
    if token_type == REFRESH_TOKEN_TYPE:
        return timedelta(minutes=settings.refresh_token_expire_minutes)
    return timedelta(minutes=settings.access_token_expire_minutes)


def _create_token(
    subject: str,
    email: str,
    token_type: str,
    expires_delta: timedelta | None,
) -> str:
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + (expires_delta or _default_ttl(token_type))
    claims: dict[str, Any] = {
        "sub": subject,
        "email": email,
        "type": token_type,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": issued_at,
        "exp": expires_at,
        "jti": uuid4().hex,
    }
    return jwt.encode(claims, _signing_key(token_type), algorithm=settings.jwt_algorithm)


def create_access_token(
    subject: str,
    email: str,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    return _create_token(subject, email, ACCESS_TOKEN_TYPE, expires_delta)


def create_refresh_token(
    subject: str,
    email: str,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    return _create_token(subject, email, REFRESH_TOKEN_TYPE, expires_delta)


def decode_token(token: str, *, token_type: str = ACCESS_TOKEN_TYPE) -> dict[str, Any]:
    """Verify signature, expiry, issuer, audience and type discriminator.

    Raises ValueError for any token that must not be accepted as ``token_type``.
    """
    if token_type not in TOKEN_TYPES:
        raise ValueError(f"Unsupported token type: {token_type}")
    try:
        payload = jwt.decode(
            token,
            _signing_key(token_type),
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError as exc:
        raise ValueError("Invalid token") from exc

    if payload.get("type") != token_type:
        raise ValueError("Unexpected token type")
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        raise ValueError("Token subject is missing")
    return payload
