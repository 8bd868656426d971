"""Core configuration, security primitives and error types."""

from .config import Settings, settings
from .errors import (
    BadRequestError,
    ConflictError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
)
from .security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    generate_secret,
    hash_password,
    hash_secret,
    needs_rehash,
    secrets_match,
    verify_password,
)

__all__ = [
    "Settings",
    "settings",
    "BadRequestError",
    "ConflictError",
    "InternalError",
    "NotFoundError",
    "UnauthorizedError",
    "ACCESS_TOKEN_TYPE",
    "REFRESH_TOKEN_TYPE",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
    "generate_secret",
    "hash_password",
    "hash_secret",
    "needs_rehash",
    "secrets_match",
    "verify_password",
]
