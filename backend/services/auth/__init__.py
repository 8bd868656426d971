"""Authentication domain services."""

from .cookies import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    clear_token_cookies,
    read_refresh_token,
    set_token_cookies,
)
from .directory import AccountDirectory, SqlAccountDirectory, normalize_email
from .google_oauth import (
    GoogleTokenVerifier,
    OAuthProfile,
    OAuthVerifier,
    get_oauth_verifier,
    set_oauth_verifier,
)
from .token_store import (
    consume_refresh_token,
    enforce_refresh_token_limit,
    ensure_aware,
    hash_refresh_token,
    revoke_account_tokens,
    revoke_refresh_token,
    store_refresh_token,
)
from .tokens import CredentialPair, TokenManager

__all__ = [
    "ACCESS_COOKIE",
    "REFRESH_COOKIE",
    "clear_token_cookies",
    "read_refresh_token",
    "set_token_cookies",
    "AccountDirectory",
    "SqlAccountDirectory",
    "normalize_email",
    "GoogleTokenVerifier",
    "OAuthProfile",
    "OAuthVerifier",
    "get_oauth_verifier",
    "set_oauth_verifier",
    "consume_refresh_token",
    "enforce_refresh_token_limit",
    "ensure_aware",
    "hash_refresh_token",
    "revoke_account_tokens",
    "revoke_refresh_token",
    "store_refresh_token",
    "CredentialPair",
    "TokenManager",
]
