"""Google ID-token verification for OAuth-originated registrations."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Protocol

import httpx

from core import BadRequestError, InternalError, settings

logger = logging.getLogger(__name__)

GOOGLE_PROVIDER = "google"
GOOGLE_ISSUERS = frozenset({"accounts.google.com", "https://accounts.google.com"})


@dataclass(slots=True)
class OAuthProfile:
    provider: str
    subject: str
    email: str
    name: str = ""
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None

    @property
    def first_name(self) -> str:
        if self.given_name:
            return self.given_name
        parts = self.name.split()
        return parts[0] if parts else ""

    @property
    def last_name(self) -> str:
        if self.family_name:
            return self.family_name
        return " ".join(self.name.split()[1:])

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class OAuthVerifier(Protocol):
    async def verify(self, token: str) -> OAuthProfile: ...


def _is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


class GoogleTokenVerifier:
    """Validates a Google ID token through Google's token-info endpoint."""

    def __init__(
        self,
        client_id: str | None = None,
        tokeninfo_url: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.client_id = settings.google_client_id if client_id is None else client_id
        self.tokeninfo_url = tokeninfo_url or settings.google_tokeninfo_url
        self.transport = transport
        self.timeout = timeout

    async def _fetch_claims(self, token: str) -> dict[str, Any]:
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            try:
                response = await client.get(self.tokeninfo_url, params={"id_token": token})
            except httpx.HTTPError as exc:
                logger.warning("Google token verification request failed: %s", exc)
                raise BadRequestError("Failed to verify Google token") from exc
        if response.status_code != httpx.codes.OK:
            raise BadRequestError("Invalid Google token")
        try:
            claims = response.json()
        except ValueError as exc:
            raise BadRequestError("Invalid Google token") from exc
        if not isinstance(claims, dict):
            raise BadRequestError("Invalid Google token")
        return claims

    async def verify(self, token: str) -> OAuthProfile:
        if not self.client_id:
            raise InternalError("Google OAuth not configured")

        claims = await self._fetch_claims(token)
        if claims.get("aud") != self.client_id:
            raise BadRequestError("Google token was issued for another client")
        if claims.get("iss") not in GOOGLE_ISSUERS:
            raise BadRequestError("Invalid Google token issuer")
        email = claims.get("email")
        subject = claims.get("sub")
        if not email or not subject:
            raise BadRequestError("Invalid Google token payload")
        if not _is_truthy(claims.get("email_verified")):
            raise BadRequestError("Google email is not verified")

        logger.info("Google OAuth verification succeeded for subject %s", subject)
        return OAuthProfile(
            provider=GOOGLE_PROVIDER,
            subject=str(subject),
            email=str(email),
            name=str(claims.get("name") or ""),
            given_name=claims.get("given_name"),
            family_name=claims.get("family_name"),
            picture=claims.get("picture"),
        )


_cached_verifier: OAuthVerifier | None = None


def get_oauth_verifier() -> OAuthVerifier:
    global _cached_verifier
    if _cached_verifier is None:
        _cached_verifier = GoogleTokenVerifier()
    return _cached_verifier


def set_oauth_verifier(verifier: OAuthVerifier | None) -> None:
    """Override the cached verifier (primarily for tests)."""
    global _cached_verifier
    _cached_verifier = verifier
