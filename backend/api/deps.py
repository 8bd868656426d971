"""Shared FastAPI dependencies."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core import UnauthorizedError
from db.session import get_session
from models import Account
from services.auth import (
    ACCESS_COOKIE,
    OAuthVerifier,
    SqlAccountDirectory,
    TokenManager,
    get_oauth_verifier,
)
from services.notifications import NotificationDispatcher, get_notification_dispatcher
from services.registration import RegistrationManager, ShopHandleGenerator

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    async for session in get_session():
        yield session


def get_account_directory(session: AsyncSession = Depends(get_db)) -> SqlAccountDirectory:
    return SqlAccountDirectory(session)


def get_notifier() -> NotificationDispatcher:
    return get_notification_dispatcher()


def get_verifier() -> OAuthVerifier:
    return get_oauth_verifier()


def get_token_manager(
    session: AsyncSession = Depends(get_db),
    directory: SqlAccountDirectory = Depends(get_account_directory),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> TokenManager:
    return TokenManager(session, directory, notifier)


def get_handle_generator(
    directory: SqlAccountDirectory = Depends(get_account_directory),
) -> ShopHandleGenerator:
    return ShopHandleGenerator(directory)


def get_registration_manager(
    session: AsyncSession = Depends(get_db),
    directory: SqlAccountDirectory = Depends(get_account_directory),
    tokens: TokenManager = Depends(get_token_manager),
    notifier: NotificationDispatcher = Depends(get_notifier),
    handles: ShopHandleGenerator = Depends(get_handle_generator),
) -> RegistrationManager:
    return RegistrationManager(session, directory, tokens, notifier, handles)


def _access_token_from_request(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    if credentials is not None and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return request.cookies.get(ACCESS_COOKIE)


async def get_current_account(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    tokens: TokenManager = Depends(get_token_manager),
) -> Account:
    """Resolve the account behind a bearer header or the access cookie."""
    token = _access_token_from_request(request, credentials)
    if not token:
        raise UnauthorizedError("Not authenticated")
    return await tokens.authenticate(token)
