"""Access/refresh token lifecycle and password-reset tokens."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, cast

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    BadRequestError,
    InternalError,
    UnauthorizedError,
    create_access_token,
    create_refresh_token,
    decode_token,
    generate_secret,
    hash_password,
    hash_secret,
    needs_rehash,
    settings,
    verify_password,
)
from models import Account, PasswordReset
from services.notifications import NotificationDispatcher, dispatch_safely

from .directory import AccountDirectory, normalize_email
from .token_store import (
    consume_refresh_token,
    revoke_account_tokens,
    revoke_refresh_token,
    store_refresh_token,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
INVALID_RESET_TOKEN = "Invalid or expired reset token"
RESET_TOKEN_BYTES = 32


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _gt(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column > value)


@dataclass(slots=True)
class CredentialPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"


_dummy_password_hash: str | None = None


def _dummy_hash() -> str:
    # Verified against when the email is unknown so both login paths cost a bcrypt check.
    global _dummy_password_hash
    if _dummy_password_hash is None:
        _dummy_password_hash = hash_password(generate_secret(16))
    return _dummy_password_hash


class TokenManager:
    """Issues, validates, rotates and revokes account credentials.

    Operations that complete a unit of work commit the session. ``issue`` only
    flushes so it can join a caller's transaction (registration finalization).
    """

    def __init__(
        self,
        session: AsyncSession,
        directory: AccountDirectory,
        notifier: NotificationDispatcher | None = None,
    ) -> None:
        self.session = session
        self.directory = directory
        self.notifier = notifier

    async def issue(self, account: Account) -> CredentialPair:
        access_token = create_access_token(account.id, account.email)
        refresh_token = create_refresh_token(account.id, account.email)
        await store_refresh_token(self.session, account.id, refresh_token)
        return CredentialPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.access_token_expire_minutes * 60,
        )

    async def login(self, email: str, password: str) -> tuple[Account, CredentialPair]:
        account = await self.directory.find_by_email(normalize_email(email))
        if account is None or account.password_hash is None:
            verify_password(password, _dummy_hash())
            raise UnauthorizedError(INVALID_CREDENTIALS)
        if not verify_password(password, account.password_hash):
            raise UnauthorizedError(INVALID_CREDENTIALS)
        if not account.is_active:
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if needs_rehash(account.password_hash):
            await self.directory.update_password(account.id, hash_password(password))

        credentials = await self.issue(account)
        await self.session.commit()
        logger.info("Account %s logged in", account.id)
        return account, credentials

    def validate_access(self, token: str) -> dict[str, Any]:
        try:
            return decode_token(token, token_type=ACCESS_TOKEN_TYPE)
        except ValueError as exc:
            raise UnauthorizedError() from exc

    async def authenticate(self, token: str) -> Account:
        """Resolve the active account an access token was issued to."""
        payload = self.validate_access(token)
        account = await self.directory.find_by_id(payload["sub"])
        if account is None or not account.is_active:
            raise UnauthorizedError()
        return account

    async def refresh(self, refresh_token: str) -> CredentialPair:
        try:
            payload = decode_token(refresh_token, token_type=REFRESH_TOKEN_TYPE)
        except ValueError as exc:
            raise UnauthorizedError(INVALID_REFRESH_TOKEN) from exc

        account_id = payload["sub"]
        consumed = await consume_refresh_token(
            self.session,
            refresh_token,
            account_id=account_id,
        )
        if not consumed:
            await self.session.rollback()
            logger.warning("Rejected refresh token replay or revoked token for %s", account_id)
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        account = await self.directory.find_by_id(account_id)
        if account is None or not account.is_active:
            await self.session.commit()
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        credentials = await self.issue(account)
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise InternalError("Failed to refresh tokens") from exc
        logger.info("Rotated refresh token for account %s", account_id)
        return credentials

    async def revoke(self, refresh_token: str) -> None:
        """Forget a refresh token. Never raises: logout always succeeds."""
        try:
            await revoke_refresh_token(self.session, refresh_token)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.warning("Failed to revoke refresh token", exc_info=True)

    async def revoke_all(self, account_id: str) -> None:
        removed = await revoke_account_tokens(self.session, account_id)
        await self.session.commit()
        logger.info("Revoked %s token records for account %s", removed, account_id)

    async def issue_password_reset(self, email: str) -> str:
        """Return a reset token whether or not the email is registered.

        Only a registered account gets a persisted (hashed) record and an email.
        """
        raw_token = generate_secret(RESET_TOKEN_BYTES)
        account = await self.directory.find_by_email(normalize_email(email))
        if account is None:
            logger.info("Password reset requested for unregistered email")
            return raw_token

        await self.session.execute(
            delete(PasswordReset)
            .where(_eq(PasswordReset.account_id, account.id))
            .execution_options(synchronize_session=False)
        )
        self.session.add(
            PasswordReset(
                account_id=account.id,
                token_hash=hash_secret(raw_token),
                expires_at=datetime.now(timezone.utc)
                + timedelta(minutes=settings.password_reset_expire_minutes),
            )
        )
        await self.session.commit()
        logger.info("Password reset token issued for account %s", account.id)

        if self.notifier is not None:
            await dispatch_safely(
                self.notifier.send_password_reset(account.email, raw_token),
                description="password reset email",
            )
        return raw_token

    async def consume_password_reset(self, raw_token: str, new_password: str) -> None:
        token_hash = hash_secret(raw_token)
        now = datetime.now(timezone.utc)
        live_record = (
            _eq(PasswordReset.token_hash, token_hash),
            _gt(PasswordReset.expires_at, now),
        )
        result = await self.session.execute(
            select(PasswordReset.account_id).where(*live_record)
        )
        account_id = result.scalar_one_or_none()
        if account_id is None:
            raise BadRequestError(INVALID_RESET_TOKEN)

        deleted = await self.session.execute(
            delete(PasswordReset)
            .where(*live_record)
            .execution_options(synchronize_session=False)
        )
        if cast(Any, deleted).rowcount != 1:
            await self.session.rollback()
            raise BadRequestError(INVALID_RESET_TOKEN)

        await self.directory.update_password(account_id, hash_password(new_password))
        await revoke_account_tokens(self.session, account_id)
        await self.session.commit()
        logger.info("Password reset completed for account %s", account_id)

    async def change_password(
        self,
        account: Account,
        current_password: str,
        new_password: str,
    ) -> None:
        if not verify_password(current_password, account.password_hash):
            raise BadRequestError("Current password is incorrect")
        await self.directory.update_password(account.id, hash_password(new_password))
        await revoke_account_tokens(self.session, account.id)
        await self.session.commit()
        logger.info("Password changed for account %s", account.id)
