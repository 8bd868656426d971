"""Refresh-token persistence and rotation helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, cast

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import REFRESH_TOKEN_TYPE, decode_token, hash_secret, settings
from models import PasswordReset, RefreshToken

DecodeTokenFn = Callable[[str], dict[str, Any]]


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _gt(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column > value)


def _decode_refresh_token(token: str) -> dict[str, Any]:
    return decode_token(token, token_type=REFRESH_TOKEN_TYPE)


def hash_refresh_token(token: str) -> str:
    return hash_secret(token)


def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


async def enforce_refresh_token_limit(
    session: AsyncSession,
    account_id: str,
    *,
    max_active_tokens: int | None = None,
) -> None:
    """Drop the oldest live records beyond the per-account cap."""
    limit = settings.max_active_refresh_tokens if max_active_tokens is None else max_active_tokens
    issued_at_column = cast(Any, RefreshToken.issued_at)

    result = await session.execute(
        select(RefreshToken)
        .where(_eq(RefreshToken.account_id, account_id))
        .order_by(issued_at_column.desc())
    )
    tokens = result.scalars().all()
    surplus = tokens[limit:]
    for token_obj in surplus:
        await session.delete(token_obj)
    if surplus:
        await session.flush()


async def store_refresh_token(
    session: AsyncSession,
    account_id: str,
    token: str,
    *,
    max_active_tokens: int | None = None,
    decode_token_fn: DecodeTokenFn = _decode_refresh_token,
) -> RefreshToken:
    payload = decode_token_fn(token)
    token_obj = RefreshToken(
        account_id=account_id,
        token_hash=hash_refresh_token(token),
        issued_at=datetime.now(timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )
    session.add(token_obj)
    await session.flush()
    await enforce_refresh_token_limit(
        session,
        account_id,
        max_active_tokens=max_active_tokens,
    )
    return token_obj


async def consume_refresh_token(
    session: AsyncSession,
    token: str,
    *,
    account_id: str,
) -> bool:
    """Delete the live record for ``token`` and report whether one existed.

    The lookup and the delete are a single conditional statement, so two
    callers presenting the same token cannot both observe a live record.
    """
    result = await session.execute(
        delete(RefreshToken)
        .where(
            _eq(RefreshToken.token_hash, hash_refresh_token(token)),
            _eq(RefreshToken.account_id, account_id),
            _gt(RefreshToken.expires_at, datetime.now(timezone.utc)),
        )
        .execution_options(synchronize_session=False)
    )
    return cast(Any, result).rowcount == 1


async def revoke_refresh_token(session: AsyncSession, token: str) -> None:
    await session.execute(
        delete(RefreshToken)
        .where(_eq(RefreshToken.token_hash, hash_refresh_token(token)))
        .execution_options(synchronize_session=False)
    )


async def revoke_account_tokens(session: AsyncSession, account_id: str) -> int:
    """Delete every refresh-token and password-reset record for the account."""
    refresh_result = await session.execute(
        delete(RefreshToken)
        .where(_eq(RefreshToken.account_id, account_id))
        .execution_options(synchronize_session=False)
    )
    reset_result = await session.execute(
        delete(PasswordReset)
        .where(_eq(PasswordReset.account_id, account_id))
        .execution_options(synchronize_session=False)
    )
    return cast(Any, refresh_result).rowcount + cast(Any, reset_result).rowcount

