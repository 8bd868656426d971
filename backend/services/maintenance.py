"""Batched removal of expired, time-bounded records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, cast

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from models import PasswordReset, RefreshToken, RegistrationSession

EXPIRING_MODELS: dict[str, Any] = {
    "registration_sessions": RegistrationSession,
    "refresh_tokens": RefreshToken,
    "password_resets": PasswordReset,
}
PURGE_BATCH_SIZE = 500


def _le(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column <= value)


def _in(column: Any, values: list[str]) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], cast(Any, column).in_(values))


async def purge_expired_batch(
    session: AsyncSession,
    model: Any,
    *,
    now: datetime | None = None,
    batch_size: int = PURGE_BATCH_SIZE,
) -> int:
    """Delete up to ``batch_size`` rows of ``model`` whose ``expires_at`` passed.

    Returns the number of rows deleted and commits the batch.
    """
    if batch_size <= 0:
        return 0
    cutoff = now or datetime.now(timezone.utc)
    result = await session.execute(
        select(model.id)
        .where(_le(model.expires_at, cutoff))
        .order_by(model.expires_at)
        .limit(batch_size)
    )
    expired_ids = list(result.scalars().all())
    if not expired_ids:
        return 0

    deleted = await session.execute(
        delete(model)
        .where(_in(model.id, expired_ids))
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return int(cast(Any, deleted).rowcount or 0)
