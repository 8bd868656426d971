"""Tests for the expired-record purge script."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from sqlalchemy import func, select

from models import PasswordReset, RefreshToken, RegistrationSession
from scripts import purge_expired_records as purge_script
from services.maintenance import purge_expired_batch


def _past(**delta: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(**delta)


def _future(**delta: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(**delta)


def _registration(index: int, expires_at: datetime) -> RegistrationSession:
    return RegistrationSession(
        email=f"user{index}@biz.com",
        session_token=f"session-{index}",
        step_data={"1": {"email": f"user{index}@biz.com", "is_oauth": False}},
        expires_at=expires_at,
    )


async def _count(session_maker, model: Any) -> int:
    async with session_maker() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return int(result.scalar_one())


def test_parse_positive_int_uses_default_for_blank_values() -> None:
    assert purge_script._parse_positive_int(None, default=7, label="PURGE_BATCH_SIZE") == 7
    assert purge_script._parse_positive_int("  ", default=7, label="PURGE_BATCH_SIZE") == 7
    assert purge_script._parse_positive_int("25", default=7, label="PURGE_BATCH_SIZE") == 25


@pytest.mark.parametrize("raw_value", ["0", "-3", "many"])
def test_parse_positive_int_rejects_invalid_values(raw_value: str) -> None:
    with pytest.raises(ValueError):
        purge_script._parse_positive_int(raw_value, default=7, label="PURGE_BATCH_SIZE")


@pytest.mark.asyncio
async def test_purge_expired_batch_respects_batch_size(session_maker) -> None:
    async with session_maker() as session:
        session.add_all([_registration(index, _past(minutes=index + 1)) for index in range(3)])
        session.add(_registration(99, _future(hours=1)))
        await session.commit()

    async with session_maker() as session:
        deleted = await purge_expired_batch(session, RegistrationSession, batch_size=2)

    assert deleted == 2
    assert await _count(session_maker, RegistrationSession) == 2


@pytest.mark.asyncio
async def test_run_purges_expired_rows_from_every_table(
    session_maker,
    account_factory,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("PURGE_BATCH_SIZE", "1")
    account = await account_factory()
    other = await account_factory()
    async with session_maker() as session:
        session.add_all(
            [
                _registration(1, _past(minutes=5)),
                _registration(2, _past(minutes=1)),
                _registration(3, _future(hours=2)),
                RefreshToken(
                    account_id=account.id,
                    token_hash="a" * 64,
                    issued_at=_past(days=8),
                    expires_at=_past(days=1),
                ),
                RefreshToken(
                    account_id=account.id,
                    token_hash="b" * 64,
                    issued_at=_past(minutes=1),
                    expires_at=_future(days=7),
                ),
                PasswordReset(
                    account_id=account.id,
                    token_hash="c" * 64,
                    expires_at=_past(minutes=1),
                ),
                PasswordReset(
                    account_id=other.id,
                    token_hash="d" * 64,
                    expires_at=_future(minutes=10),
                ),
            ]
        )
        await session.commit()

    deleted = await purge_script.run(session_maker)

    assert deleted == {"registration_sessions": 2, "refresh_tokens": 1, "password_resets": 1}
    assert await _count(session_maker, RegistrationSession) == 1
    assert await _count(session_maker, RefreshToken) == 1
    assert await _count(session_maker, PasswordReset) == 1


@pytest.mark.asyncio
async def test_run_stops_at_row_budget(session_maker, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PURGE_MAX_ROWS_PER_RUN", "2")
    async with session_maker() as session:
        session.add_all([_registration(index, _past(minutes=index + 1)) for index in range(4)])
        await session.commit()

    deleted = await purge_script.run(session_maker)

    assert deleted["registration_sessions"] == 2
    assert await _count(session_maker, RegistrationSession) == 2
