"""Account directory: durable lookups and writes for finalized accounts."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol, cast

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import ConflictError, NotFoundError
from db.errors import is_unique_violation, violated_column
from models import Account

ACCOUNT_UNIQUE_COLUMNS = ("shop_handle", "email")


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def normalize_email(value: str) -> str:
    return value.strip().lower()


class AccountDirectory(Protocol):
    async def find_by_email(self, email: str) -> Account | None: ...

    async def find_by_id(self, account_id: str) -> Account | None: ...

    async def find_by_shop_handle(self, handle: str) -> Account | None: ...

    async def email_exists(self, email: str) -> bool: ...

    async def shop_handle_exists(self, handle: str) -> bool: ...

    async def create_atomic(self, account: Account) -> Account: ...

    async def update_password(self, account_id: str, password_hash: str) -> None: ...


class SqlAccountDirectory:
    """``AccountDirectory`` over the ``accounts`` table.

    Writes are flushed, never committed: the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_email(self, email: str) -> Account | None:
        result = await self.session.execute(
            select(Account).where(_eq(Account.email, normalize_email(email))).limit(1)
        )
        return result.scalar_one_or_none()

    async def find_by_id(self, account_id: str) -> Account | None:
        return await self.session.get(Account, account_id)

    async def find_by_shop_handle(self, handle: str) -> Account | None:
        result = await self.session.execute(
            select(Account).where(_eq(Account.shop_handle, handle)).limit(1)
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        result = await self.session.execute(
            select(exists().where(_eq(Account.email, normalize_email(email))))
        )
        return bool(result.scalar())

    async def shop_handle_exists(self, handle: str) -> bool:
        result = await self.session.execute(
            select(exists().where(_eq(Account.shop_handle, handle)))
        )
        return bool(result.scalar())

    async def create_atomic(self, account: Account) -> Account:
        """Insert the account, relying on unique indexes as the race backstop.

        On a uniqueness violation the whole unit of work is rolled back and
        ``ConflictError`` names the clashing field.
        """
        account.email = normalize_email(account.email)
        self.session.add(account)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            if is_unique_violation(exc):
                column = violated_column(exc, ACCOUNT_UNIQUE_COLUMNS)
                if column == "shop_handle":
                    raise ConflictError("Shop handle is already taken") from exc
                raise ConflictError("An account with this email already exists") from exc
            raise
        return account

    async def update_password(self, account_id: str, password_hash: str) -> None:
        account = await self.session.get(Account, account_id)
        if account is None:
            raise NotFoundError("Account not found")
        account.password_hash = password_hash
        account.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
