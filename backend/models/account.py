"""Merchant account model."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, String, Text, func, text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Account(SQLModel, table=True):
    """Finalized merchant identity created from a completed registration."""

    __tablename__ = "accounts"

    id: str = Field(default_factory=lambda: str(uuid4()), sa_column=Column(String(36), primary_key=True))
    email: str = Field(
        sa_column=Column(String(255), unique=True, nullable=False, index=True)
    )
    # Absent for accounts that signed up through an OAuth provider only.
    password_hash: str | None = Field(
        default=None, sa_column=Column(String(255), nullable=True)
    )
    first_name: str = Field(sa_column=Column(String(50), nullable=False))
    last_name: str = Field(sa_column=Column(String(50), nullable=False))
    shop_handle: str = Field(
        sa_column=Column(String(30), unique=True, nullable=False, index=True)
    )
    business_name: str = Field(sa_column=Column(String(100), nullable=False))
    business_description: str = Field(sa_column=Column(Text, nullable=False))
    business_type: str = Field(sa_column=Column(String(20), nullable=False))
    country: str = Field(sa_column=Column(String(100), nullable=False))
    region: str = Field(sa_column=Column(String(100), nullable=False))
    sub_region: str = Field(sa_column=Column(String(100), nullable=False))
    address: str = Field(sa_column=Column(String(255), nullable=False))
    oauth_provider: str | None = Field(
        default=None, sa_column=Column(String(20), nullable=True)
    )
    oauth_id: str | None = Field(
        default=None, sa_column=Column(String(255), nullable=True)
    )
    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, server_default=text("true")),
    )
    email_verified: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(
            DateTime(timezone=True),
            server_default=func.now(),
            onupdate=func.now(),
            nullable=False,
        ),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
