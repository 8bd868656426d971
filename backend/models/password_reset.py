"""Password reset records."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String, func
from sqlmodel import Field, SQLModel


class PasswordReset(SQLModel, table=True):
    """Hashed single-use reset token; at most one per account."""

    __tablename__ = "password_resets"

    id: str = Field(default_factory=lambda: str(uuid4()), sa_column=Column(String(36), primary_key=True))
    account_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("accounts.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
        )
    )
    token_hash: str = Field(
        sa_column=Column(String(64), unique=True, nullable=False, index=True)
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
    )
