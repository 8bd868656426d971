"""Registration wizard session model."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, func, text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RegistrationSession(SQLModel, table=True):
    """Versioned record of an in-progress registration.

    ``step_data`` maps the step number (as a string key) to that step's
    partial payload. ``version`` increases on every write so updates can be
    made conditional on the version the writer last saw.
    """

    __tablename__ = "registration_sessions"

    id: str = Field(default_factory=lambda: str(uuid4()), sa_column=Column(String(36), primary_key=True))
    email: str = Field(sa_column=Column(String(255), nullable=False, index=True))
    session_token: str = Field(
        sa_column=Column(String(128), unique=True, nullable=False, index=True)
    )
    verification_token: str | None = Field(
        default=None, sa_column=Column(String(128), nullable=True)
    )
    current_step: int = Field(
        default=1,
        sa_column=Column(Integer, nullable=False, server_default=text("1")),
    )
    step_data: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False)
    )
    email_verified: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    oauth_provider: str | None = Field(
        default=None, sa_column=Column(String(20), nullable=True)
    )
    oauth_id: str | None = Field(
        default=None, sa_column=Column(String(255), nullable=True)
    )
    oauth_profile: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )
    version: int = Field(
        default=1,
        sa_column=Column(Integer, nullable=False, server_default=text("1")),
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
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
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
    )

    @property
    def is_oauth(self) -> bool:
        return self.oauth_provider is not None
