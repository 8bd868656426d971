"""Registration session state machine and finalization."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, cast

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    generate_secret,
    hash_password,
    secrets_match,
    settings,
)
from db.errors import is_unique_violation
from models import Account, RegistrationSession
from services.auth import (
    AccountDirectory,
    CredentialPair,
    OAuthProfile,
    TokenManager,
    ensure_aware,
    normalize_email,
)
from services.notifications import NotificationDispatcher, dispatch_safely

from .handles import ShopHandleGenerator
from .steps import RegistrationStep, incomplete_steps, parse_step_payload

logger = logging.getLogger(__name__)

SESSION_TOKEN_BYTES = 32
VERIFICATION_TOKEN_BYTES = 20
SESSION_NOT_FOUND = "Registration session not found or expired"
CONCURRENT_UPDATE = "Registration session was modified by another request"


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _gt(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column > value)


def _le(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column <= value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


def _step_key(step: RegistrationStep) -> str:
    return str(int(step))


def _oauth_prefill(profile: Mapping[str, Any]) -> dict[str, Any]:
    oauth_profile = OAuthProfile(**profile)
    return {
        "first_name": oauth_profile.first_name,
        "last_name": oauth_profile.last_name,
    }


@dataclass(slots=True)
class StartResult:
    session: RegistrationSession
    created: bool
    verification_email_sent: bool
    # None when resuming an already verified session.
    session_token: str | None = None


@dataclass(slots=True)
class FinalizeResult:
    account: Account
    credentials: CredentialPair


class RegistrationManager:
    """Drives a registration session from email capture to a persisted account.

    Every mutation is a conditional update on the session's ``version``; a
    writer that lost a race gets ``ConflictError`` instead of overwriting.
    """

    def __init__(
        self,
        session: AsyncSession,
        directory: AccountDirectory,
        tokens: TokenManager,
        notifier: NotificationDispatcher,
        handles: ShopHandleGenerator | None = None,
        *,
        ttl: timedelta | None = None,
    ) -> None:
        self.session = session
        self.directory = directory
        self.tokens = tokens
        self.notifier = notifier
        self.handles = handles or ShopHandleGenerator(directory)
        self.ttl = ttl or timedelta(minutes=settings.registration_session_ttl_minutes)

    # -- lookups ---------------------------------------------------------

    async def _purge_expired_for_email(self, email: str, now: datetime) -> None:
        await self.session.execute(
            delete(RegistrationSession)
            .where(
                _eq(RegistrationSession.email, email),
                _le(RegistrationSession.expires_at, now),
            )
            .execution_options(synchronize_session=False)
        )

    async def _find_live_for_email(self, email: str, now: datetime) -> RegistrationSession | None:
        result = await self.session.execute(
            select(RegistrationSession)
            .where(
                _eq(RegistrationSession.email, email),
                _gt(RegistrationSession.expires_at, now),
            )
            .order_by(_desc(RegistrationSession.created_at))
            .limit(1)
        )
        return result.scalars().first()

    async def get_session(self, session_token: str) -> RegistrationSession:
        """Return the live session for ``session_token``; expired ones are purged."""
        if not session_token:
            raise NotFoundError(SESSION_NOT_FOUND)
        result = await self.session.execute(
            select(RegistrationSession).where(
                _eq(RegistrationSession.session_token, session_token)
            )
        )
        registration = result.scalar_one_or_none()
        if registration is None:
            raise NotFoundError(SESSION_NOT_FOUND)
        if ensure_aware(registration.expires_at) <= datetime.now(timezone.utc):
            await self.session.delete(registration)
            await self.session.commit()
            raise NotFoundError(SESSION_NOT_FOUND)
        return registration

    async def _ensure_email_unregistered(self, email: str) -> None:
        if await self.directory.email_exists(email):
            raise ConflictError("An account with this email already exists")

    async def _save(self, registration: RegistrationSession, **changes: Any) -> RegistrationSession:
        seen_version = registration.version
        values = {
            **changes,
            "version": seen_version + 1,
            "updated_at": datetime.now(timezone.utc),
        }
        result = await self.session.execute(
            update(RegistrationSession)
            .where(
                _eq(RegistrationSession.id, registration.id),
                _eq(RegistrationSession.version, seen_version),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if cast(Any, result).rowcount != 1:
            await self.session.rollback()
            raise ConflictError(CONCURRENT_UPDATE)
        await self.session.commit()
        await self.session.refresh(registration)
        return registration

    # -- entry points ----------------------------------------------------

    async def start_session(self, email: str) -> StartResult:
        email = normalize_email(email)
        await self._ensure_email_unregistered(email)

        now = datetime.now(timezone.utc)
        await self._purge_expired_for_email(email, now)
        registration = await self._find_live_for_email(email, now)
        created = registration is None
        if registration is None:
            registration = RegistrationSession(
                email=email,
                session_token=generate_secret(SESSION_TOKEN_BYTES),
                verification_token=generate_secret(VERIFICATION_TOKEN_BYTES),
                current_step=int(RegistrationStep.EMAIL_INPUT),
                step_data={_step_key(RegistrationStep.EMAIL_INPUT): {"email": email, "is_oauth": False}},
                email_verified=False,
                expires_at=now + self.ttl,
            )
            self.session.add(registration)
        await self.session.commit()

        sent = True
        if not registration.email_verified and registration.verification_token:
            sent = await dispatch_safely(
                self.notifier.send_verification(
                    registration.email,
                    registration.verification_token,
                    registration.session_token,
                ),
                description="verification email",
            )
        logger.info(
            "Registration %s for %s",
            "started" if created else "resumed",
            registration.id,
        )
        withheld = not created and registration.email_verified
        return StartResult(
            session=registration,
            created=created,
            verification_email_sent=sent,
            session_token=None if withheld else registration.session_token,
        )

    async def start_oauth_session(self, email: str, profile: OAuthProfile) -> RegistrationSession:
        """Create a verified session positioned at PERSONAL_INFO.

        A live session for the same email is deleted; its token stops working.
        """
        email = normalize_email(email)
        await self._ensure_email_unregistered(email)

        now = datetime.now(timezone.utc)
        await self._purge_expired_for_email(email, now)
        previous = await self._find_live_for_email(email, now)
        if previous is not None:
            await self.session.delete(previous)
            logger.info("Registration %s superseded by OAuth sign-up", previous.id)

        registration = RegistrationSession(
            email=email,
            session_token=generate_secret(SESSION_TOKEN_BYTES),
            current_step=int(RegistrationStep.PERSONAL_INFO),
            step_data={
                _step_key(RegistrationStep.EMAIL_INPUT): {"email": email, "is_oauth": True},
                _step_key(RegistrationStep.PERSONAL_INFO): {
                    "first_name": profile.first_name,
                    "last_name": profile.last_name,
                },
            },
            email_verified=True,
            verification_token=None,
            oauth_provider=profile.provider,
            oauth_id=profile.subject,
            oauth_profile=profile.as_dict(),
            expires_at=now + self.ttl,
        )
        self.session.add(registration)
        await self.session.commit()
        logger.info("OAuth registration %s started via %s", registration.id, profile.provider)
        return registration

    async def verify_email(self, session_token: str, verification_token: str) -> RegistrationSession:
        registration = await self.get_session(session_token)
        if not secrets_match(registration.verification_token, verification_token):
            raise BadRequestError("Invalid verification token")

        current_step = max(registration.current_step, int(RegistrationStep.PERSONAL_INFO))
        registration = await self._save(
            registration,
            email_verified=True,
            verification_token=None,
            current_step=current_step,
        )
        logger.info("Registration %s verified its email", registration.id)
        return registration

    # -- step machine ----------------------------------------------------

    async def _prepare_step_data(
        self,
        registration: RegistrationSession,
        step: RegistrationStep,
        payload: Mapping[str, Any],
    ) -> dict[str, Any]:
        data = parse_step_payload(step, payload, is_oauth=registration.is_oauth)

        if step is RegistrationStep.EMAIL_INPUT:
            if normalize_email(data["email"]) != registration.email:
                raise BadRequestError("Email does not match the registration session")
            return {"email": registration.email, "is_oauth": registration.is_oauth}

        if step is RegistrationStep.PERSONAL_INFO:
            password = data.pop("password", None)
            data["password_hash"] = hash_password(password) if password else None
            return data

        if step is RegistrationStep.SHOP_DETAILS:
            data["shop_handle"] = await self.handles.handle_for(data["business_name"])
            return data

        return data

    async def submit_step(
        self,
        session_token: str,
        step_number: int,
        payload: Mapping[str, Any],
    ) -> RegistrationSession:
        registration = await self.get_session(session_token)
        current = registration.current_step
        step_number = int(step_number)
        if current >= RegistrationStep.COMPLETE:
            raise BadRequestError("All steps are submitted; complete the registration")
        if step_number != current:
            raise BadRequestError(f"Expected step {current}, got step {step_number}")

        step = RegistrationStep(step_number)
        data = await self._prepare_step_data(registration, step, payload)

        step_data = dict(registration.step_data)
        step_data[_step_key(step)] = data
        registration = await self._save(
            registration,
            step_data=step_data,
            current_step=current + 1,
        )
        logger.info("Registration %s completed step %s", registration.id, step.name)
        return registration

    async def restart_session(self, session_token: str) -> RegistrationSession:
        """Rewind to the first unfinished entry step, keeping the captured email."""
        registration = await self.get_session(session_token)
        email_key = _step_key(RegistrationStep.EMAIL_INPUT)
        step_data: dict[str, Any] = {email_key: registration.step_data.get(email_key, {"email": registration.email})}

        if registration.email_verified:
            current_step = int(RegistrationStep.PERSONAL_INFO)
            if registration.oauth_profile:
                step_data[_step_key(RegistrationStep.PERSONAL_INFO)] = _oauth_prefill(
                    registration.oauth_profile
                )
        else:
            current_step = int(RegistrationStep.EMAIL_INPUT)

        return await self._save(registration, step_data=step_data, current_step=current_step)

    # -- finalization ----------------------------------------------------

    async def _final_shop_handle(self, shop_details: Mapping[str, Any]) -> str:
        reserved = shop_details["shop_handle"]
        if await self.handles.is_available(reserved):
            return reserved
        return await self.handles.handle_for(shop_details["business_name"])

    def _build_account(
        self,
        registration: RegistrationSession,
        shop_handle: str,
    ) -> Account:
        data = registration.step_data
        personal = data[_step_key(RegistrationStep.PERSONAL_INFO)]
        business_type = data[_step_key(RegistrationStep.BUSINESS_TYPE)]
        shop = data[_step_key(RegistrationStep.SHOP_DETAILS)]
        location = data[_step_key(RegistrationStep.LOCATION)]
        return Account(
            email=registration.email,
            password_hash=personal.get("password_hash"),
            first_name=personal["first_name"],
            last_name=personal["last_name"],
            shop_handle=shop_handle,
            business_name=shop["business_name"],
            business_description=shop["business_description"],
            business_type=business_type["business_type"],
            country=location["country"],
            region=location["region"],
            sub_region=location["sub_region"],
            address=location["address"],
            oauth_provider=registration.oauth_provider,
            oauth_id=registration.oauth_id,
            is_active=True,
            email_verified=registration.email_verified,
        )

    async def finalize(self, session_token: str) -> FinalizeResult:
        registration = await self.get_session(session_token)
        if settings.registration_require_verified_email and not registration.email_verified:
            raise BadRequestError("Email address has not been verified")

        missing = incomplete_steps(registration.step_data, is_oauth=registration.is_oauth)
        if missing:
            names = ", ".join(step.name for step in missing)
            raise BadRequestError(f"Registration is incomplete: {names}")

        await self._ensure_email_unregistered(registration.email)
        shop_handle = await self._final_shop_handle(
            registration.step_data[_step_key(RegistrationStep.SHOP_DETAILS)]
        )
        account = await self.directory.create_atomic(self._build_account(registration, shop_handle))
        credentials = await self.tokens.issue(account)

        removed = await self.session.execute(
            delete(RegistrationSession)
            .where(
                _eq(RegistrationSession.id, registration.id),
                _eq(RegistrationSession.version, registration.version),
            )
            .execution_options(synchronize_session=False)
        )
        if cast(Any, removed).rowcount != 1:
            await self.session.rollback()
            raise ConflictError(CONCURRENT_UPDATE)

        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            if is_unique_violation(exc):
                raise ConflictError("Account could not be created; email or shop handle is taken") from exc
            raise

        logger.info("Registration %s finalized as account %s (%s)", registration.id, account.id, shop_handle)
        await dispatch_safely(
            self.notifier.send_welcome(account.email, account.first_name),
            description="welcome email",
        )
        return FinalizeResult(account=account, credentials=credentials)
