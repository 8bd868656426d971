"""Registration wizard endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Path, Query, Response, status
from pydantic import BaseModel, EmailStr, Field

from api.deps import get_handle_generator, get_registration_manager, get_verifier
from api.v1.auth import AccountResponse, TokenResponse
from models import RegistrationSession
from services.auth import OAuthVerifier, set_token_cookies
from services.registration import (
    TOTAL_STEPS,
    RegistrationManager,
    RegistrationStep,
    ShopHandleGenerator,
)

router = APIRouter(prefix="/registration", tags=["registration"])

SESSION_HEADER = "X-Registration-Token"
# Stored alongside step payloads but never echoed back.
HIDDEN_STEP_FIELDS = frozenset({"password_hash"})


def registration_token(
    token: str | None = Header(default=None, alias=SESSION_HEADER),
) -> str:
    return token or ""


class StartRequest(BaseModel):
    email: EmailStr


class GoogleOAuthRequest(BaseModel):
    id_token: str = Field(min_length=1)


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=1, max_length=128)
    session_token: str | None = None


class SessionResponse(BaseModel):
    email: EmailStr
    current_step: int
    current_step_name: str
    total_steps: int = TOTAL_STEPS
    completed_steps: list[int]
    email_verified: bool
    is_oauth: bool
    expires_at: datetime
    step_data: dict[str, dict[str, Any]]

    @classmethod
    def from_session(cls, registration: RegistrationSession) -> "SessionResponse":
        current = RegistrationStep(registration.current_step)
        step_data = {
            key: {
                field: value
                for field, value in payload.items()
                if field not in HIDDEN_STEP_FIELDS
            }
            for key, payload in registration.step_data.items()
        }
        return cls(
            email=registration.email,
            current_step=int(current),
            current_step_name=current.name,
            completed_steps=[int(step) for step in RegistrationStep if step < current],
            email_verified=registration.email_verified,
            is_oauth=registration.is_oauth,
            expires_at=registration.expires_at,
            step_data=step_data,
        )


class StartResponse(SessionResponse):
    session_token: str | None = None
    verification_email_sent: bool = False


class CompleteResponse(TokenResponse):
    account: AccountResponse


class SuggestionsResponse(BaseModel):
    business_name: str
    suggestions: list[str]


class HandleAvailabilityResponse(BaseModel):
    handle: str
    valid: bool
    available: bool


@router.post("/start", response_model=StartResponse, status_code=status.HTTP_201_CREATED)
async def start_registration(
    payload: StartRequest,
    response: Response,
    manager: RegistrationManager = Depends(get_registration_manager),
) -> StartResponse:
    result = await manager.start_session(str(payload.email))
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return StartResponse(
        **SessionResponse.from_session(result.session).model_dump(),
        session_token=result.session_token,
        verification_email_sent=result.verification_email_sent,
    )


@router.post("/oauth/google", response_model=StartResponse, status_code=status.HTTP_201_CREATED)
async def start_google_registration(
    payload: GoogleOAuthRequest,
    manager: RegistrationManager = Depends(get_registration_manager),
    verifier: OAuthVerifier = Depends(get_verifier),
) -> StartResponse:
    profile = await verifier.verify(payload.id_token)
    registration = await manager.start_oauth_session(profile.email, profile)
    return StartResponse(
        **SessionResponse.from_session(registration).model_dump(),
        session_token=registration.session_token,
    )


@router.post("/verify-email", response_model=SessionResponse)
async def verify_email(
    payload: VerifyEmailRequest,
    header_token: str = Depends(registration_token),
    manager: RegistrationManager = Depends(get_registration_manager),
) -> SessionResponse:
    # Links from the verification email carry the session token in the body.
    session_token = payload.session_token or header_token
    registration = await manager.verify_email(session_token, payload.token)
    return SessionResponse.from_session(registration)


@router.get("/session", response_model=SessionResponse)
async def read_session(
    session_token: str = Depends(registration_token),
    manager: RegistrationManager = Depends(get_registration_manager),
) -> SessionResponse:
    registration = await manager.get_session(session_token)
    return SessionResponse.from_session(registration)


@router.post("/steps/{step}", response_model=SessionResponse)
async def submit_step(
    step: int = Path(ge=int(RegistrationStep.EMAIL_INPUT), le=int(RegistrationStep.LOCATION)),
    payload: dict[str, Any] = Body(...),
    session_token: str = Depends(registration_token),
    manager: RegistrationManager = Depends(get_registration_manager),
) -> SessionResponse:
    registration = await manager.submit_step(session_token, step, payload)
    return SessionResponse.from_session(registration)


@router.post("/restart", response_model=SessionResponse)
async def restart_registration(
    session_token: str = Depends(registration_token),
    manager: RegistrationManager = Depends(get_registration_manager),
) -> SessionResponse:
    registration = await manager.restart_session(session_token)
    return SessionResponse.from_session(registration)


@router.post("/complete", response_model=CompleteResponse, status_code=status.HTTP_201_CREATED)
async def complete_registration(
    response: Response,
    session_token: str = Depends(registration_token),
    manager: RegistrationManager = Depends(get_registration_manager),
) -> CompleteResponse:
    result = await manager.finalize(session_token)
    credentials = result.credentials
    set_token_cookies(response, credentials.access_token, credentials.refresh_token)
    return CompleteResponse(
        **TokenResponse.from_credentials(credentials).model_dump(),
        account=AccountResponse.model_validate(result.account),
    )


@router.get("/shop-handles/suggestions", response_model=SuggestionsResponse)
async def suggest_shop_handles(
    business_name: str = Query(min_length=1, max_length=100),
    count: int = Query(default=5, ge=1, le=20),
    handles: ShopHandleGenerator = Depends(get_handle_generator),
) -> SuggestionsResponse:
    suggestions = await handles.suggestions(business_name, count)
    return SuggestionsResponse(business_name=business_name, suggestions=suggestions)


@router.get("/shop-handles/{handle}", response_model=HandleAvailabilityResponse)
async def check_shop_handle(
    handle: str,
    handles: ShopHandleGenerator = Depends(get_handle_generator),
) -> HandleAvailabilityResponse:
    normalized = handle.strip().lower()
    valid = handles.is_valid_handle(normalized)
    available = valid and await handles.is_available(normalized)
    return HandleAvailabilityResponse(handle=normalized, valid=valid, available=available)
