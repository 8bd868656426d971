"""Authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from api.deps import get_current_account, get_token_manager
from core import UnauthorizedError
from models import Account
from services.auth import (
    CredentialPair,
    TokenManager,
    clear_token_cookies,
    read_refresh_token,
    set_token_cookies,
)
from services.registration import check_password_strength

router = APIRouter(prefix="/auth", tags=["auth"])

RESET_REQUESTED_DETAIL = "If an account exists for that email, a reset link has been sent"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str | None = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

    @classmethod
    def from_credentials(cls, credentials: CredentialPair) -> "TokenResponse":
        return cls(
            access_token=credentials.access_token,
            refresh_token=credentials.refresh_token,
            token_type=credentials.token_type,
            expires_in=credentials.expires_in,
        )


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: EmailStr
    first_name: str
    last_name: str
    shop_handle: str
    business_name: str
    business_description: str
    business_type: str
    country: str
    region: str
    sub_region: str
    address: str
    oauth_provider: str | None = None
    email_verified: bool
    created_at: datetime


class LoginResponse(TokenResponse):
    account: AccountResponse


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class _NewPasswordRequest(BaseModel):
    new_password: str = Field(min_length=8, max_length=72)

    @field_validator("new_password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return check_password_strength(value)


class ResetPasswordRequest(_NewPasswordRequest):
    token: str = Field(min_length=1, max_length=256)


class ChangePasswordRequest(_NewPasswordRequest):
    current_password: str = Field(min_length=1, max_length=128)


class DetailResponse(BaseModel):
    detail: str


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    tokens: TokenManager = Depends(get_token_manager),
) -> LoginResponse:
    account, credentials = await tokens.login(str(payload.email), payload.password)
    set_token_cookies(response, credentials.access_token, credentials.refresh_token)
    return LoginResponse(
        **TokenResponse.from_credentials(credentials).model_dump(),
        account=AccountResponse.model_validate(account),
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh_tokens(
    request: Request,
    response: Response,
    payload: RefreshRequest | None = None,
    tokens: TokenManager = Depends(get_token_manager),
) -> TokenResponse:
    refresh_token = read_refresh_token(request, payload.refresh_token if payload else None)
    if not refresh_token:
        raise UnauthorizedError("Missing refresh token")

    credentials = await tokens.refresh(refresh_token)
    set_token_cookies(response, credentials.access_token, credentials.refresh_token)
    return TokenResponse.from_credentials(credentials)


@router.post("/logout", response_model=DetailResponse)
async def logout(
    request: Request,
    response: Response,
    payload: RefreshRequest | None = None,
    tokens: TokenManager = Depends(get_token_manager),
) -> DetailResponse:
    refresh_token = read_refresh_token(request, payload.refresh_token if payload else None)
    if refresh_token:
        await tokens.revoke(refresh_token)
    clear_token_cookies(response)
    return DetailResponse(detail="Logged out")


@router.post("/logout-all", response_model=DetailResponse)
async def logout_all(
    response: Response,
    current_account: Account = Depends(get_current_account),
    tokens: TokenManager = Depends(get_token_manager),
) -> DetailResponse:
    await tokens.revoke_all(current_account.id)
    clear_token_cookies(response)
    return DetailResponse(detail="Logged out from all devices")


@router.get("/me", response_model=AccountResponse)
async def read_me(current_account: Account = Depends(get_current_account)) -> AccountResponse:
    return AccountResponse.model_validate(current_account)


@router.post(
    "/password/forgot",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=DetailResponse,
)
async def forgot_password(
    payload: ForgotPasswordRequest,
    tokens: TokenManager = Depends(get_token_manager),
) -> DetailResponse:
    # The raw token only ever travels by email.
    await tokens.issue_password_reset(str(payload.email))
    return DetailResponse(detail=RESET_REQUESTED_DETAIL)


@router.post("/password/reset", response_model=DetailResponse)
async def reset_password(
    payload: ResetPasswordRequest,
    response: Response,
    tokens: TokenManager = Depends(get_token_manager),
) -> DetailResponse:
    await tokens.consume_password_reset(payload.token, payload.new_password)
    clear_token_cookies(response)
    return DetailResponse(detail="Password has been reset")


@router.post("/password/change", response_model=DetailResponse)
async def change_password(
    payload: ChangePasswordRequest,
    response: Response,
    current_account: Account = Depends(get_current_account),
    tokens: TokenManager = Depends(get_token_manager),
) -> DetailResponse:
    await tokens.change_password(
        current_account,
        payload.current_password,
        payload.new_password,
    )
    clear_token_cookies(response)
    return DetailResponse(detail="Password changed")
