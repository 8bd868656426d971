"""SQLModel models package."""

from .account import Account
from .password_reset import PasswordReset
from .refresh_token import RefreshToken
from .registration_session import RegistrationSession

__all__ = [
    "Account",
    "PasswordReset",
    "RefreshToken",
    "RegistrationSession",
]
