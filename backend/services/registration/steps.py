"""Registration wizard steps, payload schemas and completeness predicates."""

from __future__ import annotations

import re
from collections.abc import Mapping
from enum import Enum, IntEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator

from core import BadRequestError


class RegistrationStep(IntEnum):
    EMAIL_INPUT = 1
    PERSONAL_INFO = 2
    BUSINESS_TYPE = 3
    SHOP_DETAILS = 4
    LOCATION = 5
    COMPLETE = 6


WIZARD_STEPS = tuple(step for step in RegistrationStep if step is not RegistrationStep.COMPLETE)
TOTAL_STEPS = len(WIZARD_STEPS)


class BusinessType(str, Enum):
    SERVICES = "services"
    PRODUCTS = "products"
    BOTH = "both"


BUSINESS_TYPES = frozenset(item.value for item in BusinessType)
PASSWORD_SPECIALS = "@$!%*?&"
PASSWORD_RULES = (
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"\d"), "a number"),
    (re.compile(f"[{re.escape(PASSWORD_SPECIALS)}]"), f"one of {PASSWORD_SPECIALS}"),
)


def check_password_strength(value: str) -> str:
    missing = [label for pattern, label in PASSWORD_RULES if not pattern.search(value)]
    if missing:
        raise ValueError("Password must contain " + ", ".join(missing))
    return value


class _StepPayload(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class EmailStepPayload(_StepPayload):
    email: EmailStr


class PersonalInfoPayload(_StepPayload):
    first_name: str = Field(
        min_length=1,
        max_length=50,
        validation_alias=AliasChoices("first_name", "first"),
    )
    last_name: str = Field(
        min_length=1,
        max_length=50,
        validation_alias=AliasChoices("last_name", "last"),
    )
    password: str | None = Field(default=None, min_length=8, max_length=72)

    @field_validator("password")
    @classmethod
    def _strong_password(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return check_password_strength(value)


class BusinessTypePayload(_StepPayload):
    business_type: BusinessType = Field(
        validation_alias=AliasChoices("business_type", "type"),
    )


class ShopDetailsPayload(_StepPayload):
    business_name: str = Field(
        min_length=2,
        max_length=100,
        validation_alias=AliasChoices("business_name", "name"),
    )
    business_description: str = Field(
        min_length=10,
        max_length=500,
        validation_alias=AliasChoices("business_description", "description"),
    )


class LocationPayload(_StepPayload):
    country: str = Field(min_length=2, max_length=100)
    region: str = Field(
        min_length=2,
        max_length=100,
        validation_alias=AliasChoices("region", "state"),
    )
    sub_region: str = Field(
        min_length=2,
        max_length=100,
        validation_alias=AliasChoices("sub_region", "local", "local_government"),
    )
    address: str = Field(min_length=5, max_length=255)


PAYLOAD_SCHEMAS: dict[RegistrationStep, type[_StepPayload]] = {
    RegistrationStep.EMAIL_INPUT: EmailStepPayload,
    RegistrationStep.PERSONAL_INFO: PersonalInfoPayload,
    RegistrationStep.BUSINESS_TYPE: BusinessTypePayload,
    RegistrationStep.SHOP_DETAILS: ShopDetailsPayload,
    RegistrationStep.LOCATION: LocationPayload,
}


def _format_errors(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        message = item.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages)


def parse_step_payload(
    step: RegistrationStep,
    payload: Mapping[str, Any],
    *,
    is_oauth: bool,
) -> dict[str, Any]:
    """Validate a submitted payload and return its normalized form.

    Raises BadRequestError with every violation joined into one message.
    """
    schema = PAYLOAD_SCHEMAS[step]
    try:
        parsed = schema.model_validate(dict(payload))
    except ValidationError as exc:
        raise BadRequestError(_format_errors(exc)) from exc

    if isinstance(parsed, PersonalInfoPayload) and parsed.password is None and not is_oauth:
        raise BadRequestError("password: Password is required")
    return parsed.model_dump(mode="json")


def _present(data: Mapping[str, Any], *keys: str) -> bool:
    return all(bool(data.get(key)) for key in keys)


def is_step_complete(
    step: RegistrationStep,
    data: Mapping[str, Any] | None,
    *,
    is_oauth: bool,
) -> bool:
    """Completeness predicate for the stored payload of one step."""
    if not data:
        return False
    if step is RegistrationStep.EMAIL_INPUT:
        return _present(data, "email")
    if step is RegistrationStep.PERSONAL_INFO:
        return _present(data, "first_name", "last_name") and (
            bool(data.get("password_hash")) or is_oauth
        )
    if step is RegistrationStep.BUSINESS_TYPE:
        return data.get("business_type") in BUSINESS_TYPES
    if step is RegistrationStep.SHOP_DETAILS:
        return _present(data, "business_name", "business_description", "shop_handle")
    if step is RegistrationStep.LOCATION:
        return _present(data, "country", "region", "sub_region", "address")
    return False


def incomplete_steps(
    step_data: Mapping[str, Any],
    *,
    is_oauth: bool,
) -> list[RegistrationStep]:
    return [
        step
        for step in WIZARD_STEPS
        if not is_step_complete(step, step_data.get(str(int(step))), is_oauth=is_oauth)
    ]
