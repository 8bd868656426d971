"""Tests for registration step payload parsing and completeness predicates."""

import pytest
from fastapi import HTTPException

from services.registration import (
    RegistrationStep,
    check_password_strength,
    incomplete_steps,
    is_step_complete,
    parse_step_payload,
)

COMPLETE_STEP_DATA = {
    "1": {"email": "new@biz.com", "is_oauth": False},
    "2": {"first_name": "A", "last_name": "B", "password_hash": "$2b$04$hash"},
    "3": {"business_type": "services"},
    "4": {
        "business_name": "Ace Repairs",
        "business_description": "We fix things",
        "shop_handle": "ace-repairs",
    },
    "5": {
        "country": "NG",
        "region": "Lagos",
        "sub_region": "Ikeja",
        "address": "1 Main St",
    },
}


def test_personal_info_accepts_short_aliases() -> None:
    parsed = parse_step_payload(
        RegistrationStep.PERSONAL_INFO,
        {"first": " A ", "last": "B", "password": "Secr3t!1"},
        is_oauth=False,
    )

    assert parsed == {"first_name": "A", "last_name": "B", "password": "Secr3t!1"}


def test_personal_info_requires_password_unless_oauth() -> None:
    with pytest.raises(HTTPException) as exc_info:
        parse_step_payload(
            RegistrationStep.PERSONAL_INFO,
            {"first_name": "A", "last_name": "B"},
            is_oauth=False,
        )
    assert exc_info.value.status_code == 400
    assert "Password is required" in exc_info.value.detail

    parsed = parse_step_payload(
        RegistrationStep.PERSONAL_INFO,
        {"first_name": "A", "last_name": "B"},
        is_oauth=True,
    )
    assert parsed["password"] is None


def test_weak_password_reports_missing_character_classes() -> None:
    with pytest.raises(HTTPException) as exc_info:
        parse_step_payload(
            RegistrationStep.PERSONAL_INFO,
            {"first_name": "A", "last_name": "B", "password": "lowercase1"},
            is_oauth=False,
        )

    detail = exc_info.value.detail
    assert "an uppercase letter" in detail
    assert "one of @$!%*?&" in detail


def test_check_password_strength_accepts_strong_password() -> None:
    assert check_password_strength("Secr3t!1") == "Secr3t!1"


def test_business_type_must_be_recognized() -> None:
    assert parse_step_payload(
        RegistrationStep.BUSINESS_TYPE,
        {"type": "services"},
        is_oauth=False,
    ) == {"business_type": "services"}

    with pytest.raises(HTTPException) as exc_info:
        parse_step_payload(
            RegistrationStep.BUSINESS_TYPE,
            {"business_type": "charity"},
            is_oauth=False,
        )
    assert exc_info.value.status_code == 400


def test_location_accepts_state_and_local_aliases() -> None:
    parsed = parse_step_payload(
        RegistrationStep.LOCATION,
        {"country": "NG", "state": "Lagos", "local": "Ikeja", "address": "1 Main St"},
        is_oauth=False,
    )

    assert parsed == {
        "country": "NG",
        "region": "Lagos",
        "sub_region": "Ikeja",
        "address": "1 Main St",
    }


def test_shop_details_errors_are_joined() -> None:
    with pytest.raises(HTTPException) as exc_info:
        parse_step_payload(
            RegistrationStep.SHOP_DETAILS,
            {"business_name": "A", "business_description": "short"},
            is_oauth=False,
        )

    assert "business_name" in exc_info.value.detail
    assert "business_description" in exc_info.value.detail
    assert ";" in exc_info.value.detail


def test_complete_step_data_has_no_incomplete_steps() -> None:
    assert incomplete_steps(COMPLETE_STEP_DATA, is_oauth=False) == []


@pytest.mark.parametrize(
    ("step_key", "field"),
    [
        ("1", "email"),
        ("2", "first_name"),
        ("2", "last_name"),
        ("2", "password_hash"),
        ("3", "business_type"),
        ("4", "business_name"),
        ("4", "business_description"),
        ("4", "shop_handle"),
        ("5", "country"),
        ("5", "region"),
        ("5", "sub_region"),
        ("5", "address"),
    ],
)
def test_emptying_any_required_field_makes_its_step_incomplete(step_key: str, field: str) -> None:
    step_data = {key: dict(value) for key, value in COMPLETE_STEP_DATA.items()}
    step_data[step_key][field] = ""

    assert incomplete_steps(step_data, is_oauth=False) == [RegistrationStep(int(step_key))]


def test_oauth_personal_info_is_complete_without_password() -> None:
    data = {"first_name": "Grace", "last_name": "Hopper", "password_hash": None}

    assert is_step_complete(RegistrationStep.PERSONAL_INFO, data, is_oauth=True)
    assert not is_step_complete(RegistrationStep.PERSONAL_INFO, data, is_oauth=False)


def test_missing_payload_is_incomplete() -> None:
    assert incomplete_steps({}, is_oauth=False) == [
        RegistrationStep.EMAIL_INPUT,
        RegistrationStep.PERSONAL_INFO,
        RegistrationStep.BUSINESS_TYPE,
        RegistrationStep.SHOP_DETAILS,
        RegistrationStep.LOCATION,
    ]
