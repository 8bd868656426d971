"""Guided merchant registration."""

from .handles import ShopHandleGenerator
from .manager import FinalizeResult, RegistrationManager, StartResult
from .steps import (
    BUSINESS_TYPES,
    TOTAL_STEPS,
    BusinessType,
    RegistrationStep,
    check_password_strength,
    incomplete_steps,
    is_step_complete,
    parse_step_payload,
)

__all__ = [
    "ShopHandleGenerator",
    "FinalizeResult",
    "RegistrationManager",
    "StartResult",
    "BUSINESS_TYPES",
    "TOTAL_STEPS",
    "BusinessType",
    "RegistrationStep",
    "check_password_strength",
    "incomplete_steps",
    "is_step_complete",
    "parse_step_payload",
]
