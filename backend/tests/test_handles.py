"""Tests for shop handle derivation and collision handling."""

import re

import pytest

from services.registration import ShopHandleGenerator


class _TakenHandles:
    def __init__(self, *taken: str) -> None:
        self.taken = set(taken)
        self.lookups: list[str] = []

    async def shop_handle_exists(self, handle: str) -> bool:
        self.lookups.append(handle)
        return handle in self.taken


def _generator(*taken: str, **kwargs) -> ShopHandleGenerator:
    return ShopHandleGenerator(_TakenHandles(*taken), **kwargs)


@pytest.mark.parametrize(
    ("business_name", "expected"),
    [
        ("Ace Repairs", "ace-repairs"),
        ("  Joe's   Café & Bar!! ", "joes-caf-bar"),
        ("ALL CAPS 24/7", "all-caps-247"),
        ("!!!", "shop"),
        ("", "shop"),
        ("Ab", "ab-shop"),
        ("Q!", "q-shop"),
    ],
)
def test_normalize_builds_slug(business_name: str, expected: str) -> None:
    assert _generator().normalize(business_name) == expected


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "business_name",
    ["Ab", "X", "!!!", "Ace Repairs", "a" * 40, "abcdefghijklmnopqrstuvwxyzabc d", "7 - 11"],
)
async def test_generated_handles_pass_format_check(business_name: str) -> None:
    generator = _generator("ab-shop", "x-shop", "shop", "ace-repairs", "a" * 30, "7-11")

    handle = await generator.handle_for(business_name)
    suggestions = await generator.suggestions(business_name, count=10)

    assert generator.is_valid_handle(handle), handle
    assert suggestions
    assert all(generator.is_valid_handle(candidate) for candidate in suggestions), suggestions


def test_normalize_truncates_without_trailing_hyphen() -> None:
    generator = _generator()

    assert generator.normalize("a" * 40) == "a" * 30
    assert generator.normalize("abcdefghijklmnopqrstuvwxyzabc d") == "abcdefghijklmnopqrstuvwxyzabc"


@pytest.mark.asyncio
async def test_resolve_unique_prefers_bare_slug() -> None:
    generator = _generator()

    assert await generator.resolve_unique("ace-repairs") == "ace-repairs"


@pytest.mark.asyncio
async def test_resolve_unique_appends_sequential_suffix_starting_at_two() -> None:
    generator = _generator("ace-repairs", "ace-repairs2")

    assert await generator.resolve_unique("ace-repairs") == "ace-repairs3"
    assert generator.directory.lookups == ["ace-repairs", "ace-repairs2", "ace-repairs3"]


@pytest.mark.asyncio
async def test_resolve_unique_keeps_suffixed_handle_within_max_length() -> None:
    base = "a" * 30
    generator = _generator(base)

    handle = await generator.resolve_unique(base)

    assert handle == "a" * 29 + "2"
    assert len(handle) == 30


@pytest.mark.asyncio
async def test_resolve_unique_falls_back_to_random_suffix_when_exhausted() -> None:
    generator = _generator("ace", "ace2", "ace3", max_attempts=3)

    handle = await generator.resolve_unique("ace")

    match = re.fullmatch(r"ace(\d{4})", handle)
    assert match is not None
    assert 1000 <= int(match.group(1)) <= 9999
    # The random fallback is not re-checked.
    assert generator.directory.lookups == ["ace", "ace2", "ace3"]


@pytest.mark.asyncio
async def test_suggestions_skip_taken_variants_and_stop_at_count() -> None:
    generator = _generator("ace-repairs", "ace-repairs3")

    suggestions = await generator.suggestions("Ace Repairs", count=3)

    assert suggestions == ["ace-repairs2", "ace-repairs4", "ace-repairs5"]


@pytest.mark.asyncio
async def test_suggestions_include_semantic_variants() -> None:
    generator = _generator("ace-repairs")

    suggestions = await generator.suggestions("Ace Repairs", count=30)

    assert len(suggestions) == len(set(suggestions)) == 24
    assert suggestions[-5:] == [
        "ace-repairs-shop",
        "ace-repairs-store",
        "ace-repairs-biz",
        "my-ace-repairs",
        "the-ace-repairs",
    ]
    assert "ace-repairs" not in suggestions


@pytest.mark.parametrize(
    ("handle", "valid"),
    [
        ("ace-repairs", True),
        ("abc", True),
        ("ab", False),
        ("a" * 31, False),
        ("-ace", False),
        ("ace-", False),
        ("ace--repairs", False),
        ("Ace", False),
        ("ace_repairs", False),
    ],
)
def test_is_valid_handle(handle: str, valid: bool) -> None:
    assert _generator().is_valid_handle(handle) is valid
