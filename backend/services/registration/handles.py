"""Shop handle derivation and collision resolution."""

from __future__ import annotations

import logging
import re
import secrets
from typing import Protocol

from core import settings

logger = logging.getLogger(__name__)

FALLBACK_BASE = "shop"
MIN_HANDLE_LENGTH = 3
FIRST_NUMERIC_SUFFIX = 2
SUGGESTION_NUMERIC_LIMIT = 20
SEMANTIC_SUFFIXES = ("shop", "store", "biz")
SEMANTIC_PREFIXES = ("my", "the")
# Random fallbacks draw from above the sequential range so they never shadow it.
RANDOM_SUFFIX_MIN = 1000
RANDOM_SUFFIX_MAX = 9999

_DISALLOWED = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")
_HANDLE_PATTERN = re.compile(r"[a-z0-9-]+")


class SupportsHandleLookup(Protocol):
    async def shop_handle_exists(self, handle: str) -> bool: ...


def _fit(base: str, suffix: str, max_length: int) -> str:
    room = max_length - len(suffix)
    return f"{base[:room].rstrip('-')}{suffix}"


class ShopHandleGenerator:
    """Derives unique, human-readable shop handles from business names."""

    def __init__(
        self,
        directory: SupportsHandleLookup,
        *,
        max_length: int | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self.directory = directory
        self.max_length = max_length or settings.shop_handle_max_length
        self.max_attempts = max_attempts or settings.shop_handle_max_attempts

    def normalize(self, business_name: str) -> str:
        """Pure slug: lower-case, ``[a-z0-9 ]`` only, spaces to hyphens, truncated.

        Slugs shorter than a valid handle are padded with ``-shop``.
        """
        cleaned = _DISALLOWED.sub("", business_name.lower())
        slug = _WHITESPACE.sub(" ", cleaned).strip().replace(" ", "-")
        slug = slug[: self.max_length].strip("-")
        if not slug:
            return FALLBACK_BASE
        if len(slug) < MIN_HANDLE_LENGTH:
            return f"{slug}-{FALLBACK_BASE}"
        return slug

    def is_valid_handle(self, handle: str) -> bool:
        return (
            MIN_HANDLE_LENGTH <= len(handle) <= self.max_length
            and _HANDLE_PATTERN.fullmatch(handle) is not None
            and not handle.startswith("-")
            and not handle.endswith("-")
            and "--" not in handle
        )

    async def is_available(self, handle: str) -> bool:
        return not await self.directory.shop_handle_exists(handle)

    async def resolve_unique(self, base: str) -> str:
        """Bare slug, then ``base2``..``base<max_attempts>``, then a random suffix.

        The random fallback is returned unchecked; the unique index on the
        accounts table is the final arbiter.
        """
        if await self.is_available(base):
            return base

        for counter in range(FIRST_NUMERIC_SUFFIX, self.max_attempts + 1):
            candidate = _fit(base, str(counter), self.max_length)
            if await self.is_available(candidate):
                return candidate

        suffix = str(secrets.randbelow(RANDOM_SUFFIX_MAX - RANDOM_SUFFIX_MIN + 1) + RANDOM_SUFFIX_MIN)
        candidate = _fit(base, suffix, self.max_length)
        logger.warning("Sequential shop handles exhausted for %s; using %s", base, candidate)
        return candidate

    async def handle_for(self, business_name: str) -> str:
        return await self.resolve_unique(self.normalize(business_name))

    def _candidates(self, base: str) -> list[str]:
        candidates = [base]
        candidates.extend(
            _fit(base, str(counter), self.max_length)
            for counter in range(FIRST_NUMERIC_SUFFIX, SUGGESTION_NUMERIC_LIMIT + 1)
        )
        candidates.extend(_fit(base, f"-{suffix}", self.max_length) for suffix in SEMANTIC_SUFFIXES)
        candidates.extend(
            f"{prefix}-{base}"[: self.max_length].rstrip("-") for prefix in SEMANTIC_PREFIXES
        )
        return candidates

    async def suggestions(self, business_name: str, count: int = 5) -> list[str]:
        base = self.normalize(business_name)
        suggestions: list[str] = []
        for candidate in self._candidates(base):
            if len(suggestions) >= count:
                break
            if candidate in suggestions:
                continue
            if await self.is_available(candidate):
                suggestions.append(candidate)
        return suggestions
