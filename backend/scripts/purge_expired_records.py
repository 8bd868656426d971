"""Maintenance script to purge expired registration sessions and credentials.

Usage:
    python scripts/purge_expired_records.py

Environment overrides:
    PURGE_BATCH_SIZE=500
    PURGE_MAX_ROWS_PER_RUN=10000
    PURGE_MAX_ELAPSED_SECONDS=60
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path
from time import perf_counter

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from db.session import AsyncSessionMaker  # noqa: E402
from services.maintenance import (  # noqa: E402
    EXPIRING_MODELS,
    PURGE_BATCH_SIZE,
    purge_expired_batch,
)

logger = logging.getLogger("purge_expired_records")

BATCH_SIZE_ENV = "PURGE_BATCH_SIZE"
MAX_ROWS_PER_RUN_ENV = "PURGE_MAX_ROWS_PER_RUN"
MAX_ELAPSED_SECONDS_ENV = "PURGE_MAX_ELAPSED_SECONDS"
DEFAULT_MAX_ROWS_PER_RUN = 10_000
DEFAULT_MAX_ELAPSED_SECONDS = 60


def _parse_positive_int(raw_value: str | None, *, default: int, label: str) -> int:
    if raw_value is None or raw_value.strip() == "":
        return default
    try:
        parsed = int(raw_value)
    except ValueError as exc:
        raise ValueError(f"{label} must be an integer") from exc
    if parsed <= 0:
        raise ValueError(f"{label} must be positive")
    return parsed


async def run(session_maker=AsyncSessionMaker) -> dict[str, int]:
    batch_size = _parse_positive_int(
        os.getenv(BATCH_SIZE_ENV),
        default=PURGE_BATCH_SIZE,
        label=BATCH_SIZE_ENV,
    )
    max_rows_per_run = _parse_positive_int(
        os.getenv(MAX_ROWS_PER_RUN_ENV),
        default=DEFAULT_MAX_ROWS_PER_RUN,
        label=MAX_ROWS_PER_RUN_ENV,
    )
    max_elapsed_seconds = _parse_positive_int(
        os.getenv(MAX_ELAPSED_SECONDS_ENV),
        default=DEFAULT_MAX_ELAPSED_SECONDS,
        label=MAX_ELAPSED_SECONDS_ENV,
    )

    started_at = perf_counter()
    deleted_by_table = {table: 0 for table in EXPIRING_MODELS}
    rows_deleted = 0
    stop_reason = "completed"

    for table, model in EXPIRING_MODELS.items():
        while True:
            remaining_row_budget = max_rows_per_run - rows_deleted
            if remaining_row_budget <= 0:
                stop_reason = "max_rows"
                break
            if perf_counter() - started_at >= max_elapsed_seconds:
                stop_reason = "max_elapsed_seconds"
                break

            async with session_maker() as session:
                deleted = await purge_expired_batch(
                    session,
                    model,
                    batch_size=min(batch_size, remaining_row_budget),
                )
            if deleted == 0:
                break
            deleted_by_table[table] += deleted
            rows_deleted += deleted

        if stop_reason != "completed":
            break

    elapsed_ms = int((perf_counter() - started_at) * 1000)
    summary = ", ".join(f"{table}={count}" for table, count in deleted_by_table.items())
    logger.info(
        "Expired record purge complete: %s, rows_deleted=%s, elapsed_ms=%s, stop_reason=%s",
        summary,
        rows_deleted,
        elapsed_ms,
        stop_reason,
    )
    return deleted_by_table


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    asyncio.run(run())


if __name__ == "__main__":
    main()
