# src/services/batch_selector.py

"""Chooses which tracked products a refresh run should touch."""

import logging
from datetime import datetime, timedelta
from enum import Enum

from src.models.tracked_product import TrackedProduct

logger = logging.getLogger("price_tracker.selector")


class SelectionMode(str, Enum):
    """Which records a run refreshes."""

    FULL = "full"
    STALE = "stale"


def _staleness_key(record: TrackedProduct) -> datetime:
    # Never-checked records sort first (stalest).
    return record.last_checked or datetime.min


def select(
    records: list[TrackedProduct],
    mode: SelectionMode,
    now: datetime,
    staleness_window: timedelta,
    cap: int | None = None,
) -> list[TrackedProduct]:
    """Return the records eligible for refresh this run.

    ``FULL`` keeps every record in store order.  ``STALE`` keeps records
    whose ``last_checked`` is older than ``now - staleness_window``,
    oldest first.  Either mode is truncated to *cap* when given.
    """
    if mode is SelectionMode.FULL:
        selected = list(records)
    else:
        cutoff = now - staleness_window
        selected = sorted(
            (
                r for r in records
                if r.last_checked is None or r.last_checked < cutoff
            ),
            key=_staleness_key,
        )

    if cap is not None:
        selected = selected[: max(cap, 0)]

    logger.info(
        "Selected %d of %d records (mode=%s, cap=%s)",
        len(selected),
        len(records),
        mode.value,
        cap,
    )
    return selected


def chunk(
    records: list[TrackedProduct], size: int,
) -> list[list[TrackedProduct]]:
    """Split *records* into ordered groups of at most *size*."""
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    return [
        records[i : i + size]
        for i in range(0, len(records), size)
    ]


def plan_groups(
    selected: list[TrackedProduct],
    mode: SelectionMode,
    batch_size: int,
) -> list[list[TrackedProduct]]:
    """Arrange a selection into the groups the orchestrator runs.

    Both modes are chunked into ``batch_size`` groups.  A stale-only run
    capped at or below ``batch_size`` is therefore a single group, and a
    larger ``--cap`` adds groups instead of raising concurrency.
    """
    groups = chunk(selected, batch_size)
    logger.debug(
        "Planned %d group(s) of up to %d (mode=%s)",
        len(groups),
        batch_size,
        mode.value,
    )
    return groups
