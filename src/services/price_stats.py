# src/services/price_stats.py

"""Derived price statistics and history retention."""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from src.models.price_point import PricePoint


@dataclass(frozen=True)
class PriceStats:
    """Lowest / highest / average price over a history window."""

    lowest: float
    highest: float
    average: float


def _prices(history: Sequence[PricePoint]) -> list[float]:
    if not history:
        raise ValueError("price history is empty")
    return [p.price for p in history]


def lowest_price(history: Sequence[PricePoint]) -> float:
    """Return the minimum price in *history*."""
    return min(_prices(history))


def highest_price(history: Sequence[PricePoint]) -> float:
    """Return the maximum price in *history*."""
    return max(_prices(history))


def average_price(history: Sequence[PricePoint]) -> float:
    """Return the arithmetic mean price of *history*.

    ``math.fsum`` keeps the sum exact for long histories, so a history of
    identical prices averages to exactly that price.
    """
    prices = _prices(history)
    return math.fsum(prices) / len(prices)


def compute_stats(history: Sequence[PricePoint]) -> PriceStats:
    """Compute all three derived stats in one call.

    Raises ``ValueError`` for an empty history.
    """
    return PriceStats(
        lowest=lowest_price(history),
        highest=highest_price(history),
        average=average_price(history),
    )


def trim_history(
    history: Sequence[PricePoint],
    now: datetime,
    window: timedelta | None,
) -> list[PricePoint]:
    """Drop entries older than ``now - window``.

    A ``None`` window keeps the full history.  Insertion order is kept.
    """
    if window is None:
        return list(history)
    cutoff = now - window
    return [p for p in history if p.date >= cutoff]
