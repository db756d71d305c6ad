# src/models/price_point.py

"""Single price observation in a tracked product's history."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class PricePoint:
    """A price observed for a product at a point in time."""

    price: float
    date: datetime
