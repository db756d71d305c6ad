# src/filters/product_validator.py

"""Snapshot validation: reject unusable scrapes before they are stored."""

import logging
import math

from src.models.product import ProductSnapshot

logger = logging.getLogger("price_tracker.filters")


class SnapshotValidator:
    """Reject snapshots with missing essential fields."""

    @staticmethod
    def validate(snapshot: ProductSnapshot | None) -> ProductSnapshot | None:
        """Return *snapshot* if usable, otherwise ``None``.

        A snapshot needs a non-blank title and a finite, positive price;
        anything else would corrupt the price history.
        """
        if snapshot is None:
            return None
        if not snapshot.title.strip():
            logger.debug(
                "Rejected snapshot with empty title (url=%s)",
                snapshot.url,
            )
            return None
        if (
            not math.isfinite(snapshot.current_price)
            or snapshot.current_price <= 0
        ):
            logger.debug(
                "Rejected snapshot with invalid price %r (url=%s)",
                snapshot.current_price,
                snapshot.url,
            )
            return None
        return snapshot
