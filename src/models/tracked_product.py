# src/models/tracked_product.py

"""Tracked product record: latest snapshot, price history and subscribers."""

from dataclasses import dataclass, field
from datetime import datetime

from src.models.price_point import PricePoint


@dataclass(frozen=True)
class Subscriber:
    """A user subscribed to notifications for one tracked product."""

    email: str
    target_price: float | None = None


@dataclass
class TrackedProduct:
    """Persisted state of a product under price tracking.

    ``url`` is the identity: the store upserts on it and never holds two
    records for the same URL.  ``lowest_price``, ``highest_price`` and
    ``average_price`` are derived from ``price_history`` on every refresh.
    """

    url: str
    title: str
    current_price: float
    original_price: float = 0.0
    currency: str = "$"
    image_url: str = ""
    is_out_of_stock: bool = False
    discount_rate: float = 0.0
    price_history: list[PricePoint] = field(
        default_factory=lambda: list[PricePoint]()
    )
    lowest_price: float = 0.0
    highest_price: float = 0.0
    average_price: float = 0.0
    last_checked: datetime | None = None
    users: list[Subscriber] = field(
        default_factory=lambda: list[Subscriber]()
    )

    @property
    def emails(self) -> list[str]:
        """Subscriber email addresses, in subscription order."""
        return [u.email for u in self.users]

    def to_dict(self) -> dict[str, object]:
        """Serialise to a JSON-compatible dict."""
        return {
            "url": self.url,
            "title": self.title,
            "currentPrice": self.current_price,
            "originalPrice": self.original_price,
            "currency": self.currency,
            "image": self.image_url,
            "isOutOfStock": self.is_out_of_stock,
            "discountRate": self.discount_rate,
            "priceHistory": [
                {"price": p.price, "date": p.date.isoformat()}
                for p in self.price_history
            ],
            "lowestPrice": self.lowest_price,
            "highestPrice": self.highest_price,
            "averagePrice": self.average_price,
            "lastChecked": (
                self.last_checked.isoformat()
                if self.last_checked
                else None
            ),
            "users": [
                {"email": u.email, "targetPrice": u.target_price}
                for u in self.users
            ],
        }
