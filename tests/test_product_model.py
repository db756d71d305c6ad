# tests/test_product_model.py

"""Tests for the snapshot and tracked-product dataclasses."""

import json
import unittest
from datetime import datetime

from src.models.price_point import PricePoint
from src.models.product import ProductSnapshot
from src.models.tracked_product import Subscriber, TrackedProduct


class TestProductSnapshot(unittest.TestCase):
    """ProductSnapshot dataclass unit tests."""

    def test_defaults(self) -> None:
        """Optional fields default to expected values."""
        snapshot = ProductSnapshot(
            url="https://example.com/p", title="X", current_price=1.0,
        )
        self.assertEqual(snapshot.original_price, 0.0)
        self.assertEqual(snapshot.currency, "$")
        self.assertFalse(snapshot.is_out_of_stock)
        self.assertEqual(snapshot.discount_rate, 0.0)
        self.assertEqual(snapshot.image_url, "")
        self.assertEqual(snapshot.source, "")

    def test_equality(self) -> None:
        """Two snapshots with identical fields are equal."""
        a = ProductSnapshot(url="u", title="A", current_price=10.0)
        b = ProductSnapshot(url="u", title="A", current_price=10.0)
        self.assertEqual(a, b)

    def test_inequality_different_price(self) -> None:
        """Snapshots with different prices are not equal."""
        a = ProductSnapshot(url="u", title="A", current_price=10.0)
        b = ProductSnapshot(url="u", title="A", current_price=20.0)
        self.assertNotEqual(a, b)


class TestTrackedProduct(unittest.TestCase):
    """TrackedProduct dataclass unit tests."""

    def _product(self) -> TrackedProduct:
        return TrackedProduct(
            url="https://example.com/p",
            title="Kettle",
            current_price=80.0,
            original_price=100.0,
            price_history=[
                PricePoint(100.0, datetime(2026, 1, 1, 9, 0)),
                PricePoint(80.0, datetime(2026, 1, 2, 9, 0)),
            ],
            lowest_price=80.0,
            highest_price=100.0,
            average_price=90.0,
            last_checked=datetime(2026, 1, 2, 9, 0),
            users=[
                Subscriber("ann@example.com", 75.0),
                Subscriber("bob@example.com"),
            ],
        )

    def test_defaults(self) -> None:
        """A fresh record has empty history and no subscribers."""
        product = TrackedProduct(url="u", title="X", current_price=1.0)
        self.assertEqual(product.price_history, [])
        self.assertEqual(product.users, [])
        self.assertIsNone(product.last_checked)

    def test_default_lists_not_shared(self) -> None:
        """Each record gets its own history list."""
        a = TrackedProduct(url="a", title="A", current_price=1.0)
        b = TrackedProduct(url="b", title="B", current_price=1.0)
        a.price_history.append(PricePoint(1.0, datetime(2026, 1, 1)))
        self.assertEqual(b.price_history, [])

    def test_emails(self) -> None:
        """emails lists subscriber addresses in order."""
        self.assertEqual(
            self._product().emails,
            ["ann@example.com", "bob@example.com"],
        )

    def test_to_dict(self) -> None:
        """to_dict uses the wire field names and ISO dates."""
        data = self._product().to_dict()
        self.assertEqual(data["currentPrice"], 80.0)
        self.assertEqual(data["lowestPrice"], 80.0)
        self.assertEqual(data["lastChecked"], "2026-01-02T09:00:00")
        self.assertEqual(
            data["priceHistory"],
            [
                {"price": 100.0, "date": "2026-01-01T09:00:00"},
                {"price": 80.0, "date": "2026-01-02T09:00:00"},
            ],
        )
        self.assertEqual(
            data["users"],
            [
                {"email": "ann@example.com", "targetPrice": 75.0},
                {"email": "bob@example.com", "targetPrice": None},
            ],
        )
        json.dumps(data)

    def test_to_dict_never_checked(self) -> None:
        """An unchecked record serialises lastChecked as null."""
        data = TrackedProduct(url="u", title="X", current_price=1.0).to_dict()
        self.assertIsNone(data["lastChecked"])


if __name__ == "__main__":
    unittest.main()
