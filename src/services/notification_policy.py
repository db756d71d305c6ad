# src/services/notification_policy.py

"""Decides whether a refreshed snapshot warrants a subscriber email."""

from dataclasses import dataclass
from enum import Enum

from src.config.settings import Settings
from src.models.product import ProductSnapshot
from src.models.tracked_product import Subscriber, TrackedProduct
from src.services.price_stats import lowest_price


class NotificationKind(str, Enum):
    """Kinds of subscriber notification."""

    WELCOME = "WELCOME"
    LOWEST_PRICE = "LOWEST_PRICE"
    BACK_IN_STOCK = "CHANGE_OF_STOCK"
    TARGET_PRICE = "TARGET_PRICE"
    PRICE_DROP = "PRICE_DROP"
    THRESHOLD_MET = "THRESHOLD_MET"


@dataclass(frozen=True)
class NotificationPolicy:
    """Thresholds and toggles for price-change notifications.

    ``classify`` is a pure function of the previous record and the new
    snapshot: it performs no I/O and mutates neither argument.
    """

    drop_threshold_percent: float = 10.0
    discount_threshold_percent: float = 40.0
    notify_lowest_price: bool = True
    notify_back_in_stock: bool = True
    notify_target_price: bool = True
    notify_price_drop: bool = True
    notify_threshold_met: bool = True

    @classmethod
    def from_settings(cls) -> "NotificationPolicy":
        """Build a policy from the configured thresholds."""
        return cls(
            drop_threshold_percent=Settings.DROP_THRESHOLD_PERCENT,
            discount_threshold_percent=(
                Settings.DISCOUNT_THRESHOLD_PERCENT
            ),
        )

    # ── Individual conditions ────────────────────────────

    @staticmethod
    def _is_new_lowest(
        previous: TrackedProduct, snapshot: ProductSnapshot,
    ) -> bool:
        if not previous.price_history:
            return False
        return snapshot.current_price < lowest_price(
            previous.price_history
        )

    @staticmethod
    def _is_back_in_stock(
        previous: TrackedProduct, snapshot: ProductSnapshot,
    ) -> bool:
        return previous.is_out_of_stock and not snapshot.is_out_of_stock

    @staticmethod
    def _targets_met(
        users: list[Subscriber],
        previous_price: float,
        new_price: float,
    ) -> list[str]:
        """Emails of subscribers whose target the new price crossed."""
        return [
            u.email
            for u in users
            if u.target_price is not None
            and new_price <= u.target_price < previous_price
        ]

    def _is_significant_drop(
        self, previous: TrackedProduct, snapshot: ProductSnapshot,
    ) -> bool:
        if previous.current_price <= 0:
            return False
        drop = previous.current_price - snapshot.current_price
        if drop <= 0:
            return False
        percent = drop / previous.current_price * 100
        return percent >= self.drop_threshold_percent

    def _is_threshold_met(self, snapshot: ProductSnapshot) -> bool:
        return (
            snapshot.discount_rate > 0
            and snapshot.discount_rate
            >= self.discount_threshold_percent
        )

    # ── Public API ───────────────────────────────────────

    def classify(
        self, previous: TrackedProduct, snapshot: ProductSnapshot,
    ) -> NotificationKind | None:
        """Return the notification kind for this refresh, or ``None``.

        Conditions are checked in priority order: new lowest price,
        back in stock, subscriber target reached, percentage drop from
        the previous price, then discount-rate threshold.
        """
        if snapshot.current_price <= 0:
            return None
        if self.notify_lowest_price and self._is_new_lowest(
            previous, snapshot
        ):
            return NotificationKind.LOWEST_PRICE
        if self.notify_back_in_stock and self._is_back_in_stock(
            previous, snapshot
        ):
            return NotificationKind.BACK_IN_STOCK
        if self.notify_target_price and self._targets_met(
            previous.users,
            previous.current_price,
            snapshot.current_price,
        ):
            return NotificationKind.TARGET_PRICE
        if self.notify_price_drop and self._is_significant_drop(
            previous, snapshot
        ):
            return NotificationKind.PRICE_DROP
        if self.notify_threshold_met and self._is_threshold_met(
            snapshot
        ):
            return NotificationKind.THRESHOLD_MET
        return None

    def recipients(
        self,
        kind: NotificationKind,
        previous: TrackedProduct,
        stored: TrackedProduct,
    ) -> list[str]:
        """Return the emails that should receive a *kind* notification.

        Subscribers are read from the *stored* (post-write) record.
        Target-price alerts go only to the subscribers whose own target
        was crossed between the previous and stored prices; every other
        kind goes to all subscribers.
        """
        if kind is NotificationKind.TARGET_PRICE:
            return self._targets_met(
                stored.users,
                previous.current_price,
                stored.current_price,
            )
        return stored.emails
