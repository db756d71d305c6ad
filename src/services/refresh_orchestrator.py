# src/services/refresh_orchestrator.py

"""Batch refresh of tracked products with per-record failure isolation."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from src.config.settings import Settings
from src.models.price_point import PricePoint
from src.models.product import ProductSnapshot
from src.models.tracked_product import TrackedProduct
from src.notify.email_content import build_email
from src.notify.mailer import NotificationDispatcher
from src.services.batch_selector import (
    SelectionMode,
    plan_groups,
    select,
)
from src.services.notification_policy import NotificationPolicy
from src.services.price_stats import compute_stats, trim_history
from src.services.snapshot_fetcher import SnapshotFetcher
from src.storage.product_store import ProductStore

logger = logging.getLogger("price_tracker.orchestrator")


class FailedFetchPolicy(str, Enum):
    """What a refresh does when the fetch yields no snapshot."""

    SKIP = "skip"                  # record left untouched, slot fails
    MARK_CHECKED = "mark_checked"  # only last_checked is bumped


@dataclass(frozen=True)
class RefreshConfig:
    """Scheduling knobs for one orchestrator, fixed for its lifetime."""

    batch_size: int = 5
    staleness_window: timedelta = timedelta(hours=24)
    stale_cap: int = 5
    retention_window: timedelta | None = None
    run_time_budget: float = 55.0
    failed_fetch_policy: FailedFetchPolicy = FailedFetchPolicy.SKIP
    notification_grace_period: float = 5.0

    @classmethod
    def from_settings(cls) -> "RefreshConfig":
        """Snapshot the current ``Settings`` into a config."""
        try:
            policy = FailedFetchPolicy(
                Settings.FAILED_FETCH_POLICY.strip().lower()
            )
        except ValueError:
            logger.warning(
                "Unknown FAILED_FETCH_POLICY %r, using 'skip'",
                Settings.FAILED_FETCH_POLICY,
            )
            policy = FailedFetchPolicy.SKIP
        return cls(
            batch_size=max(Settings.BATCH_SIZE, 1),
            staleness_window=timedelta(hours=Settings.STALENESS_HOURS),
            stale_cap=Settings.STALE_CAP,
            retention_window=(
                timedelta(days=Settings.RETENTION_DAYS)
                if Settings.RETENTION_DAYS > 0
                else None
            ),
            run_time_budget=Settings.RUN_TIME_BUDGET,
            failed_fetch_policy=policy,
            notification_grace_period=(
                Settings.NOTIFICATION_GRACE_PERIOD
            ),
        )


@dataclass
class RefreshResult:
    """Outcome of one refresh run."""

    total: int = 0
    processed: list[TrackedProduct] = field(
        default_factory=lambda: list[TrackedProduct]()
    )
    failed: list[str] = field(
        default_factory=lambda: list[str]()
    )


class RefreshOrchestrator:
    """Refreshes tracked products in sequential, concurrent groups.

    Members of a group run concurrently and the next group starts only
    once every member has finished, so peak concurrency equals the group
    size.  Anything that goes wrong inside one member is logged and turns
    that member's result into ``None``; errors raised before the groups
    start (loading or selecting records) propagate to the caller.
    """

    def __init__(
        self,
        store: ProductStore,
        fetcher: SnapshotFetcher | None = None,
        dispatcher: NotificationDispatcher | None = None,
        policy: NotificationPolicy | None = None,
        config: RefreshConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.fetcher = fetcher or SnapshotFetcher()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.policy = policy or NotificationPolicy.from_settings()
        self.config = config or RefreshConfig.from_settings()
        self._clock = clock

    # ── Entry points ─────────────────────────────────────

    async def refresh(
        self,
        mode: SelectionMode = SelectionMode.FULL,
        cap: int | None = None,
    ) -> RefreshResult:
        """Load, select and refresh records for one scheduled run."""
        records = await asyncio.to_thread(self.store.find_all)
        if mode is SelectionMode.STALE and cap is None:
            cap = self.config.stale_cap
        selected = select(
            records,
            mode,
            now=self._clock(),
            staleness_window=self.config.staleness_window,
            cap=cap,
        )
        return await self.run(selected, mode)

    async def run(
        self,
        selected: list[TrackedProduct],
        mode: SelectionMode = SelectionMode.FULL,
    ) -> RefreshResult:
        """Refresh *selected* group by group and aggregate the results."""
        result = RefreshResult(total=len(selected))
        groups = plan_groups(selected, mode, self.config.batch_size)

        for index, group in enumerate(groups, 1):
            outcomes = await asyncio.gather(
                *(self._refresh_one(record) for record in group)
            )
            ok = 0
            for record, outcome in zip(group, outcomes):
                if outcome is None:
                    result.failed.append(record.url)
                else:
                    result.processed.append(outcome)
                    ok += 1
            logger.info(
                "Group %d/%d done: %d of %d refreshed",
                index,
                len(groups),
                ok,
                len(group),
            )

        logger.info(
            "Refresh run complete: %d of %d processed",
            len(result.processed),
            result.total,
        )
        return result

    # ── Per-record work ──────────────────────────────────

    async def _refresh_one(
        self, record: TrackedProduct,
    ) -> TrackedProduct | None:
        """Refresh one record; never raises ``Exception``."""
        try:
            return await self._refresh(record)
        except Exception as exc:
            logger.error(
                "Error processing product %s: %s",
                record.url,
                exc,
                exc_info=True,
            )
            return None

    def _next_date(self, record: TrackedProduct) -> datetime:
        # History dates never go backwards, even if the clock does.
        now = self._clock()
        if record.price_history:
            return max(now, record.price_history[-1].date)
        return now

    @staticmethod
    def _snapshot_fields(snapshot: ProductSnapshot) -> dict[str, Any]:
        return {
            "title": snapshot.title,
            "current_price": snapshot.current_price,
            "original_price": snapshot.original_price,
            "currency": snapshot.currency,
            "image_url": snapshot.image_url,
            "is_out_of_stock": snapshot.is_out_of_stock,
            "discount_rate": snapshot.discount_rate,
        }

    async def _refresh(
        self, record: TrackedProduct,
    ) -> TrackedProduct | None:
        snapshot = await asyncio.to_thread(
            self.fetcher.fetch, record.url
        )
        now = self._next_date(record)

        if snapshot is None:
            logger.warning("No data found for product: %s", record.url)
            if (
                self.config.failed_fetch_policy
                is FailedFetchPolicy.MARK_CHECKED
            ):
                return await asyncio.to_thread(
                    self.store.upsert_by_url,
                    record.url,
                    {"last_checked": now},
                )
            return None

        history = [
            *record.price_history,
            PricePoint(price=snapshot.current_price, date=now),
        ]
        history = trim_history(
            history, now, self.config.retention_window
        )
        stats = compute_stats(history)

        patch: dict[str, Any] = {
            **self._snapshot_fields(snapshot),
            "price_history": history,
            "lowest_price": stats.lowest,
            "highest_price": stats.highest,
            "average_price": stats.average,
            "last_checked": now,
        }
        stored = await asyncio.to_thread(
            self.store.upsert_by_url, record.url, patch
        )

        self._notify(record, snapshot, stored)
        return stored

    def _notify(
        self,
        previous: TrackedProduct,
        snapshot: ProductSnapshot,
        stored: TrackedProduct,
    ) -> None:
        """Fire-and-forget the email for this refresh, if any."""
        kind = self.policy.classify(previous, snapshot)
        if kind is None:
            return
        recipients = self.policy.recipients(kind, previous, stored)
        if not recipients:
            logger.debug(
                "%s for %s but no subscribers to notify",
                kind.value,
                stored.url,
            )
            return
        try:
            content = build_email(stored, kind)
            self.dispatcher.dispatch(content, recipients)
        except Exception as exc:
            logger.error(
                "Failed to send email for %s: %s",
                stored.url,
                exc,
                exc_info=True,
            )
            return
        logger.info(
            "%s notification queued for %s (%d recipient(s))",
            kind.value,
            stored.url,
            len(recipients),
        )
