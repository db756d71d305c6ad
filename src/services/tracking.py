# src/services/tracking.py

"""Start tracking a product URL and subscribe a user to it."""

import asyncio
import logging
from datetime import datetime

from src.models.price_point import PricePoint
from src.models.tracked_product import TrackedProduct
from src.notify.email_content import build_email
from src.notify.mailer import NotificationDispatcher
from src.services.notification_policy import NotificationKind
from src.services.price_stats import compute_stats
from src.services.snapshot_fetcher import SnapshotFetcher
from src.storage.product_store import ProductStore

logger = logging.getLogger("price_tracker.tracking")


async def track_product(
    store: ProductStore,
    url: str,
    email: str | None = None,
    target_price: float | None = None,
    fetcher: SnapshotFetcher | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> TrackedProduct | None:
    """Seed a tracked record for *url* and optionally subscribe *email*.

    A URL that is already tracked is not re-scraped.  A new one is
    fetched once: its first observation seeds the history and stats, and
    ``last_checked`` stays unset so the next stale-only run picks it up.
    Returns ``None`` when a new URL cannot be scraped.
    """
    record = await asyncio.to_thread(store.find_by_url, url)

    if record is None:
        fetcher = fetcher or SnapshotFetcher()
        snapshot = await asyncio.to_thread(fetcher.fetch, url)
        if snapshot is None:
            logger.warning("Could not scrape %s, not tracking it", url)
            return None
        history = [
            PricePoint(price=snapshot.current_price, date=datetime.now())
        ]
        stats = compute_stats(history)
        record = await asyncio.to_thread(
            store.upsert_by_url,
            url,
            {
                "title": snapshot.title,
                "current_price": snapshot.current_price,
                "original_price": snapshot.original_price,
                "currency": snapshot.currency,
                "image_url": snapshot.image_url,
                "is_out_of_stock": snapshot.is_out_of_stock,
                "discount_rate": snapshot.discount_rate,
                "price_history": history,
                "lowest_price": stats.lowest,
                "highest_price": stats.highest,
                "average_price": stats.average,
            },
        )
        logger.info("Now tracking %s (%s)", record.url, record.title)

    if not email:
        return record

    already = email.strip().lower() in record.emails
    await asyncio.to_thread(
        store.add_subscriber, record.url, email, target_price
    )
    refreshed = await asyncio.to_thread(store.find_by_url, record.url)
    record = refreshed or record

    if not already:
        dispatcher = dispatcher or NotificationDispatcher()
        try:
            dispatcher.dispatch(
                build_email(record, NotificationKind.WELCOME),
                [email.strip().lower()],
            )
        except Exception as exc:
            logger.error(
                "Failed to send welcome email for %s: %s",
                record.url,
                exc,
                exc_info=True,
            )
    return record
