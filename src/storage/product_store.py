# src/storage/product_store.py

"""SQLite-backed store of tracked products, keyed by normalised URL."""

import logging
import re
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from src.config.settings import Settings
from src.models.price_point import PricePoint
from src.models.tracked_product import Subscriber, TrackedProduct

logger = logging.getLogger("price_tracker.store")

# Amazon tracking params that vary per session
_TRACKING_PARAMS: frozenset[str] = frozenset({
    "ref", "dib", "dib_tag", "qid", "sr", "spc",
    "sp_csd", "xpid", "aref", "sp_cr", "psc",
    "keywords", "pd_rd_i", "pd_rd_r", "pd_rd_w",
    "pd_rd_wg", "pf_rd_i", "pf_rd_m", "pf_rd_p",
    "pf_rd_r", "pf_rd_s", "pf_rd_t", "th",
    "utm_source", "utm_medium", "utm_campaign",
})

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    url             TEXT    NOT NULL UNIQUE,
    title           TEXT    NOT NULL DEFAULT '',
    current_price   REAL    NOT NULL DEFAULT 0,
    original_price  REAL    NOT NULL DEFAULT 0,
    currency        TEXT    NOT NULL DEFAULT '$',
    image_url       TEXT    NOT NULL DEFAULT '',
    is_out_of_stock INTEGER NOT NULL DEFAULT 0,
    discount_rate   REAL    NOT NULL DEFAULT 0,
    lowest_price    REAL    NOT NULL DEFAULT 0,
    highest_price   REAL    NOT NULL DEFAULT 0,
    average_price   REAL    NOT NULL DEFAULT 0,
    last_checked    TEXT,
    created_at      TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS price_history (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id  INTEGER NOT NULL
                REFERENCES products(id) ON DELETE CASCADE,
    price       REAL    NOT NULL,
    recorded_at TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS subscribers (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id   INTEGER NOT NULL
                 REFERENCES products(id) ON DELETE CASCADE,
    email        TEXT    NOT NULL,
    target_price REAL,
    UNIQUE (product_id, email)
);

CREATE INDEX IF NOT EXISTS idx_history_product
    ON price_history(product_id, id);
"""

# TrackedProduct fields that map 1:1 onto a products column
_PATCHABLE_COLUMNS: frozenset[str] = frozenset({
    "title", "current_price", "original_price", "currency",
    "image_url", "is_out_of_stock", "discount_rate",
    "lowest_price", "highest_price", "average_price",
    "last_checked",
})


def normalize_url(raw_url: str) -> str:
    """Strip tracking/session query params to get a stable product URL."""
    parsed = urlparse(raw_url.strip())

    # Strip Amazon path-based tracking (e.g. /ref=sr_1_243)
    path = re.sub(r"/ref=[^/]*", "", parsed.path)

    params = parse_qs(parsed.query, keep_blank_values=True)
    cleaned = {
        k: v for k, v in params.items()
        if k.lower() not in _TRACKING_PARAMS
    }
    new_query = urlencode(cleaned, doseq=True) if cleaned else ""
    return urlunparse((
        parsed.scheme,
        parsed.netloc,
        path,
        parsed.params,
        new_query,
        "",  # drop fragment
    ))


def _to_db(value: Any) -> Any:
    """Convert a dataclass field value into an SQLite-storable value."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class ProductStore:
    """SQLite store for tracked products, their history and subscribers.

    One connection is shared by every caller.  Each public method runs
    under a connection mutex so that writes offloaded to worker threads
    never interleave inside another caller's transaction.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.PRODUCT_DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        logger.debug("ProductStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection once any write in progress ends."""
        with self._lock:
            self._conn.close()

    # ── Reading ──────────────────────────────────────────

    def _history_for(
        self, product_ids: list[int],
    ) -> dict[int, list[PricePoint]]:
        result: dict[int, list[PricePoint]] = {
            pid: [] for pid in product_ids
        }
        if not product_ids:
            return result
        marks = ",".join("?" * len(product_ids))
        rows = self._conn.execute(
            "SELECT product_id, price, recorded_at "
            "FROM price_history "
            f"WHERE product_id IN ({marks}) "
            "ORDER BY id ASC",
            product_ids,
        ).fetchall()
        for r in rows:
            result[r["product_id"]].append(
                PricePoint(
                    price=r["price"],
                    date=datetime.fromisoformat(r["recorded_at"]),
                )
            )
        return result

    def _subscribers_for(
        self, product_ids: list[int],
    ) -> dict[int, list[Subscriber]]:
        result: dict[int, list[Subscriber]] = {
            pid: [] for pid in product_ids
        }
        if not product_ids:
            return result
        marks = ",".join("?" * len(product_ids))
        rows = self._conn.execute(
            "SELECT product_id, email, target_price "
            "FROM subscribers "
            f"WHERE product_id IN ({marks}) "
            "ORDER BY id ASC",
            product_ids,
        ).fetchall()
        for r in rows:
            result[r["product_id"]].append(
                Subscriber(
                    email=r["email"],
                    target_price=r["target_price"],
                )
            )
        return result

    def _build(
        self, rows: list[sqlite3.Row],
    ) -> list[TrackedProduct]:
        ids = [r["id"] for r in rows]
        histories = self._history_for(ids)
        subscribers = self._subscribers_for(ids)
        return [
            TrackedProduct(
                url=r["url"],
                title=r["title"],
                current_price=r["current_price"],
                original_price=r["original_price"],
                currency=r["currency"],
                image_url=r["image_url"],
                is_out_of_stock=bool(r["is_out_of_stock"]),
                discount_rate=r["discount_rate"],
                price_history=histories[r["id"]],
                lowest_price=r["lowest_price"],
                highest_price=r["highest_price"],
                average_price=r["average_price"],
                last_checked=(
                    datetime.fromisoformat(r["last_checked"])
                    if r["last_checked"]
                    else None
                ),
                users=subscribers[r["id"]],
            )
            for r in rows
        ]

    def find_all(self) -> list[TrackedProduct]:
        """Return every tracked product, in insertion order."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM products ORDER BY id ASC",
            ).fetchall()
            return self._build(rows)

    def find_by_url(self, url: str) -> TrackedProduct | None:
        """Return the tracked product for *url*, or ``None``."""
        with self._lock:
            return self._find_by_url_locked(normalize_url(url))

    def _find_by_url_locked(
        self, url: str,
    ) -> TrackedProduct | None:
        rows = self._conn.execute(
            "SELECT * FROM products WHERE url = ?", (url,),
        ).fetchall()
        built = self._build(rows)
        return built[0] if built else None

    # ── Writing ──────────────────────────────────────────

    def upsert_by_url(
        self, url: str, patch: dict[str, Any],
    ) -> TrackedProduct:
        """Insert or update the product keyed by *url*.

        *patch* maps ``TrackedProduct`` field names to new values.  A
        ``price_history`` entry replaces the stored history wholesale.
        Returns the record as stored after the write.
        """
        key = normalize_url(url)
        unknown = set(patch) - _PATCHABLE_COLUMNS - {"price_history"}
        if unknown:
            raise ValueError(
                f"Unknown product fields: {', '.join(sorted(unknown))}"
            )
        history: list[PricePoint] | None = patch.get("price_history")
        columns = {
            k: _to_db(v) for k, v in patch.items()
            if k != "price_history"
        }

        with self._lock:
            try:
                product_id = self._write_product(key, columns)
                if history is not None:
                    self._replace_history(product_id, history)
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
            stored = self._find_by_url_locked(key)

        assert stored is not None
        logger.debug(
            "Upserted %s (%d history entries)",
            key,
            len(stored.price_history),
        )
        return stored

    def _write_product(
        self, url: str, columns: dict[str, Any],
    ) -> int:
        row = self._conn.execute(
            "SELECT id FROM products WHERE url = ?", (url,),
        ).fetchone()
        if row is None:
            values = {
                "url": url,
                "created_at": datetime.now().isoformat(),
                **columns,
            }
            names = ", ".join(values)
            marks = ", ".join("?" * len(values))
            cur = self._conn.execute(
                f"INSERT INTO products ({names}) VALUES ({marks})",
                list(values.values()),
            )
            return int(cur.lastrowid or 0)

        product_id: int = row["id"]
        if columns:
            assignments = ", ".join(f"{c} = ?" for c in columns)
            self._conn.execute(
                f"UPDATE products SET {assignments} WHERE id = ?",
                [*columns.values(), product_id],
            )
        return product_id

    def _replace_history(
        self, product_id: int, history: list[PricePoint],
    ) -> None:
        self._conn.execute(
            "DELETE FROM price_history WHERE product_id = ?",
            (product_id,),
        )
        self._conn.executemany(
            "INSERT INTO price_history "
            "(product_id, price, recorded_at) VALUES (?, ?, ?)",
            [
                (product_id, p.price, p.date.isoformat())
                for p in history
            ],
        )

    def add_subscriber(
        self,
        url: str,
        email: str,
        target_price: float | None = None,
    ) -> bool:
        """Subscribe *email* to a tracked product.

        Re-subscribing updates the target price.  Returns ``False`` when
        no product is tracked under *url*.
        """
        key = normalize_url(url)
        with self._lock:
            row = self._conn.execute(
                "SELECT id FROM products WHERE url = ?", (key,),
            ).fetchone()
            if row is None:
                return False
            self._conn.execute(
                "INSERT INTO subscribers "
                "(product_id, email, target_price) VALUES (?, ?, ?) "
                "ON CONFLICT(product_id, email) "
                "DO UPDATE SET target_price=excluded.target_price",
                (row["id"], email.strip().lower(), target_price),
            )
            self._conn.commit()
        logger.info("Subscribed %s to %s", email, key)
        return True
