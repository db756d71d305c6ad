# src/services/snapshot_fetcher.py

"""Resolves the scraper for a product URL and fetches a snapshot."""

import importlib
import logging
from typing import Any
from urllib.parse import urlparse

from src.config.settings import Settings
from src.filters.product_validator import SnapshotValidator
from src.models.product import ProductSnapshot

logger = logging.getLogger("price_tracker.fetcher")


def _load_scraper_class(dotted_path: str) -> type[Any]:
    """Dynamically import a scraper class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


def resolve_source(
    url: str,
    sources: list[dict[str, str]] | None = None,
) -> dict[str, str]:
    """Return the source config whose domain matches *url*'s host.

    A source with an empty ``domain`` is the catch-all and is used when
    nothing more specific matches.
    """
    registry = sources if sources is not None else Settings.AVAILABLE_SOURCES
    host = urlparse(url).netloc.lower()
    fallback: dict[str, str] | None = None
    for src in registry:
        domain = src.get("domain", "")
        if not domain:
            fallback = fallback or src
        elif domain in host:
            return src
    if fallback is None:
        raise LookupError(f"No scraper registered for {host!r}")
    return fallback


class SnapshotFetcher:
    """Fetch a normalised product snapshot for any tracked URL.

    A fresh scraper instance is built per fetch, so concurrent fetches
    running in worker threads never share an HTTP session.
    """

    def __init__(
        self, sources: list[dict[str, str]] | None = None,
    ) -> None:
        self.sources = (
            sources if sources is not None
            else Settings.AVAILABLE_SOURCES
        )

    def fetch(self, url: str) -> ProductSnapshot | None:
        """Return the current snapshot for *url*, or ``None``."""
        source = resolve_source(url, self.sources)
        scraper_cls = _load_scraper_class(source["scraper"])
        scraper = scraper_cls()
        logger.debug(
            "Fetching %s with %s scraper", url, source["id"],
        )
        snapshot: ProductSnapshot | None = scraper.fetch(url)
        return SnapshotValidator.validate(snapshot)
