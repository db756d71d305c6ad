# tests/test_snapshot_fetcher.py

"""Tests for scraper resolution and snapshot fetching."""

import unittest
from unittest.mock import MagicMock, patch

from src.models.product import ProductSnapshot
from src.services.snapshot_fetcher import SnapshotFetcher, resolve_source

_SOURCES: list[dict[str, str]] = [
    {
        "id": "amazon",
        "label": "Amazon",
        "domain": "amazon.",
        "scraper": "src.scrapers.amazon_scraper.AmazonScraper",
    },
    {
        "id": "generic",
        "label": "Generic",
        "domain": "",
        "scraper": (
            "src.scrapers.structured_data_scraper.StructuredDataScraper"
        ),
    },
]


class TestResolveSource(unittest.TestCase):
    """Mapping a URL host to a source config."""

    def test_domain_match(self) -> None:
        """Any Amazon marketplace resolves to the amazon source."""
        for url in (
            "https://www.amazon.com/dp/B01",
            "https://www.amazon.co.uk/dp/B01",
            "https://amazon.ae/dp/B01",
        ):
            with self.subTest(url=url):
                self.assertEqual(
                    resolve_source(url, _SOURCES)["id"], "amazon"
                )

    def test_unknown_host_uses_catch_all(self) -> None:
        """A host with no specific scraper falls back to generic."""
        self.assertEqual(
            resolve_source("https://shop.example.com/p", _SOURCES)["id"],
            "generic",
        )

    def test_no_catch_all_raises(self) -> None:
        """Without a catch-all an unknown host is an error."""
        with self.assertRaises(LookupError):
            resolve_source("https://shop.example.com/p", _SOURCES[:1])

    def test_default_registry_has_catch_all(self) -> None:
        """The configured registry resolves any host."""
        source = resolve_source("https://unknown.example.org/item")
        self.assertEqual(source["domain"], "")


class TestSnapshotFetcher(unittest.TestCase):
    """SnapshotFetcher.fetch delegates and validates."""

    def _fake_class(self, snapshot: ProductSnapshot | None) -> MagicMock:
        scraper_cls = MagicMock()
        scraper_cls.return_value.fetch.return_value = snapshot
        return scraper_cls

    @patch("src.services.snapshot_fetcher._load_scraper_class")
    def test_valid_snapshot_returned(self, mock_load: MagicMock) -> None:
        """The resolved scraper's snapshot is returned."""
        snapshot = ProductSnapshot(
            url="https://www.amazon.com/dp/B01",
            title="Kettle",
            current_price=20.0,
        )
        mock_load.return_value = self._fake_class(snapshot)

        result = SnapshotFetcher(_SOURCES).fetch(snapshot.url)

        self.assertIs(result, snapshot)
        mock_load.assert_called_once_with(
            "src.scrapers.amazon_scraper.AmazonScraper"
        )

    @patch("src.services.snapshot_fetcher._load_scraper_class")
    def test_invalid_snapshot_rejected(
        self, mock_load: MagicMock,
    ) -> None:
        """A zero-price scrape is turned into None."""
        mock_load.return_value = self._fake_class(
            ProductSnapshot(
                url="https://shop.example.com/p",
                title="Kettle",
                current_price=0.0,
            )
        )
        self.assertIsNone(
            SnapshotFetcher(_SOURCES).fetch("https://shop.example.com/p")
        )

    @patch("src.services.snapshot_fetcher._load_scraper_class")
    def test_new_scraper_per_fetch(self, mock_load: MagicMock) -> None:
        """Each fetch builds its own scraper instance."""
        scraper_cls = self._fake_class(None)
        mock_load.return_value = scraper_cls
        fetcher = SnapshotFetcher(_SOURCES)

        fetcher.fetch("https://shop.example.com/a")
        fetcher.fetch("https://shop.example.com/b")

        self.assertEqual(scraper_cls.call_count, 2)

    def test_load_real_scraper_class(self) -> None:
        """The dotted paths in the registry import cleanly."""
        from src.scrapers.amazon_scraper import AmazonScraper
        from src.services.snapshot_fetcher import _load_scraper_class

        self.assertIs(
            _load_scraper_class(_SOURCES[0]["scraper"]), AmazonScraper
        )


if __name__ == "__main__":
    unittest.main()
