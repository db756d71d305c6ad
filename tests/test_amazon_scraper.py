# tests/test_amazon_scraper.py

"""Tests for the Amazon scraper using mocked HTTP responses."""

import unittest
from unittest.mock import MagicMock, patch

from src.scrapers.amazon_scraper import AmazonScraper

_PRODUCT_PAGE = """
<html><body>
<span id="productTitle">  Acme Electric Kettle 1.7L  </span>
<div class="priceToPay">
  <span class="a-price-symbol">$</span>
  <span class="a-offscreen">$49.99</span>
</div>
<div class="basisPrice"><span class="a-offscreen">$99.99</span></div>
<span class="savingsPercentage">-50%</span>
<div id="availability"><span>In Stock</span></div>
<img id="landingImage" src="https://m.media-amazon.com/small.jpg"
     data-a-dynamic-image='{"https://m.media-amazon.com/large.jpg": [500, 500]}'/>
</body></html>
"""

_UNAVAILABLE_PAGE = """
<html><body>
<span id="productTitle">Acme Toaster</span>
<div class="priceToPay"><span class="a-offscreen">$80.00</span></div>
<div class="basisPrice"><span class="a-offscreen">$100.00</span></div>
<div id="availability"><span>Currently unavailable.</span></div>
<img id="landingImage" src="https://m.media-amazon.com/toaster.jpg"/>
</body></html>
"""

_NO_PRICE_PAGE = """
<html><body>
<span id="productTitle">Acme Blender</span>
<div id="availability"><span>In Stock</span></div>
</body></html>
"""

_UNAVAILABLE_LIST_PRICE_ONLY_PAGE = """
<html><body>
<span id="productTitle">Acme Toaster</span>
<div class="basisPrice"><span class="a-offscreen">$100.00</span></div>
<div id="availability"><span>Currently unavailable.</span></div>
</body></html>
"""

_URL = "https://www.amazon.com/dp/B000TEST01"


class TestAmazonScraper(unittest.TestCase):
    """Tests for the Amazon scraper using mocked HTTP responses."""

    def _scraper_for(
        self, mock_session_cls: MagicMock, html: str,
    ) -> AmazonScraper:
        """Build a scraper whose session serves *html*."""
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        mock_resp = MagicMock()
        mock_resp.status_code = 200
        mock_resp.text = html
        mock_session.get.return_value = mock_resp

        scraper = AmazonScraper()
        scraper.session = mock_session
        return scraper

    @patch("src.scrapers.base_scraper.curl_requests.Session")
    def test_product_fields_parsed(
        self, mock_session_cls: MagicMock
    ) -> None:
        """Title, prices, currency and stock are extracted."""
        scraper = self._scraper_for(mock_session_cls, _PRODUCT_PAGE)
        snapshot = scraper.fetch(_URL)

        assert snapshot is not None
        self.assertEqual(snapshot.title, "Acme Electric Kettle 1.7L")
        self.assertEqual(snapshot.current_price, 49.99)
        self.assertEqual(snapshot.original_price, 99.99)
        self.assertEqual(snapshot.currency, "$")
        self.assertFalse(snapshot.is_out_of_stock)
        self.assertEqual(snapshot.source, "amazon")
        self.assertEqual(snapshot.url, _URL)

    @patch("src.scrapers.base_scraper.curl_requests.Session")
    def test_discount_read_from_badge(
        self, mock_session_cls: MagicMock
    ) -> None:
        """The savings badge supplies the discount rate."""
        scraper = self._scraper_for(mock_session_cls, _PRODUCT_PAGE)
        snapshot = scraper.fetch(_URL)

        assert snapshot is not None
        self.assertEqual(snapshot.discount_rate, 50.0)

    @patch("src.scrapers.base_scraper.curl_requests.Session")
    def test_dynamic_image_preferred(
        self, mock_session_cls: MagicMock
    ) -> None:
        """The high-resolution dynamic image wins over src."""
        scraper = self._scraper_for(mock_session_cls, _PRODUCT_PAGE)
        snapshot = scraper.fetch(_URL)

        assert snapshot is not None
        self.assertEqual(
            snapshot.image_url, "https://m.media-amazon.com/large.jpg"
        )

    @patch("src.scrapers.base_scraper.curl_requests.Session")
    def test_unavailable_is_out_of_stock(
        self, mock_session_cls: MagicMock
    ) -> None:
        """'Currently unavailable' marks the product out of stock."""
        scraper = self._scraper_for(mock_session_cls, _UNAVAILABLE_PAGE)
        snapshot = scraper.fetch(_URL)

        assert snapshot is not None
        self.assertTrue(snapshot.is_out_of_stock)
        self.assertEqual(
            snapshot.image_url, "https://m.media-amazon.com/toaster.jpg"
        )

    @patch("src.scrapers.base_scraper.curl_requests.Session")
    def test_discount_computed_without_badge(
        self, mock_session_cls: MagicMock
    ) -> None:
        """Without a badge the discount comes from list vs. sale price."""
        scraper = self._scraper_for(mock_session_cls, _UNAVAILABLE_PAGE)
        snapshot = scraper.fetch(_URL)

        assert snapshot is not None
        self.assertEqual(snapshot.discount_rate, 20.0)

    @patch("src.scrapers.base_scraper.curl_requests.Session")
    def test_missing_price_returns_none(
        self, mock_session_cls: MagicMock
    ) -> None:
        """A page without a price yields no snapshot."""
        scraper = self._scraper_for(mock_session_cls, _NO_PRICE_PAGE)
        self.assertIsNone(scraper.fetch(_URL))

    @patch("src.scrapers.base_scraper.curl_requests.Session")
    def test_original_price_never_below_current(
        self, mock_session_cls: MagicMock
    ) -> None:
        """Without a list price, original_price equals the price."""
        page = _PRODUCT_PAGE.replace(
            '<div class="basisPrice"><span class="a-offscreen">'
            "$99.99</span></div>",
            "",
        ).replace('<span class="savingsPercentage">-50%</span>', "")
        scraper = self._scraper_for(mock_session_cls, page)
        snapshot = scraper.fetch(_URL)

        assert snapshot is not None
        self.assertEqual(snapshot.original_price, 49.99)
        self.assertEqual(snapshot.discount_rate, 0.0)

    @patch("src.scrapers.base_scraper.curl_requests.Session")
    def test_unavailable_without_buy_box_uses_list_price(
        self, mock_session_cls: MagicMock
    ) -> None:
        """An unavailable listing with only a list price still parses."""
        scraper = self._scraper_for(
            mock_session_cls, _UNAVAILABLE_LIST_PRICE_ONLY_PAGE
        )
        snapshot = scraper.fetch(_URL)

        assert snapshot is not None
        self.assertEqual(snapshot.title, "Acme Toaster")
        self.assertEqual(snapshot.current_price, 100.0)
        self.assertEqual(snapshot.original_price, 100.0)
        self.assertEqual(snapshot.discount_rate, 0.0)
        self.assertTrue(snapshot.is_out_of_stock)


if __name__ == "__main__":
    unittest.main()
