# src/scrapers/amazon_scraper.py

"""Scraper for Amazon product detail pages."""

import json

from bs4 import BeautifulSoup, Tag

from src.models.product import ProductSnapshot
from src.scrapers.base_scraper import BaseScraper

_OUT_OF_STOCK_MARKERS = (
    "currently unavailable",
    "out of stock",
    "temporarily out of stock",
)


class AmazonScraper(BaseScraper):
    """Scraper for Amazon product detail pages (any marketplace)."""

    def __init__(self) -> None:
        super().__init__("amazon")

    def _first_text(self, soup: BeautifulSoup, key: str) -> str:
        """Return the text of the first element matching selector *key*."""
        selector = self.selectors.get(key, "")
        if not selector:
            return ""
        el = soup.select_one(selector)
        return el.get_text(strip=True) if el else ""

    def _image_url(self, soup: BeautifulSoup) -> str:
        """Pick the product image, preferring the dynamic-image map."""
        selector = self.selectors.get("image", "")
        el = soup.select_one(selector) if selector else None
        if not isinstance(el, Tag):
            return ""
        dynamic = el.get("data-a-dynamic-image")
        if isinstance(dynamic, str) and dynamic:
            try:
                urls = list(json.loads(dynamic))
                if urls:
                    return str(urls[0])
            except json.JSONDecodeError:
                pass
        src = el.get("src")
        return src if isinstance(src, str) else ""

    def _parse_product(
        self, soup: BeautifulSoup, url: str,
    ) -> ProductSnapshot | None:
        """Parse an Amazon product page into a snapshot.

        Unavailable listings usually drop the buy-box price; the list
        price stands in so the stock change is still recorded.
        """
        title = self._first_text(soup, "title")
        current_price = self.extract_price(
            self._first_text(soup, "price")
        )
        original_price = self.extract_price(
            self._first_text(soup, "original_price")
        )
        if current_price <= 0:
            current_price = original_price
        if not title or current_price <= 0:
            self.logger.warning(
                "[amazon] Missing title or price on %s", url,
            )
            return None

        if original_price < current_price:
            original_price = current_price

        discount_rate = self.extract_price(
            self._first_text(soup, "discount")
        )
        if not discount_rate and original_price > current_price:
            discount_rate = round(
                (original_price - current_price)
                / original_price * 100
            )

        availability = self._first_text(soup, "availability").lower()
        is_out_of_stock = any(
            marker in availability
            for marker in _OUT_OF_STOCK_MARKERS
        )

        return ProductSnapshot(
            url=url,
            title=title,
            current_price=current_price,
            original_price=original_price,
            currency=self._first_text(soup, "currency") or "$",
            is_out_of_stock=is_out_of_stock,
            discount_rate=float(discount_rate),
            image_url=self._image_url(soup),
            source="amazon",
        )
