# src/scrapers/structured_data_scraper.py

"""Fallback scraper reading schema.org Product data from any shop page."""

import json
from typing import Any, cast

from bs4 import BeautifulSoup

from src.models.product import ProductSnapshot
from src.scrapers.base_scraper import BaseScraper

_OUT_OF_STOCK = ("outofstock", "soldout", "discontinued")


class StructuredDataScraper(BaseScraper):
    """Scraper for pages that embed schema.org ``Product`` JSON-LD.

    Most storefront platforms publish price and availability as
    ``application/ld+json``.  OpenGraph ``product:price:*`` meta tags are
    used when no JSON-LD product is present.
    """

    def __init__(self) -> None:
        super().__init__("generic")

    # ------------------------------------------------------------------
    # JSON-LD extraction (primary)
    # ------------------------------------------------------------------

    @staticmethod
    def _iter_nodes(data: object) -> list[dict[str, Any]]:
        """Flatten JSON-LD payloads (lists and @graph) into nodes."""
        if isinstance(data, list):
            nodes: list[dict[str, Any]] = []
            for item in cast(list[object], data):
                nodes.extend(
                    StructuredDataScraper._iter_nodes(item)
                )
            return nodes
        if isinstance(data, dict):
            node = cast(dict[str, Any], data)
            graph = node.get("@graph")
            if isinstance(graph, list):
                return StructuredDataScraper._iter_nodes(graph)
            return [node]
        return []

    @staticmethod
    def _is_product(node: dict[str, Any]) -> bool:
        kind = node.get("@type")
        if isinstance(kind, list):
            return "Product" in kind
        return kind == "Product"

    @staticmethod
    def _extract_json_ld(
        soup: BeautifulSoup,
    ) -> dict[str, Any] | None:
        """Return the first schema.org Product node on the page."""
        for script in soup.find_all(
            "script", type="application/ld+json"
        ):
            if not script.string:
                continue
            try:
                data = json.loads(script.string)
            except (json.JSONDecodeError, TypeError):
                continue
            for node in StructuredDataScraper._iter_nodes(data):
                if StructuredDataScraper._is_product(node):
                    return node
        return None

    @staticmethod
    def _first_offer(product: dict[str, Any]) -> dict[str, Any]:
        offers = product.get("offers")
        if isinstance(offers, list) and offers:
            offers = offers[0]
        if isinstance(offers, dict):
            return cast(dict[str, Any], offers)
        return {}

    def _from_json_ld(
        self, product: dict[str, Any], url: str,
    ) -> ProductSnapshot | None:
        offer = self._first_offer(product)
        # Price fallback: price -> lowPrice
        price = self.extract_price(
            str(offer.get("price") or offer.get("lowPrice") or "")
        )
        title = str(product.get("name") or "").strip()
        if not title or price <= 0:
            return None

        high = self.extract_price(str(offer.get("highPrice") or ""))
        original_price = max(high, price)

        availability = str(offer.get("availability") or "").lower()
        image = product.get("image")
        if isinstance(image, list) and image:
            image = image[0]

        return ProductSnapshot(
            url=url,
            title=title,
            current_price=price,
            original_price=original_price,
            currency=str(offer.get("priceCurrency") or "$"),
            is_out_of_stock=any(
                marker in availability for marker in _OUT_OF_STOCK
            ),
            discount_rate=(
                round((original_price - price) / original_price * 100)
                if original_price > price
                else 0.0
            ),
            image_url=image if isinstance(image, str) else "",
            source=self.source_name,
        )

    # ------------------------------------------------------------------
    # OpenGraph meta tags (fallback)
    # ------------------------------------------------------------------

    @staticmethod
    def _meta(soup: BeautifulSoup, prop: str) -> str:
        el = soup.find("meta", attrs={"property": prop})
        if el is None:
            return ""
        content = el.get("content")
        return content.strip() if isinstance(content, str) else ""

    def _from_open_graph(
        self, soup: BeautifulSoup, url: str,
    ) -> ProductSnapshot | None:
        title = self._meta(soup, "og:title")
        price = self.extract_price(
            self._meta(soup, "product:price:amount")
            or self._meta(soup, "og:price:amount")
        )
        if not title or price <= 0:
            return None
        availability = self._meta(soup, "product:availability").lower()
        return ProductSnapshot(
            url=url,
            title=title,
            current_price=price,
            original_price=price,
            currency=(
                self._meta(soup, "product:price:currency") or "$"
            ),
            is_out_of_stock=availability in ("out of stock", "oos"),
            image_url=self._meta(soup, "og:image"),
            source=self.source_name,
        )

    def _parse_product(
        self, soup: BeautifulSoup, url: str,
    ) -> ProductSnapshot | None:
        """Parse JSON-LD first, then OpenGraph meta tags."""
        product = self._extract_json_ld(soup)
        if product is not None:
            snapshot = self._from_json_ld(product, url)
            if snapshot is not None:
                return snapshot
        snapshot = self._from_open_graph(soup, url)
        if snapshot is None:
            self.logger.warning(
                "[generic] No product data found on %s", url,
            )
        return snapshot
