# src/models/product.py

"""Product snapshot model produced by the scrapers."""

from dataclasses import dataclass


@dataclass
class ProductSnapshot:
    """A freshly fetched read of a tracked product page."""

    url: str
    title: str
    current_price: float
    original_price: float = 0.0
    currency: str = "$"
    is_out_of_stock: bool = False
    discount_rate: float = 0.0
    image_url: str = ""
    source: str = ""
