# src/config/settings.py

"""Central configuration for the price refresh engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")


class Settings:
    """Central configuration for the price refresh engine."""

    # --- Refresh scheduling ---
    BATCH_SIZE: int = _env_int("BATCH_SIZE", 5)             # Members per concurrent group
    STALENESS_HOURS: float = _env_float("STALENESS_HOURS", 24.0)
    STALE_CAP: int = _env_int("STALE_CAP", 5)               # Records per stale-only run
    RETENTION_DAYS: int = _env_int("RETENTION_DAYS", 0)     # 0 keeps full history
    RUN_TIME_BUDGET: float = _env_float("RUN_TIME_BUDGET", 55.0)
    FAILED_FETCH_POLICY: str = os.getenv("FAILED_FETCH_POLICY", "skip")
    NOTIFICATION_GRACE_PERIOD: float = _env_float(
        "NOTIFICATION_GRACE_PERIOD", 5.0
    )

    # --- Notification thresholds ---
    DROP_THRESHOLD_PERCENT: float = _env_float("DROP_THRESHOLD_PERCENT", 10.0)
    DISCOUNT_THRESHOLD_PERCENT: float = _env_float(
        "DISCOUNT_THRESHOLD_PERCENT", 40.0
    )

    # --- Scraping ---
    REQUEST_DELAY: float = 2.0          # Seconds between requests
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures

    # --- Resilience ---
    CIRCUIT_BREAKER_THRESHOLD: int = 3  # Consecutive failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 120.0
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Email (SMTP) ---
    EMAIL_SMTP_HOST: str = os.getenv("EMAIL_SMTP_HOST", "smtp.gmail.com")
    EMAIL_SMTP_PORT: int = _env_int("EMAIL_SMTP_PORT", 587)  # 587 (TLS) or 465 (SSL)
    EMAIL_USE_TLS: bool = _env_bool("EMAIL_USE_TLS", True)
    EMAIL_USERNAME: str = os.getenv("EMAIL_USERNAME", "")
    EMAIL_PASSWORD: str = os.getenv("EMAIL_PASSWORD", "")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "")
    EMAIL_SUBJECT_PREFIX: str = os.getenv("EMAIL_SUBJECT_PREFIX", "[PriceTracker]")
    EMAIL_TIMEOUT: int = 20

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = BASE_DIR / "src" / "config" / "selectors.json"
    PRODUCT_DB_PATH: Path = Path(
        os.getenv("PRODUCT_DB_PATH", str(BASE_DIR / "data" / "products.db"))
    )
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Sources (scraper resolved by URL host) ---
    AVAILABLE_SOURCES: list[dict[str, str]] = [
        {
            "id": "amazon",
            "label": "Amazon",
            "domain": "amazon.",
            "scraper": "src.scrapers.amazon_scraper.AmazonScraper",
        },
        {
            "id": "generic",
            "label": "Structured data (JSON-LD)",
            "domain": "",
            "scraper": "src.scrapers.structured_data_scraper.StructuredDataScraper",
        },
    ]
