"""
Amaron battery scraper – centralized configuration.
Selectors, timeouts, retries, politeness delays, output paths, proxy.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Paths
PACKAGE_DIR = Path(__file__).resolve().parent
PROJECT_DIR = PACKAGE_DIR.parent

load_dotenv(PROJECT_DIR / ".env")
load_dotenv(PACKAGE_DIR / ".env")


def _env(key: str, default: str = "") -> str:
    return os.getenv(key, default).strip()


def _env_bool(key: str, default: str) -> bool:
    return _env(key, default).lower() in ("1", "true", "yes")


# Base URLs
BASE_URL = "https://www.amaron.com"
BATTERY_URL = f"{BASE_URL}/battery"
# Any product page renders the full dependent-dropdown form; this one is known to exist.
LANDING_URL = _env("AMARON_LANDING_URL", f"{BATTERY_URL}/passengers/ashok-leyland/stile/diesel")

# Dropdowns, in dependency order. Each entry is a comma-separated preference list.
VEHICLE_TYPE_SELECTOR = '#edit-select-vehicle, select[name="select-vehicle"]'
BRAND_SELECTOR = '#edit-vehicle-make, select[name="vehicle-make"]'
MODEL_SELECTOR = '#edit-model, select[name="model"]'
FUEL_TYPE_SELECTOR = '#edit-fuel, select[name="fuel"]'
DROPDOWN_SELECTORS = (VEHICLE_TYPE_SELECTOR, BRAND_SELECTOR, MODEL_SELECTOR, FUEL_TYPE_SELECTOR)
LEVEL_NAMES = ("vehicle type", "brand", "model", "fuel type")
# Placeholder option values that never denote a real choice
PLACEHOLDER_OPTION_VALUES = ("", "default", "_none")

# Product page structure
PRODUCT_CARD_SELECTOR = ".battery-card, .product-card, .battery-results-table"
PRICE_CONTAINER_SELECTOR = ".proPriceInfo [class*='price'], .proPriceInfo span, [class*='price'] span"

# Timeouts (ms)
NAVIGATION_TIMEOUT = int(_env("AMARON_NAV_TIMEOUT", "30000"))
ELEMENT_TIMEOUT = int(_env("AMARON_ELEMENT_TIMEOUT", "10000"))

# Delays (seconds)
SETTLE_DELAY = float(_env("AMARON_SETTLE_DELAY", "2.0"))  # after a dropdown selection
SETTLE_TIMEOUT = float(_env("AMARON_SETTLE_TIMEOUT", "8.0"))  # cap on option-list polling
SETTLE_POLL_INTERVAL = 0.5
LANDING_DELAY = float(_env("AMARON_LANDING_DELAY", "3.0"))
PAGE_DELAY = float(_env("AMARON_PAGE_DELAY", "2.0"))
REQUEST_DELAY = float(_env("AMARON_REQUEST_DELAY", "0.5"))  # between combination page visits

# Retries
MAX_RETRIES = int(_env("AMARON_MAX_RETRIES", "3"))
ELEMENT_RETRIES = int(_env("AMARON_ELEMENT_RETRIES", "2"))
RETRY_DELAY_SEC = float(_env("AMARON_RETRY_DELAY", "1.0"))
BACKOFF_MULTIPLIER = 2.0

# Network error fragments worth retrying (Chromium net:: codes, socket errnos, Playwright wording)
RETRYABLE_NETWORK_ERRORS = [
    "ECONNRESET",
    "ENOTFOUND",
    "ECONNREFUSED",
    "ETIMEDOUT",
    "EPIPE",
    "EHOSTUNREACH",
    "EAI_AGAIN",
    "net::ERR_NETWORK_CHANGED",
    "net::ERR_CONNECTION_RESET",
    "net::ERR_CONNECTION_REFUSED",
    "net::ERR_CONNECTION_CLOSED",
    "net::ERR_NAME_NOT_RESOLVED",
    "net::ERR_INTERNET_DISCONNECTED",
    "net::ERR_TIMED_OUT",
    "Navigation timeout",
    "Timeout",
    "Protocol error",
]
RETRYABLE_ELEMENT_ERRORS = [
    "Element not found",
    "waiting for selector",
    "waiting for locator",
    "Element is not attached",
    "Node is detached",
    "Element is not visible",
    "not visible",
    "Element is not enabled",
    "Execution context was destroyed",
    "Cannot find context",
]

# Output
OUTPUT_DIR = Path(_env("AMARON_OUTPUT_DIR", str(PROJECT_DIR / "output")))
CSV_FILE_NAME = _env("AMARON_CSV_FILE", "battery-data.csv")
COMBINATIONS_CSV = Path(_env("AMARON_COMBINATIONS_CSV", str(OUTPUT_DIR / "combinations.csv")))
MAX_FIELD_LENGTH = int(_env("AMARON_MAX_FIELD_LENGTH", "500"))
DEFAULT_BATTERY_BRAND = "Amaron"

# Bandwidth
BANDWIDTH_LOG_EVERY_N_PAGES = 100
BLOCKED_RESOURCE_TYPES = ("image", "imageset", "stylesheet", "font", "media")

# Browser
HEADLESS = _env_bool("AMARON_HEADLESS", "1")
VIEWPORT = {"width": 1366, "height": 768}
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--disable-gpu",
]

# Optional proxy (from .env at repo root or here)
PROXY_SERVER = _env("AMARON_PROXY_SERVER", _env("PROXY_SERVER", ""))
PROXY_USER = _env("AMARON_PROXY_USER", _env("PROXY_USER", ""))
PROXY_PASS = _env("AMARON_PROXY_PASS", _env("PROXY_PASS", ""))


def get_proxy_settings() -> dict | None:
    """Playwright proxy dict, or None when no proxy server is configured."""
    if not PROXY_SERVER:
        return None
    server = PROXY_SERVER if "://" in PROXY_SERVER else f"http://{PROXY_SERVER}"
    proxy = {"server": server}
    if PROXY_USER:
        proxy["username"] = PROXY_USER
        proxy["password"] = PROXY_PASS
    return proxy


@dataclass
class RunSettings:
    """Run parameters handed to the browser session, discoverer and orchestrator."""

    headless: bool = HEADLESS
    navigation_timeout_ms: int = NAVIGATION_TIMEOUT
    element_timeout_ms: int = ELEMENT_TIMEOUT
    settle_delay: float = SETTLE_DELAY
    settle_timeout: float = SETTLE_TIMEOUT
    settle_poll_interval: float = SETTLE_POLL_INTERVAL
    landing_delay: float = LANDING_DELAY
    page_delay: float = PAGE_DELAY
    request_delay: float = REQUEST_DELAY
    max_retries: int = MAX_RETRIES
    element_retries: int = ELEMENT_RETRIES
    retry_delay: float = RETRY_DELAY_SEC
    backoff_multiplier: float = BACKOFF_MULTIPLIER
    landing_url: str = LANDING_URL
    dropdown_selectors: tuple = DROPDOWN_SELECTORS
    output_path: Path = field(default_factory=lambda: OUTPUT_DIR / CSV_FILE_NAME)
    combinations_path: Path = COMBINATIONS_CSV
    max_field_length: int = MAX_FIELD_LENGTH
    limit: int | None = None
    progress_bar: bool = True
