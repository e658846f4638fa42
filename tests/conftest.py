"""
Shared fixtures: an in-memory browser session driving a mock dependent dropdown form,
and fast run settings (no delays, no progress bars).
"""
from pathlib import Path

import pytest

from amaron.config import DROPDOWN_SELECTORS, RunSettings
from amaron.models import DropdownOption
from amaron.urls import slugify

LANDING_URL = "https://www.amaron.com/battery/landing"


def make_card(rows=None, prices=(), images=(), headings=()) -> dict:
    """Card dict in the shape returned by the page snapshot script."""
    return {
        "rows": [{"label": k, "value": v} for k, v in (rows or {}).items()],
        "prices": [{"className": c, "text": t} for c, t in prices],
        "images": list(images),
        "headings": list(headings),
    }


def make_page(*cards, text=None) -> dict:
    if text is None:
        text = " ".join(f"{r['label']} {r['value']}" for c in cards for r in c["rows"])
    return {"text": text, "cards": list(cards)}


class FakeSession:
    """
    BrowserSession over a nested dict form: {vehicle_type: {brand: {model: [fuel types]}}}.
    Loading the landing URL resets all selections; selecting level L clears L+1 and below.
    Any other URL is served from `pages` ({url: (status, snapshot)}), 404 when missing.
    """

    def __init__(self, form=None, pages=None, landing_url=LANDING_URL, selectors=DROPDOWN_SELECTORS):
        self.form = form or {}
        self.pages = pages or {}
        self.landing_url = landing_url
        self.selectors = list(selectors)
        self.selected: list[str | None] = [None] * 4
        self.current_url: str | None = None
        self.visited: list[str] = []
        self.fail_select: set[tuple[int, str]] = set()
        self.fail_navigate: dict[str, Exception] = {}
        self.on_navigate = None
        self.bandwidth = {"bytes": 0, "pages": 0}
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    # --------------- form model ---------------
    def _branch(self, level: int):
        """Mapping (or list at the fuel level) of options under the current selections."""
        node = self.form
        for depth in range(level):
            value = self.selected[depth]
            if value is None:
                return None
            node = {slugify(k): v for k, v in node.items()}.get(value)
            if node is None:
                return None
        return node

    def _labels(self, level: int) -> list[str]:
        node = self._branch(level)
        if node is None:
            return []
        return list(node) if isinstance(node, (dict, list)) else []

    # --------------- BrowserSession ---------------
    async def navigate(self, url: str) -> int | None:
        self.visited.append(url)
        self.current_url = url
        self.bandwidth["pages"] += 1
        if self.on_navigate is not None:
            self.on_navigate(url)
        if url in self.fail_navigate:
            raise self.fail_navigate[url]
        if url == self.landing_url:
            self.selected = [None] * 4
            return 200
        status, _ = self.pages.get(url, (404, None))
        return status

    async def select(self, selector: str, value: str) -> None:
        level = self.selectors.index(selector)
        if (level, value) in self.fail_select:
            raise RuntimeError(f"Timeout 10000ms exceeded waiting for selector {selector}")
        if value not in {slugify(label) for label in self._labels(level)}:
            raise RuntimeError(f"Element not found: no option {value!r}")
        self.selected[level] = value
        for deeper in range(level + 1, 4):
            self.selected[deeper] = None

    async def get_options(self, selector: str) -> list[DropdownOption]:
        level = self.selectors.index(selector)
        return [DropdownOption(slugify(label), label) for label in self._labels(level)]

    async def evaluate(self, script, arg=None):
        _, snapshot = self.pages.get(self.current_url, (404, None))
        return snapshot or {"text": "", "cards": []}


@pytest.fixture
def settings(tmp_path: Path) -> RunSettings:
    return RunSettings(
        headless=True,
        settle_delay=0,
        settle_timeout=0,
        settle_poll_interval=0,
        landing_delay=0,
        page_delay=0,
        request_delay=0,
        max_retries=1,
        element_retries=1,
        retry_delay=0,
        landing_url=LANDING_URL,
        output_path=tmp_path / "out" / "battery-data.csv",
        combinations_path=tmp_path / "combinations.csv",
        progress_bar=False,
    )


@pytest.fixture
def two_by_two_form() -> dict:
    return {
        "Passengers": {
            "ASHOK LEYLAND": {"Stile": ["Diesel"]},
            "HONDA": {"City": ["Petrol"]},
        },
        "Two Wheelers": {
            "BAJAJ": {"Pulsar 150 (ES)": ["Petrol"]},
            "HERO": {"Splendor": ["Petrol"]},
        },
    }
