"""
Battery specification extraction from a loaded product page.

The browser side runs one snapshot script that returns plain data: the page text and, for each
product card, its label/value rows, price elements, images and headings. Everything else happens
here against that snapshot, driven by the FIELD_SPECS table:

  1. label lookup: the first row whose label contains a candidate (case-insensitive), candidates
     tried in order;
  2. fallbacks, only for fields still empty after step 1, in table order (so a derived field can
     use fields derived before it);
  3. cleanup of every value.

A card becomes a record only if at least one substantive field was found.
"""
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import NamedTuple

from amaron.browser import BrowserSession
from amaron.config import DEFAULT_BATTERY_BRAND, PRICE_CONTAINER_SELECTOR, PRODUCT_CARD_SELECTOR
from amaron.models import Combination, has_substance, new_record

logger = logging.getLogger("amaron.extractor")

# Page text must contain one of these before anything is extracted; error and placeholder
# pages come back with HTTP 200 too.
GATE_MARKERS = (
    "Voltage (V)",
    "Amphere Hour",
    "Ampere Hour",
    "Warranty (Months)",
    "Battery Brand",
)

CURRENCY_PATTERN = re.compile(r"₹\s?[\d,]+(?:\.\d+)?")
_NUMBER = re.compile(r"\d+(?:\.\d+)?")
_WHITESPACE = re.compile(r"\s+")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f\u200b-\u200d\ufeff]")
_SEPARATORS = " :;,|-–—"

# Price tiers are told apart by their font-weight class when the labelled rows are missing.
TOTAL_PRICE_CLASS = "fw-bolder"
BASE_PRICE_CLASS = "fw-bold"
TIER_SELECTOR = f".{TOTAL_PRICE_CLASS}, .{BASE_PRICE_CLASS}"

SNAPSHOT_JS = """(cfg) => {
    const clean = (s) => (s || '').replace(/\\s+/g, ' ').trim();
    const rowsIn = (root) => {
        const rows = [];
        root.querySelectorAll('tr').forEach(tr => {
            const cells = Array.from(tr.querySelectorAll('th, td'));
            if (cells.length >= 2) {
                rows.push({
                    label: clean(cells[0].textContent),
                    value: clean(cells.slice(1).map(c => c.textContent).join(' ')),
                });
            }
        });
        root.querySelectorAll('dt').forEach(dt => {
            const dd = dt.nextElementSibling;
            if (dd && dd.tagName === 'DD') {
                rows.push({ label: clean(dt.textContent), value: clean(dd.textContent) });
            }
        });
        root.querySelectorAll('.views-field').forEach(f => {
            const label = f.querySelector('.views-label');
            const content = f.querySelector('.field-content');
            if (label && content) {
                rows.push({ label: clean(label.textContent), value: clean(content.textContent) });
            }
        });
        return rows.filter(r => r.label);
    };
    const outermost = (els) => els.filter(el => !els.some(other => other !== el && other.contains(el)));
    const pricesIn = (root) => outermost(Array.from(root.querySelectorAll(cfg.priceSelector)))
        .map(el => ({
            className: el.getAttribute('class') || '',
            tierClass: (el.closest(cfg.tierSelector) || el).getAttribute('class') || '',
            text: clean(el.textContent),
        }))
        .filter(p => p.text);
    const cards = outermost(Array.from(document.querySelectorAll(cfg.cardSelector)));
    const roots = cards.length ? cards : (document.body ? [document.body] : []);
    return {
        text: document.body ? (document.body.innerText || document.body.textContent || '') : '',
        cards: roots.map(root => ({
            rows: rowsIn(root),
            prices: pricesIn(root),
            images: Array.from(root.querySelectorAll('img')).map(img => ({
                src: img.src || img.getAttribute('src') || img.getAttribute('data-src') || '',
                alt: img.getAttribute('alt') || '',
                title: img.getAttribute('title') || '',
            })),
            headings: Array.from(root.querySelectorAll('h1, h2, h3, .product-title, .battery-title'))
                .map(h => clean(h.textContent))
                .filter(Boolean),
        })),
    };
}"""


@dataclass
class PageCard:
    rows: list[tuple[str, str]] = field(default_factory=list)
    prices: list[tuple[str, str]] = field(default_factory=list)  # (class of the enclosing price tier, text)
    images: list[dict] = field(default_factory=list)
    headings: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "PageCard":
        return cls(
            rows=[(r.get("label") or "", r.get("value") or "") for r in data.get("rows") or []],
            prices=[
                (p.get("tierClass") or p.get("className") or "", p.get("text") or "")
                for p in data.get("prices") or []
            ],
            images=[dict(i) for i in data.get("images") or []],
            headings=[h for h in data.get("headings") or [] if h],
        )

    def lookup(self, labels: tuple[str, ...]) -> str:
        """Value of the first row whose label contains a candidate; candidates in preference order."""
        for candidate in labels:
            wanted = candidate.lower()
            for label, value in self.rows:
                if wanted in label.lower():
                    return value
        return ""


@dataclass
class PageSnapshot:
    text: str = ""
    cards: list[PageCard] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict | None) -> "PageSnapshot":
        data = data or {}
        return cls(
            text=data.get("text") or "",
            cards=[PageCard.from_dict(c) for c in data.get("cards") or []],
        )


def clean_value(value) -> str:
    """Collapse whitespace, drop control characters, strip separator punctuation at both ends."""
    if value is None:
        return ""
    text = _WHITESPACE.sub(" ", str(value))
    text = _WHITESPACE.sub(" ", _CONTROL_CHARS.sub("", text)).strip()
    return text.strip(_SEPARATORS)


def passes_gate(text: str) -> bool:
    lower = (text or "").lower()
    return any(marker.lower() in lower for marker in GATE_MARKERS)


# --------------- fallback derivations: (record, card) -> value ---------------
Derivation = Callable[[dict, PageCard], str]


def from_labels(*labels: str) -> Derivation:
    def derive(_record: dict, card: PageCard) -> str:
        return card.lookup(labels)
    return derive


def _first_number(value: str) -> str:
    match = _NUMBER.search(value or "")
    return match.group(0) if match else ""


def model_from_ratings(record: dict, _card: PageCard) -> str:
    """12 + 35 -> '12V 35AH'."""
    volts = _first_number(record.get("voltage", ""))
    amp_hours = _first_number(record.get("ampere_hour", ""))
    if volts and amp_hours:
        return f"{volts}V {amp_hours}AH"
    return ""


def title_from_heading(_record: dict, card: PageCard) -> str:
    brand = DEFAULT_BATTERY_BRAND.lower()
    for heading in card.headings:
        if brand in heading.lower():
            return heading
    return ""


def title_from_parts(record: dict, _card: PageCard) -> str:
    parts = [record.get(name, "") for name in ("series", "battery_model", "item_code")]
    return " ".join(p for p in parts if p)


def terminal_image(_record: dict, card: PageCard) -> str:
    for image in card.images:
        haystack = " ".join(str(image.get(k) or "") for k in ("src", "alt", "title")).lower()
        if "terminal" in haystack and image.get("src"):
            return image["src"]
    return ""


def default_brand(_record: dict, _card: PageCard) -> str:
    return DEFAULT_BATTERY_BRAND


def price_tier(css_class: str) -> str:
    """Which price field an element with this class attribute carries."""
    tokens = css_class.split()
    if TOTAL_PRICE_CLASS in tokens:
        return "total_price"
    if BASE_PRICE_CLASS in tokens:
        return "base_price"
    return "special_discount"


def price_from_class(tier: str) -> Derivation:
    def derive(_record: dict, card: PageCard) -> str:
        for css_class, text in card.prices:
            if price_tier(css_class) != tier:
                continue
            match = CURRENCY_PATTERN.search(text)
            if match:
                return match.group(0)
        return ""
    return derive


class FieldSpec(NamedTuple):
    name: str
    labels: tuple[str, ...] = ()
    fallbacks: tuple[Derivation, ...] = ()
    # When set, only the first match of this pattern in the raw value is kept.
    pattern: re.Pattern | None = None


FIELD_SPECS: tuple[FieldSpec, ...] = (
    FieldSpec("battery_brand", ("Battery Brand", "Brand Name"), (default_brand,)),
    FieldSpec("series", ("Battery Series", "Series", "Product Range")),
    FieldSpec("item_code", ("Item Code", "Product Code", "Part No", "SKU")),
    FieldSpec("voltage", ("Voltage (V)", "Voltage")),
    FieldSpec("ampere_hour", ("Ref. Amphere Hour (AH)", "Amphere Hour", "Ampere Hour", "Capacity (AH)")),
    FieldSpec("battery_model", ("Battery Model", "Model No"), (model_from_ratings,)),
    FieldSpec(
        "battery_title",
        ("Battery Title", "Product Name"),
        (title_from_heading, title_from_parts),
    ),
    FieldSpec(
        "dimensions",
        ("Dimensions (L x W x H)", "Dimensions", "Dimension"),
        (from_labels("Overall Dimensions", "Size (mm)", "Size"),),
    ),
    FieldSpec("cca", ("CCA", "Cold Cranking")),
    FieldSpec("total_warranty", ("Total Warranty (Months)", "Total Warranty")),
    FieldSpec("free_warranty", ("Free Warranty (Months)", "Free Replacement", "Free Warranty")),
    FieldSpec("pro_rata_warranty", ("Pro-rata Warranty (Months)", "Pro-rata Warranty", "Pro Rata")),
    FieldSpec("terminal_layout_image_url", (), (terminal_image,)),
    FieldSpec("country_of_origin", ("Country of Origin", "Made in", "Origin")),
    FieldSpec("base_price", ("Base Price", "MRP"), (price_from_class("base_price"),), CURRENCY_PATTERN),
    FieldSpec(
        "special_discount",
        ("Special Discount", "Discount"),
        (price_from_class("special_discount"),),
        CURRENCY_PATTERN,
    ),
    FieldSpec(
        "total_price",
        ("Total Price", "Net Price", "Final Price"),
        (price_from_class("total_price"),),
        CURRENCY_PATTERN,
    ),
    FieldSpec("rebate", ("Rebate on Return of old battery", "Rebate"), (), CURRENCY_PATTERN),
)


def _narrow(value: str, pattern: re.Pattern | None) -> str:
    if pattern is None or not value:
        return value
    match = pattern.search(value)
    return match.group(0) if match else ""


def extract_card(card: PageCard, combination: Combination, specs=FIELD_SPECS) -> dict | None:
    """Record for one product card, or None when nothing substantive was found."""
    record = new_record(combination)
    for spec in specs:
        if spec.labels:
            record[spec.name] = clean_value(_narrow(clean_value(card.lookup(spec.labels)), spec.pattern))
    for spec in specs:
        if record[spec.name]:
            continue
        for derive in spec.fallbacks:
            value = clean_value(derive(record, card))
            if value:
                record[spec.name] = value
                break
    if not has_substance(record):
        return None
    return record


def extract_records(snapshot: PageSnapshot, combination: Combination, specs=FIELD_SPECS) -> list[dict]:
    """All records on a page. Pages without any marker text yield nothing."""
    if not passes_gate(snapshot.text):
        logger.debug("No product markers on page for %s", combination.label())
        return []
    records = []
    for card in snapshot.cards:
        record = extract_card(card, combination, specs)
        if record is not None:
            records.append(record)
    return records


class FieldExtractor:
    """Runs the snapshot script on the session's current page and applies the field table."""

    def __init__(
        self,
        specs: tuple[FieldSpec, ...] = FIELD_SPECS,
        card_selector: str = PRODUCT_CARD_SELECTOR,
        price_selector: str = PRICE_CONTAINER_SELECTOR,
    ):
        self.specs = specs
        self.card_selector = card_selector
        self.price_selector = price_selector

    async def snapshot(self, session: BrowserSession) -> PageSnapshot:
        raw = await session.evaluate(
            SNAPSHOT_JS,
            {
                "cardSelector": self.card_selector,
                "priceSelector": self.price_selector,
                "tierSelector": TIER_SELECTOR,
            },
        )
        return PageSnapshot.from_dict(raw)

    async def extract(self, session: BrowserSession, combination: Combination) -> list[dict]:
        snapshot = await self.snapshot(session)
        records = extract_records(snapshot, combination, self.specs)
        logger.debug(
            "%s: %d cards, %d records", combination.label(), len(snapshot.cards), len(records)
        )
        return records
