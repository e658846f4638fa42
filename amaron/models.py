"""
Data model shared by discovery, extraction, deduplication and the CSV sink.
Combination / DropdownOption are immutable tuples; a Record is a plain dict keyed by RECORD_FIELDS.
"""
import time
from dataclasses import dataclass, field
from typing import NamedTuple


class DropdownOption(NamedTuple):
    """One <option> read from a live dropdown: opaque value + display label."""

    value: str
    text: str


class Combination(NamedTuple):
    """A vehicle type / brand / model / fuel type tuple as labelled by the source form."""

    vehicle_type: str
    brand: str
    model: str
    fuel_type: str

    def label(self) -> str:
        return " / ".join(self)


# (record key, CSV column) in output order. The first four mirror the Combination.
RECORD_COLUMNS = [
    ("vehicle_type", "Vehicle Type"),
    ("brand", "Brand"),
    ("model", "Model"),
    ("fuel_type", "Fuel Type"),
    ("battery_brand", "Battery Brand"),
    ("series", "Series"),
    ("item_code", "Item Code"),
    ("battery_model", "Battery Model"),
    ("battery_title", "Battery Title"),
    ("dimensions", "Dimensions"),
    ("voltage", "Voltage"),
    ("ampere_hour", "Ampere Hour"),
    ("cca", "CCA"),
    ("total_warranty", "Total Warranty"),
    ("free_warranty", "Free Warranty"),
    ("pro_rata_warranty", "Pro-rata Warranty"),
    ("terminal_layout_image_url", "Terminal Layout Image URL"),
    ("country_of_origin", "Country of Origin"),
    ("base_price", "Base Price"),
    ("special_discount", "Special Discount"),
    ("total_price", "Total Price"),
    ("rebate", "Rebate"),
]
RECORD_FIELDS = [key for key, _ in RECORD_COLUMNS]
CSV_HEADERS = [header for _, header in RECORD_COLUMNS]

# A record is only worth keeping when at least one of these is non-empty.
SUBSTANTIVE_FIELDS = (
    "item_code",
    "battery_model",
    "dimensions",
    "voltage",
    "ampere_hour",
    "cca",
    "total_warranty",
    "free_warranty",
    "pro_rata_warranty",
)


def new_record(combination: Combination) -> dict:
    """Fresh record with every field empty except the identity fields."""
    record = dict.fromkeys(RECORD_FIELDS, "")
    record.update(combination._asdict())
    return record


def has_substance(record: dict) -> bool:
    return any((record.get(name) or "").strip() for name in SUBSTANTIVE_FIELDS)


@dataclass
class RunSummary:
    """Counters for one run. Mutated by the orchestrator, logged at the end, never persisted."""

    mode: str = "smart"
    attempted: int = 0
    succeeded: int = 0
    empty: int = 0
    failed: int = 0
    no_new_rows: int = 0  # product data found, but every record was a duplicate or failed to write
    records_written: int = 0
    duplicates_dropped: int = 0
    write_failures: int = 0
    cancelled: bool = False
    output_path: str | None = None
    output_bytes: int = 0
    started_at: float = field(default_factory=time.monotonic)
    duration: float = 0.0
    errors: list[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def finish(self) -> None:
        self.duration = time.monotonic() - self.started_at

    @property
    def success_rate(self) -> float:
        return (self.succeeded / self.attempted * 100) if self.attempted else 0.0

    def as_lines(self) -> list[str]:
        """Human-readable end-of-run report."""
        per_second = self.records_written / self.duration if self.duration > 0 else 0.0
        per_combo = self.duration / self.attempted if self.attempted else 0.0
        lines = [
            "=" * 60,
            f"FINAL SUMMARY ({self.mode}{', cancelled' if self.cancelled else ''})",
            "=" * 60,
            f"Combinations attempted: {self.attempted}",
            f"Successful (new rows written): {self.succeeded}",
            f"Found, nothing new written: {self.no_new_rows}",
            f"Empty (no product data): {self.empty}",
            f"Failed: {self.failed}",
            f"Success rate: {self.success_rate:.1f}%",
            f"Records written: {self.records_written}",
            f"Duplicates dropped: {self.duplicates_dropped}",
            f"Write failures: {self.write_failures}",
            f"Duration: {self.duration:.1f}s ({per_combo:.2f}s per combination, {per_second:.2f} records/s)",
            f"Output: {self.output_path or 'not created'} ({self.output_bytes / 1024:.2f} KB)",
        ]
        if self.errors:
            lines.append(f"Errors ({len(self.errors)}):")
            lines.extend(f"  {i}. {message}" for i, message in enumerate(self.errors, start=1))
        lines.append("=" * 60)
        return lines
