"""
Run-wide duplicate filtering of extracted records.

Identity is a heuristic. A record with an item code is keyed by that code alone. Without one, the
key is a normalized concatenation of title, ratings, dimensions and the vehicle it was found for,
which can both merge distinct products and keep near-duplicates apart.
"""
import logging
import re

logger = logging.getLogger("amaron.dedupe")

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WHITESPACE = re.compile(r"\s+")

# Fields concatenated (in this order) when a record has no item code
FALLBACK_KEY_FIELDS = (
    "item_code",
    "battery_title",
    "voltage",
    "ampere_hour",
    "dimensions",
    "vehicle_type",
    "brand",
    "model",
)


def _normalize(value) -> str:
    text = _WHITESPACE.sub(" ", str(value or "")).strip().lower()
    return _NON_ALNUM.sub("", text)


def identity_key(record: dict) -> str:
    code = _normalize(record.get("item_code"))
    if code:
        return f"code:{code}"
    return "fields:" + "|".join(_normalize(record.get(name)) for name in FALLBACK_KEY_FIELDS)


class Deduplicator:
    """Keeps the first record per identity key for the lifetime of the instance (one run)."""

    def __init__(self):
        self.seen: set[str] = set()
        self.duplicates = 0

    def dedupe(self, records) -> list[dict]:
        unique = []
        for record in records:
            key = identity_key(record)
            if key in self.seen:
                self.duplicates += 1
                logger.debug("Duplicate dropped: %s", key)
                continue
            self.seen.add(key)
            unique.append(record)
        return unique

    def __len__(self) -> int:
        return len(self.seen)
