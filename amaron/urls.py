"""
Battery page URLs built from a combination's display labels.
"""
import re

from amaron.config import BATTERY_URL
from amaron.models import Combination

_NOT_SLUG_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def slugify(label: str) -> str:
    """
    Turn a display label into a URL slug (e.g. "ASHOK LEYLAND" -> "ashok-leyland",
    "Avenger 150 (ES)" -> "avenger-150-es"). Never raises; empty or None gives "".
    """
    if not label:
        return ""
    slug = _NOT_SLUG_CHARS.sub("", str(label).lower())
    slug = _WHITESPACE.sub("-", slug)
    slug = _HYPHENS.sub("-", slug)
    return slug.strip("-")


def battery_path(vehicle_type: str, brand: str, model: str, fuel_type: str) -> str:
    """Path below the battery base URL, e.g. passengers/ashok-leyland/stile/diesel."""
    return "/".join(slugify(part) for part in (vehicle_type, brand, model, fuel_type))


def build_url(vehicle_type: str, brand: str, model: str, fuel_type: str) -> str:
    return f"{BATTERY_URL}/{battery_path(vehicle_type, brand, model, fuel_type)}"


def combination_url(combination: Combination) -> str:
    return build_url(*combination)
