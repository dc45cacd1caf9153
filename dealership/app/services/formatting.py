from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Tuple

UNIT_SUFFIXES = {
    "km": "km",
    "cc": "cc",
    "hp": "pk",
    "kg": "kg",
    "kmh": "km/h",
    "sec": "sec",
}


def _thousands(value: float) -> str:
    # nl-NL grouping: 15.000
    return f"{int(round(value)):,}".replace(",", ".")


def format_or_omit(value: Any, fmt: str = "text") -> Optional[str]:
    """Format a vehicle attribute for display, or ``None`` when it is absent.

    ``fmt`` is ``text``, ``currency``, ``boolean``, ``number`` or one of the
    unit keys in ``UNIT_SUFFIXES``. Zero is a value; ``None``, ``""`` and
    ``False`` are not, so an unset flag is left out instead of showing "Nee".
    """
    if value is None or value == "" or value is False:
        return None
    if fmt == "currency":
        return f"€{_thousands(value)},-"
    if fmt == "boolean":
        return "Ja" if value is True else "Nee"
    if fmt == "number":
        return _thousands(value)
    if fmt == "km":
        return f"{_thousands(value)} km"
    if fmt in UNIT_SUFFIXES:
        return f"{value} {UNIT_SUFFIXES[fmt]}"
    return str(value)


SpecRow = Tuple[str, str, str]

BASIC_SPECS: List[SpecRow] = [
    ("Merk", "make", "text"),
    ("Model", "model", "text"),
    ("Type", "trim", "text"),
    ("Bouwjaar", "build_year", "text"),
    ("Kilometerstand", "odometer_km", "km"),
    ("Prijs", "price", "currency"),
    ("BTW Auto", "margin_scheme", "boolean"),
]

TECHNICAL_SPECS: List[SpecRow] = [
    ("Transmissie", "transmission", "text"),
    ("Brandstof", "fuel_type", "text"),
    ("Motorinhoud", "engine_cc", "cc"),
    ("Cilinders", "cylinders", "text"),
    ("Vermogen", "power_hp", "hp"),
    ("Gewicht", "weight_kg", "kg"),
    ("Topsnelheid", "top_speed_kmh", "kmh"),
    ("Acceleratie 0-100", "acceleration_0_100", "sec"),
]

COMFORT_SPECS: List[SpecRow] = [
    ("Kleur", "color", "text"),
    ("Zitplaatsen", "seats", "text"),
    ("Deuren", "doors", "text"),
    ("Voertuigtype", "vehicle_category", "text"),
]


def _rows(vehicle: Any, spec_rows: List[SpecRow]) -> List[Dict[str, str]]:
    rows = []
    for label, attribute, fmt in spec_rows:
        display = format_or_omit(getattr(vehicle, attribute, None), fmt)
        if display is not None:
            rows.append({"label": label, "value": display})
    return rows


def spec_sections(vehicle: Any) -> Dict[str, List[Dict[str, str]]]:
    """Detail-page spec blocks with absent attributes left out; empty blocks are dropped."""
    sections = {
        "basic": _rows(vehicle, BASIC_SPECS),
        "technical": _rows(vehicle, TECHNICAL_SPECS),
        "comfort": _rows(vehicle, COMFORT_SPECS),
    }
    return {name: rows for name, rows in sections.items() if rows}


def filled_stars(rating: float) -> int:
    """Stars to fill for an aggregate rating: 4.5 and up shows five."""
    if rating >= 4.5:
        return 5
    return max(0, math.floor(rating))
