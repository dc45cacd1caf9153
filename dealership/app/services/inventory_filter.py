"""Catalogue search, filtering and sorting over an in-memory vehicle list.

The catalogue page loads the whole status-scoped inventory once and derives the
visible subset from it on every filter change. Everything here is pure: the
input sequence is never mutated and the returned list holds the same objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

T = TypeVar("T")

SORT_FIELDS = ("created_at", "price", "build_year", "odometer")
SORT_ORDERS = ("asc", "desc")


@dataclass(frozen=True)
class FilterOptions:
    makes: List[str] = field(default_factory=list)
    fuel_types: List[str] = field(default_factory=list)
    transmissions: List[str] = field(default_factory=list)
    min_price: int = 0
    max_price: int = 0
    min_year: int = 0
    max_year: int = 0


@dataclass(frozen=True)
class FilterSpec:
    """Active catalogue selections. A bound left as ``None`` is open on that side."""

    search: str = ""
    make: str = ""
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    min_year: Optional[int] = None
    max_year: Optional[int] = None
    fuel_type: str = ""
    transmission: str = ""
    sort_by: str = "created_at"
    sort_order: str = "desc"

    def __post_init__(self) -> None:
        if self.sort_by not in SORT_FIELDS:
            raise ValueError(f"Unsupported sort field '{self.sort_by}'")
        if self.sort_order not in SORT_ORDERS:
            raise ValueError(f"Unsupported sort order '{self.sort_order}'")


def _distinct_sorted(values: Iterable[Optional[str]]) -> List[str]:
    return sorted({value for value in values if value})


def derive_filter_options(records: Sequence[Any]) -> FilterOptions:
    """Dropdown values and range bounds, computed from the unfiltered inventory."""
    if not records:
        return FilterOptions()
    prices = [record.price for record in records]
    years = [record.build_year for record in records]
    return FilterOptions(
        makes=_distinct_sorted(record.make for record in records),
        fuel_types=_distinct_sorted(record.fuel_type for record in records),
        transmissions=_distinct_sorted(record.transmission for record in records),
        min_price=min(prices),
        max_price=max(prices),
        min_year=min(years),
        max_year=max(years),
    )


def reset_filter_spec(options: FilterOptions, base: Optional[FilterSpec] = None) -> FilterSpec:
    """Clear every filter; the ranges go back to the inventory's own bounds."""
    spec = base or FilterSpec()
    return replace(
        spec,
        search="",
        make="",
        fuel_type="",
        transmission="",
        min_price=options.min_price,
        max_price=options.max_price,
        min_year=options.min_year,
        max_year=options.max_year,
        sort_by="created_at",
        sort_order="desc",
    )


def matches_search(record: Any, term: str) -> bool:
    if not term:
        return True
    needle = term.lower()
    for value in (record.make, record.model, getattr(record, "trim", None)):
        if value and needle in value.lower():
            return True
    return False


def _timestamp(value: Optional[datetime]) -> float:
    if value is None:
        return 0.0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


SORT_KEYS: Dict[str, Callable[[Any], float]] = {
    "created_at": lambda record: _timestamp(getattr(record, "created_at", None)),
    "price": lambda record: record.price,
    "build_year": lambda record: record.build_year,
    "odometer": lambda record: getattr(record, "odometer_km", None) or 0,
}


def _within(value: Any, low: Optional[int], high: Optional[int]) -> bool:
    return (low is None or low <= value) and (high is None or value <= high)


def apply_filters(records: Sequence[T], spec: FilterSpec) -> List[T]:
    """Return the records passing ``spec``, ordered by its sort key.

    Range bounds are inclusive; an inverted range simply matches nothing. Ties
    keep their input order in both directions.
    """
    selected = [
        record
        for record in records
        if matches_search(record, spec.search)
        and (not spec.make or record.make == spec.make)
        and _within(record.price, spec.min_price, spec.max_price)
        and _within(record.build_year, spec.min_year, spec.max_year)
        and (not spec.fuel_type or getattr(record, "fuel_type", None) == spec.fuel_type)
        and (not spec.transmission or getattr(record, "transmission", None) == spec.transmission)
    ]
    return sorted(selected, key=SORT_KEYS[spec.sort_by], reverse=spec.sort_order == "desc")
