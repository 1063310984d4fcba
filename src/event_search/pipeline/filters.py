"""Filter normalization and parsed/explicit merging."""

from __future__ import annotations

from typing import Any, Mapping, Union

import structlog

from event_search.models import SearchFilters
from event_search.utils.vocabulary import AREA_ALIASES

logger = structlog.get_logger(__name__)

FiltersLike = Union[SearchFilters, Mapping[str, Any]]

_STRING_FIELDS: tuple[str, ...] = (
    "category",
    "date_start",
    "date_end",
    "area",
    "city",
    "start_time_window",
    "free_text_query",
)


def _as_dict(filters: FiltersLike) -> dict[str, Any]:
    if isinstance(filters, SearchFilters):
        return filters.model_dump(exclude_none=True)
    return SearchFilters.model_validate(dict(filters)).model_dump(exclude_none=True)


def _canonical_area(value: str) -> str:
    location = AREA_ALIASES.get(value.lower())
    if location is not None and location.area:
        return location.area
    return value


def _canonical_city(value: str) -> str:
    location = AREA_ALIASES.get(value.lower())
    if location is not None:
        return location.city
    return value


def normalize_filters(filters: FiltersLike) -> SearchFilters:
    """Return a sanitised copy of *filters*.

    - every string field is trimmed and dropped when empty,
    - ``category`` is lowercased,
    - ``area`` / ``city`` are canonicalised when they match a known alias,
    - negative prices are dropped.

    The input is never mutated.

    Args:
        filters: A :class:`SearchFilters` or a plain mapping of filter fields.

    Returns:
        A new :class:`SearchFilters`.
    """
    raw = _as_dict(filters)
    normalized: dict[str, Any] = {}

    for name in _STRING_FIELDS:
        value = raw.get(name)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            normalized[name] = value

    if "category" in normalized:
        normalized["category"] = normalized["category"].lower()
    if "area" in normalized:
        normalized["area"] = _canonical_area(normalized["area"])
    if "city" in normalized:
        normalized["city"] = _canonical_city(normalized["city"])

    for name in ("min_price", "max_price"):
        price = raw.get(name)
        if price is None:
            continue
        if price < 0:
            logger.debug("filters.negative_price_dropped", field=name, value=price)
            continue
        normalized[name] = price

    return SearchFilters(**normalized)


def merge_filters(parsed: FiltersLike, explicit: FiltersLike) -> SearchFilters:
    """Overlay *explicit* filters on *parsed* ones.

    Explicit values win unless they are ``None`` or an empty string, in which
    case the parsed value (if any) is kept.
    """
    merged = _as_dict(parsed)
    for key, value in _as_dict(explicit).items():
        if value is None or value == "":
            continue
        merged[key] = value
    return SearchFilters(**merged)
