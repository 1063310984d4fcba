"""Natural-language query parsing into structured search filters.

The parser is an ordered tuple of independent extractors. Each extractor
looks at the lowercased, whitespace-collapsed query and returns a partial
filter patch; patches are applied in order and never overwrite a field an
earlier extractor already set. Any number of extractors may fire on one
query, e.g. ``"comedy tonight under 600 near indiranagar"`` yields category,
dates, price and location together.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any, Callable, Mapping, Optional, TypeVar

import structlog

from event_search.models import SearchFilters
from event_search.utils.vocabulary import (
    AREA_ALIASES,
    CATEGORY_MAP,
    STOP_WORDS,
    TIME_WINDOWS,
    WEEKDAYS,
    Location,
)

logger = structlog.get_logger(__name__)

Extractor = Callable[[str, date], dict[str, Any]]

_V = TypeVar("_V")

# ---------------------------------------------------------------------------
# Phrase matching
# ---------------------------------------------------------------------------


def _compile_phrases(table: Mapping[str, _V]) -> tuple[tuple[str, re.Pattern[str], _V], ...]:
    """Compile *table* keys into word-bounded patterns.

    Multi-word phrases come first (longest first), then single tokens, each
    group keeping table order.
    """
    order = {phrase: i for i, phrase in enumerate(table)}
    phrases = sorted(table, key=lambda p: (-len(p.split()), order[p]))
    return tuple(
        (phrase, re.compile(rf"(?<!\w){re.escape(phrase)}(?!\w)"), table[phrase])
        for phrase in phrases
    )


_CATEGORY_ENTRIES = _compile_phrases(CATEGORY_MAP)
_AREA_ENTRIES = _compile_phrases(AREA_ALIASES)
_TIME_ENTRIES = _compile_phrases(TIME_WINDOWS)
_WEEKDAY_ENTRIES = _compile_phrases(WEEKDAYS)


def _first_match(
    text: str, entries: tuple[tuple[str, re.Pattern[str], _V], ...]
) -> Optional[tuple[str, _V]]:
    for phrase, pattern, value in entries:
        if pattern.search(text):
            return phrase, value
    return None


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------

_CURRENCY = r"(?:rs\.?|₹|inr)?"
_UNDER_RE = re.compile(rf"(?:\bunder|\bbelow|<|\bless than)\s*{_CURRENCY}\s*(\d+)")
_ABOVE_RE = re.compile(rf"(?:\babove|\bover|>|\bmore than)\s*{_CURRENCY}\s*(\d+)")
_RANGE_RE = re.compile(rf"{_CURRENCY}\s*(\d+)\s*(?:[-–—]|\bto\b)\s*{_CURRENCY}\s*(\d+)")
_EXACT_RE = re.compile(r"(?:\brs\.?|₹|\binr\b)\s*(\d+)")

_TODAY_RE = re.compile(r"\b(?:today|tonight)\b")
_TOMORROW_RE = re.compile(r"\btomorrow\b")
_WEEKEND_RE = re.compile(r"\bweekend\b")
_THIS_WEEK_RE = re.compile(r"\bthis week\b")
_NEXT_WEEK_RE = re.compile(r"\bnext week\b")

_TOKEN_RE = re.compile(r"[^\s,;!?]+")
_EDGE_PUNCTUATION = ".:'\"()[]"


def extract_category(text: str, today: date) -> dict[str, Any]:
    match = _first_match(text, _CATEGORY_ENTRIES)
    if match is None:
        return {}
    return {"category": match[1]}


def extract_location(text: str, today: date) -> dict[str, Any]:
    """Map a neighbourhood or city alias to its canonical area/city."""
    match = _first_match(text, _AREA_ENTRIES)
    if match is None:
        return {}
    location: Location = match[1]
    patch: dict[str, Any] = {"city": location.city}
    if location.area:
        patch["area"] = location.area
    return patch


def extract_price(text: str, today: date) -> dict[str, Any]:
    """Read price bounds as written; a range overrides one-sided bounds."""
    patch: dict[str, Any] = {}

    under = _UNDER_RE.search(text)
    if under:
        patch["max_price"] = int(under.group(1))

    above = _ABOVE_RE.search(text)
    if above:
        patch["min_price"] = int(above.group(1))

    span = _RANGE_RE.search(text)
    if span:
        patch["min_price"] = int(span.group(1))
        patch["max_price"] = int(span.group(2))

    if not patch:
        exact = _EXACT_RE.search(text)
        if exact:
            price = int(exact.group(1))
            patch["min_price"] = price
            patch["max_price"] = price

    return patch


def _window(start: date, end: date) -> dict[str, Any]:
    return {"date_start": start.isoformat(), "date_end": end.isoformat()}


def extract_dates(text: str, today: date) -> dict[str, Any]:
    """Resolve relative date phrases against *today*.

    A weekday name resolves to its next occurrence on or after *today* and is
    treated as a single-day window.
    """
    if _TODAY_RE.search(text):
        return _window(today, today)

    if _TOMORROW_RE.search(text):
        tomorrow = today + timedelta(days=1)
        return _window(tomorrow, tomorrow)

    if _WEEKEND_RE.search(text):
        # On Saturday this is today's weekend; on Sunday the next one.
        saturday = today + timedelta(days=(5 - today.weekday()) % 7)
        return _window(saturday, saturday + timedelta(days=1))

    if _THIS_WEEK_RE.search(text):
        return _window(today, today + timedelta(days=6 - today.weekday()))

    if _NEXT_WEEK_RE.search(text):
        monday = today + timedelta(days=7 - today.weekday())
        return _window(monday, monday + timedelta(days=6))

    match = _first_match(text, _WEEKDAY_ENTRIES)
    if match is not None:
        target = today + timedelta(days=(match[1] - today.weekday()) % 7)
        return _window(target, target)

    return {}


def extract_time_window(text: str, today: date) -> dict[str, Any]:
    match = _first_match(text, _TIME_ENTRIES)
    if match is None:
        return {}
    return {"start_time_window": match[1]}


def _is_filter_token(token: str) -> bool:
    if token in STOP_WORDS or token in TIME_WINDOWS or token in WEEKDAYS:
        return True
    if any(ch.isdigit() for ch in token):
        return True
    return not any(ch.isalnum() for ch in token)


def extract_free_text(text: str, today: date) -> dict[str, Any]:
    """Collect the words no other extractor accounts for."""
    # Every category or area phrase present counts, not just the one that won.
    consumed: set[str] = set()
    for entries in (_CATEGORY_ENTRIES, _AREA_ENTRIES):
        for phrase, pattern, _ in entries:
            if pattern.search(text):
                consumed.update(phrase.split())

    tokens = (token.strip(_EDGE_PUNCTUATION) for token in _TOKEN_RE.findall(text))
    words = [
        token
        for token in tokens
        if token and token not in consumed and not _is_filter_token(token)
    ]
    if not words:
        return {}
    return {"free_text_query": " ".join(words)}


EXTRACTORS: tuple[Extractor, ...] = (
    extract_category,
    extract_location,
    extract_price,
    extract_dates,
    extract_time_window,
    extract_free_text,
)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _reference_day(now: date | datetime | None) -> date:
    if now is None:
        return date.today()
    if isinstance(now, datetime):
        return now.date()
    return now


def parse_query(
    query: str,
    now: date | datetime | None = None,
    extractors: tuple[Extractor, ...] = EXTRACTORS,
) -> SearchFilters:
    """Parse free-text *query* into :class:`SearchFilters`.

    Never raises: an extractor that fails is logged and skipped, and
    unrecognised text simply yields fewer populated fields.

    Args:
        query:      Raw user query (may be empty).
        now:        Reference moment for relative dates; defaults to today.
        extractors: Extractors to apply, in order.

    Returns:
        Filters with only the recognised fields set.
    """
    text = " ".join((query or "").lower().split())
    if not text:
        return SearchFilters()

    today = _reference_day(now)
    fields: dict[str, Any] = {}
    for extractor in extractors:
        try:
            patch = extractor(text, today)
        except Exception as exc:  # noqa: BLE001
            logger.warning("parser.extractor_failed", extractor=extractor.__name__, error=str(exc))
            continue
        for key, value in patch.items():
            fields.setdefault(key, value)

    logger.debug("parser.parsed", query=text[:80], fields=sorted(fields))
    return SearchFilters(**fields)
