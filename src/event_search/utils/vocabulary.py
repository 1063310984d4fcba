"""Keyword and alias tables used by the query parser and filter normalizer."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional


class Location(NamedTuple):
    """Canonical location; ``area`` is ``None`` for bare city aliases."""

    area: Optional[str]
    city: str


_BENGALURU = "Bengaluru"

CATEGORY_MAP: Mapping[str, str] = MappingProxyType(
    {
        # Comedy
        "comedy": "comedy",
        "standup": "comedy",
        "stand-up": "comedy",
        "stand up": "comedy",
        "comic": "comedy",
        "funny": "comedy",
        "laugh": "comedy",
        "jokes": "comedy",
        # Music
        "music": "music",
        "concert": "music",
        "gig": "music",
        "band": "music",
        "live": "music",
        "acoustic": "music",
        "jazz": "music",
        "rock": "music",
        "indie": "music",
        "classical": "music",
        # Theatre
        "theatre": "theatre",
        "theater": "theatre",
        "play": "theatre",
        "drama": "theatre",
        "musical": "theatre",
        "stage": "theatre",
        # Workshop
        "workshop": "workshop",
        "class": "workshop",
        "course": "workshop",
        "learn": "workshop",
        "training": "workshop",
        # Art
        "art": "art",
        "exhibition": "art",
        "gallery": "art",
        "painting": "art",
        "sculpture": "art",
        # Food & drink
        "food": "food",
        "foodie": "food",
        "culinary": "food",
        "tasting": "food",
        "wine": "food",
        "beer": "food",
        # Sports
        "sports": "sports",
        "fitness": "sports",
        "yoga": "sports",
        "marathon": "sports",
        "run": "sports",
        # Networking
        "networking": "networking",
        "meetup": "networking",
        "conference": "networking",
        "seminar": "networking",
        # Open mic
        "open mic": "open-mic",
        "openmic": "open-mic",
        "open-mic": "open-mic",
        "mic": "open-mic",
        # Party
        "party": "party",
        "club": "party",
        "nightlife": "party",
        "dj": "party",
        "dance": "party",
    }
)

AREA_ALIASES: Mapping[str, Location] = MappingProxyType(
    {
        "indiranagar": Location("Indiranagar", _BENGALURU),
        "indira": Location("Indiranagar", _BENGALURU),
        "indira nagar": Location("Indiranagar", _BENGALURU),
        "koramangala": Location("Koramangala", _BENGALURU),
        "kora": Location("Koramangala", _BENGALURU),
        "kormangala": Location("Koramangala", _BENGALURU),
        "hsr": Location("HSR Layout", _BENGALURU),
        "hsr layout": Location("HSR Layout", _BENGALURU),
        "whitefield": Location("Whitefield", _BENGALURU),
        "jayanagar": Location("Jayanagar", _BENGALURU),
        "jp": Location("JP Nagar", _BENGALURU),
        "jp nagar": Location("JP Nagar", _BENGALURU),
        "marathahalli": Location("Marathahalli", _BENGALURU),
        "electronic city": Location("Electronic City", _BENGALURU),
        "ec": Location("Electronic City", _BENGALURU),
        "mg road": Location("MG Road", _BENGALURU),
        "mg": Location("MG Road", _BENGALURU),
        "brigade": Location("Brigade Road", _BENGALURU),
        "brigade road": Location("Brigade Road", _BENGALURU),
        "malleshwaram": Location("Malleshwaram", _BENGALURU),
        "malleswaram": Location("Malleshwaram", _BENGALURU),
        "rajajinagar": Location("Rajajinagar", _BENGALURU),
        "yelahanka": Location("Yelahanka", _BENGALURU),
        "hebbal": Location("Hebbal", _BENGALURU),
        "btm": Location("BTM Layout", _BENGALURU),
        "btm layout": Location("BTM Layout", _BENGALURU),
        "bannerghatta": Location("Bannerghatta", _BENGALURU),
        "bannerghatta road": Location("Bannerghatta Road", _BENGALURU),
        "sarjapur": Location("Sarjapur", _BENGALURU),
        "sarjapur road": Location("Sarjapur Road", _BENGALURU),
        "bellandur": Location("Bellandur", _BENGALURU),
        # City-only aliases
        "bangalore": Location(None, _BENGALURU),
        "bengaluru": Location(None, _BENGALURU),
        "blr": Location(None, _BENGALURU),
    }
)

TIME_WINDOWS: Mapping[str, str] = MappingProxyType(
    {
        "morning": "morning",
        "breakfast": "morning",
        "am": "morning",
        "afternoon": "afternoon",
        "lunch": "afternoon",
        "noon": "afternoon",
        "evening": "evening",
        "eve": "evening",
        "sunset": "evening",
        "pm": "evening",
        "night": "night",
        "tonight": "night",
        "late": "night",
        "midnight": "night",
    }
)

# Python weekday numbers (Monday == 0).
WEEKDAYS: Mapping[str, int] = MappingProxyType(
    {
        "monday": 0,
        "mon": 0,
        "tuesday": 1,
        "tue": 1,
        "tues": 1,
        "wednesday": 2,
        "wed": 2,
        "thursday": 3,
        "thu": 3,
        "thurs": 3,
        "friday": 4,
        "fri": 4,
        "saturday": 5,
        "sat": 5,
        "sunday": 6,
        "sun": 6,
    }
)

STOP_WORDS: frozenset[str] = frozenset(
    {
        "near",
        "in",
        "at",
        "on",
        "for",
        "the",
        "a",
        "an",
        "and",
        "or",
        "under",
        "below",
        "above",
        "over",
        "less",
        "more",
        "than",
        "to",
        "from",
        "with",
        "this",
        "today",
        "tomorrow",
        "weekend",
        "week",
        "next",
        "rs",
        "rs.",
        "inr",
        "₹",
    }
)
