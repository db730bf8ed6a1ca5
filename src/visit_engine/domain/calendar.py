"""Calendar event title cleaning, fuzzy name matching and event scoring."""

import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache

from rapidfuzz import fuzz

_DASHES = re.compile(r"[‐-―−-]")
_SPACES = re.compile(r"\s+")
_MIN_NAME_LENGTH = 3
_TOKEN_SET_THRESHOLD = 90.0

_PLATFORMS = (
    r"resy|opentable|yelp|tock|seated|bookatable|quandoo|the\s+fork|exploretock|"
    r"sevenrooms|tripleseat|tablein|eat\s*app"
)

_TITLE_PREFIXES = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^(reservation|booking\s+appointment)\s+(at|for|@)\s+",
        rf"^({_PLATFORMS})\s*[-:@]?\s*(reservation\s+(at|for|@)?\s*)?",
        r"^via\s+(resy|opentable|tock|yelp)\s*[-:@]?\s*",
        r"^(dinner|lunch|brunch|breakfast|supper|tea|coffee|happy\s*hour|drinks)"
        r"\s+(at|@)\s+",
        r"^(dinner|lunch|brunch|breakfast|supper)\s+reservation\s+(at|for|@)?\s*",
        r"^(date\s*night|anniversary|birthday|celebration|celebrate|party)"
        r"\s+(at|@)\s+",
        r"^(date\s*night|anniversary|birthday|celebration)\s+dinner\s+(at|@)?\s*",
        r"^\d{1,2}:?\d{0,2}\s*(am|pm)?\s+(at|@)\s+",
        r"^(eating\s+)?at\s+",
        r"^(going\s+to|meet\s+at|meeting\s+at|dining\s+at)\s+",
        r"^(meal|event)\s+(at|@)\s+",
        r"^(table|booking)\s+(at|for|@)\s+",
        r"^your\s+(reservation|table|booking)\s+(at|for|@)\s+",
        r"^upcoming\s+reservation\s+(at|for|@)\s+",
        r"^(ticket|reservation|confirmation|confirmed|booking|reminder)\s*:\s+",
        r"^don'?t\s+forget\s*:\s+",
        r"^(dinner|cena)\s*\|\s*",
        r"^(pranzo|almuerzo|déjeuner|mittagessen|almoço|cena|comida|dîner|"
        r"abendessen|jantar)\s+(at|@|a|à|en|bei|em)?\s*",
    )
]

_TITLE_SUFFIXES = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\s*[-–—]?\s*\(?\d+\s*(people|guests|pax|persons?)\)?$",
        r"\s*[-–—]?\s*\(?(table\s+for|party\s+of|for)\s+\d+\)?$",
        r"\s*(dinner|lunch|brunch|cena|breakfast|supper)\s*$",
        r"\s+\(?(confirmed|pending|wait\s*list)\)?$",
        r"\s*@?\s+\d{1,2}:\d{2}\s*(am|pm)?$",
        r"\s*on\s+\w+\s*,\s*\w+\s+\d{1,2}(st|nd|rd|th)?\s*,\s*\d{4}\s*,?"
        r"\s*\d{1,2}:\d{2}\s*(am|pm)?$",
        r"\s+\d{1,2}/\d{1,2}(/\d{2,4})?$",
        r"\s+\(?(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)\w*"
        r"\s+\d{1,2}(st|nd|rd|th)?\)?$",
        r"\s+(conf|confirmation)\s*#?\s*\w+$",
        r"\s*\((confirmation|reservation|booking)\s*:?\s*\w+\)$",
        r"\s*#\s*\w{4,}$",
        r"\s+(w/|with)\s+\w+.*$",
        r"\s*\((w/?|with)\s+\w+.*\)$",
        rf"\s+\(?(via\s+)?({_PLATFORMS})\)?$",
        r"\s+(downtown|midtown|uptown|westside|eastside)$",
        r"\s+(main|flagship|original)\s*(location|branch)?$",
        r"\s+(reservation|booking)$",
    )
]

_COMPARISON_PREFIXES = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^(upcoming\s+)?reservation\s+(at|for|@)\s+",
        r"^(reservation|confirmation|booking|confirmed)\s*:?\s+",
        r"^the\s+(dining room|dining hall|experience|kitchen table|table)?\s*(at)?"
        r"\s*:?\s*",
        r"^(restaurant|bar)\s*:?\s*",
        r"^(dinner|lunch|breakfast)\s*(at|@)?\s+",
        r"^(brunch|supper|meal|eating|dining|date|date\s+night|anniversary|"
        r"birthday|celebration)\s+(at|@)\s+",
        r"^table\s*(at|for|@)?\s+",
        r"^(visit|going)\s+to\s+",
        r"^meet(ing)?\s+(at|@)\s+",
        r"^(via\s+)?(resy|opentable|tock|yelp)\s*[-:@]?\s*",
    )
]

_COMPARISON_SUFFIXES = [
    re.compile(rf"\s+({p})\s*$", re.IGNORECASE)
    for p in (
        r"bar\s+(and|&)\s+restaurant",
        r"wine\s*bar|cocktail\s*bar",
        r"restaurant|steak\s?house|gourmet|cafe|café|bar|bistro|kitchen|grill",
        r"company|brewing|house|japanese|farm|inn|room|place|experience|eatery",
        r"dining|tavern|pub|pizzeria|trattoria|osteria|ristorante|brasserie",
        r"chophouse|seafood|sushi|ramen|izakaya|taqueria|cantina|bodega|diner",
        r"lounge|gastropub|bakery|patisserie|delicatessen|deli|creamery",
        r"rooftop|terrace|garden|spot|joint|shack|club",
        r"nyc|la|sf|london|dc|atl|chi|bos|sea|pdx|phx|den|mia|dal|hou|austin",
    )
] + [re.compile(r"^the\s+", re.IGNORECASE)]

_INSIGNIFICANT_WORDS = frozenset(
    {
        "the", "restaurant", "cafe", "bar", "bistro", "kitchen", "grill",
        "house", "room", "place", "a", "an", "and", "eatery", "dining",
        "tavern", "pub", "inn", "lounge", "spot", "joint", "diner", "at",
        "of", "in", "on", "for",
    }
)  # fmt: skip

_RESERVATION_HINTS = re.compile(
    r"reserv(ation|e|ed)|resy|opentable|yelp|tock|seated|bookatable|quandoo|"
    r"the\s*fork|dinner|lunch|brunch|breakfast|restaurant|bistro|cafe|"
    r"table\s+(at|for)|party\s+of\s+\d+|\d+\s*(people|guests|pax)",
    re.IGNORECASE,
)
_URL_LIKE = re.compile(
    r"^(https?://|www\.|[a-z0-9-]+\.(com|org|net|io|co|app|ly|me|us|uk|ca|de|fr|"
    r"it|es|au|jp|cn)\b)"
)
_NON_RESERVATION = re.compile(
    r"\b(airbnb|check[-\s]?in|check[-\s]?out|flight)\b", re.IGNORECASE
)


@dataclass(frozen=True)
class CalendarEvent:
    """An event supplied by the calendar collaborator."""

    id: str
    title: str
    start_time: datetime
    end_time: datetime
    location: str | None = None
    notes: str | None = None
    is_all_day: bool = False


def _strip_repeatedly(
    text: str, prefixes: list[re.Pattern], suffixes: list[re.Pattern]
) -> str:
    cleaned = _SPACES.sub(" ", _DASHES.sub(" ", text.strip()))
    previous = None
    while cleaned != previous:
        previous = cleaned
        for pattern in prefixes:
            cleaned = pattern.sub("", cleaned)
        for pattern in suffixes:
            cleaned = pattern.sub("", cleaned)
        cleaned = cleaned.strip()
    return cleaned


@lru_cache(maxsize=4096)
def clean_calendar_title(title: str) -> str:
    """Strip reservation boilerplate to leave the likely restaurant name."""
    if not title:
        return ""
    return _strip_repeatedly(title, _TITLE_PREFIXES, _TITLE_SUFFIXES)


@lru_cache(maxsize=4096)
def strip_comparison_affixes(name: str) -> str:
    """Drop generic venue words ("Restaurant", "Bar", city codes) from a name."""
    return _strip_repeatedly(name, _COMPARISON_PREFIXES, _COMPARISON_SUFFIXES)


@lru_cache(maxsize=8192)
def normalize_for_comparison(text: str) -> str:
    """Lowercase, fold accents and punctuation so names compare loosely."""
    folded = unicodedata.normalize("NFKD", text)
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    folded = folded.lower()
    folded = re.sub(r"[‘’`´ʼʻ]", "'", folded)
    folded = _DASHES.sub(" ", folded)
    folded = re.sub(r"\s*&\s*", " and ", folded)
    folded = re.sub(r"'s\b", "s", folded)
    folded = folded.replace("'", "")
    folded = re.sub(r"[^\w\s]|_", " ", folded)
    return _SPACES.sub(" ", folded).strip()


def _significant_words(normalized: str) -> list[str]:
    return [
        word
        for word in normalized.split(" ")
        if len(word) > 1 and word not in _INSIGNIFICANT_WORDS
    ]


@lru_cache(maxsize=8192)
def is_fuzzy_restaurant_match(a: str, b: str) -> bool:
    """Return True when two names plausibly refer to the same restaurant."""
    norm_a = normalize_for_comparison(a)
    norm_b = normalize_for_comparison(b)
    if len(norm_a) < _MIN_NAME_LENGTH or len(norm_b) < _MIN_NAME_LENGTH:
        return False
    if norm_a == norm_b or norm_a in norm_b or norm_b in norm_a:
        return True

    words_a = _significant_words(norm_a)
    words_b = _significant_words(norm_b)
    if 0 < len(words_a) <= 2 and all(word in norm_b for word in words_a):
        return True
    if 0 < len(words_b) <= 2 and all(word in norm_a for word in words_b):
        return True
    if not words_a or not words_b:
        return False
    score = fuzz.token_set_ratio(" ".join(words_a), " ".join(words_b))
    return score >= _TOKEN_SET_THRESHOLD


def calendar_title_matches(title: str, restaurant_name: str) -> bool:
    """Compare a raw calendar title against a restaurant name."""
    cleaned = clean_calendar_title(title)
    if not cleaned:
        return False
    return is_fuzzy_restaurant_match(
        strip_comparison_affixes(cleaned) or cleaned,
        strip_comparison_affixes(restaurant_name) or restaurant_name,
    )


def is_usable_event(event: CalendarEvent) -> bool:
    """Timed events with a real title that do not look like travel."""
    title = event.title.strip()
    if event.is_all_day or not title:
        return False
    if title.lower() in {"untitled event", "custom"}:
        return False
    return _NON_RESERVATION.search(title) is None


def _overlaps(
    start: datetime, end: datetime, event: CalendarEvent, buffer: timedelta
) -> bool:
    return start < event.end_time + buffer and end > event.start_time - buffer


def score_event(event: CalendarEvent, start: datetime, end: datetime) -> int:
    """Score how likely an event describes a visit (higher is better)."""
    score = 0 if event.is_all_day else 100
    text = f"{event.title} {event.location or ''} {event.notes or ''}"
    if _RESERVATION_HINTS.search(text):
        score += 200
    if event.location:
        location = event.location.strip().lower()
        score += -100 if _URL_LIKE.match(location) else 50
    if event.notes:
        score += 10
    if not event.is_all_day:
        visit_mid = start + (end - start) / 2
        event_mid = event.start_time + (event.end_time - event.start_time) / 2
        diff = abs(visit_mid - event_mid)
        window = timedelta(hours=2)
        if diff < window:
            score += round(20 * (1 - diff / window))
    duration = event.end_time - event.start_time
    if duration < timedelta(hours=4):
        score += 15
    elif duration < timedelta(hours=8):
        score += 5
    return score


def best_event_for_window(
    events: list[CalendarEvent],
    start: datetime,
    end: datetime,
    buffer: timedelta,
) -> CalendarEvent | None:
    """Return the highest scoring usable event overlapping the window."""
    best: CalendarEvent | None = None
    best_score = None
    for event in events:
        if not is_usable_event(event) or not _overlaps(start, end, event, buffer):
            continue
        score = score_event(event, start, end)
        if best_score is None or score > best_score:
            best, best_score = event, score
    return best
