"""
Keyword lexicons and slot matchers used by the session state machine.

Every matcher takes lower-cased utterance text and returns a Capture with the
normalized value and the span it consumed, or None.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Pattern


@dataclass(frozen=True)
class Capture:
    value: Any
    start: int
    end: int


def normalize(text: str) -> str:
    return " ".join((text or "").lower().split())


def _keyword_pattern(keyword: str, whole_words: bool) -> Pattern[str]:
    escaped = re.escape(normalize(keyword)).replace(r"\ ", r"\s+")
    if whole_words:
        return re.compile(rf"(?<!\w){escaped}(?!\w)")
    return re.compile(escaped)


class Lexicon:
    """
    Case-insensitive keyword set. With whole_words=False a keyword matches anywhere
    as a substring; otherwise it must not touch other word characters.
    """

    def __init__(self, keywords: Iterable[str], whole_words: bool = True) -> None:
        self.keywords = [k for k in keywords if k and k.strip()]
        # Longest first so multi-word phrases win over their prefixes
        ordered = sorted(self.keywords, key=len, reverse=True)
        self._patterns = [(k, _keyword_pattern(k, whole_words)) for k in ordered]

    def find(self, text: str) -> Optional[str]:
        """Return the first matching keyword, or None."""
        lowered = normalize(text)
        for keyword, pattern in self._patterns:
            if pattern.search(lowered):
                return keyword
        return None

    def matches(self, text: str) -> bool:
        return self.find(text) is not None


# -----------------------------------------------------------------------------
# Numbers (group size)
# -----------------------------------------------------------------------------

_MONTHS = (
    "jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec|january|february|march|"
    "april|june|july|august|september|october|november|december"
)
_PEOPLE_UNITS = (
    r"log|logo|people|persons?|pax|members?|guests?|bande|kids?|adults?|friends"
)
_NUMBER_WORDS = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
}

_NUMBER_WITH_UNIT = re.compile(
    rf"(?<![\w:/.\-])(\d{{1,3}})\s*(?:{_PEOPLE_UNITS})(?!\w)"
)
_WORD_WITH_UNIT = re.compile(
    rf"(?<!\w)({'|'.join(_NUMBER_WORDS)})\s+(?:{_PEOPLE_UNITS})(?!\w)"
)
_BARE_NUMBER = re.compile(
    rf"(?<![\w:/.\-])(\d{{1,3}})(?![\w:/.\-])"
    rf"(?!\s*(?:am|pm|baje|o'?clock|{_MONTHS}|st|nd|rd|th)(?!\w))"
)


def match_number(text: str) -> Optional[Capture]:
    """Positive integer, preferring one followed by a people unit ("4 log")."""
    for pattern in (_NUMBER_WITH_UNIT, _WORD_WITH_UNIT, _BARE_NUMBER):
        m = pattern.search(text)
        if m is None:
            continue
        raw = m.group(1)
        value = _NUMBER_WORDS.get(raw) or int(raw)
        if value <= 0:
            continue
        return Capture(value=value, start=m.start(), end=m.end())
    return None


# -----------------------------------------------------------------------------
# Time of day
# -----------------------------------------------------------------------------

_CLOCK_12H = re.compile(r"(?<![\w:])(\d{1,2})(?:[:.](\d{2}))?\s*(am|pm)(?!\w)")
_CLOCK_BAJE = re.compile(r"(?<![\w:])(\d{1,2})(?:[:.](\d{2}))?\s*baje(?!\w)")
_CLOCK_24H = re.compile(r"(?<![\w:])([01]?\d|2[0-3]):([0-5]\d)(?!\w)")
_DAYPART = re.compile(
    r"(?<!\w)(morning|afternoon|evening|night|noon|subah|dopahar|shaam|sham|raat)(?!\w)"
)


def match_time(text: str) -> Optional[Capture]:
    """Clock time ("5pm", "5:30 pm", "17:00", "5 baje") or a part of the day."""
    m = _CLOCK_12H.search(text)
    if m and 1 <= int(m.group(1)) <= 12:
        minutes = f":{m.group(2)}" if m.group(2) else ""
        return Capture(f"{int(m.group(1))}{minutes}{m.group(3)}", m.start(), m.end())
    m = _CLOCK_BAJE.search(text)
    if m and 1 <= int(m.group(1)) <= 12:
        minutes = f":{m.group(2)}" if m.group(2) else ""
        return Capture(f"{int(m.group(1))}{minutes} baje", m.start(), m.end())
    m = _CLOCK_24H.search(text)
    if m:
        return Capture(f"{int(m.group(1)):02d}:{m.group(2)}", m.start(), m.end())
    m = _DAYPART.search(text)
    if m:
        return Capture(m.group(1), m.start(), m.end())
    return None


# -----------------------------------------------------------------------------
# Dates
# -----------------------------------------------------------------------------

_RELATIVE_DAYS = {
    "day after tomorrow": "day after tomorrow",
    "parso": "day after tomorrow",
    "parson": "day after tomorrow",
    "today": "today",
    "tonight": "today",
    "aaj": "today",
    "tomorrow": "tomorrow",
    "kal": "tomorrow",
}
_WEEKDAYS = (
    "monday|tuesday|wednesday|thursday|friday|saturday|sunday|"
    "somvar|mangalvar|budhvar|guruvar|shukravar|shanivar|ravivar"
)

_RELATIVE_DAY = re.compile(
    r"(?<!\w)("
    + "|".join(re.escape(k).replace(r"\ ", r"\s+") for k in _RELATIVE_DAYS)
    + r")(?!\w)"
)
_WEEKDAY = re.compile(rf"(?<!\w)(?:next\s+|this\s+)?({_WEEKDAYS})(?!\w)")
_NUMERIC_DATE = re.compile(
    r"(?<![\w/\-])(\d{1,2})[/\-](\d{1,2})(?:[/\-](\d{2,4}))?(?![\w/\-])"
)
_DAY_MONTH = re.compile(rf"(?<!\w)(\d{{1,2}})(?:st|nd|rd|th)?\s*({_MONTHS})(?!\w)")
_MONTH_DAY = re.compile(rf"(?<!\w)({_MONTHS})\s*(\d{{1,2}})(?:st|nd|rd|th)?(?!\w)")


def match_date(text: str) -> Optional[Capture]:
    """Relative day keyword, weekday, dd/mm[/yy] or "12 dec" / "dec 12"."""
    m = _RELATIVE_DAY.search(text)
    if m:
        return Capture(_RELATIVE_DAYS[normalize(m.group(1))], m.start(), m.end())
    m = _NUMERIC_DATE.search(text)
    if m and 1 <= int(m.group(1)) <= 31 and 1 <= int(m.group(2)) <= 12:
        return Capture(m.group(0), m.start(), m.end())
    for pattern in (_DAY_MONTH, _MONTH_DAY):
        m = pattern.search(text)
        if m:
            return Capture(normalize(m.group(0)), m.start(), m.end())
    m = _WEEKDAY.search(text)
    if m:
        return Capture(normalize(m.group(0)), m.start(), m.end())
    return None


# -----------------------------------------------------------------------------
# Free text
# -----------------------------------------------------------------------------

_WORDISH = re.compile(r"[^\W\d_]{2,}")


def match_free_text(text: str) -> Optional[Capture]:
    """Any remaining text with at least one real word, trimmed of punctuation."""
    stripped = text.strip(" \t\n.,!?;:-")
    if not stripped or not _WORDISH.search(stripped):
        return None
    start = text.find(stripped)
    return Capture(stripped[:255], start, start + len(stripped))


MATCHERS: Dict[str, Callable[[str], Optional[Capture]]] = {
    "number": match_number,
    "time": match_time,
    "date": match_date,
    "free_text": match_free_text,
}


def consume(text: str, capture: Capture) -> str:
    """Blank out a captured span so later matchers cannot reuse it."""
    return text[: capture.start] + " " * (capture.end - capture.start) + text[capture.end :]
