"""Keyword matching for auto-reply rules.

Text and keywords are trimmed and lower-cased, then compared by substring
(``CONTAINS``) or whole-string equality (``EQUALS``).
"""

from __future__ import annotations

from collections.abc import Iterable

from app.models.messaging.enums import MatchType


def normalize(value) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def ensure_keywords(value) -> list[str]:
    """Accept a list or a comma-separated string; drop blanks, keep order."""
    if isinstance(value, (list, tuple)):
        items = value
    elif isinstance(value, str):
        items = value.split(",")
    else:
        items = []
    keywords = []
    for item in items:
        if item is None:
            continue
        text = str(item).strip()
        if text:
            keywords.append(text)
    return keywords


def match_keywords(match_type: str | MatchType | None, text: str | None, keywords: Iterable | None) -> list[str]:
    """Return the keywords that hit ``text``, as given and in rule order.

    Unknown match types fall back to ``CONTAINS``.
    """
    if isinstance(match_type, MatchType):
        match_type = match_type.value
    equals = str(match_type or "").upper() == MatchType.equals.value
    normalized_text = normalize(text)
    hits: list[str] = []
    for keyword in keywords or []:
        needle = normalize(keyword)
        if not needle:
            continue
        if equals:
            if normalized_text == needle:
                hits.append(keyword)
        elif needle in normalized_text:
            hits.append(keyword)
    return hits
