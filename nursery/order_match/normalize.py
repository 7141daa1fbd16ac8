"""
Name normalization utilities.

Variety names arrive from PDFs and spreadsheets with curly quotes, odd
spacing and inconsistent case:

    "Erica carnea  ‘Challenger’"  ->  "erica carnea 'challenger'"
    "LAVANDULA Hidcote"           ->  "lavandula hidcote"
"""

import re
from typing import Optional

# Curly / typographic quotes unified to their straight forms
_QUOTE_TABLE = str.maketrans({
    "‘": "'", "’": "'", "‚": "'", "‛": "'", "′": "'", "`": "'",
    "“": '"', "”": '"', "„": '"', "‟": '"', "″": '"',
})

_WHITESPACE = re.compile(r"\s+")
_FIRST_INTEGER = re.compile(r"\d+")


def normalize_name(name: Optional[str]) -> str:
    """
    Normalize a name for comparison.

    1. Unify curly and straight quotes
    2. Collapse whitespace
    3. Lowercase
    """
    if not name:
        return ""
    text = name.translate(_QUOTE_TABLE)
    text = _WHITESPACE.sub(" ", text).strip()
    return text.lower()


def tokenize(name: str, min_length: int = 2) -> list[str]:
    """Split a normalized name into words longer than min_length characters."""
    return [word for word in name.split() if len(word) > min_length]


def first_integer(text: Optional[str]) -> Optional[int]:
    """First run of digits in text, e.g. "Tray 104" -> 104."""
    if not text:
        return None
    match = _FIRST_INTEGER.search(text)
    return int(match.group(0)) if match else None
