"""Canonical vocabulary for classifier metadata.

Gemini returns free-form strings for colors, seasons and vibe tags. Helper
functions here normalise them so that merges de-duplicate "Navy Blue" and
"navy" into one value.
"""

from typing import Dict, Iterable, List

SEASONS = ["spring", "summer", "fall", "winter", "all-season"]

SEASON_ALIASES: Dict[str, str] = {
    "autumn": "fall",
    "all season": "all-season",
    "all_season": "all-season",
    "all seasons": "all-season",
    "all-year": "all-season",
    "all year": "all-season",
    "year-round": "all-season",
    "year round": "all-season",
}

COLOR_MAP = {
    "navy blue": "navy",
    "navy": "navy",
    "light blue": "blue",
    "sky blue": "blue",
    "blue": "blue",
    "black": "black",
    "white": "white",
    "off white": "white",
    "off-white": "white",
    "cream": "beige",
    "beige": "beige",
    "tan": "beige",
    "brown": "brown",
    "gray": "gray",
    "grey": "gray",
    "green": "green",
    "olive": "green",
    "red": "red",
    "burgundy": "red",
    "pink": "pink",
    "yellow": "yellow",
    "orange": "orange",
}


def normalize_label(value: object) -> str:
    """Trim and lowercase a free-form label; non-strings become empty."""

    if not isinstance(value, str):
        return ""
    return " ".join(value.strip().lower().split())


def normalize_color_name(raw_string: str) -> str:
    """Map a raw color string to a canonical color name."""

    key = normalize_label(raw_string)
    return COLOR_MAP.get(key, key)


def normalize_season(raw_string: str) -> str:
    """Map a season label onto :data:`SEASONS`, passing unknown labels through."""

    key = normalize_label(raw_string)
    return SEASON_ALIASES.get(key, key)


def unique_labels(values: Iterable[object], normaliser=normalize_label) -> List[str]:
    """Normalise labels and drop blanks and duplicates, keeping first-seen order."""

    normalised: List[str] = []
    seen = set()
    for value in values or []:
        key = normaliser(value) if isinstance(value, str) else ""
        if key and key not in seen:
            normalised.append(key)
            seen.add(key)
    return normalised


__all__ = [
    "COLOR_MAP",
    "SEASONS",
    "SEASON_ALIASES",
    "normalize_color_name",
    "normalize_label",
    "normalize_season",
    "unique_labels",
]
