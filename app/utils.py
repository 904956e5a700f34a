"""Utility helpers for the CineFeed service."""

from __future__ import annotations

from typing import Any


POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
BACKDROP_BASE_URL = "https://image.tmdb.org/t/p/w780"
LOGO_BASE_URL = "https://image.tmdb.org/t/p/w92"


def parse_release_year(value: Any) -> int:
    """Return the year encoded in the first four characters of a release date.

    Missing or malformed dates map to ``0`` so sorting and display never have
    to deal with ``None``.
    """

    if not isinstance(value, str) or len(value) < 4:
        return 0
    try:
        return int(value[:4])
    except ValueError:
        return 0


def build_image_url(path: str | None, base_url: str = POSTER_BASE_URL) -> str | None:
    """Return an absolute artwork URL for a TMDB image path."""

    if not path:
        return None
    if path.startswith("http"):
        return path
    return f"{base_url}{path}"


def normalize_text(value: str | None) -> str:
    """Collapse surrounding whitespace and case for substring comparisons."""

    return (value or "").strip().casefold()
