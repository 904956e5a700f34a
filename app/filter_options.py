"""Fixed choices offered by the feed's filter sheet."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .models import Genre


@dataclass(frozen=True)
class FilterOption:
    """A selectable value with its display label."""

    label: str
    value: float | str


RATING_OPTIONS: tuple[FilterOption, ...] = (
    FilterOption(label="7+", value=7),
    FilterOption(label="8+", value=8),
    FilterOption(label="9+", value=9),
)

# Brazilian advisory ratings as TMDB lists them for ``certification_country=BR``.
AGE_RATING_OPTIONS: tuple[FilterOption, ...] = (
    FilterOption(label="All ages", value="L"),
    FilterOption(label="10", value="10"),
    FilterOption(label="12", value="12"),
    FilterOption(label="14", value="14"),
    FilterOption(label="16", value="16"),
    FilterOption(label="18", value="18"),
)

POPULAR_GENRE = Genre(id=None, name="Popular")


def genre_choices(genres: Iterable[Genre]) -> list[Genre]:
    """Prepend the unfiltered "Popular" entry to the catalog genres."""

    return [POPULAR_GENRE, *(genre for genre in genres if genre.id is not None)]


def filter_options_payload(genres: Iterable[Genre]) -> dict[str, object]:
    return {
        "genres": [genre.model_dump() for genre in genre_choices(genres)],
        "ratings": [{"label": option.label, "value": option.value} for option in RATING_OPTIONS],
        "ageRatings": [
            {"label": option.label, "value": option.value} for option in AGE_RATING_OPTIONS
        ],
    }
