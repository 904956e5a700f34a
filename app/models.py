"""Pydantic models describing catalog, library and feed payloads."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from .utils import BACKDROP_BASE_URL, build_image_url, parse_release_year

OwnershipTag = Literal["none", "saved", "watched"]
LibraryCollection = Literal["saved", "watched"]


def _fill_year(data: Any) -> Any:
    if isinstance(data, dict) and data.get("year") is None:
        data = {**data, "year": parse_release_year(data.get("release_date"))}
    return data


class Genre(BaseModel):
    """A catalog genre; ``id`` is ``None`` for the unfiltered pseudo-genre."""

    id: int | None = None
    name: str


class CatalogItem(BaseModel):
    """A movie as returned by the catalog discover/search endpoints."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: int
    title: str = Field(
        default="",
        validation_alias=AliasChoices("title", "name", "original_title"),
    )
    release_date: str | None = None
    year: int = 0
    poster_path: str | None = None
    vote_average: float = 0.0
    genre_ids: list[int] = Field(default_factory=list)
    adult: bool = False
    overview: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_year(cls, data: Any) -> Any:
        return _fill_year(data)

    @field_validator("release_date", "poster_path", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def poster_url(self) -> str | None:
        return build_image_url(self.poster_path)


class LibraryEntryCreate(BaseModel):
    """Fields sent to the personal backend when creating a list entry."""

    model_config = ConfigDict(populate_by_name=True)

    tmdb_id: int = Field(alias="tmdbId")
    title: str
    year: int = 0
    poster_path: str | None = Field(default=None, alias="posterURL")

    @classmethod
    def from_catalog_item(cls, item: CatalogItem) -> "LibraryEntryCreate":
        return LibraryEntryCreate(
            tmdb_id=item.id,
            title=item.title,
            year=parse_release_year(item.release_date),
            poster_path=item.poster_path,
        )

    @classmethod
    def from_entry(cls, entry: "LibraryEntry") -> "LibraryEntryCreate":
        """Copy an entry across collections; the local id is not carried over."""

        return LibraryEntryCreate(
            tmdb_id=entry.tmdb_id,
            title=entry.title,
            year=entry.year,
            poster_path=entry.poster_path,
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class LibraryEntry(LibraryEntryCreate):
    """A movie stored in the user's Saved or Watched collection."""

    id: int | str

    @field_validator("year", mode="before")
    @classmethod
    def _coerce_year(cls, value: object) -> object:
        if value in (None, ""):
            return 0
        return value

    @property
    def poster_url(self) -> str | None:
        return build_image_url(self.poster_path)


class FilterState(BaseModel):
    """Discover constraints; an unset field places no constraint on that dimension."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    genre_id: int | None = Field(default=None, alias="genreId")
    min_rating: float | None = Field(default=None, alias="minRating", ge=0, le=10)
    max_age_rating: str | None = Field(default=None, alias="maxAgeRating")

    @field_validator("genre_id", "min_rating", "max_age_rating", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value


class MovieDetails(BaseModel):
    """Full detail record for a single movie."""

    model_config = ConfigDict(extra="ignore")

    id: int
    title: str = ""
    tagline: str | None = None
    overview: str | None = None
    vote_average: float = 0.0
    release_date: str | None = None
    year: int = 0
    runtime: int | None = None
    genres: list[Genre] = Field(default_factory=list)
    poster_path: str | None = None
    backdrop_path: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_year(cls, data: Any) -> Any:
        return _fill_year(data)

    def to_catalog_item(self) -> CatalogItem:
        """Project the detail record onto the fields the library needs."""

        return CatalogItem(
            id=self.id,
            title=self.title,
            release_date=self.release_date,
            poster_path=self.poster_path,
            vote_average=self.vote_average,
            genre_ids=[genre.id for genre in self.genres if genre.id is not None],
            overview=self.overview,
        )

    @property
    def backdrop_url(self) -> str | None:
        return build_image_url(self.backdrop_path, BACKDROP_BASE_URL)


class WatchProvider(BaseModel):
    model_config = ConfigDict(extra="ignore")

    provider_id: int
    provider_name: str
    logo_path: str | None = None


class WatchProviders(BaseModel):
    """Streaming/rental availability for one region."""

    model_config = ConfigDict(extra="ignore")

    link: str | None = None
    flatrate: list[WatchProvider] = Field(default_factory=list)
    rent: list[WatchProvider] = Field(default_factory=list)
    buy: list[WatchProvider] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.flatrate or self.rent or self.buy)


class FeedStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADING_MORE = "loading_more"
    READY = "ready"
    ERROR = "error"


class FeedError(BaseModel):
    """User-facing description of a failed page-1 fetch."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["timeout", "network"]
    message: str


class FeedItemView(BaseModel):
    """A catalog item paired with its derived library state."""

    item: CatalogItem
    ownership: OwnershipTag = "none"
    busy: bool = False
    error: str | None = None
    poster_url: str | None = None


class FeedSnapshot(BaseModel):
    """Everything the rendering layer needs to draw the feed."""

    status: FeedStatus
    items: list[FeedItemView] = Field(default_factory=list)
    page: int = 1
    has_more: bool = True
    query: str = ""
    settled_query: str = ""
    query_pending: bool = False
    filters: FilterState = Field(default_factory=FilterState)
    error: FeedError | None = None
    genres: list[Genre] = Field(default_factory=list)
    refreshing: bool = False
    library_error: str | None = None
