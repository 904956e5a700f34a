"""Tests for the single-movie detail view."""

from __future__ import annotations

import pytest

from app.filter_options import POPULAR_GENRE, filter_options_payload, genre_choices
from app.models import Genre, MovieDetails, WatchProvider, WatchProviders
from app.services.details import MovieDetailService
from app.services.library_store import LibraryStore


def _details(movie_id: int = 603) -> MovieDetails:
    return MovieDetails(id=movie_id, title="The Matrix", release_date="1999-03-31", poster_path="/m.jpg")


@pytest.mark.anyio("asyncio")
async def test_load_joins_lookups_with_library_state(catalog, library_client) -> None:
    catalog.details[603] = _details()
    catalog.trailers[603] = "m8e-FF8MsqU"
    catalog.providers[603] = WatchProviders(
        flatrate=[WatchProvider(provider_id=8, provider_name="Netflix")]
    )
    library_client.seed("watched", 603)
    service = MovieDetailService(catalog, LibraryStore(library_client))

    view = await service.load(603)

    assert view is not None
    assert view.trailer_key == "m8e-FF8MsqU"
    assert view.ownership == "watched"
    assert view.entry is not None and view.entry.tmdb_id == 603
    payload = view.to_payload()
    assert payload["posterUrl"] == "https://image.tmdb.org/t/p/w500/m.jpg"
    assert payload["providers"]["flatrate"][0]["provider_name"] == "Netflix"


@pytest.mark.anyio("asyncio")
async def test_load_unknown_movie_returns_none(catalog, library_client) -> None:
    service = MovieDetailService(catalog, LibraryStore(library_client))

    assert await service.load(1) is None


@pytest.mark.anyio("asyncio")
async def test_toggle_saved_cycles_between_none_and_saved(catalog, library_client) -> None:
    catalog.details[603] = _details()
    store = LibraryStore(library_client)
    service = MovieDetailService(catalog, store)
    view = await service.load(603)
    assert view is not None and view.ownership == "none"

    saved = await service.toggle_saved(view)
    assert saved.ownership == "saved"
    assert saved.entry is not None and saved.entry.year == 1999

    removed = await service.toggle_saved(saved)
    assert removed.ownership == "none"
    assert store.saved == ()


@pytest.mark.anyio("asyncio")
async def test_toggle_saved_leaves_watched_movies_alone(catalog, library_client) -> None:
    catalog.details[603] = _details()
    library_client.seed("watched", 603)
    service = MovieDetailService(catalog, LibraryStore(library_client))
    view = await service.load(603)
    assert view is not None

    calls_before = list(library_client.calls)
    toggled = await service.toggle_saved(view)

    assert toggled.ownership == "watched"
    assert library_client.calls == calls_before


def test_genre_choices_prepend_popular_entry() -> None:
    genres = [Genre(id=28, name="Action"), Genre(id=None, name="Bogus")]

    choices = genre_choices(genres)

    assert choices[0] == POPULAR_GENRE
    assert [genre.id for genre in choices] == [None, 28]
    payload = filter_options_payload(genres)
    assert [option["value"] for option in payload["ratings"]] == [7, 8, 9]
    assert payload["ageRatings"][0]["value"] == "L"
