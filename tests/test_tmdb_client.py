"""Tests for the TMDB catalog client."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from app.config import Settings
from app.models import FilterState
from app.services.tmdb import CatalogServiceError, TMDBClient


def build_settings(**overrides: Any) -> Settings:
    """Return a settings object with defaults suitable for tests."""

    base = {"TMDB_API_KEY": "tmdb-key"}
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


def _page(*ids: int) -> dict[str, Any]:
    return {
        "page": 1,
        "results": [
            {
                "id": movie_id,
                "title": f"Movie {movie_id}",
                "release_date": "2008-07-16",
                "poster_path": f"/{movie_id}.jpg",
                "vote_average": 8.5,
                "genre_ids": [28, 80],
                "adult": False,
            }
            for movie_id in ids
        ],
    }


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://api.example.com/3",
    )


def test_client_requires_api_key() -> None:
    with pytest.raises(ValueError, match="TMDB API key is required"):
        TMDBClient(Settings(_env_file=None, TMDB_API_KEY=""), httpx.AsyncClient())


@pytest.mark.anyio("asyncio")
async def test_discover_sends_filters_and_parses_results() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=_page(155, 27205))

    async with _client(handler) as http_client:
        client = TMDBClient(build_settings(), http_client)
        items = await client.discover_movies(
            FilterState(genreId=28, minRating=8, maxAgeRating="14"), page=3
        )

    params = requests[0].url.params
    assert requests[0].url.path == "/3/discover/movie"
    assert params["api_key"] == "tmdb-key"
    assert params["language"] == "pt-BR"
    assert params["sort_by"] == "popularity.desc"
    assert params["page"] == "3"
    assert params["with_genres"] == "28"
    assert params["vote_average.gte"] == "8.0"
    assert params["certification_country"] == "BR"
    assert params["certification.lte"] == "14"
    assert [item.id for item in items] == [155, 27205]
    assert items[0].year == 2008
    assert items[0].poster_url == "https://image.tmdb.org/t/p/w500/155.jpg"


@pytest.mark.anyio("asyncio")
async def test_discover_without_filters_omits_constraints() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"results": []})

    async with _client(handler) as http_client:
        client = TMDBClient(build_settings(), http_client)
        items = await client.discover_movies()

    params = requests[0].url.params
    assert items == []
    for key in ("with_genres", "vote_average.gte", "certification.lte"):
        assert key not in params


@pytest.mark.anyio("asyncio")
async def test_search_skips_blank_queries() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=_page(268))

    async with _client(handler) as http_client:
        client = TMDBClient(build_settings(), http_client)
        assert await client.search_movies("   ") == []
        items = await client.search_movies("batman", page=2)

    assert len(requests) == 1
    assert requests[0].url.path == "/3/search/movie"
    assert requests[0].url.params["query"] == "batman"
    assert requests[0].url.params["page"] == "2"
    assert [item.id for item in items] == [268]


@pytest.mark.anyio("asyncio")
async def test_missing_release_date_maps_to_year_zero() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"results": [{"id": 1, "title": "Untitled", "release_date": ""}, "junk"]},
        )

    async with _client(handler) as http_client:
        client = TMDBClient(build_settings(), http_client)
        items = await client.search_movies("untitled")

    assert len(items) == 1
    assert items[0].year == 0
    assert items[0].release_date is None


@pytest.mark.anyio("asyncio")
async def test_server_errors_raise_catalog_error() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"status_message": "unavailable"})

    async with _client(handler) as http_client:
        client = TMDBClient(build_settings(), http_client)
        with pytest.raises(CatalogServiceError):
            await client.discover_movies()


@pytest.mark.anyio("asyncio")
async def test_transport_errors_raise_catalog_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    async with _client(handler) as http_client:
        client = TMDBClient(build_settings(), http_client)
        with pytest.raises(CatalogServiceError):
            await client.search_movies("offline")


@pytest.mark.anyio("asyncio")
async def test_non_json_body_raises_catalog_error() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    async with _client(handler) as http_client:
        client = TMDBClient(build_settings(), http_client)
        with pytest.raises(CatalogServiceError):
            await client.get_genres()


@pytest.mark.anyio("asyncio")
async def test_genre_list() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/3/genre/movie/list"
        return httpx.Response(
            200, json={"genres": [{"id": 28, "name": "Ação"}, {"id": 35, "name": "Comédia"}]}
        )

    async with _client(handler) as http_client:
        client = TMDBClient(build_settings(), http_client)
        genres = await client.get_genres()

    assert [(genre.id, genre.name) for genre in genres] == [(28, "Ação"), (35, "Comédia")]


@pytest.mark.anyio("asyncio")
async def test_detail_lookups() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/3/movie/603":
            return httpx.Response(
                200,
                json={
                    "id": 603,
                    "title": "The Matrix",
                    "tagline": "Welcome to the Real World.",
                    "release_date": "1999-03-31",
                    "runtime": 136,
                    "vote_average": 8.2,
                    "genres": [{"id": 28, "name": "Action"}],
                },
            )
        if path == "/3/movie/603/videos":
            return httpx.Response(
                200,
                json={
                    "results": [
                        {"type": "Teaser", "site": "YouTube", "key": "teaser"},
                        {"type": "Trailer", "site": "Vimeo", "key": "vimeo"},
                        {"type": "Trailer", "site": "YouTube", "key": "m8e-FF8MsqU"},
                    ]
                },
            )
        if path == "/3/movie/603/watch/providers":
            assert "language" not in request.url.params
            return httpx.Response(
                200,
                json={
                    "results": {
                        "US": {"flatrate": [{"provider_id": 1, "provider_name": "US only"}]},
                        "BR": {
                            "link": "https://www.themoviedb.org/movie/603/watch?locale=BR",
                            "flatrate": [{"provider_id": 8, "provider_name": "Netflix"}],
                        },
                    }
                },
            )
        return httpx.Response(404, json={"status_code": 34})

    async with _client(handler) as http_client:
        client = TMDBClient(build_settings(), http_client)
        details = await client.get_movie_details(603)
        trailer = await client.get_trailer_key(603)
        providers = await client.get_watch_providers(603)
        missing = await client.get_movie_details(1)
        no_trailer = await client.get_trailer_key(1)

    assert details is not None
    assert details.year == 1999
    assert details.runtime == 136
    assert trailer == "m8e-FF8MsqU"
    assert providers is not None
    assert [provider.provider_name for provider in providers.flatrate] == ["Netflix"]
    assert missing is None
    assert no_trailer is None


@pytest.mark.anyio("asyncio")
async def test_watch_providers_absent_for_region() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": {"US": {"flatrate": []}}})

    async with _client(handler) as http_client:
        client = TMDBClient(build_settings(TMDB_REGION="br"), http_client)
        assert await client.get_watch_providers(10) is None
