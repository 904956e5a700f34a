"""Client for the discovery, search and detail endpoints of The Movie Database (TMDB)."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import CatalogItem, FilterState, Genre, MovieDetails, WatchProviders

logger = logging.getLogger(__name__)


class CatalogServiceError(RuntimeError):
    """Raised when the catalog service cannot produce a usable response."""


class TMDBClient:
    """Stateless request/response wrapper around the TMDB movie endpoints.

    The client performs no retries and no caching; failures surface as
    :class:`CatalogServiceError` so callers decide how to present them.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.tmdb_api_key:
            raise ValueError("TMDB API key is required when initialising TMDBClient")
        self._settings = settings
        self._client = http_client

    async def discover_movies(
        self, filters: FilterState | None = None, page: int = 1
    ) -> list[CatalogItem]:
        """Return one page of popular movies matching the supplied filters."""

        filters = filters or FilterState()
        params: dict[str, Any] = {
            "language": self._settings.tmdb_language,
            "page": page,
            "sort_by": "popularity.desc",
        }
        if filters.genre_id is not None:
            params["with_genres"] = filters.genre_id
        if filters.min_rating is not None:
            params["vote_average.gte"] = filters.min_rating
        if filters.max_age_rating:
            params["certification_country"] = self._settings.tmdb_region
            params["certification.lte"] = filters.max_age_rating

        payload = await self._get_json("/discover/movie", params)
        return self._parse_results(payload)

    async def search_movies(self, query: str, page: int = 1) -> list[CatalogItem]:
        """Return one page of movies whose title matches ``query``."""

        normalized = (query or "").strip()
        if not normalized:
            return []
        params = {
            "language": self._settings.tmdb_language,
            "query": normalized,
            "page": page,
            "include_adult": "false",
        }
        payload = await self._get_json("/search/movie", params)
        return self._parse_results(payload)

    async def get_genres(self) -> list[Genre]:
        payload = await self._get_json(
            "/genre/movie/list", {"language": self._settings.tmdb_language}
        )
        genres: list[Genre] = []
        for entry in payload.get("genres") or []:
            if not isinstance(entry, dict):
                continue
            try:
                genres.append(Genre.model_validate(entry))
            except ValidationError:
                logger.debug("Skipping malformed TMDB genre %r", entry)
        return genres

    async def get_movie_details(self, movie_id: int) -> MovieDetails | None:
        """Fetch the full detail record, or ``None`` when TMDB does not know the id."""

        payload = await self._get_optional_json(
            f"/movie/{movie_id}", {"language": self._settings.tmdb_language}
        )
        if payload is None:
            return None
        try:
            return MovieDetails.model_validate(payload)
        except ValidationError as exc:
            raise CatalogServiceError(
                f"Malformed TMDB details for movie {movie_id}"
            ) from exc

    async def get_trailer_key(self, movie_id: int) -> str | None:
        """Return the YouTube key of the first trailer listed for the movie."""

        payload = await self._get_optional_json(
            f"/movie/{movie_id}/videos", {"language": self._settings.tmdb_language}
        )
        if payload is None:
            return None
        for video in payload.get("results") or []:
            if not isinstance(video, dict):
                continue
            if video.get("type") == "Trailer" and video.get("site") == "YouTube":
                key = video.get("key")
                if key:
                    return str(key)
        return None

    async def get_watch_providers(self, movie_id: int) -> WatchProviders | None:
        """Return provider availability for the configured region."""

        payload = await self._get_optional_json(f"/movie/{movie_id}/watch/providers", {})
        if payload is None:
            return None
        regions = payload.get("results") or {}
        region = regions.get(self._settings.tmdb_region) if isinstance(regions, dict) else None
        if not isinstance(region, dict):
            return None
        try:
            return WatchProviders.model_validate(region)
        except ValidationError:
            logger.warning("Unexpected TMDB provider payload for movie %s", movie_id)
            return None

    async def _get_json(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        response = await self._request(endpoint, params)
        if response.status_code >= 400:
            logger.warning(
                "TMDB request to %s failed with %s: %s",
                endpoint,
                response.status_code,
                response.text,
            )
            raise CatalogServiceError(
                f"TMDB request to {endpoint} failed with status {response.status_code}"
            )
        return self._decode(endpoint, response)

    async def _get_optional_json(
        self, endpoint: str, params: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Like :meth:`_get_json` but maps client errors (e.g. 404) to ``None``."""

        response = await self._request(endpoint, params)
        if 400 <= response.status_code < 500:
            logger.debug(
                "TMDB lookup %s returned %s", endpoint, response.status_code
            )
            return None
        if response.status_code >= 500:
            raise CatalogServiceError(
                f"TMDB request to {endpoint} failed with status {response.status_code}"
            )
        return self._decode(endpoint, response)

    async def _request(self, endpoint: str, params: dict[str, Any]) -> httpx.Response:
        query = {**params, "api_key": self._settings.tmdb_api_key}
        try:
            return await self._client.get(endpoint, params=query)
        except httpx.HTTPError as exc:
            logger.warning("Transport error talking to TMDB %s: %s", endpoint, exc)
            raise CatalogServiceError(f"Could not reach TMDB ({endpoint})") from exc

    @staticmethod
    def _decode(endpoint: str, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise CatalogServiceError(f"Non-JSON TMDB response from {endpoint}") from exc
        if not isinstance(data, dict):
            raise CatalogServiceError(f"Unexpected TMDB response structure from {endpoint}")
        return data

    @staticmethod
    def _parse_results(payload: dict[str, Any]) -> list[CatalogItem]:
        results = payload.get("results")
        if results is None:
            return []
        if not isinstance(results, list):
            raise CatalogServiceError("TMDB results field is not a list")
        items: list[CatalogItem] = []
        for entry in results:
            if not isinstance(entry, dict):
                continue
            try:
                items.append(CatalogItem.model_validate(entry))
            except ValidationError:
                logger.debug("Skipping malformed TMDB result %r", entry.get("id"))
        return items
