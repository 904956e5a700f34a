"""Pytest configuration and test helpers."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Callable

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.models import (  # noqa: E402
    CatalogItem,
    FilterState,
    Genre,
    LibraryEntry,
    LibraryEntryCreate,
    MovieDetails,
    WatchProviders,
)
from app.services.library import LibraryClient, LibraryServiceError  # noqa: E402
from app.services.tmdb import CatalogServiceError, TMDBClient  # noqa: E402


class StubCatalog(TMDBClient):
    """In-memory catalog whose pages, failures and latency are set per test."""

    def __init__(self) -> None:  # pragma: no cover - nothing to initialise
        # Deliberately skip super().__init__ to avoid touching external systems.
        self.discover_pages: dict[int, list[CatalogItem]] = {}
        self.search_pages: dict[str, dict[int, list[CatalogItem]]] = {}
        self.genres: list[Genre] = [Genre(id=28, name="Action"), Genre(id=35, name="Comedy")]
        self.details: dict[int, MovieDetails] = {}
        self.trailers: dict[int, str] = {}
        self.providers: dict[int, WatchProviders] = {}
        self.calls: list[tuple[object, ...]] = []
        self.gates: dict[tuple[object, ...], asyncio.Event] = {}
        self.delays: dict[tuple[object, ...], float] = {}
        self.failures: dict[tuple[object, ...], Exception] = {}

    async def discover_movies(  # type: ignore[override]
        self, filters: FilterState | None = None, page: int = 1
    ) -> list[CatalogItem]:
        filters = filters or FilterState()
        self.calls.append(("discover", filters, page))
        await self._simulate(("discover", page))
        return list(self.discover_pages.get(page, []))

    async def search_movies(self, query: str, page: int = 1) -> list[CatalogItem]:  # type: ignore[override]
        self.calls.append(("search", query, page))
        await self._simulate(("search", query, page))
        return list(self.search_pages.get(query, {}).get(page, []))

    async def get_genres(self) -> list[Genre]:  # type: ignore[override]
        self.calls.append(("genres",))
        await self._simulate(("genres",))
        return list(self.genres)

    async def get_movie_details(self, movie_id: int) -> MovieDetails | None:  # type: ignore[override]
        return self.details.get(movie_id)

    async def get_trailer_key(self, movie_id: int) -> str | None:  # type: ignore[override]
        return self.trailers.get(movie_id)

    async def get_watch_providers(self, movie_id: int) -> WatchProviders | None:  # type: ignore[override]
        return self.providers.get(movie_id)

    def calls_for(self, kind: str) -> list[tuple[object, ...]]:
        return [call for call in self.calls if call[0] == kind]

    async def _simulate(self, key: tuple[object, ...]) -> None:
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()
        delay = self.delays.get(key)
        if delay:
            await asyncio.sleep(delay)
        failure = self.failures.get(key)
        if failure is not None:
            raise failure


class StubLibraryClient(LibraryClient):
    """Personal backend kept in dictionaries, with switchable failures."""

    def __init__(self) -> None:  # pragma: no cover - nothing to initialise
        self.collections: dict[str, list[LibraryEntry]] = {"saved": [], "watched": []}
        self.fail_on: set[tuple[str, str]] = set()
        self.calls: list[tuple[str, str, object]] = []
        self.create_gate: asyncio.Event | None = None
        self._next_id = 100

    def seed(self, collection: str, tmdb_id: int, title: str = "Seeded") -> LibraryEntry:
        entry = LibraryEntry(id=self._allocate(), tmdb_id=tmdb_id, title=title, year=2000)
        self.collections[collection].append(entry)
        return entry

    async def list_entries(self, collection):  # type: ignore[override]
        self.calls.append(("list", collection, None))
        self._maybe_fail("list", collection)
        return list(self.collections[collection])

    async def create_entry(self, collection, entry: LibraryEntryCreate):  # type: ignore[override]
        self.calls.append(("create", collection, entry.tmdb_id))
        if self.create_gate is not None:
            await self.create_gate.wait()
        self._maybe_fail("create", collection)
        created = LibraryEntry(id=self._allocate(), **entry.model_dump())
        self.collections[collection].append(created)
        return created

    async def delete_entry(self, collection, entry_id):  # type: ignore[override]
        self.calls.append(("delete", collection, entry_id))
        self._maybe_fail("delete", collection)
        self.collections[collection] = [
            entry for entry in self.collections[collection] if entry.id != entry_id
        ]

    def _maybe_fail(self, action: str, collection: str) -> None:
        if (action, collection) in self.fail_on:
            raise LibraryServiceError(f"{action} {collection} unavailable")

    def _allocate(self) -> int:
        self._next_id += 1
        return self._next_id


def build_movies(start: int, count: int, *, prefix: str = "Movie") -> list[CatalogItem]:
    return [
        CatalogItem(
            id=start + index,
            title=f"{prefix} {start + index}",
            release_date="2010-05-01",
            poster_path=f"/poster-{start + index}.jpg",
            vote_average=7.5,
        )
        for index in range(count)
    ]


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
def make_movies() -> Callable[..., list[CatalogItem]]:
    return build_movies


@pytest.fixture
def catalog() -> StubCatalog:
    return StubCatalog()


@pytest.fixture
def library_client() -> StubLibraryClient:
    return StubLibraryClient()


@pytest.fixture
def catalog_failure() -> Exception:
    return CatalogServiceError("catalog unavailable")
