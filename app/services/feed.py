"""Paginated discovery/search feed with stale-response protection.

The feed is a single immutable :class:`FeedState` value. Every change goes
through :func:`transition`, which also drops page results that belong to an
earlier generation. :class:`FeedController` wires that state machine to the
catalog client, the query debouncer and the library store.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Coroutine, Literal, Union

from ..models import (
    CatalogItem,
    FeedError,
    FeedItemView,
    FeedSnapshot,
    FeedStatus,
    FilterState,
    Genre,
)
from .debounce import DEFAULT_DEBOUNCE_SECONDS, QueryDebouncer
from .library import LibraryServiceError
from .library_store import LibraryStore
from .tmdb import CatalogServiceError, TMDBClient

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0
TIMEOUT_MESSAGE = "The search took too long. Check your connection."
NETWORK_MESSAGE = "Could not load movies. Check your connection."
LIBRARY_SYNC_MESSAGE = "Could not load your lists. Check your connection."


@dataclass(frozen=True, slots=True)
class FeedState:
    status: FeedStatus = FeedStatus.IDLE
    items: tuple[CatalogItem, ...] = ()
    page: int = 1
    has_more: bool = True
    query: str = ""
    settled_query: str = ""
    filters: FilterState = field(default_factory=FilterState)
    generation: int = 0
    error: FeedError | None = None

    @property
    def mode(self) -> Literal["search", "discover"]:
        return "search" if self.settled_query.strip() else "discover"

    @property
    def in_flight(self) -> bool:
        return self.status in (FeedStatus.LOADING, FeedStatus.LOADING_MORE)


@dataclass(frozen=True, slots=True)
class QueryEdited:
    text: str


@dataclass(frozen=True, slots=True)
class SessionStarted:
    """Query, filters or refresh: start over at page 1 under a new generation."""

    settled_query: str
    filters: FilterState
    query: str | None = None


@dataclass(frozen=True, slots=True)
class MoreRequested:
    pass


@dataclass(frozen=True, slots=True)
class PageLoaded:
    generation: int
    page: int
    items: tuple[CatalogItem, ...]


@dataclass(frozen=True, slots=True)
class PageFailed:
    generation: int
    page: int
    error: FeedError


FeedEvent = Union[QueryEdited, SessionStarted, MoreRequested, PageLoaded, PageFailed]


def is_stale(state: FeedState, event: FeedEvent) -> bool:
    """True when a page result was issued under an older generation."""

    if isinstance(event, (PageLoaded, PageFailed)):
        return event.generation != state.generation
    return False


def transition(state: FeedState, event: FeedEvent) -> FeedState:
    """Return the state that follows ``event``.

    Events that are not legal in the current state (stale results, load-more
    while busy or exhausted) return ``state`` itself, unchanged.
    """

    if isinstance(event, QueryEdited):
        return replace(state, query=event.text)

    if isinstance(event, SessionStarted):
        return FeedState(
            status=FeedStatus.LOADING,
            items=state.items,
            page=1,
            has_more=True,
            query=state.query if event.query is None else event.query,
            settled_query=event.settled_query,
            filters=event.filters,
            generation=state.generation + 1,
        )

    if isinstance(event, MoreRequested):
        if state.status is not FeedStatus.READY or not state.has_more:
            return state
        return replace(state, status=FeedStatus.LOADING_MORE)

    if is_stale(state, event):
        return state

    if isinstance(event, PageLoaded):
        expected = _expected_page(state)
        if expected is None or event.page != expected:
            return state
        if event.page == 1:
            return replace(
                state,
                status=FeedStatus.READY,
                items=event.items,
                page=1,
                has_more=bool(event.items),
                error=None,
            )
        return replace(
            state,
            status=FeedStatus.READY,
            items=state.items + event.items,
            page=event.page,
            has_more=state.has_more and bool(event.items),
        )

    if isinstance(event, PageFailed):
        expected = _expected_page(state)
        if expected is None or event.page != expected:
            return state
        if event.page == 1:
            return replace(state, status=FeedStatus.ERROR, items=(), error=event.error)
        # Keep what the user is already scrolling; the next scroll retries.
        return replace(state, status=FeedStatus.READY)

    raise TypeError(f"Unknown feed event: {event!r}")


def _expected_page(state: FeedState) -> int | None:
    if state.status is FeedStatus.LOADING:
        return 1
    if state.status is FeedStatus.LOADING_MORE:
        return state.page + 1
    return None


class FeedController:
    """Owns one feed session for the rendering layer."""

    def __init__(
        self,
        catalog: TMDBClient,
        library: LibraryStore,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
    ) -> None:
        self._catalog = catalog
        self._library = library
        self._timeout = timeout_seconds
        self._debouncer = QueryDebouncer(self._on_query_settled, delay=debounce_seconds)
        self._state = FeedState()
        self._genres: list[Genre] = []
        self._library_error: str | None = None
        self._refreshing = False
        self._closed = False
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def genres(self) -> list[Genre]:
        return list(self._genres)

    @property
    def library(self) -> LibraryStore:
        return self._library

    async def start(self) -> FeedSnapshot:
        """Load genres and both library lists, then the first page."""

        await asyncio.gather(self._load_genres(), self._sync_library())
        await self._start_session()
        return self.snapshot()

    def set_query(self, text: str) -> None:
        """Record raw search text; the fetch waits for the debounced value."""

        self._apply(QueryEdited(text))
        self._debouncer.push(text)

    async def set_filters(self, filters: FilterState) -> FeedSnapshot:
        """Switch to discover mode with ``filters``; any search text is cleared."""

        self._debouncer.cancel()
        await self._start_session(settled_query="", filters=filters, query="")
        return self.snapshot()

    async def load_more(self) -> bool:
        """Request the next page. Returns ``False`` when the call was a no-op."""

        before = self._state
        after = self._apply(MoreRequested())
        if after is before:
            return False
        await self._load_page(after, after.page + 1)
        return True

    async def refresh(self) -> FeedSnapshot:
        """Re-fetch page 1 and re-sync the library, keeping query and filters."""

        self._refreshing = True
        try:
            session = self._apply(
                SessionStarted(
                    settled_query=self._state.settled_query,
                    filters=self._state.filters,
                )
            )
            await asyncio.gather(
                self._load_page(session, 1),
                self._sync_library(),
                self._load_genres(),
            )
        finally:
            self._refreshing = False
        return self.snapshot()

    async def retry(self) -> FeedSnapshot:
        return await self.refresh()

    def find_item(self, tmdb_id: int) -> CatalogItem | None:
        return next((item for item in self._state.items if item.id == tmdb_id), None)

    async def save(self, tmdb_id: int) -> bool:
        item = self.find_item(tmdb_id)
        if item is None:
            return False
        await self._library.save(item)
        return True

    async def remove(self, tmdb_id: int) -> bool:
        item = self.find_item(tmdb_id)
        if item is None:
            return False
        await self._library.remove(item)
        return True

    async def mark_watched(self, tmdb_id: int) -> bool:
        item = self.find_item(tmdb_id)
        if item is None:
            return False
        await self._library.mark_watched(item)
        return True

    def snapshot(self) -> FeedSnapshot:
        state = self._state
        tags = self._library.tags_for(state.items)
        views = [
            FeedItemView(
                item=item,
                ownership=tag,
                busy=self._library.is_pending(item.id),
                error=self._library.error_for(item.id),
                poster_url=item.poster_url,
            )
            for item, tag in zip(state.items, tags)
        ]
        return FeedSnapshot(
            status=state.status,
            items=views,
            page=state.page,
            has_more=state.has_more,
            query=state.query,
            settled_query=state.settled_query,
            query_pending=self._debouncer.pending,
            filters=state.filters,
            error=state.error,
            genres=self.genres,
            refreshing=self._refreshing,
            library_error=self._library_error,
        )

    async def wait_idle(self) -> None:
        """Wait for background fetches started by settled queries."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        self._closed = True
        self._debouncer.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _on_query_settled(self, value: str) -> None:
        if self._closed or value == self._state.settled_query:
            return
        self._spawn(self._start_session(settled_query=value))

    def _spawn(self, coro: Coroutine[object, object, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _apply(self, event: FeedEvent) -> FeedState:
        if isinstance(event, (PageLoaded, PageFailed)) and is_stale(self._state, event):
            logger.debug(
                "Discarding page %s from generation %s (current %s)",
                event.page,
                event.generation,
                self._state.generation,
            )
        self._state = transition(self._state, event)
        return self._state

    async def _start_session(
        self,
        *,
        settled_query: str | None = None,
        filters: FilterState | None = None,
        query: str | None = None,
    ) -> None:
        current = self._state
        session = self._apply(
            SessionStarted(
                settled_query=current.settled_query if settled_query is None else settled_query,
                filters=current.filters if filters is None else filters,
                query=query,
            )
        )
        await self._load_page(session, 1)

    async def _load_page(self, session: FeedState, page: int) -> None:
        """Fetch ``page`` for the query/filters captured in ``session``."""

        try:
            items = await asyncio.wait_for(
                self._fetch(session.settled_query, session.filters, page),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Feed page %s timed out after %.1fs (%s mode)",
                page,
                self._timeout,
                session.mode,
            )
            self._apply(
                PageFailed(session.generation, page, FeedError(kind="timeout", message=TIMEOUT_MESSAGE))
            )
            return
        except CatalogServiceError as exc:
            logger.warning("Feed page %s failed (%s mode): %s", page, session.mode, exc)
            self._apply(
                PageFailed(session.generation, page, FeedError(kind="network", message=NETWORK_MESSAGE))
            )
            return
        self._apply(PageLoaded(session.generation, page, tuple(items)))

    async def _fetch(self, query: str, filters: FilterState, page: int) -> list[CatalogItem]:
        if query.strip():
            return await self._catalog.search_movies(query, page)
        return await self._catalog.discover_movies(filters, page)

    async def _load_genres(self) -> None:
        try:
            self._genres = await self._catalog.get_genres()
        except CatalogServiceError as exc:
            logger.warning("Could not load the genre list: %s", exc)

    async def _sync_library(self) -> None:
        try:
            await self._library.sync()
        except LibraryServiceError as exc:
            logger.warning("Could not sync the personal library: %s", exc)
            self._library_error = LIBRARY_SYNC_MESSAGE
        else:
            self._library_error = None
