"""Registry of open feed sessions, one per mounted feed screen."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable

from .config import Settings
from .services.feed import FeedController
from .services.library_store import LibraryStore
from .services.tmdb import TMDBClient

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeedSessionManager:
    """Create, look up and dispose of :class:`FeedController` instances.

    All sessions share one :class:`LibraryStore`, so a save made from one feed
    shows up in every other open feed on its next snapshot.

    Clients that vanish without closing their feed are cleaned up lazily: a
    session untouched for ``FEED_SESSION_TTL_SECONDS`` is closed on the next
    :meth:`open` or :meth:`get`, and opening beyond ``MAX_FEED_SESSIONS``
    evicts the least recently used one.
    """

    def __init__(
        self,
        settings: Settings,
        catalog: TMDBClient,
        library: LibraryStore,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._catalog = catalog
        self._library = library
        self._clock = clock
        self._ttl = timedelta(seconds=settings.feed_session_ttl_seconds)
        self._sessions: dict[str, FeedController] = {}
        self._last_seen: dict[str, datetime] = {}

    @property
    def library(self) -> LibraryStore:
        return self._library

    @property
    def catalog(self) -> TMDBClient:
        return self._catalog

    def __len__(self) -> int:
        return len(self._sessions)

    async def open(self) -> tuple[str, FeedController]:
        await self.expire_idle()
        while len(self) >= self._settings.max_feed_sessions:
            oldest = min(self._last_seen, key=self._last_seen.__getitem__)
            logger.info("Evicting feed session %s to stay under the session cap", oldest)
            await self.close(oldest)

        session_id = secrets.token_urlsafe(12)
        controller = FeedController(
            self._catalog,
            self._library,
            debounce_seconds=self._settings.search_debounce_seconds,
            timeout_seconds=self._settings.fetch_timeout_seconds,
        )
        self._sessions[session_id] = controller
        self._last_seen[session_id] = self._clock()
        logger.info("Opened feed session %s", session_id)
        await controller.start()
        return session_id, controller

    async def get(self, session_id: str) -> FeedController:
        """Return the session's controller and mark it as used just now."""

        await self.expire_idle()
        try:
            controller = self._sessions[session_id]
        except KeyError:
            raise KeyError(f"Unknown feed session: {session_id}") from None
        self._last_seen[session_id] = self._clock()
        return controller

    async def expire_idle(self) -> int:
        """Close every session idle for longer than the TTL; returns how many."""

        cutoff = self._clock() - self._ttl
        stale = [
            session_id for session_id, seen in self._last_seen.items() if seen <= cutoff
        ]
        for session_id in stale:
            logger.info("Feed session %s expired after inactivity", session_id)
            await self.close(session_id)
        return len(stale)

    async def close(self, session_id: str) -> None:
        controller = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if controller is None:
            raise KeyError(f"Unknown feed session: {session_id}")
        await controller.close()
        logger.info("Closed feed session %s", session_id)

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id)
