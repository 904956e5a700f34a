"""Single-movie view: details, trailer and streaming availability."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..models import LibraryEntry, MovieDetails, OwnershipTag, WatchProviders
from .library import LibraryServiceError
from .library_store import LibraryStore
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MovieDetailView:
    """Everything the detail screen renders for one movie."""

    details: MovieDetails
    trailer_key: str | None
    providers: WatchProviders | None
    ownership: OwnershipTag
    entry: LibraryEntry | None
    busy: bool = False
    error: str | None = None

    def to_payload(self) -> dict[str, object]:
        return {
            "details": self.details.model_dump(),
            "posterUrl": self.details.to_catalog_item().poster_url,
            "backdropUrl": self.details.backdrop_url,
            "trailerKey": self.trailer_key,
            "providers": self.providers.model_dump() if self.providers else None,
            "ownership": self.ownership,
            "entry": self.entry.model_dump(by_alias=True) if self.entry else None,
            "busy": self.busy,
            "error": self.error,
        }


class MovieDetailService:
    """Join the three per-movie catalog lookups with the local library state."""

    def __init__(self, catalog: TMDBClient, library: LibraryStore) -> None:
        self._catalog = catalog
        self._library = library

    async def load(self, tmdb_id: int) -> MovieDetailView | None:
        """Return the detail view, or ``None`` when the catalog has no such movie."""

        details, trailer_key, providers = await asyncio.gather(
            self._catalog.get_movie_details(tmdb_id),
            self._catalog.get_trailer_key(tmdb_id),
            self._catalog.get_watch_providers(tmdb_id),
        )
        if details is None:
            logger.info("Movie %s not found in the catalog", tmdb_id)
            return None
        try:
            await self._library.sync()
        except LibraryServiceError as exc:
            logger.warning("Showing movie %s with a possibly stale library: %s", tmdb_id, exc)
        return self._view(details, trailer_key, providers)

    async def toggle_saved(self, view: MovieDetailView) -> MovieDetailView:
        """Save an unsaved movie or remove a saved one; watched movies stay put."""

        tmdb_id = view.details.id
        status = self._library.status_of(tmdb_id)
        if status == "none":
            await self._library.save(view.details.to_catalog_item())
        elif status == "saved":
            await self._library.remove(view.details.to_catalog_item())
        return self._view(view.details, view.trailer_key, view.providers)

    def _view(
        self,
        details: MovieDetails,
        trailer_key: str | None,
        providers: WatchProviders | None,
    ) -> MovieDetailView:
        return MovieDetailView(
            details=details,
            trailer_key=trailer_key,
            providers=providers,
            ownership=self._library.status_of(details.id),
            entry=self._library.entry_for(details.id),
            busy=self._library.is_pending(details.id),
            error=self._library.error_for(details.id),
        )
