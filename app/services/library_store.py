"""In-memory Saved/Watched collections and the user actions that mutate them."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Sequence, Union

from ..models import (
    CatalogItem,
    LibraryCollection,
    LibraryEntry,
    LibraryEntryCreate,
    OwnershipTag,
)
from ..utils import normalize_text
from .library import LibraryClient, LibraryServiceError
from .reconciler import ownership_of, reconcile

logger = logging.getLogger(__name__)

LibraryItem = Union[CatalogItem, LibraryEntry]


def _tmdb_id(item: LibraryItem) -> int:
    if isinstance(item, LibraryEntry):
        return item.tmdb_id
    return item.id


def _create_fields(item: LibraryItem) -> LibraryEntryCreate:
    if isinstance(item, LibraryEntry):
        return LibraryEntryCreate.from_entry(item)
    return LibraryEntryCreate.from_catalog_item(item)


class LibraryStore:
    """Owns the local snapshot of both collections.

    Mutations update the backend first and patch the in-memory lists only on
    success. Each item has at most one mutation in flight; further taps on the
    same item are ignored until it settles.
    """

    def __init__(self, client: LibraryClient) -> None:
        self._client = client
        self._saved: list[LibraryEntry] = []
        self._watched: list[LibraryEntry] = []
        self._pending: set[int] = set()
        self._errors: dict[int, str] = {}

    @property
    def saved(self) -> tuple[LibraryEntry, ...]:
        return tuple(self._saved)

    @property
    def watched(self) -> tuple[LibraryEntry, ...]:
        return tuple(self._watched)

    def entries(self, collection: LibraryCollection) -> tuple[LibraryEntry, ...]:
        return self.saved if collection == "saved" else self.watched

    async def sync(self) -> None:
        """Replace both collections with the backend's current contents."""

        saved, watched = await asyncio.gather(
            self._client.list_saved(), self._client.list_watched()
        )
        self._saved = list(saved)
        self._watched = list(watched)
        logger.debug(
            "Library synced: %s saved, %s watched", len(self._saved), len(self._watched)
        )
        await self._finish_moves()

    def is_pending(self, tmdb_id: int) -> bool:
        return tmdb_id in self._pending

    def error_for(self, tmdb_id: int) -> str | None:
        return self._errors.get(tmdb_id)

    def tags_for(self, items: Sequence[CatalogItem]) -> list[OwnershipTag]:
        return reconcile(items, self._saved, self._watched)

    def status_of(self, tmdb_id: int) -> OwnershipTag:
        return ownership_of(tmdb_id, self._saved, self._watched)

    def entry_for(self, tmdb_id: int) -> LibraryEntry | None:
        """Return the local entry for an id, preferring Watched like the tags do."""

        for entry in (*self._watched, *self._saved):
            if entry.tmdb_id == tmdb_id:
                return entry
        return None

    async def save(self, item: CatalogItem) -> LibraryEntry | None:
        """Add ``item`` to Saved. Returns the created entry, or ``None`` when skipped or failed."""

        tmdb_id = item.id
        if not self._begin(tmdb_id):
            return None
        try:
            if self.status_of(tmdb_id) != "none":
                logger.debug("Movie %s is already in the library; skipping save", tmdb_id)
                return None
            try:
                created = await self._client.create_entry(
                    "saved", LibraryEntryCreate.from_catalog_item(item)
                )
            except LibraryServiceError as exc:
                self._fail(tmdb_id, "save", exc)
                return None
            self._saved.append(created)
            return created
        finally:
            self._pending.discard(tmdb_id)

    async def remove(self, item: LibraryItem) -> bool:
        """Delete the Saved entry matching ``item``. No-op when it is not saved."""

        tmdb_id = _tmdb_id(item)
        entry = self._find(self._saved, tmdb_id)
        if entry is None:
            return False
        if not self._begin(tmdb_id):
            return False
        try:
            return await self._drop_saved(entry, "remove")
        finally:
            self._pending.discard(tmdb_id)

    async def mark_watched(self, item: LibraryItem) -> LibraryEntry | None:
        """Move ``item`` into Watched: insert there first, then delete from Saved.

        The two calls are not atomic. When the delete fails the movie stays in
        both lists until the next :meth:`sync` or another ``mark_watched``
        finishes the move; tags still read ``watched`` meanwhile.
        """

        tmdb_id = _tmdb_id(item)
        if not self._begin(tmdb_id):
            return None
        try:
            saved_entry = self._find(self._saved, tmdb_id)
            watched_entry = self._find(self._watched, tmdb_id)
            if watched_entry is not None:
                # Inserted by an earlier attempt whose Saved delete failed.
                if saved_entry is None:
                    return None
                if not await self._drop_saved(saved_entry, "remove from saved"):
                    return None
                return watched_entry

            fields = (
                LibraryEntryCreate.from_entry(saved_entry)
                if saved_entry is not None
                else _create_fields(item)
            )
            try:
                created = await self._client.create_entry("watched", fields)
            except LibraryServiceError as exc:
                self._fail(tmdb_id, "mark as watched", exc)
                return None
            self._watched.append(created)

            if saved_entry is not None and not await self._drop_saved(
                saved_entry, "remove from saved"
            ):
                logger.warning("Movie %s is now in both lists until the next sync", tmdb_id)
            return created
        finally:
            self._pending.discard(tmdb_id)

    async def delete_entry(self, collection: LibraryCollection, entry_id: int | str) -> bool:
        """Delete an entry by its local id from either collection."""

        entries = self._saved if collection == "saved" else self._watched
        entry = next((existing for existing in entries if str(existing.id) == str(entry_id)), None)
        if entry is None:
            return False
        if not self._begin(entry.tmdb_id):
            return False
        try:
            try:
                await self._client.delete_entry(collection, entry.id)
            except LibraryServiceError as exc:
                self._fail(entry.tmdb_id, "delete", exc)
                return False
            remaining = [existing for existing in entries if existing.id != entry.id]
            if collection == "saved":
                self._saved = remaining
            else:
                self._watched = remaining
            return True
        finally:
            self._pending.discard(entry.tmdb_id)

    def search_saved(self, text: str | None) -> list[LibraryEntry]:
        """Case-insensitive title filter over Saved; blank text returns everything."""

        needle = normalize_text(text)
        if not needle:
            return list(self._saved)
        return [entry for entry in self._saved if needle in normalize_text(entry.title)]

    def recommend(
        self, collection: LibraryCollection, rng: random.Random | None = None
    ) -> LibraryEntry | None:
        """Pick a random entry from ``collection``."""

        entries = self.entries(collection)
        if not entries:
            return None
        chooser = rng or random
        return chooser.choice(entries)

    async def _drop_saved(self, entry: LibraryEntry, action: str) -> bool:
        """Delete a Saved entry; callers hold the item's in-flight marker."""

        try:
            await self._client.delete_entry("saved", entry.id)
        except LibraryServiceError as exc:
            self._fail(entry.tmdb_id, action, exc)
            return False
        self._saved = [existing for existing in self._saved if existing.id != entry.id]
        return True

    async def _finish_moves(self) -> None:
        """Delete Saved entries left behind by a half-finished ``mark_watched``."""

        watched_ids = {entry.tmdb_id for entry in self._watched}
        leftovers = [entry for entry in self._saved if entry.tmdb_id in watched_ids]
        for entry in leftovers:
            if not self._begin(entry.tmdb_id):
                continue
            try:
                if await self._drop_saved(entry, "remove from saved"):
                    logger.info("Removed movie %s from Saved; it is already watched", entry.tmdb_id)
            finally:
                self._pending.discard(entry.tmdb_id)

    def _begin(self, tmdb_id: int) -> bool:
        if tmdb_id in self._pending:
            logger.debug("Ignoring action on movie %s: another one is in flight", tmdb_id)
            return False
        self._pending.add(tmdb_id)
        self._errors.pop(tmdb_id, None)
        return True

    def _fail(self, tmdb_id: int, action: str, exc: LibraryServiceError) -> None:
        logger.warning("Could not %s movie %s: %s", action, tmdb_id, exc)
        self._errors[tmdb_id] = f"Could not {action} this movie. Please try again."

    @staticmethod
    def _find(entries: Sequence[LibraryEntry], tmdb_id: int) -> LibraryEntry | None:
        return next((entry for entry in entries if entry.tmdb_id == tmdb_id), None)
