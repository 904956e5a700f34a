"""Derive per-item ownership tags from the Saved and Watched collections."""

from __future__ import annotations

from typing import Iterable, Sequence

from ..models import CatalogItem, LibraryEntry, OwnershipTag


def _ids(entries: Iterable[LibraryEntry]) -> frozenset[int]:
    return frozenset(entry.tmdb_id for entry in entries)


def ownership_of(
    tmdb_id: int,
    saved: Iterable[LibraryEntry],
    watched: Iterable[LibraryEntry],
) -> OwnershipTag:
    """Tag a single catalog id. Watched wins when an id sits in both lists."""

    if tmdb_id in _ids(watched):
        return "watched"
    if tmdb_id in _ids(saved):
        return "saved"
    return "none"


def reconcile(
    items: Sequence[CatalogItem],
    saved: Iterable[LibraryEntry],
    watched: Iterable[LibraryEntry],
) -> list[OwnershipTag]:
    """Return one tag per item, in the same order as ``items``.

    The id sets are built once per pass so tagging a page stays linear in the
    size of the feed plus the two collections.
    """

    saved_ids = _ids(saved)
    watched_ids = _ids(watched)
    tags: list[OwnershipTag] = []
    for item in items:
        if item.id in watched_ids:
            tags.append("watched")
        elif item.id in saved_ids:
            tags.append("saved")
        else:
            tags.append("none")
    return tags
