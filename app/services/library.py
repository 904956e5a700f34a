"""HTTP client for the personal backend that stores the Saved and Watched lists."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..models import LibraryCollection, LibraryEntry, LibraryEntryCreate

logger = logging.getLogger(__name__)

COLLECTION_PATHS: dict[str, str] = {
    "saved": "/movies",
    "watched": "/watched",
}


class LibraryServiceError(RuntimeError):
    """Raised when the personal backend rejects or fails a request."""


class LibraryClient:
    """Thin CRUD wrapper around a json-server style personal backend."""

    def __init__(self, http_client: httpx.AsyncClient):
        self._client = http_client

    async def list_entries(self, collection: LibraryCollection) -> list[LibraryEntry]:
        path = self._path(collection)
        data = await self._send("GET", path)
        if not isinstance(data, list):
            raise LibraryServiceError(f"Unexpected response structure for {path}")
        entries: list[LibraryEntry] = []
        for raw in data:
            if not isinstance(raw, dict):
                continue
            try:
                entries.append(LibraryEntry.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed %s entry %r", collection, raw.get("id"))
        return entries

    async def create_entry(
        self, collection: LibraryCollection, entry: LibraryEntryCreate
    ) -> LibraryEntry:
        path = self._path(collection)
        data = await self._send("POST", path, json=entry.to_payload())
        try:
            return LibraryEntry.model_validate(data)
        except ValidationError as exc:
            raise LibraryServiceError(f"Backend returned an invalid entry for {path}") from exc

    async def delete_entry(self, collection: LibraryCollection, entry_id: int | str) -> None:
        await self._send("DELETE", f"{self._path(collection)}/{entry_id}")

    async def list_saved(self) -> list[LibraryEntry]:
        return await self.list_entries("saved")

    async def list_watched(self) -> list[LibraryEntry]:
        return await self.list_entries("watched")

    async def _send(self, method: str, path: str, *, json: Any = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Library %s %s failed with %s", method, path, exc.response.status_code
            )
            raise LibraryServiceError(
                f"{method} {path} failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Library %s %s failed: %s", method, path, exc)
            raise LibraryServiceError(f"Could not reach the library backend ({path})") from exc

        if method == "DELETE" or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise LibraryServiceError(f"Non-JSON library response from {path}") from exc

    @staticmethod
    def _path(collection: str) -> str:
        try:
            return COLLECTION_PATHS[collection]
        except KeyError:
            raise ValueError(f"Unknown library collection: {collection}") from None
