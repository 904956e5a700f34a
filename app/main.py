"""Entry point for the FastAPI service that drives the movie feed screens."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from . import __version__
from .config import settings
from .filter_options import filter_options_payload
from .models import FeedSnapshot, FilterState, LibraryCollection
from .services.details import MovieDetailService
from .services.feed import FeedController
from .services.library import LibraryClient, LibraryServiceError
from .services.library_store import LibraryStore
from .services.tmdb import CatalogServiceError, TMDBClient
from .sessions import FeedSessionManager

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app: FastAPI


class QueryUpdate(BaseModel):
    text: str = ""


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(20.0, connect=10.0),
        )
    )
    library_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.library_api_url),
            timeout=httpx.Timeout(15.0, connect=5.0),
        )
    )

    catalog = TMDBClient(settings, tmdb_http_client)
    library = LibraryStore(LibraryClient(library_http_client))
    sessions = FeedSessionManager(settings, catalog, library)

    fastapi_app.state.sessions = sessions
    fastapi_app.state.details = MovieDetailService(catalog, library)

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await sessions.close_all()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Movie discovery feed with saved and watched lists",
        version=__version__,
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_session_manager(app: FastAPI) -> FeedSessionManager:
    manager = getattr(app.state, "sessions", None)
    if not isinstance(manager, FeedSessionManager):
        raise RuntimeError("Feed sessions not initialised")
    return manager


def get_detail_service(app: FastAPI) -> MovieDetailService:
    service = getattr(app.state, "details", None)
    if not isinstance(service, MovieDetailService):
        raise RuntimeError("Detail service not initialised")
    return service


def _feed_payload(snapshot: FeedSnapshot) -> dict[str, Any]:
    return snapshot.model_dump(mode="json", by_alias=True)


def _resolve_collection(name: str) -> LibraryCollection:
    if name == "saved":
        return "saved"
    if name == "watched":
        return "watched"
    raise HTTPException(status_code=404, detail=f"Unknown library collection: {name}")


def register_routes(fastapi_app: FastAPI) -> None:
    async def _controller(session_id: str) -> FeedController:
        try:
            return await get_session_manager(fastapi_app).get(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Feed session not found") from exc

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/filters")
    async def filters() -> dict[str, object]:
        catalog = get_session_manager(fastapi_app).catalog
        try:
            genres = await catalog.get_genres()
        except CatalogServiceError as exc:
            logger.warning("Serving filters without genres: %s", exc)
            genres = []
        return filter_options_payload(genres)

    @fastapi_app.post("/feeds", status_code=201)
    async def open_feed() -> dict[str, Any]:
        session_id, controller = await get_session_manager(fastapi_app).open()
        return {"id": session_id, "feed": _feed_payload(controller.snapshot())}

    @fastapi_app.get("/feeds/{session_id}")
    async def read_feed(session_id: str) -> dict[str, Any]:
        return _feed_payload((await _controller(session_id)).snapshot())

    @fastapi_app.delete("/feeds/{session_id}", status_code=204)
    async def close_feed(session_id: str) -> None:
        try:
            await get_session_manager(fastapi_app).close(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Feed session not found") from exc

    @fastapi_app.put("/feeds/{session_id}/query")
    async def update_query(session_id: str, update: QueryUpdate) -> dict[str, Any]:
        controller = await _controller(session_id)
        controller.set_query(update.text)
        return _feed_payload(controller.snapshot())

    @fastapi_app.put("/feeds/{session_id}/filters")
    async def update_filters(session_id: str, filters: FilterState) -> dict[str, Any]:
        snapshot = await (await _controller(session_id)).set_filters(filters)
        return _feed_payload(snapshot)

    @fastapi_app.post("/feeds/{session_id}/more")
    async def load_more(session_id: str) -> dict[str, Any]:
        controller = await _controller(session_id)
        await controller.load_more()
        return _feed_payload(controller.snapshot())

    @fastapi_app.post("/feeds/{session_id}/refresh")
    async def refresh(session_id: str) -> dict[str, Any]:
        return _feed_payload(await (await _controller(session_id)).refresh())

    @fastapi_app.post("/feeds/{session_id}/retry")
    async def retry(session_id: str) -> dict[str, Any]:
        return _feed_payload(await (await _controller(session_id)).retry())

    @fastapi_app.post("/feeds/{session_id}/items/{tmdb_id}/saved")
    async def save_item(session_id: str, tmdb_id: int) -> dict[str, Any]:
        controller = await _controller(session_id)
        if not await controller.save(tmdb_id):
            raise HTTPException(status_code=404, detail="Movie is not in this feed")
        return _feed_payload(controller.snapshot())

    @fastapi_app.delete("/feeds/{session_id}/items/{tmdb_id}/saved")
    async def remove_item(session_id: str, tmdb_id: int) -> dict[str, Any]:
        controller = await _controller(session_id)
        if not await controller.remove(tmdb_id):
            raise HTTPException(status_code=404, detail="Movie is not in this feed")
        return _feed_payload(controller.snapshot())

    @fastapi_app.post("/feeds/{session_id}/items/{tmdb_id}/watched")
    async def watch_item(session_id: str, tmdb_id: int) -> dict[str, Any]:
        controller = await _controller(session_id)
        if not await controller.mark_watched(tmdb_id):
            raise HTTPException(status_code=404, detail="Movie is not in this feed")
        return _feed_payload(controller.snapshot())

    @fastapi_app.get("/library/{collection}")
    async def list_library(collection: str, q: str | None = None) -> list[dict[str, Any]]:
        resolved = _resolve_collection(collection)
        store = get_session_manager(fastapi_app).library
        try:
            await store.sync()
        except LibraryServiceError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        entries = store.search_saved(q) if resolved == "saved" else list(store.watched)
        return [entry.model_dump(by_alias=True) for entry in entries]

    @fastapi_app.get("/library/{collection}/recommendation")
    async def recommend(collection: str) -> dict[str, Any]:
        resolved = _resolve_collection(collection)
        entry = get_session_manager(fastapi_app).library.recommend(resolved)
        if entry is None:
            raise HTTPException(status_code=404, detail="Nothing to recommend yet")
        return entry.model_dump(by_alias=True)

    @fastapi_app.post("/library/saved/{entry_id}/watched")
    async def watch_saved_entry(entry_id: str) -> dict[str, Any]:
        store = get_session_manager(fastapi_app).library
        entry = next((saved for saved in store.saved if str(saved.id) == entry_id), None)
        if entry is None:
            raise HTTPException(status_code=404, detail="Saved movie not found")
        created = await store.mark_watched(entry)
        if created is None:
            raise HTTPException(
                status_code=502,
                detail=store.error_for(entry.tmdb_id) or "Movie could not be moved",
            )
        return created.model_dump(by_alias=True)

    @fastapi_app.delete("/library/{collection}/{entry_id}", status_code=204)
    async def delete_library_entry(collection: str, entry_id: str) -> None:
        resolved = _resolve_collection(collection)
        store = get_session_manager(fastapi_app).library
        entry = next(
            (existing for existing in store.entries(resolved) if str(existing.id) == entry_id),
            None,
        )
        if entry is None:
            raise HTTPException(status_code=404, detail="Library entry not found")
        if not await store.delete_entry(resolved, entry.id):
            raise HTTPException(
                status_code=502,
                detail=store.error_for(entry.tmdb_id) or "Entry could not be deleted",
            )

    @fastapi_app.get("/movies/{tmdb_id}")
    async def movie_details(tmdb_id: int) -> dict[str, Any]:
        service = get_detail_service(fastapi_app)
        try:
            view = await service.load(tmdb_id)
        except CatalogServiceError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        if view is None:
            raise HTTPException(status_code=404, detail="Movie not found")
        return view.to_payload()

    @fastapi_app.post("/movies/{tmdb_id}/toggle-saved")
    async def toggle_saved(tmdb_id: int) -> dict[str, Any]:
        service = get_detail_service(fastapi_app)
        try:
            view = await service.load(tmdb_id)
        except CatalogServiceError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        if view is None:
            raise HTTPException(status_code=404, detail="Movie not found")
        return (await service.toggle_saved(view)).to_payload()


app = create_app()
