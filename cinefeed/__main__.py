"""Run the CineFeed API with ``python -m cinefeed`` or the ``cinefeed`` script."""

from __future__ import annotations

import logging

import uvicorn

from app.config import settings

logger = logging.getLogger("cinefeed")


def main() -> None:
    """Serve ``app.main:app``; reloads on code changes outside production."""

    if not settings.tmdb_api_key:
        logger.warning("TMDB_API_KEY is not set; the API will refuse to start")
    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
