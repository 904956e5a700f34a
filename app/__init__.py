"""CineFeed: a paginated movie feed backed by TMDB and a personal watch list."""

from __future__ import annotations

from importlib import import_module
from typing import Any

__version__ = "1.0.0"

__all__ = ["app", "create_app", "__version__"]


def __getattr__(name: str) -> Any:
    # ``app.main`` builds the ASGI app at import time; defer that until asked.
    if name in ("app", "create_app"):
        return getattr(import_module("app.main"), name)
    raise AttributeError(f"module 'app' has no attribute {name}")
