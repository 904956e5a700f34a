"""Installed distribution name; the service itself lives in :mod:`app`."""

from __future__ import annotations

from app import __version__
from app.main import app, create_app

__all__ = ["app", "create_app", "__version__"]
