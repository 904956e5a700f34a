"""Trailing debounce for free-text search input."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5


class QueryDebouncer:
    """Collapse rapid text changes into one settled value.

    Every :meth:`push` re-arms the timer; the callback only sees the last value
    once the input has been quiet for ``delay`` seconds. The empty string is an
    ordinary value and is delayed like any other.
    """

    def __init__(
        self,
        on_settled: Callable[[str], None],
        *,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self._on_settled = on_settled
        self._delay = delay
        self._pending: str | None = None
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def push(self, value: str) -> None:
        """Record ``value`` and restart the quiescence window."""

        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._pending = value
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        """Forget the pending value without emitting it."""

        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._pending = None

    def _fire(self) -> None:
        value = self._pending if self._pending is not None else ""
        self._handle = None
        self._pending = None
        try:
            self._on_settled(value)
        except Exception:  # pragma: no cover - callbacks run on the event loop
            logger.exception("Settled-query callback failed for %r", value)
