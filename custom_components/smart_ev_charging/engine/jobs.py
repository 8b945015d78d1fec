"""Periodic job guard.

Timer callbacks may fire again while a previous run is still awaiting I/O.
NonOverlappingJob skips such ticks instead of running them concurrently.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

_LOGGER = logging.getLogger(__name__)


class NonOverlappingJob:
    """Run an async callable, never more than one run at a time."""

    def __init__(self, name: str, func: Callable[..., Awaitable[Any]]) -> None:
        self.name = name
        self._func = func
        self._running = False
        self.skipped_runs = 0

    @property
    def running(self) -> bool:
        return self._running

    async def async_run(self, *args: Any) -> bool:
        """Run the job unless it is already running.

        Returns True if the job ran. Exceptions from the job are logged and
        not re-raised, so a failing tick never breaks the timer.
        """
        if self._running:
            self.skipped_runs += 1
            _LOGGER.debug("Skipping %s, previous run still in progress", self.name)
            return False

        self._running = True
        try:
            await self._func(*args)
        except Exception:
            _LOGGER.exception("Error in %s", self.name)
        finally:
            self._running = False
        return True

    async def __call__(self, *args: Any) -> None:
        await self.async_run(*args)
