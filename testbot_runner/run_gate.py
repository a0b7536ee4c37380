"""
Single-flight guard for pipeline runs.

All runs share one working copy, so at most one may execute at a time.
Triggers arriving during a run are queued with a depth of one: a newer
trigger replaces the queued one, so at most one run is ever waiting.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RunGate:
    """
    Admits one run at a time, keeping at most one trigger waiting.

    When the active run finishes, ownership passes directly to the queued
    trigger so no other caller can slip in between.
    """

    def __init__(self) -> None:
        self._busy = False
        self._queued: asyncio.Future[bool] | None = None
        self.superseded_count = 0

    @property
    def busy(self) -> bool:
        """True while a run holds the gate."""
        return self._busy

    @property
    def has_queued(self) -> bool:
        return self._queued is not None and not self._queued.done()

    async def try_run(self, fn: Callable[[], Awaitable[T]]) -> T | None:
        """
        Run ``fn`` once the gate is free.

        Args:
            fn: Coroutine function performing the run

        Returns:
            The result of ``fn``, or None if a newer trigger superseded this
            one while it was queued
        """
        if self._busy:
            queued = self._queued
            if queued is not None and not queued.done():
                queued.set_result(False)
                self.superseded_count += 1
                logger.info("Queued run superseded by a newer trigger")

            turn: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
            self._queued = turn
            try:
                admitted = await turn
            except asyncio.CancelledError:
                # Ownership may already have been handed over
                if turn.done() and not turn.cancelled() and turn.result():
                    self._release()
                elif self._queued is turn:
                    self._queued = None
                raise
            if not admitted:
                return None

        self._busy = True
        try:
            return await fn()
        finally:
            self._release()

    def _release(self) -> None:
        queued, self._queued = self._queued, None
        if queued is not None and not queued.done():
            # Keep _busy set: the queued trigger now owns the gate
            queued.set_result(True)
        else:
            self._busy = False
