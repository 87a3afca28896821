"""Named, cancellable asyncio jobs for timers and animations."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Hold at most one live task per name.

    Scheduling a name that is already running cancels the previous task, so a
    state machine can store one handle per concern (blink, cooldown) and never
    leak callbacks that fire into a stale state.
    """

    def __init__(self) -> None:
        self._named: dict[str, asyncio.Task[Any]] = {}

    def schedule(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Start ``coro`` under ``name``, cancelling any task it replaces.

        Must be called with a running event loop.
        """
        self.cancel(name)
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._named[name] = task
        task.add_done_callback(lambda done: self._forget(name, done))
        task.add_done_callback(self._log_exception)
        return task

    def _forget(self, name: str, task: asyncio.Task[Any]) -> None:
        if self._named.get(name) is task:
            del self._named[name]

    def _log_exception(self, task: asyncio.Task[Any]) -> None:
        """Log unhandled exceptions from jobs so they are not silently lost."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning(
                "task.exception",
                extra={
                    "event": "task.exception",
                    "task": task.get_name(),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    def get(self, name: str) -> asyncio.Task[Any] | None:
        """Return the live task for ``name`` or ``None``."""
        task = self._named.get(name)
        if task is None or task.done():
            return None
        return task

    def is_active(self, name: str) -> bool:
        return self.get(name) is not None

    def cancel(self, name: str) -> None:
        """Request cancellation of a named task without awaiting it."""
        task = self._named.pop(name, None)
        if task is not None and not task.done():
            task.cancel()

    def discard(self, name: str) -> None:
        """Stop tracking a named task without cancelling it."""
        self._named.pop(name, None)

    def cancel_all(self) -> None:
        for name in list(self._named):
            self.cancel(name)

    async def aclose(self) -> None:
        """Cancel every tracked task and wait until they have finished."""
        tasks = [task for task in self._named.values() if not task.done()]
        self.cancel_all()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    @property
    def names(self) -> frozenset[str]:
        return frozenset(name for name, task in self._named.items() if not task.done())
