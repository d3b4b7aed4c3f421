"""Cancellable timers on asyncio.

Both handles wrap one asyncio task. cancel() is safe to call more than
once and from inside the handle's own callback; in that case the task
is not interrupted mid-callback, it just does not run again.
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]


class _ScheduledTask:
    def __init__(self, delay: float, callback: Callback) -> None:
        if delay <= 0:
            raise ValueError("delay must be positive")
        self._delay = delay
        self._callback = callback
        self._cancelled = False
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        """Whether the timer can still fire."""
        return (
            not self._cancelled and self._task is not None and not self._task.done()
        )

    def _start(self) -> None:
        self._task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        """Stop the timer. No-op if already cancelled or finished."""
        self._cancelled = True
        task = self._task
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            return
        task.cancel()

    async def wait(self) -> None:
        """Wait for the underlying task to finish (for tests and shutdown)."""
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def _fire(self) -> None:
        try:
            await self._callback()
        except Exception:  # noqa: BLE001
            logger.exception("Scheduled callback failed")

    async def _run(self) -> None:
        raise NotImplementedError


class RepeatingTask(_ScheduledTask):
    """Runs a callback every ``interval`` seconds until cancelled.

    The first run happens one interval after scheduling. Runs never
    overlap; a slow callback delays the next tick.
    """

    async def _run(self) -> None:
        while not self._cancelled:
            await asyncio.sleep(self._delay)
            if self._cancelled:
                return
            await self._fire()


class OneShotTimer(_ScheduledTask):
    """Runs a callback once after ``delay`` seconds unless cancelled."""

    async def _run(self) -> None:
        await asyncio.sleep(self._delay)
        if not self._cancelled:
            await self._fire()


def schedule_repeating(interval: float, callback: Callback) -> RepeatingTask:
    """Start a repeating task. Must be called with a running event loop."""
    handle = RepeatingTask(interval, callback)
    handle._start()
    return handle


def schedule_once(delay: float, callback: Callback) -> OneShotTimer:
    """Start a one-shot timer. Must be called with a running event loop."""
    handle = OneShotTimer(delay, callback)
    handle._start()
    return handle
