"""Presence ("still working") signal shown while Eve is thinking.

A PresenceSignal fires its notify callback once right away, then every
`interval` seconds, until stop() sets the done event. stop() does not wait
for a notify that is still in flight; it is cancelled. The signal never
touches the Eve request itself, which runs to completion or to its own
timeout.

Key function: presence_signal() — async context manager around a block.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

logger = logging.getLogger(__name__)

Notify = Callable[[], Awaitable[object]]

DEFAULT_INTERVAL = 5.0


class PresenceSignal:
    """Periodic notify loop with a single done signal."""

    def __init__(self, notify: Notify, interval: float = DEFAULT_INTERVAL) -> None:
        self._notify = notify
        self._interval = interval
        self._done = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Signal done and cancel the loop, including an in-flight notify."""
        self._done.set()
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        # Returns once the task is done; its CancelledError is not re-raised
        await asyncio.wait([self._task])

    async def _run(self) -> None:
        while not self._done.is_set():
            try:
                await self._notify()
            except Exception as e:
                # A lost typing action is cosmetic
                logger.debug("Presence notify failed: %s", e)
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._done.wait(), self._interval)


@contextlib.asynccontextmanager
async def presence_signal(
    notify: Notify | None, interval: float = DEFAULT_INTERVAL
) -> AsyncIterator[PresenceSignal | None]:
    """Run a PresenceSignal for the duration of the block, whatever its outcome."""
    if notify is None:
        yield None
        return
    signal = PresenceSignal(notify, interval)
    signal.start()
    # Yield once so the first notify is issued before the block starts
    await asyncio.sleep(0)
    try:
        yield signal
    finally:
        await signal.stop()
