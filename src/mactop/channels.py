"""Single-slot rendezvous channels between the pipeline and the dashboard.

A send completes only once the receiver has taken the value, so the producer
runs at the consumer's pace and nothing is buffered beyond one slot.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

import structlog

log = structlog.get_logger()

T = TypeVar("T")


class SnapshotChannel(Generic[T]):
    """Unbuffered channel: send() blocks until receive() takes the value."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=1)

    async def _deliver(self, value: T) -> None:
        await self._queue.put(value)
        await self._queue.join()

    async def send(self, value: T, timeout: float | None = None) -> bool:
        """Hand a value to the receiver.

        Args:
            value: Snapshot to publish
            timeout: Max seconds to wait for the receiver; None waits forever

        Returns:
            True if the receiver took the value, False if it was dropped on timeout.
        """
        try:
            await asyncio.wait_for(self._deliver(value), timeout)
        except asyncio.TimeoutError:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                # Receiver took it between the timeout and now
                return True
            self._queue.task_done()
            log.debug("snapshot_dropped", channel=self.name, timeout=timeout)
            return False
        return True

    async def receive(self) -> T:
        """Take the next value, releasing the blocked sender."""
        value = await self._queue.get()
        self._queue.task_done()
        return value

    @property
    def pending(self) -> bool:
        """True while a sent value waits for a receiver."""
        return not self._queue.empty()


class ChannelSelector:
    """Multiplexed wait over several receive sources.

    Keeps one outstanding receive per source between calls, so a value that
    arrived while another source was being handled is delivered on the next
    call instead of being lost. When several sources are ready at once, they
    are returned in the order the sources were given.
    """

    def __init__(self, sources: dict[str, Callable[[], Awaitable[Any]]]) -> None:
        self._sources = sources
        self._pending: dict[str, asyncio.Task] = {}

    async def next(self) -> tuple[str, Any]:
        """Wait until any source yields; return (source name, value)."""
        for name, receive in self._sources.items():
            if name not in self._pending:
                self._pending[name] = asyncio.ensure_future(receive())

        await asyncio.wait(self._pending.values(), return_when=asyncio.FIRST_COMPLETED)

        for name in self._sources:
            task = self._pending[name]
            if task.done():
                del self._pending[name]
                return name, task.result()

        raise RuntimeError("asyncio.wait returned with no completed task")

    def close(self) -> None:
        """Cancel outstanding receives."""
        for task in self._pending.values():
            task.cancel()
        self._pending.clear()
