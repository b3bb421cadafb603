"""Leaky debounce for render requests."""

import asyncio


class EventThrottler:
    """Coalesce bursts of notify() calls into at most one trigger per grace period.

    notify() arms a one-shot timer if none is pending. When the timer fires the
    trigger goes into a single-slot queue; if an earlier trigger is still
    unconsumed the new one is dropped.
    """

    def __init__(self, grace_period: float) -> None:
        self.grace_period = grace_period
        self._timer: asyncio.TimerHandle | None = None
        self._signal: asyncio.Queue[None] = asyncio.Queue(maxsize=1)

    @property
    def pending(self) -> bool:
        """True while a timer is armed."""
        return self._timer is not None

    def notify(self) -> None:
        """Request a trigger. Never blocks; must be called from the event loop."""
        if self._timer is not None:
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.grace_period, self._fire)

    def _fire(self) -> None:
        self._timer = None
        try:
            self._signal.put_nowait(None)
        except asyncio.QueueFull:
            pass

    async def wait(self) -> None:
        """Wait for and consume one trigger."""
        await self._signal.get()

    def cancel(self) -> None:
        """Disarm a pending timer."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
