"""
Driver side of live tracking.

``LocationPublisher`` runs on the driver's device event loop. Once a delivery
starts it keeps two independent jobs going:

- a watch over the device's position feed, updating ``last_position`` on
  every fix (what the driver's screen shows)
- an interval job taking a fresh fix every ``interval`` seconds and writing
  it to the server (bounds writes to one per interval)

Both stop on ``mark_delivered()`` or ``stop()``, and ``stop()`` also runs
when the publisher is used as an async context manager and the block exits,
whichever way it exits. Stopping twice is a no-op.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional, Protocol

from app.core.config import settings
from app.core.errors import InvalidCredential, LocationUnavailable, TerminalStateViolation

log = logging.getLogger(__name__)

LOCATION_LOST_MESSAGE = "Location updates stopped on this device. Please restart tracking."
SESSION_EXPIRED_MESSAGE = "Your driver session has ended. Please log in again."


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None


class PositionSource(Protocol):
    async def current_position(self) -> Position:
        """One fresh fix; raises LocationUnavailable when the device cannot provide one."""

    def watch(self) -> AsyncIterator[Position]:
        """Continuous fixes; may raise LocationUnavailable."""


class DeliveryClient(Protocol):
    async def start_delivery(self, position: Optional[Position]) -> None: ...

    async def push_location(self, position: Position) -> None: ...

    async def mark_delivered(self, position: Optional[Position]) -> None: ...


class LocationPublisher:
    def __init__(
        self,
        source: PositionSource,
        client: DeliveryClient,
        interval: Optional[float] = None,
        on_position: Optional[Callable[[Position], None]] = None,
    ):
        self.source = source
        self.client = client
        self.interval = interval if interval is not None else settings.location_push_interval_seconds
        self.on_position = on_position

        self.last_position: Optional[Position] = None
        self.error: Optional[str] = None  # banner text, never fatal
        self.writes = 0
        self.delivered = False

        self._watch_task: Optional[asyncio.Task] = None
        self._interval_task: Optional[asyncio.Task] = None

    @property
    def is_tracking(self) -> bool:
        return any(t is not None and not t.done() for t in (self._watch_task, self._interval_task))

    async def __aenter__(self) -> "LocationPublisher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def start(self) -> None:
        """The driver's "Start Delivery" action."""
        if self.is_tracking:
            return
        self.error = None

        position = await self._fix()
        if position is not None:
            self._set_position(position)
        await self.client.start_delivery(position)
        if position is not None:
            self.writes += 1

        self._watch_task = asyncio.create_task(self._watch())
        self._interval_task = asyncio.create_task(self._interval_loop())
        log.info("location publishing started (interval=%ss)", self.interval)

    async def stop(self) -> None:
        tasks = [t for t in (self._watch_task, self._interval_task) if t is not None]
        self._watch_task = None
        self._interval_task = None
        current = asyncio.current_task()
        others = [t for t in tasks if t is not current]
        for task in others:
            task.cancel()
        results = await asyncio.gather(*others, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                log.error("location publishing job failed: %r", result)
        if tasks:
            log.info("location publishing stopped (writes=%s)", self.writes)

    async def mark_delivered(self) -> None:
        """Stop publishing, then one final write plus the delivered transition."""
        await self.stop()
        await self.client.mark_delivered(self.last_position)
        self.delivered = True

    def _set_position(self, position: Position) -> None:
        self.last_position = position
        if self.on_position is not None:
            self.on_position(position)

    async def _fix(self) -> Optional[Position]:
        try:
            return await self.source.current_position()
        except LocationUnavailable as e:
            self.error = e.message
            log.warning("location fix unavailable: %s", e.message)
            return None

    async def _watch(self) -> None:
        try:
            async for position in self.source.watch():
                self._set_position(position)
        except LocationUnavailable as e:
            # Banner only; the interval job keeps running
            self.error = e.message
            log.warning("position watch failed: %s", e.message)
        except Exception as e:
            self.error = LOCATION_LOST_MESSAGE
            log.exception("position watch crashed: %s", e)

    async def _interval_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                position = await self.source.current_position()
            except LocationUnavailable:
                continue
            try:
                await self.client.push_location(position)
            except TerminalStateViolation:
                # Completed elsewhere (e.g. from the back office)
                log.info("order no longer accepts locations, stopping")
                self.delivered = True
                if self._watch_task is not None:
                    self._watch_task.cancel()
                return
            except InvalidCredential:
                # Codes were regenerated; this device's session is gone
                log.warning("driver session rejected, stopping")
                self.error = SESSION_EXPIRED_MESSAGE
                if self._watch_task is not None:
                    self._watch_task.cancel()
                return
            except Exception as e:
                log.warning("location write failed, skipping: %s", e)
                continue
            self.writes += 1
