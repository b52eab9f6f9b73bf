"""
Customer side of live tracking.

``LiveTracker`` owns one channel subscription for one tracking code. Use it
as an async context manager so the subscription is released on every exit
path::

    async with LiveTracker(async_session, "SR-7KQ2ZD") as tracker:
        render(tracker.view())
        while True:
            await tracker.next_event()
            render(tracker.view())

Every event replaces the matching snapshot wholesale.
"""
import asyncio
import logging
from typing import Callable, Optional

from app.core.errors import NotFound
from app.crud import driver_location as location_crud
from app.crud import order as order_crud
from app.schemas.tracking import DriverLocationRead, OrderTrackingRead, TrackingView
from app.services.tracking.hub import LOCATION_EVENT, ORDER_EVENT, REVOKED_EVENT, TrackingHub, hub as default_hub
from app.services.tracking.view import build_tracking_view

log = logging.getLogger(__name__)


class LiveTracker:
    def __init__(self, session_factory: Callable, tracking_code: str, hub: Optional[TrackingHub] = None):
        self.session_factory = session_factory
        self.tracking_code = tracking_code
        self.hub = hub or default_hub
        self.order: Optional[OrderTrackingRead] = None
        self.location: Optional[DriverLocationRead] = None
        self.revoked = False
        self._queue: Optional[asyncio.Queue] = None

    async def __aenter__(self) -> "LiveTracker":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def open(self) -> None:
        # Subscribe before reading so no write between the read and the subscribe is lost
        self._queue = self.hub.subscribe(self.tracking_code)
        try:
            await self._load_snapshot()
        except BaseException:
            self.close()
            raise

    async def _load_snapshot(self) -> None:
        async with self.session_factory() as db:
            order = await order_crud.get_order_by_tracking_code(db, self.tracking_code)
            if not order:
                raise NotFound()
            self.order = OrderTrackingRead.model_validate(order)
            location = await location_crud.get_location_by_tracking_code(db, self.tracking_code)
            self.location = DriverLocationRead.model_validate(location) if location else None

    def close(self) -> None:
        if self._queue is not None:
            self.hub.unsubscribe(self.tracking_code, self._queue)
            self._queue = None

    @property
    def is_open(self) -> bool:
        return self._queue is not None

    def apply(self, event: dict) -> None:
        event_type = event.get("type")
        if event_type == ORDER_EVENT:
            self.order = OrderTrackingRead.model_validate(event["data"])
        elif event_type == LOCATION_EVENT:
            self.location = DriverLocationRead.model_validate(event["data"])
        elif event_type == REVOKED_EVENT:
            self.revoked = True
        else:
            log.warning("unknown tracking event: %s", event_type)

    async def next_event(self, timeout: Optional[float] = None) -> dict:
        if self._queue is None:
            raise RuntimeError("LiveTracker is not open")
        if timeout is None:
            event = await self._queue.get()
        else:
            event = await asyncio.wait_for(self._queue.get(), timeout)
        self.apply(event)
        return event

    def view(self) -> TrackingView:
        if self.order is None or self.revoked:
            raise NotFound()
        return build_tracking_view(self.order, self.location)
