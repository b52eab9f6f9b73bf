"""
Per-order push channel.

One channel per tracking code. Publishers push the full new row after every
committed write; every subscriber of that tracking code gets its own queue.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Set

from app.models.order import Order
from app.models.driver_location import DriverLocation
from app.schemas.tracking import OrderTrackingRead, DriverLocationRead

log = logging.getLogger(__name__)

ORDER_EVENT = "order"
LOCATION_EVENT = "location"
REVOKED_EVENT = "revoked"

SUBSCRIBER_QUEUE_SIZE = 100


class TrackingHub:
    def __init__(self):
        self._channels: Dict[str, Set[asyncio.Queue]] = {}

    def subscribe(self, tracking_code: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._channels.setdefault(tracking_code, set()).add(queue)
        log.info("hub subscribe: tracking_code=%s subscribers=%s", tracking_code, self.subscriber_count(tracking_code))
        return queue

    def unsubscribe(self, tracking_code: str, queue: asyncio.Queue) -> None:
        # Safe to call twice
        queues = self._channels.get(tracking_code)
        if not queues or queue not in queues:
            return
        queues.discard(queue)
        if not queues:
            del self._channels[tracking_code]
        log.info("hub unsubscribe: tracking_code=%s subscribers=%s", tracking_code, self.subscriber_count(tracking_code))

    @asynccontextmanager
    async def channel(self, tracking_code: str):
        queue = self.subscribe(tracking_code)
        try:
            yield queue
        finally:
            self.unsubscribe(tracking_code, queue)

    def subscriber_count(self, tracking_code: str) -> int:
        return len(self._channels.get(tracking_code, ()))

    def publish(self, tracking_code: str, event_type: str, data: dict) -> int:
        """Fan an event out to every subscriber of ``tracking_code``.

        A subscriber that stopped reading loses its oldest pending event;
        every event is a full row so only the newest one matters.
        """
        message = {"type": event_type, "data": data}
        queues = list(self._channels.get(tracking_code, ()))
        for queue in queues:
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(message)
        return len(queues)

    def revoke(self, tracking_code: str) -> int:
        """Tell subscribers of a replaced tracking code that it is no longer valid."""
        return self.publish(tracking_code, REVOKED_EVENT, {"tracking_code": tracking_code})

    def publish_order(self, order: Order) -> int:
        if not order.tracking_code:
            return 0
        data = OrderTrackingRead.model_validate(order).model_dump(mode="json")
        return self.publish(order.tracking_code, ORDER_EVENT, data)

    def publish_location(self, location: DriverLocation) -> int:
        data = DriverLocationRead.model_validate(location).model_dump(mode="json")
        return self.publish(location.tracking_code, LOCATION_EVENT, data)


hub = TrackingHub()
