"""
Order Status Workflow

pending -> accepted -> preparing -> on_delivery -> delivered, with cancelled
reachable from any non-terminal status. delivered and cancelled are final.

Side effects:
- preparing -> on_delivery allocates the tracking code triple if missing
- on_delivery -> delivered stamps delivered_at and marks the driver location delivered
- every committed transition publishes the order row and schedules a customer e-mail
"""
import logging
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConfirmationRequired, IllegalTransition, TerminalStateViolation
from app.crud import driver_location as location_crud
from app.crud import order as order_crud
from app.models.driver_location import LocationStatus
from app.models.order import Order, OrderStatus
from app.services.tracking.hub import TrackingHub, hub as default_hub
from app.services.tracking.notifications import StatusNotification, schedule_status_notification

log = logging.getLogger(__name__)

TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

LINEAR_FLOW: Dict[OrderStatus, OrderStatus] = {
    OrderStatus.PENDING: OrderStatus.ACCEPTED,
    OrderStatus.ACCEPTED: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.ON_DELIVERY,
    OrderStatus.ON_DELIVERY: OrderStatus.DELIVERED,
}

NEXT_ACTION_LABELS: Dict[OrderStatus, str] = {
    OrderStatus.PENDING: "Accept Order",
    OrderStatus.ACCEPTED: "Start Preparing",
    OrderStatus.PREPARING: "Out for Delivery",
    OrderStatus.ON_DELIVERY: "Mark Delivered",
}


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def next_status(status: OrderStatus) -> Optional[OrderStatus]:
    return LINEAR_FLOW.get(OrderStatus(status))


def next_action_label(status: OrderStatus) -> Optional[str]:
    return NEXT_ACTION_LABELS.get(OrderStatus(status))


def allowed_transitions(status: OrderStatus) -> FrozenSet[OrderStatus]:
    status = OrderStatus(status)
    if status in TERMINAL_STATUSES:
        return frozenset()
    return frozenset({LINEAR_FLOW[status], OrderStatus.CANCELLED})


def check_transition(current: OrderStatus, target: OrderStatus) -> None:
    current, target = OrderStatus(current), OrderStatus(target)
    if current in TERMINAL_STATUSES:
        raise TerminalStateViolation(current.value)
    if target not in allowed_transitions(current):
        raise IllegalTransition(current.value, target.value)


class OrderWorkflow:
    """Applies status transitions to one session's orders."""

    def __init__(
        self,
        db: AsyncSession,
        hub: Optional[TrackingHub] = None,
        notifier: Optional[Callable[[StatusNotification], object]] = None,
    ):
        self.db = db
        self.hub = hub or default_hub
        self.notifier = notifier or schedule_status_notification

    async def transition(self, order: Order, target: OrderStatus) -> Order:
        """Move ``order`` to ``target``.

        The status write only lands if the row still holds the status this
        request read; a request that lost the race gets the same error it
        would have got had it read the newer status.
        """
        target = OrderStatus(target)
        current = OrderStatus(order.order_status)
        check_transition(current, target)
        order_id = order.id

        values = {"order_status": target}
        location = None
        if target == OrderStatus.ON_DELIVERY and not order.tracking_code:
            codes = await order_crud.allocate_tracking_codes(self.db)
            values.update(
                tracking_code=codes.tracking_code,
                driver_code=codes.driver_code,
                driver_pin=codes.driver_pin,
            )

        if target == OrderStatus.DELIVERED:
            values["delivered_at"] = datetime.utcnow()

        if not await order_crud.update_order_status(self.db, order_id, current, values):
            await self.db.rollback()
            await self.db.refresh(order)
            log.warning(
                "order %s: %s -> %s lost to a concurrent update (now %s)",
                order_id, current.value, target.value, OrderStatus(order.order_status).value,
            )
            check_transition(order.order_status, target)
            raise IllegalTransition(current.value, target.value)

        if target == OrderStatus.DELIVERED:
            location = await location_crud.set_location_status(self.db, order_id, LocationStatus.DELIVERED)
        await self.db.commit()
        await self.db.refresh(order)
        if "tracking_code" in values:
            log.info("tracking codes generated: order=%s tracking_code=%s", order_id, values["tracking_code"])
        log.info("order %s: %s -> %s", order_id, current.value, target.value)

        self.hub.publish_order(order)
        if location is not None:
            self.hub.publish_location(location)
        self._notify(order)
        return order

    async def advance(self, order: Order) -> Order:
        status = OrderStatus(order.order_status)
        if status in TERMINAL_STATUSES:
            raise TerminalStateViolation(status.value)
        return await self.transition(order, LINEAR_FLOW[status])

    async def cancel(self, order: Order) -> Order:
        return await self.transition(order, OrderStatus.CANCELLED)

    async def ensure_on_delivery(self, order: Order) -> Order:
        if order.order_status == OrderStatus.ON_DELIVERY:
            return order
        try:
            return await self.transition(order, OrderStatus.ON_DELIVERY)
        except IllegalTransition:
            # Another request started the delivery first
            if order.order_status == OrderStatus.ON_DELIVERY:
                return order
            raise

    async def regenerate_codes(self, order: Order, confirm: bool = False) -> Order:
        """Replace the code triple, forget the driver and drop the location row.

        Runs as one transaction. Existing driver sessions and tracking links
        stop working; the status is left alone.
        """
        if not confirm:
            raise ConfirmationRequired()
        status = OrderStatus(order.order_status)
        if status in TERMINAL_STATUSES:
            raise TerminalStateViolation(status.value)

        old_tracking_code = order.tracking_code
        codes = await order_crud.allocate_tracking_codes(self.db)
        order.tracking_code = codes.tracking_code
        order.driver_code = codes.driver_code
        order.driver_pin = codes.driver_pin
        order.driver_name = None
        order.driver_phone = None
        removed = await location_crud.delete_locations_for_order(self.db, order.id)
        await self.db.commit()
        log.warning(
            "tracking codes regenerated: order=%s old=%s new=%s locations_removed=%s",
            order.id, old_tracking_code, codes.tracking_code, removed,
        )

        if old_tracking_code:
            self.hub.revoke(old_tracking_code)
        self.hub.publish_order(order)
        return order

    def _notify(self, order: Order) -> None:
        try:
            self.notifier(StatusNotification.for_order(order))
        except Exception as e:
            log.error("could not schedule status notification: order=%s error=%s", order.id, e)
