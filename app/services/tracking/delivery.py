"""
Driver dashboard actions: start delivery, location writes, mark delivered.

Location writes are full-row overwrites of the order's single
``driver_locations`` row, so the interval writer and any other writer can
race without leaving a half-updated row behind; the last commit wins.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DeliveryNotStarted, TerminalStateViolation
from app.crud import driver_location as location_crud
from app.models.driver_location import DriverLocation, LocationStatus
from app.models.order import Order, OrderStatus
from app.schemas.tracking import LocationFix
from app.services.tracking.hub import TrackingHub, hub as default_hub
from app.services.tracking.state_machine import OrderWorkflow, is_terminal

log = logging.getLogger(__name__)


def _reject_terminal(order: Order) -> None:
    if is_terminal(order.order_status):
        raise TerminalStateViolation(OrderStatus(order.order_status).value)


async def start_delivery(workflow: OrderWorkflow, order: Order, fix: Optional[LocationFix] = None) -> Optional[DriverLocation]:
    """Moves the order to on_delivery when needed and records the first fix, if any.

    A missing fix still starts the delivery; the customer sees the waiting
    state until the first interval write lands.
    """
    _reject_terminal(order)
    await workflow.ensure_on_delivery(order)
    location = None
    if fix is not None:
        location = await record_location(workflow.db, order, fix, hub=workflow.hub)
    log.info("delivery started: order=%s first_fix=%s", order.id, fix is not None)
    return location


async def record_location(
    db: AsyncSession,
    order: Order,
    fix: LocationFix,
    hub: Optional[TrackingHub] = None,
) -> DriverLocation:
    _reject_terminal(order)
    if order.order_status != OrderStatus.ON_DELIVERY:
        raise DeliveryNotStarted()

    location = await location_crud.upsert_location(
        db, order, fix.latitude, fix.longitude, LocationStatus.OUT_FOR_DELIVERY
    )
    await db.commit()

    (hub or default_hub).publish_location(location)
    return location


async def mark_delivered(workflow: OrderWorkflow, order: Order, final_fix: Optional[LocationFix] = None) -> Order:
    """Final location write plus the on_delivery -> delivered transition, in one commit."""
    _reject_terminal(order)
    if order.order_status != OrderStatus.ON_DELIVERY:
        raise DeliveryNotStarted()

    if final_fix is not None:
        await location_crud.upsert_location(
            workflow.db, order, final_fix.latitude, final_fix.longitude, LocationStatus.DELIVERED
        )
    return await workflow.transition(order, OrderStatus.DELIVERED)
