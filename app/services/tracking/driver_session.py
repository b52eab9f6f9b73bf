"""
Driver entry flow.

No session object is stored server-side: the signed session cookie only
remembers which order and driver code the driver logged in with, and every
request re-reads the order to decide where the driver stands:

    unauthenticated --code+PIN--> registration (driver_name is null)
                                  --name/phone/consent--> dashboard
"""
import logging
import re
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidCredential, NotFound, RegistrationRejected, TerminalStateViolation
from app.crud import order as order_crud
from app.models.order import Order, OrderStatus
from app.schemas.driver import DriverSessionState
from app.services.tracking.hub import TrackingHub, hub as default_hub

log = logging.getLogger(__name__)

PIN_PATTERN = re.compile(r"^\d{4}$")

SESSION_ORDER_KEY = "driver_order_id"
SESSION_CODE_KEY = "driver_code"

STEP_REGISTRATION = "registration"
STEP_DASHBOARD = "dashboard"


def normalize_driver_code(driver_code: Optional[str]) -> str:
    return (driver_code or "").strip().upper()


def _reject_terminal(order: Order) -> None:
    status = OrderStatus(order.order_status)
    if status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
        raise TerminalStateViolation(status.value)


async def authenticate_driver(db: AsyncSession, driver_code: str, driver_pin: str) -> Order:
    code = normalize_driver_code(driver_code)
    pin = (driver_pin or "").strip()

    if not code or not PIN_PATTERN.match(pin):
        log.info("driver login rejected: reason=malformed code=%s", code or "-")
        raise InvalidCredential("malformed", "Please enter both driver code and PIN")

    order = await order_crud.get_order_by_driver_credentials(db, code, pin)
    if not order:
        # Tell operators which half was wrong; the driver sees the same message either way
        if await order_crud.get_order_by_driver_code(db, code):
            log.warning("driver login rejected: reason=wrong_pin code=%s", code)
            raise InvalidCredential("wrong_pin")
        log.warning("driver login rejected: reason=unknown_code code=%s", code)
        raise InvalidCredential("unknown_code")

    _reject_terminal(order)
    log.info("driver login: order=%s code=%s", order.id, code)
    return order


def session_state(order: Order) -> DriverSessionState:
    if order.driver_name is None:
        return DriverSessionState(
            step=STEP_REGISTRATION,
            tracking_code=order.tracking_code,
            next_url="/driver/register",
        )
    return DriverSessionState(
        step=STEP_DASHBOARD,
        tracking_code=order.tracking_code,
        next_url=f"/driver/dashboard/{order.tracking_code}",
    )


async def load_session_order(
    db: AsyncSession,
    order_id: Optional[str],
    driver_code: Optional[str],
    allow_terminal: bool = False,
) -> Order:
    """Re-validate a driver session against the current order row.

    Regenerated codes invalidate every session opened with the old code.
    """
    if not order_id or not driver_code:
        raise InvalidCredential("no_session", "Please log in with your driver code and PIN")
    order = await order_crud.get_order(db, order_id)
    if not order or order.driver_code != driver_code:
        log.info("driver session stale: order=%s code=%s", order_id, driver_code)
        raise InvalidCredential("stale_session", "Please log in with your driver code and PIN")
    if not allow_terminal:
        _reject_terminal(order)
    return order


async def register_driver(
    db: AsyncSession,
    order: Order,
    full_name: str,
    phone: str,
    agree_location: bool,
    hub: Optional[TrackingHub] = None,
) -> Order:
    """One-time driver registration. Re-entry after registering changes nothing."""
    _reject_terminal(order)
    if order.driver_name is not None:
        return order

    full_name = (full_name or "").strip()
    phone = (phone or "").strip()
    if not full_name or not phone:
        raise RegistrationRejected("Please fill in all fields")
    if not agree_location:
        raise RegistrationRejected("Please agree to location tracking")

    order.driver_name = full_name
    order.driver_phone = phone
    await db.commit()
    log.info("driver registered: order=%s", order.id)

    (hub or default_hub).publish_order(order)
    return order


async def get_dashboard_order(db: AsyncSession, tracking_code: str, session_order: Order) -> Order:
    order = await order_crud.get_order_by_tracking_code(db, tracking_code)
    if not order or order.id != session_order.id:
        raise NotFound("Order not found")
    if order.driver_name is None:
        raise RegistrationRejected("Complete your registration to start the delivery")
    return order
