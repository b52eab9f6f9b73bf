from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import or_, update
from typing import Optional
import logging

from app.core.config import settings
from app.models.order import Order, OrderStatus
from app.services.tracking.codes import TrackingCodes, generate_tracking_codes

log = logging.getLogger(__name__)


async def get_order(db: AsyncSession, order_id: str) -> Optional[Order]:
    return await db.get(Order, order_id)


async def get_order_by_tracking_code(db: AsyncSession, tracking_code: str) -> Optional[Order]:
    result = await db.execute(select(Order).where(Order.tracking_code == tracking_code))
    return result.scalar_one_or_none()


async def get_order_by_driver_code(db: AsyncSession, driver_code: str) -> Optional[Order]:
    result = await db.execute(select(Order).where(Order.driver_code == driver_code))
    return result.scalar_one_or_none()


async def get_order_by_driver_credentials(db: AsyncSession, driver_code: str, driver_pin: str) -> Optional[Order]:
    result = await db.execute(
        select(Order).where(
            Order.driver_code == driver_code,
            Order.driver_pin == driver_pin,
        )
    )
    return result.scalar_one_or_none()


async def list_orders(db: AsyncSession, status: Optional[OrderStatus] = None):
    query = select(Order).order_by(Order.created_at.desc())
    if status:
        query = query.where(Order.order_status == status)
    result = await db.execute(query)
    return result.scalars().all()


async def codes_in_use(db: AsyncSession, codes: TrackingCodes) -> bool:
    result = await db.execute(
        select(Order.id).where(
            or_(
                Order.tracking_code == codes.tracking_code,
                Order.driver_code == codes.driver_code,
            )
        ).limit(1)
    )
    return result.first() is not None


async def allocate_tracking_codes(db: AsyncSession, attempts: Optional[int] = None) -> TrackingCodes:
    """Generate a fresh code triple that no other order holds.

    The unique columns still guard against a concurrent writer picking the
    same code between this check and the commit.
    """
    attempts = attempts or settings.code_allocation_attempts
    for attempt in range(1, attempts + 1):
        codes = generate_tracking_codes()
        if not await codes_in_use(db, codes):
            return codes
        log.warning("tracking code collision, retrying (attempt %s/%s)", attempt, attempts)
    raise RuntimeError(f"Could not allocate unique tracking codes after {attempts} attempts")


async def update_order_status(db: AsyncSession, order_id: str, expected: OrderStatus, values: dict) -> bool:
    """Write ``values`` only while the row still has status ``expected``.

    Returns False when another writer moved the order first.
    """
    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.order_status == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
