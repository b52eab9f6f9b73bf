from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy import delete
from datetime import datetime
from typing import Optional
import logging

from app.models.order import Order
from app.models.driver_location import DriverLocation, LocationStatus

log = logging.getLogger(__name__)


async def get_location_for_order(db: AsyncSession, order_id: str) -> Optional[DriverLocation]:
    result = await db.execute(select(DriverLocation).where(DriverLocation.order_id == order_id))
    return result.scalar_one_or_none()


async def get_location_by_tracking_code(db: AsyncSession, tracking_code: str) -> Optional[DriverLocation]:
    result = await db.execute(
        select(DriverLocation)
        .where(DriverLocation.tracking_code == tracking_code)
        .order_by(DriverLocation.updated_at.desc())
        .limit(1)
    )
    return result.scalars().first()


def _overwrite(location: DriverLocation, tracking_code: str, latitude, longitude, status: str) -> None:
    # Full-row overwrite: concurrent writers can only ever leave a complete row behind
    location.tracking_code = tracking_code
    location.latitude = latitude
    location.longitude = longitude
    location.status = status
    location.updated_at = datetime.utcnow()


async def upsert_location(
    db: AsyncSession,
    order: Order,
    latitude: Optional[float],
    longitude: Optional[float],
    status: str = LocationStatus.OUT_FOR_DELIVERY,
) -> DriverLocation:
    """Insert the order's location row, or overwrite it in place if it exists."""
    order_id, tracking_code = order.id, order.tracking_code
    existing = await get_location_for_order(db, order_id)
    if existing:
        _overwrite(existing, tracking_code, latitude, longitude, status)
        await db.flush()
        return existing

    location = DriverLocation(order_id=order_id)
    _overwrite(location, tracking_code, latitude, longitude, status)
    db.add(location)
    try:
        await db.flush()
    except IntegrityError:
        # Lost the insert race to another writer for the same order
        await db.rollback()
        await db.refresh(order)
        existing = await get_location_for_order(db, order_id)
        if not existing:
            raise
        log.info("location upsert insert race: order=%s, updating instead", order_id)
        _overwrite(existing, tracking_code, latitude, longitude, status)
        await db.flush()
        return existing
    return location


async def set_location_status(db: AsyncSession, order_id: str, status: str) -> Optional[DriverLocation]:
    location = await get_location_for_order(db, order_id)
    if location:
        location.status = status
        location.updated_at = datetime.utcnow()
        await db.flush()
    return location


async def delete_locations_for_order(db: AsyncSession, order_id: str) -> int:
    result = await db.execute(delete(DriverLocation).where(DriverLocation.order_id == order_id))
    return result.rowcount or 0
