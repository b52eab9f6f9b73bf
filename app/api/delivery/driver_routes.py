"""
Delivery Driver Routes

Code + PIN entry, one-time registration and the dashboard actions a driver
takes while delivering one order.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, UploadFile, File
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.api.delivery.dependencies import get_photo_uploader, get_tracking_hub, get_workflow
from app.auth.dependencies import get_driver_order, get_driver_order_readonly
from app.core.config import settings
from app.core.errors import TrackingError
from app.models.order import Order
from app.schemas.driver import DriverDashboard, DriverLogin, DriverRegistration, DriverSessionState
from app.schemas.tracking import DriverLocationRead, LocationFix, OrderTrackingRead
from app.services.tracking import delivery
from app.services.tracking.driver_session import (
    SESSION_CODE_KEY,
    SESSION_ORDER_KEY,
    authenticate_driver,
    get_dashboard_order,
    normalize_driver_code,
    register_driver,
    session_state,
)
from app.services.tracking.hub import TrackingHub
from app.services.tracking.photos import attach_delivery_photo
from app.services.tracking.state_machine import OrderWorkflow

log = logging.getLogger(__name__)

router = APIRouter()


class FixRequest(BaseModel):
    fix: Optional[LocationFix] = None


# ==================== ENTRY ====================

@router.get("/qr/{driver_code}")
async def qr_entry(request: Request, driver_code: str, db: AsyncSession = Depends(get_db)):
    """Landing for the QR link. Only the PIN is left to enter."""
    code = normalize_driver_code(driver_code)
    if request.session.get(SESSION_CODE_KEY) == code:
        try:
            order = await get_driver_order(request, db)
        except TrackingError:
            request.session.clear()
        else:
            return {"driver_code": code, "needs_pin": False, "session": session_state(order)}
    return {"driver_code": code, "needs_pin": True, "session": None}


@router.post("/login", response_model=DriverSessionState)
async def driver_login(request: Request, body: DriverLogin, db: AsyncSession = Depends(get_db)):
    order = await authenticate_driver(db, body.driver_code, body.driver_pin)
    request.session[SESSION_ORDER_KEY] = order.id
    request.session[SESSION_CODE_KEY] = order.driver_code
    return session_state(order)


@router.post("/register", response_model=DriverSessionState)
async def driver_register(
    body: DriverRegistration,
    db: AsyncSession = Depends(get_db),
    order: Order = Depends(get_driver_order),
    tracking_hub: TrackingHub = Depends(get_tracking_hub)
):
    order = await register_driver(
        db, order, body.full_name, body.phone, body.agree_location, hub=tracking_hub
    )
    return session_state(order)


@router.get("/logout")
async def driver_logout(request: Request):
    request.session.pop(SESSION_ORDER_KEY, None)
    request.session.pop(SESSION_CODE_KEY, None)
    return {"success": True}


# ==================== DASHBOARD ====================

@router.get("/dashboard/{tracking_code}", response_model=DriverDashboard)
async def dashboard(
    tracking_code: str,
    db: AsyncSession = Depends(get_db),
    session_order: Order = Depends(get_driver_order_readonly)
):
    order = await get_dashboard_order(db, tracking_code, session_order)
    return DriverDashboard(
        order_id=order.id,
        tracking_code=order.tracking_code,
        order_status=order.order_status,
        full_name=order.full_name,
        phone=order.phone,
        address=order.address,
        city=order.city,
        governorate=order.governorate,
        notes=order.notes,
        driver_name=order.driver_name,
        delivery_photo_url=order.delivery_photo_url,
        location_push_interval_seconds=settings.location_push_interval_seconds,
    )


@router.post("/dashboard/{tracking_code}/start", response_model=OrderTrackingRead)
async def start_delivery(
    tracking_code: str,
    body: FixRequest,
    db: AsyncSession = Depends(get_db),
    session_order: Order = Depends(get_driver_order),
    workflow: OrderWorkflow = Depends(get_workflow)
):
    order = await get_dashboard_order(db, tracking_code, session_order)
    await delivery.start_delivery(workflow, order, body.fix)
    return order


@router.post("/dashboard/{tracking_code}/location", response_model=DriverLocationRead)
async def push_location(
    tracking_code: str,
    fix: LocationFix,
    db: AsyncSession = Depends(get_db),
    session_order: Order = Depends(get_driver_order),
    tracking_hub: TrackingHub = Depends(get_tracking_hub)
):
    order = await get_dashboard_order(db, tracking_code, session_order)
    return await delivery.record_location(db, order, fix, hub=tracking_hub)


@router.post("/dashboard/{tracking_code}/delivered", response_model=OrderTrackingRead)
async def mark_delivered(
    tracking_code: str,
    body: FixRequest,
    db: AsyncSession = Depends(get_db),
    session_order: Order = Depends(get_driver_order),
    workflow: OrderWorkflow = Depends(get_workflow)
):
    order = await get_dashboard_order(db, tracking_code, session_order)
    await delivery.mark_delivered(workflow, order, body.fix)
    return order


@router.post("/dashboard/{tracking_code}/photo")
async def upload_photo(
    tracking_code: str,
    photo: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    session_order: Order = Depends(get_driver_order),
    tracking_hub: TrackingHub = Depends(get_tracking_hub),
    uploader=Depends(get_photo_uploader)
):
    order = await get_dashboard_order(db, tracking_code, session_order)
    content = await photo.read()
    await attach_delivery_photo(
        db, order, content, photo.content_type, filename=photo.filename, uploader=uploader, hub=tracking_hub
    )
    return {"success": True, "delivery_photo_url": order.delivery_photo_url}
