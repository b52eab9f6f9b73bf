"""
Delivery Admin Routes

Back-office endpoints for moving orders through the delivery workflow and
managing their tracking codes.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.auth.dependencies import get_current_admin_user
from app.api.delivery.dependencies import get_workflow
from app.core.errors import NotFound
from app.crud import driver_location as location_crud
from app.crud import order as order_crud
from app.models.order import Order, OrderStatus
from app.models.user import User
from app.schemas.order import CodeStatus, OrderAdminDetail, OrderAdminRead, RegenerateRequest
from app.services.tracking.links import driver_entry_url, tracking_url, whatsapp_share_url
from app.services.tracking.notifications import send_tracking_link
from app.services.tracking.state_machine import OrderWorkflow, next_action_label, next_status
from app.utils.email_service import is_valid_email

log = logging.getLogger(__name__)

router = APIRouter()


async def _load(db: AsyncSession, order_id: str) -> Order:
    order = await order_crud.get_order(db, order_id)
    if not order:
        raise NotFound("Order not found")
    return order


async def _code_status(db: AsyncSession, order: Order) -> Optional[CodeStatus]:
    if not order.tracking_code:
        return None
    location = await location_crud.get_location_for_order(db, order.id)
    return CodeStatus(
        is_valid=bool(order.tracking_code and order.driver_code and order.driver_pin),
        has_driver=order.driver_name is not None,
        has_locations=location is not None,
        last_update=location.updated_at if location else None,
    )


async def _detail(db: AsyncSession, order: Order) -> OrderAdminDetail:
    detail = OrderAdminDetail(
        order=OrderAdminRead.model_validate(order),
        next_status=next_status(order.order_status),
        next_action_label=next_action_label(order.order_status),
        code_status=await _code_status(db, order),
    )
    if order.tracking_code:
        detail.tracking_url = tracking_url(order.tracking_code)
        detail.whatsapp_url = whatsapp_share_url(order.phone, order.full_name, order.tracking_code)
    if order.driver_code:
        detail.driver_entry_url = driver_entry_url(order.driver_code)
    return detail


# ==================== ORDERS ====================

@router.get("", response_model=List[OrderAdminRead])
async def list_orders(
    status: Optional[OrderStatus] = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_admin_user)
):
    """Orders newest first, optionally filtered by status"""
    return await order_crud.list_orders(db, status)


@router.get("/{order_id}", response_model=OrderAdminDetail)
async def order_detail(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_admin_user)
):
    order = await _load(db, order_id)
    return await _detail(db, order)


# ==================== STATUS ====================

@router.post("/{order_id}/advance", response_model=OrderAdminDetail)
async def advance_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    workflow: OrderWorkflow = Depends(get_workflow),
    user: User = Depends(get_current_admin_user)
):
    order = await _load(db, order_id)
    await workflow.advance(order)
    return await _detail(db, order)


@router.post("/{order_id}/cancel", response_model=OrderAdminDetail)
async def cancel_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    workflow: OrderWorkflow = Depends(get_workflow),
    user: User = Depends(get_current_admin_user)
):
    order = await _load(db, order_id)
    await workflow.cancel(order)
    return await _detail(db, order)


# ==================== TRACKING CODES ====================

@router.post("/{order_id}/regenerate", response_model=OrderAdminDetail)
async def regenerate_codes(
    order_id: str,
    body: RegenerateRequest,
    db: AsyncSession = Depends(get_db),
    workflow: OrderWorkflow = Depends(get_workflow),
    user: User = Depends(get_current_admin_user)
):
    """Invalidates the old codes, the driver registration and the location history"""
    order = await _load(db, order_id)
    await workflow.regenerate_codes(order, confirm=body.confirm)
    log.info("regeneration requested by user=%s", user.id)
    return await _detail(db, order)


@router.post("/{order_id}/send-tracking-link")
async def email_tracking_link(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_admin_user)
):
    order = await _load(db, order_id)
    if not is_valid_email(order.email):
        return {"success": False, "message": "Customer has no valid e-mail address"}
    message = await send_tracking_link(order)
    return {"success": True, "message": message}
