from pydantic import BaseModel
from typing import Optional, List, Any
from datetime import datetime
from decimal import Decimal

from app.models.order import OrderStatus


class OrderBase(BaseModel):
    full_name: str
    email: Optional[str] = None
    phone: str
    address: Optional[str] = None
    city: Optional[str] = None
    governorate: Optional[str] = None
    items: Optional[List[Any]] = None
    total_amount: Decimal = Decimal("0")
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class OrderAdminRead(OrderBase):
    id: str
    created_at: datetime
    order_status: OrderStatus
    tracking_code: Optional[str] = None
    driver_code: Optional[str] = None
    driver_pin: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    delivered_at: Optional[datetime] = None
    delivery_photo_url: Optional[str] = None

    class Config:
        from_attributes = True


class CodeStatus(BaseModel):
    is_valid: bool
    has_driver: bool
    has_locations: bool
    last_update: Optional[datetime] = None


class OrderAdminDetail(BaseModel):
    order: OrderAdminRead
    next_status: Optional[OrderStatus] = None
    next_action_label: Optional[str] = None
    tracking_url: Optional[str] = None
    driver_entry_url: Optional[str] = None
    whatsapp_url: Optional[str] = None
    code_status: Optional[CodeStatus] = None


class RegenerateRequest(BaseModel):
    confirm: bool = False
