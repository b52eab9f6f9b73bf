from pydantic import BaseModel
from typing import Optional

from app.models.order import OrderStatus


class DriverLogin(BaseModel):
    driver_code: str
    driver_pin: str


class DriverRegistration(BaseModel):
    full_name: str
    phone: str
    agree_location: bool = False
    agree_photo: bool = False


class DriverSessionState(BaseModel):
    """Where the driver lands after login or QR entry."""
    step: str  # "registration" | "dashboard"
    tracking_code: str
    next_url: str


class DriverDashboard(BaseModel):
    order_id: str
    tracking_code: str
    order_status: OrderStatus
    full_name: str
    phone: str
    address: Optional[str] = None
    city: Optional[str] = None
    governorate: Optional[str] = None
    notes: Optional[str] = None
    driver_name: Optional[str] = None
    delivery_photo_url: Optional[str] = None
    location_push_interval_seconds: float
