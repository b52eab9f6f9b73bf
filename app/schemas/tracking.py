from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from app.models.order import OrderStatus


class OrderTrackingRead(BaseModel):
    """Order row as pushed to tracking subscribers (no driver credentials)."""
    id: str
    tracking_code: Optional[str] = None
    order_status: OrderStatus
    created_at: datetime
    city: Optional[str] = None
    governorate: Optional[str] = None
    driver_name: Optional[str] = None
    delivered_at: Optional[datetime] = None
    delivery_photo_url: Optional[str] = None

    class Config:
        from_attributes = True


class DriverLocationRead(BaseModel):
    id: str
    order_id: str
    tracking_code: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: str
    updated_at: datetime

    class Config:
        from_attributes = True


class LocationFix(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class TrackingStep(BaseModel):
    id: str
    label: str
    completed: bool
    current: bool


class MapPosition(BaseModel):
    latitude: float
    longitude: float
    status: str
    label: str


class TrackingView(BaseModel):
    tracking_code: str
    order_status: OrderStatus
    mode: str  # steps_only | waiting_for_driver | live_map | delivered | cancelled
    steps: List[TrackingStep]
    map: Optional[MapPosition] = None
    delivered_at: Optional[datetime] = None
    delivery_photo_url: Optional[str] = None
