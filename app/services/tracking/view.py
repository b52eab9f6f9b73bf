"""
What the customer tracking page shows, derived from the current order and
location snapshots. Nothing here is stored.
"""
from typing import List, Optional

from app.models.order import OrderStatus
from app.schemas.tracking import (
    DriverLocationRead,
    MapPosition,
    OrderTrackingRead,
    TrackingStep,
    TrackingView,
)

MODE_STEPS_ONLY = "steps_only"
MODE_WAITING = "waiting_for_driver"
MODE_LIVE_MAP = "live_map"
MODE_DELIVERED = "delivered"
MODE_CANCELLED = "cancelled"

TIMELINE = [
    ("pending", "Order Placed"),
    ("preparing", "Preparing"),
    ("on_delivery", "Out for Delivery"),
    ("delivered", "Delivered"),
]

# accepted and preparing share the "Preparing" step
STEP_INDEX = {
    OrderStatus.PENDING: 0,
    OrderStatus.ACCEPTED: 1,
    OrderStatus.PREPARING: 1,
    OrderStatus.ON_DELIVERY: 2,
    OrderStatus.DELIVERED: 3,
}


def timeline_step(status: OrderStatus) -> int:
    return STEP_INDEX.get(OrderStatus(status), 0)


def build_steps(status: OrderStatus) -> List[TrackingStep]:
    current = timeline_step(status)
    return [
        TrackingStep(id=step_id, label=label, completed=index < current, current=index == current)
        for index, (step_id, label) in enumerate(TIMELINE)
    ]


def _has_fix(location: Optional[DriverLocationRead]) -> bool:
    return location is not None and location.latitude is not None and location.longitude is not None


def build_tracking_view(order: OrderTrackingRead, location: Optional[DriverLocationRead] = None) -> TrackingView:
    status = OrderStatus(order.order_status)
    view = TrackingView(
        tracking_code=order.tracking_code or "",
        order_status=status,
        mode=MODE_STEPS_ONLY,
        steps=build_steps(status),
    )

    if status == OrderStatus.CANCELLED:
        view.mode = MODE_CANCELLED
    elif status == OrderStatus.ON_DELIVERY:
        if _has_fix(location):
            view.mode = MODE_LIVE_MAP
            view.map = MapPosition(
                latitude=location.latitude,
                longitude=location.longitude,
                status=location.status,
                label="Live Driver Location",
            )
        else:
            view.mode = MODE_WAITING
    elif status == OrderStatus.DELIVERED:
        view.mode = MODE_DELIVERED
        view.delivered_at = order.delivered_at
        view.delivery_photo_url = order.delivery_photo_url
        if _has_fix(location):
            view.map = MapPosition(
                latitude=location.latitude,
                longitude=location.longitude,
                status=location.status,
                label="Delivery Location",
            )
    return view
