"""
Customer notifications triggered by order status changes.

Sending is fire-and-forget: the status change is already committed when the
e-mail is scheduled, and a failed send is only logged.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Set

from app.core.errors import NotificationFailure
from app.models.order import Order, OrderStatus
from app.services.tracking.links import tracking_url
from app.utils.email_service import send_status_update_email, send_tracking_link_email

log = logging.getLogger(__name__)

_pending: Set[asyncio.Task] = set()


@dataclass(frozen=True)
class StatusNotification:
    order_id: str
    customer_email: Optional[str]
    customer_name: str
    order_status: str
    tracking_code: Optional[str] = None
    tracking_url: Optional[str] = None

    @classmethod
    def for_order(cls, order: Order) -> "StatusNotification":
        # Snapshot now: the background task must not touch the ORM object
        link = None
        if order.tracking_code and order.order_status == OrderStatus.ON_DELIVERY:
            link = tracking_url(order.tracking_code)
        return cls(
            order_id=order.id,
            customer_email=order.email,
            customer_name=order.full_name,
            order_status=OrderStatus(order.order_status).value,
            tracking_code=order.tracking_code if link else None,
            tracking_url=link,
        )


async def deliver_status_notification(notification: StatusNotification) -> None:
    try:
        result = await asyncio.to_thread(
            send_status_update_email,
            order_id=notification.order_id,
            customer_email=notification.customer_email,
            customer_name=notification.customer_name,
            order_status=notification.order_status,
            tracking_code=notification.tracking_code,
            tracking_url=notification.tracking_url,
        )
    except Exception as e:
        log.error("status email failed: order=%s status=%s error=%s",
                  notification.order_id, notification.order_status, e)
        return

    if result["success"]:
        log.info("status email sent: order=%s %s", notification.order_id, result["message"])
    else:
        log.warning("status email not sent: order=%s %s", notification.order_id, result["message"])


def schedule_status_notification(notification: StatusNotification) -> asyncio.Task:
    task = asyncio.create_task(deliver_status_notification(notification))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


async def send_tracking_link(order: Order) -> str:
    """Explicit admin action; unlike status e-mails, failures are reported back."""
    if not order.tracking_code:
        raise NotificationFailure("No tracking code available")

    link = tracking_url(order.tracking_code)
    try:
        result = await asyncio.to_thread(
            send_tracking_link_email,
            order_id=order.id,
            customer_email=order.email,
            customer_name=order.full_name,
            tracking_code=order.tracking_code,
            tracking_url=link,
        )
    except Exception as e:
        log.error("tracking link email failed: order=%s error=%s", order.id, e)
        raise NotificationFailure("Failed to send email") from e

    if not result["success"]:
        raise NotificationFailure(result["message"])
    log.info("tracking link sent: order=%s", order.id)
    return result["message"]
