"""
Proof-of-delivery photos.

Validation happens before anything is written: a rejected upload leaves both
the bucket and the order untouched. A new upload replaces the URL on the
order; the previous object stays in the bucket.
"""
import logging
import os
import time
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import TerminalStateViolation, UploadRejected, UploadTooLarge
from app.models.order import Order, OrderStatus
from app.services.tracking.hub import TrackingHub, hub as default_hub
from app.services.tracking.state_machine import is_terminal
from app.utils.spaces import upload_public_file

log = logging.getLogger(__name__)

PHOTO_FOLDER = "delivery-photos"

Uploader = Callable[[str, bytes, str], Awaitable[str]]


def validate_photo(content_type: Optional[str], body: bytes, max_bytes: Optional[int] = None) -> None:
    max_bytes = max_bytes or settings.max_delivery_photo_bytes
    if not content_type or not content_type.startswith("image/"):
        raise UploadRejected("Please select an image file")
    if not body:
        raise UploadRejected("Empty file")
    if len(body) > max_bytes:
        raise UploadTooLarge(f"Image must be less than {max_bytes // (1024 * 1024)}MB")


def photo_key(order_id: str, filename: Optional[str], content_type: str) -> str:
    ext = os.path.splitext(filename or "")[-1].lstrip(".").lower()
    if not ext:
        ext = content_type.split("/", 1)[-1].split("+", 1)[0] or "jpg"
    return f"{PHOTO_FOLDER}/{order_id}-{int(time.time() * 1000)}.{ext}"


async def attach_delivery_photo(
    db: AsyncSession,
    order: Order,
    body: bytes,
    content_type: Optional[str],
    filename: Optional[str] = None,
    uploader: Optional[Uploader] = None,
    hub: Optional[TrackingHub] = None,
) -> Order:
    if is_terminal(order.order_status):
        raise TerminalStateViolation(OrderStatus(order.order_status).value)
    validate_photo(content_type, body)

    key = photo_key(order.id, filename, content_type)
    try:
        url = await (uploader or upload_public_file)(key, body, content_type)
    except Exception as e:
        log.error("delivery photo upload failed: order=%s key=%s error=%s", order.id, key, e)
        raise UploadRejected("Could not store the photo, please try again") from e

    order.delivery_photo_url = url
    await db.commit()
    log.info("delivery photo stored: order=%s key=%s bytes=%s", order.id, key, len(body))

    (hub or default_hub).publish_order(order)
    return order
