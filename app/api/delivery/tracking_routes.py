"""
Customer Tracking Routes

Read-only status page for one tracking code plus the live channel that
pushes a fresh view whenever the order or the driver location changes.
"""
import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.api.delivery.dependencies import get_session_factory, get_tracking_hub
from app.core.errors import NotFound
from app.crud import driver_location as location_crud
from app.crud import order as order_crud
from app.schemas.tracking import DriverLocationRead, OrderTrackingRead, TrackingView
from app.services.tracking.hub import TrackingHub
from app.services.tracking.subscriber import LiveTracker
from app.services.tracking.view import build_tracking_view

log = logging.getLogger(__name__)

router = APIRouter()


def _normalize(tracking_code: str) -> str:
    return tracking_code.strip().upper()


@router.get("/track/{tracking_code}", response_model=TrackingView)
async def tracking_page(tracking_code: str, db: AsyncSession = Depends(get_db)):
    code = _normalize(tracking_code)
    order = await order_crud.get_order_by_tracking_code(db, code)
    if not order:
        raise NotFound()
    location = await location_crud.get_location_for_order(db, order.id)
    return build_tracking_view(
        OrderTrackingRead.model_validate(order),
        DriverLocationRead.model_validate(location) if location else None,
    )


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
    except (WebSocketDisconnect, RuntimeError) as e:
        # The socket is gone either way
        log.info("tracking channel receive ended: %r", e)


@router.websocket("/ws/track/{tracking_code}")
async def tracking_channel(
    websocket: WebSocket,
    tracking_code: str,
    session_factory=Depends(get_session_factory),
    tracking_hub: TrackingHub = Depends(get_tracking_hub)
):
    await websocket.accept()
    tracker = LiveTracker(session_factory, _normalize(tracking_code), hub=tracking_hub)
    try:
        await tracker.open()
    except NotFound as e:
        await websocket.send_json({"type": "error", "detail": e.message})
        await websocket.close(code=4404)
        return

    disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
    getter = None
    try:
        await websocket.send_json({"type": "view", "data": tracker.view().model_dump(mode="json")})
        while True:
            getter = asyncio.create_task(tracker.next_event())
            done, _ = await asyncio.wait({getter, disconnected}, return_when=asyncio.FIRST_COMPLETED)
            if disconnected in done:
                break
            event = getter.result()
            if tracker.revoked:
                # Codes were regenerated; this link is dead
                await websocket.send_json({"type": "revoked", "detail": NotFound.default_message})
                await websocket.close(code=4404)
                break
            await websocket.send_json({
                "type": "view",
                "event": event["type"],
                "data": tracker.view().model_dump(mode="json"),
            })
    except WebSocketDisconnect:
        pass
    finally:
        for task in (getter, disconnected):
            if task is not None and not task.done():
                task.cancel()
        tracker.close()
        log.info("tracking channel closed: code=%s", tracker.tracking_code)
