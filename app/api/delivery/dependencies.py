from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import async_session, get_db
from app.services.tracking.hub import TrackingHub, hub
from app.services.tracking.notifications import schedule_status_notification
from app.utils.spaces import upload_public_file
from app.services.tracking.state_machine import OrderWorkflow


def get_tracking_hub() -> TrackingHub:
    return hub


def get_status_notifier():
    return schedule_status_notification


def get_photo_uploader():
    return upload_public_file


def get_workflow(
    db: AsyncSession = Depends(get_db),
    tracking_hub: TrackingHub = Depends(get_tracking_hub),
    notifier=Depends(get_status_notifier),
) -> OrderWorkflow:
    return OrderWorkflow(db, hub=tracking_hub, notifier=notifier)


def get_session_factory():
    return async_session
