"""
HTTP client for the driver endpoints, used by ``LocationPublisher`` on the
driver's device. The session cookie set at login travels with every call.
"""
import logging
from typing import Optional

import httpx

from app.core import errors
from app.schemas.driver import DriverSessionState
from app.services.tracking.publisher import Position

log = logging.getLogger(__name__)

_ERRORS = {
    name: getattr(errors, name)
    for name in (
        "NotFound",
        "DeliveryNotStarted",
        "RegistrationRejected",
        "UploadRejected",
        "UploadTooLarge",
    )
}


def _raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        body = {}
    message = body.get("detail") or response.text
    error = body.get("error")
    if error == "InvalidCredential" or response.status_code == 401:
        raise errors.InvalidCredential("rejected_by_server", message)
    if error == "TerminalStateViolation":
        raise errors.TerminalStateViolation(body.get("status") or "delivered", message)
    if error == "IllegalTransition":
        raise errors.TrackingError(message)
    if error in _ERRORS:
        raise _ERRORS[error](message)
    response.raise_for_status()


def _fix(position: Optional[Position]) -> Optional[dict]:
    if position is None:
        return None
    return {"latitude": position.latitude, "longitude": position.longitude}


class HttpDeliveryClient:
    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=10.0)
        self.tracking_code: Optional[str] = None

    async def __aenter__(self) -> "HttpDeliveryClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def login(self, driver_code: str, driver_pin: str) -> DriverSessionState:
        response = await self._client.post(
            "/driver/login", json={"driver_code": driver_code, "driver_pin": driver_pin}
        )
        _raise_for_error(response)
        state = DriverSessionState.model_validate(response.json())
        self.tracking_code = state.tracking_code
        log.info("driver client logged in: next=%s", state.step)
        return state

    async def register(self, full_name: str, phone: str, agree_location: bool = True, agree_photo: bool = False) -> DriverSessionState:
        response = await self._client.post(
            "/driver/register",
            json={
                "full_name": full_name,
                "phone": phone,
                "agree_location": agree_location,
                "agree_photo": agree_photo,
            },
        )
        _raise_for_error(response)
        return DriverSessionState.model_validate(response.json())

    def _dashboard(self, action: str) -> str:
        if not self.tracking_code:
            raise RuntimeError("Log in before using the dashboard")
        return f"/driver/dashboard/{self.tracking_code}/{action}"

    async def start_delivery(self, position: Optional[Position]) -> None:
        response = await self._client.post(self._dashboard("start"), json={"fix": _fix(position)})
        _raise_for_error(response)

    async def push_location(self, position: Position) -> None:
        response = await self._client.post(self._dashboard("location"), json=_fix(position))
        _raise_for_error(response)

    async def mark_delivered(self, position: Optional[Position]) -> None:
        response = await self._client.post(self._dashboard("delivered"), json={"fix": _fix(position)})
        _raise_for_error(response)

    async def upload_photo(self, content: bytes, filename: str, content_type: str) -> str:
        response = await self._client.post(
            self._dashboard("photo"),
            files={"photo": (filename, content, content_type)},
        )
        _raise_for_error(response)
        return response.json()["delivery_photo_url"]
