import pytest

from app.core.errors import NotificationFailure
from app.models import OrderStatus
from app.services.tracking import notifications
from app.services.tracking.links import normalize_kuwait_phone, tracking_url, whatsapp_share_url
from app.services.tracking.notifications import (
    StatusNotification,
    deliver_status_notification,
    schedule_status_notification,
    send_tracking_link,
)
from app.utils import email_service

CODES = dict(tracking_code="SR-7KQ2ZD", driver_code="DRV-5R8A", driver_pin="4821")


@pytest.mark.parametrize("raw, normalized", [
    ("0555 123 45", "96555512345"),
    ("55512345", "96555512345"),
    ("+965 5551-2345", "96555512345"),
    ("96555512345", "96555512345"),
])
def test_normalize_kuwait_phone(raw, normalized):
    assert normalize_kuwait_phone(raw) == normalized


def test_whatsapp_link_carries_the_tracking_link():
    url = whatsapp_share_url("55512345", "Fatima", "SR-7KQ2ZD")
    assert url.startswith("https://wa.me/96555512345?text=")
    assert "SR-7KQ2ZD" in url
    assert " " not in url


async def test_notification_only_links_while_on_delivery(make_order):
    order = await make_order(OrderStatus.ON_DELIVERY, **CODES)
    notification = StatusNotification.for_order(order)
    assert notification.tracking_url == tracking_url("SR-7KQ2ZD")

    order.order_status = OrderStatus.DELIVERED
    notification = StatusNotification.for_order(order)
    assert notification.order_status == "delivered"
    assert notification.tracking_url is None


async def test_failed_status_email_is_swallowed(monkeypatch, caplog):
    def explode(**kwargs):
        raise ConnectionError("resend unreachable")

    monkeypatch.setattr(notifications, "send_status_update_email", explode)
    notification = StatusNotification("o1", "a@example.com", "Fatima", "accepted")

    task = schedule_status_notification(notification)
    await task
    assert task.exception() is None
    assert "status email failed" in caplog.text


async def test_status_email_sent(monkeypatch):
    sent = []

    def fake_send(**kwargs):
        sent.append(kwargs)
        return {"success": True, "message": "Email sent successfully (ID: e1)"}

    monkeypatch.setattr(notifications, "send_status_update_email", fake_send)
    await deliver_status_notification(
        StatusNotification("o1", "a@example.com", "Fatima", "on_delivery", "SR-7KQ2ZD", "http://x/track/SR-7KQ2ZD")
    )
    assert sent[0]["tracking_code"] == "SR-7KQ2ZD"


async def test_tracking_link_needs_a_code(make_order):
    order = await make_order(OrderStatus.PREPARING)
    with pytest.raises(NotificationFailure):
        await send_tracking_link(order)


async def test_tracking_link_transport_error(make_order, monkeypatch):
    def explode(**kwargs):
        raise ConnectionError("resend unreachable")

    monkeypatch.setattr(notifications, "send_tracking_link_email", explode)
    order = await make_order(OrderStatus.ON_DELIVERY, **CODES)
    with pytest.raises(NotificationFailure) as exc:
        await send_tracking_link(order)
    assert exc.value.message == "Failed to send email"


def test_email_skipped_without_api_key(monkeypatch):
    monkeypatch.setattr(email_service.settings, "resend_api_key", "")
    result = email_service.send_status_update_email("o1", "a@example.com", "Fatima", "accepted")
    assert result["success"] is False


def test_email_skipped_without_address():
    result = email_service.send_status_update_email("o1", None, "Fatima", "accepted")
    assert result == {"success": False, "message": "Customer has no valid email address"}


def test_email_html_escapes_customer_input(monkeypatch):
    captured = {}
    monkeypatch.setattr(email_service.settings, "resend_api_key", "re_test")
    monkeypatch.setattr(email_service.resend.Emails, "send", lambda params: captured.update(params) or {"id": "e1"})

    result = email_service.send_tracking_link_email(
        "order-1234", "a@example.com", "<script>x</script>", "SR-7KQ2ZD", "http://x/track/SR-7KQ2ZD"
    )
    assert result["success"] is True
    assert "<script>" not in captured["html"]
    assert captured["subject"] == "Track Your Delivery - SR-7KQ2ZD"
