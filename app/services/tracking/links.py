from urllib.parse import quote

from app.core.config import settings


def _base_url() -> str:
    return settings.public_base_url.rstrip("/")


def tracking_url(tracking_code: str) -> str:
    return f"{_base_url()}/track/{tracking_code}"


def driver_entry_url(driver_code: str) -> str:
    """Link encoded in the driver QR code."""
    return f"{_base_url()}/driver/qr/{driver_code}"


def normalize_kuwait_phone(phone: str) -> str:
    phone = phone.replace(" ", "").replace("-", "")
    if phone.startswith("0"):
        phone = "965" + phone[1:]
    elif not phone.startswith("965") and not phone.startswith("+965"):
        phone = "965" + phone
    return phone.replace("+", "")


def whatsapp_share_url(phone: str, customer_name: str, tracking_code: str) -> str:
    message = (
        "Swiss Rose - Order Update\n\n"
        f"Hi {customer_name},\n\n"
        "Your order is on the way!\n\n"
        f"Track your delivery here:\n{tracking_url(tracking_code)}\n\n"
        "Thank you for choosing Swiss Rose!"
    )
    return f"https://wa.me/{normalize_kuwait_phone(phone)}?text={quote(message)}"
