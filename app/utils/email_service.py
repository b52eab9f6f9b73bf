# app/utils/email_service.py

from html import escape
from typing import Any, Optional
import logging
import resend

from app.core.config import settings

log = logging.getLogger(__name__)

STATUS_HEADLINES = {
    "pending": "We received your order",
    "accepted": "Your order has been accepted",
    "preparing": "We are preparing your order",
    "on_delivery": "Your order is on the way!",
    "delivered": "Your order has been delivered",
    "cancelled": "Your order has been cancelled",
}


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and "@" in email and "." in email


def _send(params: dict) -> dict[str, Any]:
    if not settings.resend_api_key:
        return {"success": False, "message": "RESEND API key not configured"}

    # Set API key (this is a global setting in resend library)
    resend.api_key = settings.resend_api_key

    log.info("sending email: to=%s subject=%s", params["to"], params["subject"])
    email_result = resend.Emails.send(params)

    return {
        "success": True,
        "message": f"Email sent successfully (ID: {email_result.get('id', 'unknown')})",
        "email_id": email_result.get("id"),
    }


def send_status_update_email(
    order_id: str,
    customer_email: Optional[str],
    customer_name: str,
    order_status: str,
    tracking_code: Optional[str] = None,
    tracking_url: Optional[str] = None,
) -> dict[str, Any]:
    """
    Tell the customer their order moved to ``order_status``.

    Returns:
        dict with 'success' (bool) and 'message' (str). Transport errors
        from RESEND propagate to the caller.
    """
    if not is_valid_email(customer_email):
        return {"success": False, "message": "Customer has no valid email address"}

    headline = STATUS_HEADLINES.get(order_status, f"Order status: {order_status}")
    html_content = _build_status_email_html(
        customer_name=customer_name,
        order_id=order_id,
        headline=headline,
        order_status=order_status,
        tracking_code=tracking_code,
        tracking_url=tracking_url,
    )
    return _send({
        "from": settings.order_from_email,
        "to": [customer_email],
        "subject": f"{headline} - Order #{order_id[:8]}",
        "html": html_content,
    })


def send_tracking_link_email(
    order_id: str,
    customer_email: Optional[str],
    customer_name: str,
    tracking_code: str,
    tracking_url: str,
) -> dict[str, Any]:
    if not is_valid_email(customer_email):
        return {"success": False, "message": "Invalid customer email for tracking link"}

    html_content = _build_tracking_link_html(
        customer_name=customer_name,
        order_id=order_id,
        tracking_code=tracking_code,
        tracking_url=tracking_url,
    )
    return _send({
        "from": settings.order_from_email,
        "to": [customer_email],
        "subject": f"Track Your Delivery - {tracking_code}",
        "html": html_content,
    })


def _tracking_block(tracking_code: Optional[str], tracking_url: Optional[str]) -> str:
    if not tracking_code or not tracking_url:
        return ""
    return f"""
        <div style="background-color: #dbeafe; padding: 20px; border-radius: 8px; margin: 20px 0; text-align: center;">
            <p style="margin: 0; color: #1e3a8a;">Tracking code</p>
            <p style="margin: 8px 0; font-size: 22px; font-weight: 700; letter-spacing: 2px;">{escape(tracking_code)}</p>
            <a href="{escape(tracking_url)}" style="display: inline-block; background: #667eea; color: #ffffff; padding: 14px 28px; text-decoration: none; border-radius: 8px; font-weight: 600;">Track your delivery</a>
        </div>
    """


def _build_status_email_html(
    customer_name: str,
    order_id: str,
    headline: str,
    order_status: str,
    tracking_code: Optional[str],
    tracking_url: Optional[str],
) -> str:
    """Build HTML email for an order status change"""
    return f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>{escape(headline)}</title></head>
    <body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f3f4f6;">
        <div style="max-width: 600px; margin: 0 auto; background-color: #ffffff;">
            <div style="background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); padding: 32px; text-align: center;">
                <h1 style="margin: 0; color: #ffffff; font-size: 26px;">{escape(headline)}</h1>
                <p style="margin: 8px 0 0 0; color: #e0e7ff; font-size: 14px;">Order #{escape(order_id[:8])}</p>
            </div>
            <div style="padding: 32px;">
                <p>Hi {escape(customer_name)},</p>
                <p>Your order status is now <strong>{escape(order_status.replace('_', ' '))}</strong>.</p>
                {_tracking_block(tracking_code, tracking_url)}
            </div>
            <div style="background-color: #f9fafb; padding: 24px; text-align: center; border-top: 1px solid #e5e7eb;">
                <p style="margin: 0; color: #6b7280; font-size: 14px;">Swiss Rose Kuwait | Premium Gifts &amp; Flowers</p>
                <p style="margin: 8px 0 0 0; color: #9ca3af; font-size: 12px;">Need help? Contact us at {escape(settings.admin_email)}</p>
            </div>
        </div>
    </body>
    </html>
    """


def _build_tracking_link_html(customer_name: str, order_id: str, tracking_code: str, tracking_url: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>Track Your Delivery</title></head>
    <body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f3f4f6;">
        <div style="max-width: 600px; margin: 0 auto; background-color: #ffffff;">
            <div style="background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); padding: 32px; text-align: center;">
                <h1 style="margin: 0; color: #ffffff;">Your order is on the way!</h1>
                <p style="margin: 8px 0 0 0; color: #e0e7ff; font-size: 14px;">Order #{escape(order_id[:8])}</p>
            </div>
            <div style="padding: 32px;">
                <p>Hi {escape(customer_name)},</p>
                <p>Follow your driver live until your delivery arrives.</p>
                {_tracking_block(tracking_code, tracking_url)}
            </div>
        </div>
    </body>
    </html>
    """
