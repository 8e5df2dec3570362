"""Customer communication templates, outbox writes and SendGrid delivery."""

from __future__ import annotations

import html
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

import requests
from sqlalchemy.orm import Session

from ..config import settings
from ..models import CommunicationLog

logger = logging.getLogger(__name__)

COMMUNICATION_TYPES: tuple[str, ...] = (
    "order_confirmation",
    "payment_confirmation",
    "processing_update",
    "shipping_notification",
    "delivery_confirmation",
    "exception_alert",
    "wedding_invitation",
)

SIGNATURE = "Best regards,\nKCT Menswear Team"


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    content: str
    html: bool = False


def _date_label(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.strftime("%m/%d/%Y")


def render_order_message(communication_type: str, order: Any, *, custom_message: str | None = None) -> RenderedMessage:
    """Render the subject and plain-text body for an order communication."""
    name = getattr(order, "customer_name", None) or "Valued Customer"
    number = order.order_number
    eta = _date_label(getattr(order, "estimated_delivery_date", None))

    if communication_type == "order_confirmation":
        item_count = len(getattr(order, "items", None) or [])
        return RenderedMessage(
            subject=f"Order Confirmation - {number}",
            content=(
                f"Dear {name},\n\nThank you for your order! Your order {number} has been confirmed "
                "and is being prepared for processing.\n\n"
                f"Order Details:\n- Order Number: {number}\n- Total Amount: ${order.total_amount}\n"
                f"- Items: {item_count} items\n\nWe'll keep you updated on your order's progress.\n\n{SIGNATURE}"
            ),
        )
    if communication_type == "payment_confirmation":
        return RenderedMessage(
            subject=f"Payment Confirmed - {number}",
            content=(
                f"Dear {name},\n\nYour payment for order {number} has been successfully processed.\n\n"
                "Your order is now in our processing queue and will be prepared shortly.\n\n"
                "Thank you for choosing KCT Menswear!"
            ),
        )
    if communication_type == "processing_update":
        rush_line = "As a rush order, this is receiving priority processing.\n\n" if getattr(order, "is_rush_order", False) else ""
        return RenderedMessage(
            subject=f"Order Update - {number}",
            content=(
                f"Dear {name},\n\nGreat news! Your order {number} is now being processed by our team.\n\n"
                f"{rush_line}Estimated completion: {eta or 'We will update you soon'}\n\n{SIGNATURE}"
            ),
        )
    if communication_type == "shipping_notification":
        tracking = ""
        if getattr(order, "tracking_number", None):
            carrier = getattr(order, "shipping_carrier", None) or "Standard Shipping"
            tracking = f"Tracking Number: {order.tracking_number}\nCarrier: {carrier}\n\n"
        expected = f"on {eta}" if eta else "within the next few business days"
        return RenderedMessage(
            subject=f"Your Order Has Shipped - {number}",
            content=(
                f"Dear {name},\n\nExcellent news! Your order {number} has been shipped.\n\n"
                f"{tracking}You can expect delivery {expected}.\n\nThank you for your business!"
            ),
        )
    if communication_type == "delivery_confirmation":
        return RenderedMessage(
            subject=f"Order Delivered - {number}",
            content=(
                f"Dear {name},\n\nYour order {number} has been successfully delivered!\n\n"
                "We hope you love your new items from KCT Menswear. If you have any questions or concerns, "
                "please don't hesitate to reach out.\n\nThank you for choosing KCT Menswear."
            ),
        )
    if communication_type == "exception_alert":
        body = custom_message or "We're working to resolve this quickly and will keep you updated."
        return RenderedMessage(
            subject=f"Important Update - {number}",
            content=(
                f"Dear {name},\n\nWe wanted to inform you about an update regarding your order {number}.\n\n"
                f"{body}\n\nIf you have any questions, please contact our customer service team.\n\n"
                "Thank you for your patience."
            ),
        )
    raise ValueError(f"Unsupported order communication type: {communication_type}")


def exception_alert_text(description: str | None, delay_days: int) -> str:
    parts = ["We wanted to update you about your order.", f"{description or 'An issue was detected'}."]
    if delay_days > 0:
        parts.append(f"This may delay delivery by approximately {delay_days} days.")
    parts.append("We're working to resolve this quickly.")
    return " ".join(parts)


def invitation_link(invite_code: str) -> str:
    return f"{settings.INVITATION_BASE_URL.rstrip('/')}?invite={invite_code}"


def render_wedding_invitation(
    *,
    first_name: str | None,
    role: str,
    invite_code: str,
    custom_message: str | None = None,
) -> RenderedMessage:
    custom = f"<p><em>{html.escape(custom_message)}</em></p>" if custom_message else ""
    content = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        '<h2 style="color: #2C3E50;">Wedding Party Invitation</h2>'
        f"<p>Dear {html.escape(first_name or 'Friend')},</p>"
        f"<p>You've been invited to join our wedding party as <strong>{html.escape(role)}</strong>!</p>"
        f"{custom}"
        "<p>Please click the link below to accept your invitation and get started with your "
        "measurements and outfit selection:</p>"
        f'<a href="{invitation_link(invite_code)}">Accept Invitation</a>'
        "<p>We're excited to have you as part of this special day!</p>"
        "<p>Best regards,<br>The KCT Menswear Wedding Team</p>"
        "</div>"
    )
    return RenderedMessage(subject="You're Invited to Join Our Wedding Party!", content=content, html=True)


def enqueue_communication(
    db: Session,
    *,
    communication_type: str,
    idempotency_key: str,
    subject: str,
    message_content: str,
    recipient_email: str | None,
    recipient_name: str | None = None,
    order_id: UUID | None = None,
    trigger_reason: str | None = None,
    is_automated: bool = True,
) -> CommunicationLog:
    """Write one outbox row in the caller's transaction.

    An existing row with the same idempotency key is returned unchanged.
    """
    existing = db.query(CommunicationLog).filter(
        CommunicationLog.idempotency_key == idempotency_key
    ).first()
    if existing:
        logger.info("Skipping duplicate communication: %s", idempotency_key)
        return existing

    log = CommunicationLog(
        id=uuid.uuid4(),
        order_id=order_id,
        communication_type=communication_type,
        communication_channel="email",
        recipient_email=recipient_email,
        recipient_name=recipient_name,
        subject=subject,
        message_content=message_content,
        trigger_reason=trigger_reason,
        is_automated=is_automated,
        idempotency_key=idempotency_key,
        status="pending",
        attempts=0,
    )
    db.add(log)
    return log


def enqueue_order_communication(
    db: Session,
    *,
    order: Any,
    communication_type: str,
    idempotency_key: str,
    trigger_reason: str | None = None,
    custom_message: str | None = None,
    recipient_override: str | None = None,
) -> CommunicationLog:
    rendered = render_order_message(communication_type, order, custom_message=custom_message)
    return enqueue_communication(
        db,
        communication_type=communication_type,
        idempotency_key=idempotency_key,
        subject=rendered.subject,
        message_content=rendered.content,
        recipient_email=recipient_override or getattr(order, "customer_email", None),
        recipient_name=getattr(order, "customer_name", None),
        order_id=order.id,
        trigger_reason=trigger_reason,
    )


def send_email_via_sendgrid(
    *,
    to_email: str,
    to_name: str | None,
    subject: str,
    content: str,
    is_html: bool = False,
) -> tuple[bool, str | None]:
    """Send one message via the SendGrid v3 API."""
    if not settings.SENDGRID_API_KEY:
        return False, "SENDGRID_NOT_CONFIGURED"

    payload = {
        "personalizations": [{"to": [{"email": to_email, "name": to_name or to_email}]}],
        "from": {"email": settings.SENDGRID_FROM_EMAIL, "name": settings.SENDGRID_FROM_NAME},
        "subject": subject,
        "content": [{"type": "text/html" if is_html else "text/plain", "value": content}],
    }

    try:
        response = requests.post(
            settings.SENDGRID_API_URL,
            json=payload,
            headers={"Authorization": f"Bearer {settings.SENDGRID_API_KEY}"},
            timeout=10,
        )
    except requests.RequestException as exc:
        return False, f"EXCEPTION: {exc}"

    if response.status_code in (200, 202):
        return True, None
    if response.status_code == 429:
        retry_after = response.headers.get("Retry-After", "60")
        return False, f"RATE_LIMIT:{retry_after}"
    return False, f"HTTP_{response.status_code}: {response.text[:200]}"
