"""Ad-hoc customer communications written to the outbox."""
from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.orm import Session

from ..schemas import SendCommunicationRequest
from ..services.notifications import enqueue_order_communication
from ..unit_of_work import UnitOfWork
from .order_lifecycle import get_order_or_404


def send_communication_use_case(*, db: Session, request: SendCommunicationRequest) -> dict[str, Any]:
    with UnitOfWork(db):
        order = get_order_or_404(db=db, order_id=request.order_id)
        log = enqueue_order_communication(
            db,
            order=order,
            communication_type=request.communication_type,
            # Manual sends are never deduplicated.
            idempotency_key=f"manual:{request.communication_type}:{order.id}:{uuid.uuid4()}",
            trigger_reason=request.trigger_reason or "Manual send",
            custom_message=request.custom_message,
            recipient_override=request.recipient_override,
        )
        log.is_automated = False
        response = {
            "communicationId": str(log.id),
            "orderId": str(order.id),
            "communicationType": request.communication_type,
            "recipient": log.recipient_email,
            "subject": log.subject,
            "deliveryStatus": "queued" if log.recipient_email else "skipped",
        }
    return response
