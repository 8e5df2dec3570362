"""Customer communication endpoint (messages are queued in the outbox)."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Actor, get_current_actor
from ..database import get_db
from ..schemas import SendCommunicationRequest
from ..use_cases.communications import send_communication_use_case

router = APIRouter(tags=["customer-communication"])


@router.post("/customer-communication")
def customer_communication(
    request: SendCommunicationRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return {"data": send_communication_use_case(db=db, request=request)}
