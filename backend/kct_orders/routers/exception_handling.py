"""Exception handling endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Actor, get_current_actor
from ..database import get_db
from ..schemas import (
    AcknowledgeExceptionRequest,
    AutoResolveAttemptRequest,
    CreateExceptionRequest,
    EscalateExceptionRequest,
    ExceptionHandlingBody,
    GetExceptionsRequest,
    NotifyCustomerRequest,
    ResolveExceptionRequest,
)
from ..use_cases import exception_tracker

router = APIRouter(tags=["exception-handling"])


@router.post("/exception-handling")
def exception_handling(
    body: ExceptionHandlingBody,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    request = body.root
    if isinstance(request, CreateExceptionRequest):
        data = exception_tracker.create_exception_use_case(
            db=db,
            order_id=request.order_id,
            exception_type=request.exception_type,
            severity=request.severity,
            description=request.description,
            actor=actor,
        )
    elif isinstance(request, AcknowledgeExceptionRequest):
        data = exception_tracker.acknowledge_exception_use_case(db=db, exception_id=request.exception_id)
    elif isinstance(request, ResolveExceptionRequest):
        data = exception_tracker.resolve_exception_use_case(
            db=db,
            exception_id=request.exception_id,
            resolution_notes=request.resolution_notes,
            actor=actor,
        )
    elif isinstance(request, EscalateExceptionRequest):
        data = exception_tracker.escalate_exception_use_case(
            db=db,
            exception_id=request.exception_id,
            escalate_to_user_id=request.escalate_to_user_id,
            escalation_reason=request.escalation_reason,
        )
    elif isinstance(request, AutoResolveAttemptRequest):
        data = exception_tracker.attempt_auto_resolution_use_case(db=db, exception_id=request.exception_id)
    elif isinstance(request, GetExceptionsRequest):
        data = exception_tracker.get_exceptions_use_case(db=db, order_id=request.order_id)
    elif isinstance(request, NotifyCustomerRequest):
        data = exception_tracker.notify_customer_use_case(db=db, exception_id=request.exception_id)
    return {"data": data}
