"""Exception tracker use-cases: create, acknowledge, resolve, escalate, auto-resolve."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..auth import SYSTEM, Actor
from ..config import settings
from ..domain_errors import DomainError
from ..models import AutoResolutionTask, Order, OrderException
from ..schemas import OrderExceptionResponse, dump
from ..services.exception_rules import (
    affects_delivery,
    assess_customer_impact,
    blocks_order,
    estimated_delay_days,
    exception_title,
    is_auto_resolvable,
    normalize_severity,
    requires_customer_acceptance,
    validate_exception_transition,
)
from ..services.notifications import enqueue_order_communication, exception_alert_text
from ..services.order_state import is_terminal_status, now_utc, resume_status_after_exception
from ..services.resolution_strategies import ResolutionStrategy, strategy_for
from ..unit_of_work import UnitOfWork
from .order_lifecycle import get_order_or_404, transition_order_status

logger = logging.getLogger(__name__)


def get_exception_or_404(*, db: Session, exception_id: UUID, for_update: bool = False) -> OrderException:
    query = db.query(OrderException).filter(OrderException.id == exception_id)
    if for_update:
        query = query.with_for_update()
    exception = query.first()
    if not exception:
        raise DomainError(
            code="EXCEPTION_NOT_FOUND",
            http_status=404,
            message="Exception not found",
            details={"exception_id": str(exception_id)},
        )
    return exception


def _move_exception(exception: OrderException, next_status: str) -> None:
    try:
        validate_exception_transition(current_status=exception.status, next_status=next_status)
    except ValueError as exc:
        raise DomainError(
            code="EXCEPTION_INVALID_STATUS_TRANSITION",
            http_status=409,
            message=str(exc),
            details={"exception_id": str(exception.id), "from": exception.status, "to": next_status},
        )
    exception.status = next_status


def create_exception(
    *,
    db: Session,
    order: Order,
    exception_type: str,
    severity: str,
    description: Optional[str] = None,
    actor: Actor = SYSTEM,
    now: Optional[datetime] = None,
) -> OrderException:
    """Record an exception in the caller's transaction.

    High and critical severities move a live order into `exception`; auto-resolvable
    types get a delayed auto-resolution task.
    """
    try:
        severity = normalize_severity(severity)
    except ValueError as exc:
        raise DomainError(code="EXCEPTION_INVALID_SEVERITY", http_status=400, message=str(exc))

    ts = now or now_utc()
    impact = assess_customer_impact(exception_type, severity, order)
    exception = OrderException(
        id=uuid.uuid4(),
        order_id=order.id,
        exception_type=exception_type,
        severity=severity,
        status="open",
        title=exception_title(exception_type, order.order_number),
        description=description,
        auto_resolvable=is_auto_resolvable(exception_type),
        affects_delivery_date=affects_delivery(exception_type),
        estimated_delay_days=estimated_delay_days(exception_type, severity),
        customer_impact_level=impact,
        customer_acceptance_required=requires_customer_acceptance(impact),
        resolution_attempted=False,
        escalation_required=False,
        escalation_level=0,
        customer_notified=False,
        created_at=ts,
        updated_at=ts,
    )
    db.add(exception)

    if blocks_order(severity) and not is_terminal_status(order.status):
        transition_order_status(
            db=db,
            order=order,
            new_status="exception",
            actor=actor,
            notes=f"Exception: {exception.title}",
            status_reason=description,
            exception_type=exception_type,
            now=ts,
        )

    if exception.auto_resolvable:
        db.add(
            AutoResolutionTask(
                exception_id=exception.id,
                status="pending",
                attempts=0,
                run_after=ts + timedelta(seconds=settings.AUTO_RESOLUTION_DELAY_SECONDS),
                idempotency_key=f"auto_resolve:{exception.id}",
            )
        )

    logger.info(
        "Exception %s on order %s: type=%s severity=%s impact=%s",
        exception.id,
        order.order_number,
        exception_type,
        severity,
        impact,
    )
    return exception


def create_exception_use_case(
    *,
    db: Session,
    order_id: UUID,
    exception_type: str,
    severity: str,
    description: Optional[str],
    actor: Actor,
) -> dict[str, Any]:
    with UnitOfWork(db):
        order = get_order_or_404(db=db, order_id=order_id, for_update=True)
        exception = create_exception(
            db=db,
            order=order,
            exception_type=exception_type,
            severity=severity,
            description=description,
            actor=actor,
        )
    return {
        "exception": dump(OrderExceptionResponse, exception),
        "autoResolutionQueued": exception.auto_resolvable,
        "impactLevel": exception.customer_impact_level,
        "affectsDelivery": exception.affects_delivery_date,
        "estimatedDelayDays": exception.estimated_delay_days,
    }


def acknowledge_exception_use_case(*, db: Session, exception_id: UUID) -> dict[str, Any]:
    with UnitOfWork(db):
        exception = get_exception_or_404(db=db, exception_id=exception_id, for_update=True)
        _move_exception(exception, "in_progress")
        exception.updated_at = now_utc()
    return dump(OrderExceptionResponse, exception)


def resolve_exception(
    *,
    db: Session,
    exception: OrderException,
    notes: Optional[str] = None,
    actor: Actor = SYSTEM,
    now: Optional[datetime] = None,
) -> bool:
    """Resolve one exception; returns True when the order left `exception` as a result.

    The order resumes the status it held before the exception.
    """
    ts = now or now_utc()
    _move_exception(exception, "resolved")
    exception.resolved_at = ts
    exception.updated_at = ts
    if notes is not None:
        exception.resolution_notes = notes

    remaining = db.query(OrderException).filter(
        OrderException.order_id == exception.order_id,
        OrderException.id != exception.id,
        OrderException.status != "resolved",
    ).count()
    if remaining:
        return False

    order = get_order_or_404(db=db, order_id=exception.order_id, for_update=True)
    if order.status != "exception":
        return False
    transition_order_status(
        db=db,
        order=order,
        new_status=resume_status_after_exception(order.status_before_exception),
        actor=actor,
        notes="All exceptions resolved",
        now=ts,
    )
    return True


def resolve_exception_use_case(
    *,
    db: Session,
    exception_id: UUID,
    resolution_notes: Optional[str],
    actor: Actor,
) -> dict[str, Any]:
    with UnitOfWork(db):
        exception = get_exception_or_404(db=db, exception_id=exception_id, for_update=True)
        order_reverted = resolve_exception(db=db, exception=exception, notes=resolution_notes, actor=actor)
        resolved_at = exception.resolved_at
    logger.info("Exception %s resolved by %s", exception_id, actor.label)
    return {
        "resolved": True,
        "exceptionId": str(exception_id),
        "resolutionNotes": resolution_notes,
        "resolvedAt": resolved_at.isoformat(),
        "orderReturnedToProcessing": order_reverted,
    }


def escalate_exception_use_case(
    *,
    db: Session,
    exception_id: UUID,
    escalate_to_user_id: UUID,
    escalation_reason: Optional[str] = None,
) -> dict[str, Any]:
    ts = now_utc()
    with UnitOfWork(db):
        exception = get_exception_or_404(db=db, exception_id=exception_id, for_update=True)
        _move_exception(exception, "escalated")
        exception.escalated_to_user_id = escalate_to_user_id
        exception.escalation_level = (exception.escalation_level or 0) + 1
        exception.escalation_required = True
        exception.escalation_reason = escalation_reason or exception.escalation_reason or "Manual escalation"
        exception.escalated_at = ts
        exception.updated_at = ts
    logger.warning("Exception %s escalated to %s", exception_id, escalate_to_user_id)
    return {
        "escalated": True,
        "exceptionId": str(exception_id),
        "escalatedTo": str(escalate_to_user_id),
        "escalatedAt": ts.isoformat(),
    }


def attempt_auto_resolution(
    *,
    db: Session,
    exception: OrderException,
    strategy: Optional[ResolutionStrategy] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    if not exception.auto_resolvable:
        raise DomainError(
            code="EXCEPTION_NOT_AUTO_RESOLVABLE",
            http_status=409,
            message="Exception type does not support automatic resolution",
            details={"exception_id": str(exception.id), "exception_type": exception.exception_type},
        )
    if exception.status != "open":
        raise DomainError(
            code="EXCEPTION_NOT_OPEN",
            http_status=409,
            message=f"Auto-resolution requires an open exception (status is {exception.status})",
            details={"exception_id": str(exception.id)},
        )

    ts = now or now_utc()
    order = get_order_or_404(db=db, order_id=exception.order_id)
    outcome = (strategy or strategy_for(exception.exception_type)).attempt(exception, order)

    exception.resolution_attempted = True
    exception.resolution_notes = outcome.notes
    exception.updated_at = ts
    if outcome.success:
        resolve_exception(db=db, exception=exception, notes=outcome.notes, actor=SYSTEM, now=ts)

    logger.info(
        "Auto-resolution of exception %s (%s): %s",
        exception.id,
        exception.exception_type,
        "resolved" if outcome.success else "failed",
    )
    return {
        "autoResolutionAttempted": True,
        "resolutionSuccess": outcome.success,
        "resolutionNotes": outcome.notes,
        "exceptionId": str(exception.id),
    }


def attempt_auto_resolution_use_case(*, db: Session, exception_id: UUID) -> dict[str, Any]:
    with UnitOfWork(db):
        exception = get_exception_or_404(db=db, exception_id=exception_id, for_update=True)
        return attempt_auto_resolution(db=db, exception=exception)


def get_exceptions_use_case(*, db: Session, order_id: Optional[UUID] = None) -> dict[str, Any]:
    query = db.query(OrderException)
    if order_id is not None:
        query = query.filter(OrderException.order_id == order_id)
    exceptions = query.order_by(OrderException.created_at.desc()).all()
    return {
        "exceptions": [dump(OrderExceptionResponse, exception) for exception in exceptions],
        "count": len(exceptions),
        "openCount": sum(1 for exception in exceptions if exception.status == "open"),
        "resolvedCount": sum(1 for exception in exceptions if exception.status == "resolved"),
    }


def notify_customer(
    *,
    db: Session,
    exception: OrderException,
    order: Order,
    custom_message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> datetime:
    ts = now or now_utc()
    enqueue_order_communication(
        db,
        order=order,
        communication_type="exception_alert",
        idempotency_key=f"exception_alert:{exception.id}",
        trigger_reason=f"Exception: {exception.exception_type}",
        custom_message=custom_message or exception_alert_text(exception.description, exception.estimated_delay_days),
    )
    exception.customer_notified = True
    exception.customer_notification_sent_at = ts
    return ts


def notify_customer_use_case(*, db: Session, exception_id: UUID) -> dict[str, Any]:
    with UnitOfWork(db):
        exception = get_exception_or_404(db=db, exception_id=exception_id, for_update=True)
        order = get_order_or_404(db=db, order_id=exception.order_id)
        sent_at = notify_customer(db=db, exception=exception, order=order)
    return {
        "customerNotified": True,
        "exceptionId": str(exception_id),
        "notificationSentAt": sent_at.isoformat(),
    }
