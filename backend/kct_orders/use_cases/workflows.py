"""Order workflow automation: each action is one all-or-nothing transaction."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import Actor
from ..domain_errors import DomainError
from ..models import Order, OrderException, OrderItem, WorkflowRun
from ..schemas import (
    BundleOrderProcessingRequest,
    ExceptionHandlingWorkflowRequest,
    IntelligentOrderRoutingRequest,
    ProcessPaymentConfirmationRequest,
    QualityAssuranceWorkflowRequest,
    WeddingPartyCoordinationRequest,
)
from ..services.order_state import now_utc
from ..services.resolution_strategies import QualityInspector, SimulatedQualityInspector
from ..services.routing import (
    bundle_plan,
    group_bundle_items,
    routing_decision,
    wedding_coordination_plan,
)
from ..unit_of_work import UnitOfWork
from .exception_tracker import create_exception, notify_customer, resolve_exception
from .order_lifecycle import ensure_queue_entry, get_order_or_404, transition_order_status

logger = logging.getLogger(__name__)

PAYMENT_NEXT_STEPS = ["processing_queue_entry", "customer_notification_sent", "workflow_initiated"]

_quality_inspector: QualityInspector = SimulatedQualityInspector()


def set_quality_inspector(inspector: QualityInspector) -> QualityInspector:
    """Install the inspector used by QA runs and return the one it replaces."""
    global _quality_inspector
    previous, _quality_inspector = _quality_inspector, inspector
    return previous


def _resolve_open_exceptions(
    db: Session, order: Order, *, exception_type: str, notes: str, actor: Actor, now: datetime
) -> int:
    exceptions = db.query(OrderException).filter(
        OrderException.order_id == order.id,
        OrderException.exception_type == exception_type,
        OrderException.status != "resolved",
    ).order_by(OrderException.created_at.asc()).with_for_update().all()
    for exception in exceptions:
        resolve_exception(db=db, exception=exception, notes=notes, actor=actor, now=now)
    return len(exceptions)


def _route(db: Session, order: Order, *, processor_id, now: datetime) -> dict[str, Any]:
    entry, _created = ensure_queue_entry(db=db, order=order, now=now)
    decision = routing_decision(order, now=now, processor_id=processor_id)

    order.estimated_processing_hours = decision.estimated_hours
    entry.estimated_completion = decision.estimated_completion
    if processor_id is not None and entry.queue_status != "completed":
        order.assigned_processor_id = processor_id
        entry.assigned_to_user_id = processor_id
        entry.queue_status = "assigned"
        entry.assigned_at = now
    return decision.as_response()


def _process_payment_confirmation(
    db: Session, request: ProcessPaymentConfirmationRequest, actor: Actor, now: datetime
) -> dict[str, Any]:
    order = get_order_or_404(db=db, order_id=request.order_id, for_update=True)
    # A successful payment settles earlier failed attempts.
    _resolve_open_exceptions(
        db, order, exception_type="payment_retry", notes="Payment confirmed", actor=actor, now=now
    )
    transition_order_status(
        db=db,
        order=order,
        new_status="payment_confirmed",
        actor=actor,
        notes="Payment successfully processed",
        now=now,
    )
    order.payment_status = "paid"
    routing = _route(db, order, processor_id=None, now=now)
    return {
        "success": True,
        "orderId": str(order.id),
        "status": order.status,
        "nextSteps": PAYMENT_NEXT_STEPS,
        "routing": routing,
    }


def _intelligent_order_routing(
    db: Session, request: IntelligentOrderRoutingRequest, actor: Actor, now: datetime
) -> dict[str, Any]:
    order = get_order_or_404(db=db, order_id=request.order_id, for_update=True)
    return _route(db, order, processor_id=request.parameters.processor_id, now=now)


def _bundle_order_processing(
    db: Session, request: BundleOrderProcessingRequest, actor: Actor, now: datetime
) -> dict[str, Any]:
    order = get_order_or_404(db=db, order_id=request.order_id, for_update=True)
    items = db.query(OrderItem).filter(
        OrderItem.order_id == order.id,
        OrderItem.is_bundle_item.is_(True),
    ).all()
    results = [bundle_plan(bundle_type, grouped) for bundle_type, grouped in group_bundle_items(items).items()]
    order.processing_notes = f"Bundle processing initiated: {len(results)} bundles"
    order.updated_at = now
    return {"bundleResults": results, "totalBundles": len(results)}


def _wedding_party_coordination(
    db: Session, request: WeddingPartyCoordinationRequest, actor: Actor, now: datetime
) -> dict[str, Any]:
    order = get_order_or_404(db=db, order_id=request.order_id, for_update=True)
    if order.group_order_id:
        party_orders = db.query(Order).filter(
            Order.group_order_id == order.group_order_id,
        ).order_by(Order.created_at.asc()).with_for_update().all()
    else:
        party_orders = [order]

    plan = wedding_coordination_plan(party_orders, now=now)
    for party_order in party_orders:
        party_order.estimated_delivery_date = plan["targetDeliveryDate"]
        party_order.processing_notes = f"Wedding party coordination: {plan['partySize']} orders"
        party_order.updated_at = now
    return {**plan, "targetDeliveryDate": plan["targetDeliveryDate"].isoformat()}


def _exception_handling(
    db: Session, request: ExceptionHandlingWorkflowRequest, actor: Actor, now: datetime
) -> dict[str, Any]:
    params = request.parameters
    order = get_order_or_404(db=db, order_id=request.order_id, for_update=True)
    exception = create_exception(
        db=db,
        order=order,
        exception_type=params.type,
        severity=params.severity,
        description=params.description,
        actor=actor,
        now=now,
    )
    if exception.severity == "critical":
        exception.escalation_required = True
        exception.escalation_reason = "Critical severity exception"
    if params.notify_customer:
        notify_customer(db=db, exception=exception, order=order, custom_message=params.customer_message, now=now)
    return {
        "exceptionId": str(exception.id),
        "status": "created",
        "escalationRequired": exception.escalation_required,
        "customerNotified": exception.customer_notified,
    }


def _quality_assurance_workflow(
    db: Session, request: QualityAssuranceWorkflowRequest, actor: Actor, now: datetime
) -> dict[str, Any]:
    order = get_order_or_404(db=db, order_id=request.order_id, for_update=True)
    if order.status == "in_production":
        transition_order_status(
            db=db, order=order, new_status="quality_check", actor=actor, notes="Quality assurance started", now=now
        )
    if order.status != "quality_check":
        raise DomainError(
            code="ORDER_NOT_READY_FOR_QA",
            http_status=409,
            message=f"Quality assurance requires an order in production or quality check (status is {order.status})",
            details={"order_id": str(order.id)},
        )

    checks = _quality_inspector.inspect(order)
    all_passed = all(check.passed for check in checks)
    exception_id = None
    if all_passed:
        _resolve_open_exceptions(
            db, order, exception_type="quality_issue", notes="Quality checks passed", actor=actor, now=now
        )
        transition_order_status(
            db=db, order=order, new_status="packaging", actor=actor, notes="Quality checks passed", now=now
        )
    else:
        failed = ", ".join(check.name for check in checks if not check.passed)
        exception = create_exception(
            db=db,
            order=order,
            exception_type="quality_issue",
            severity="medium",
            description=f"Quality checks failed: {failed}",
            actor=actor,
            now=now,
        )
        exception_id = str(exception.id)

    return {
        "qualityChecks": [{"name": check.name, "passed": check.passed} for check in checks],
        "allPassed": all_passed,
        "newStatus": order.status,
        "exceptionId": exception_id,
    }


_HANDLERS: dict[str, Callable[[Session, Any, Actor, datetime], dict[str, Any]]] = {
    "process_payment_confirmation": _process_payment_confirmation,
    "intelligent_order_routing": _intelligent_order_routing,
    "bundle_order_processing": _bundle_order_processing,
    "wedding_party_coordination": _wedding_party_coordination,
    "exception_handling": _exception_handling,
    "quality_assurance_workflow": _quality_assurance_workflow,
}


def _recorded_response(db: Session, *, idempotency_key: str, action: str) -> Optional[dict[str, Any]]:
    run = db.query(WorkflowRun).filter(WorkflowRun.idempotency_key == idempotency_key).first()
    if run is None:
        return None
    if run.action != action:
        raise DomainError(
            code="IDEMPOTENCY_KEY_REUSED",
            http_status=409,
            message="Idempotency key was already used for a different action",
            details={"idempotency_key": idempotency_key, "action": run.action},
        )
    return run.response


def run_workflow_use_case(*, db: Session, request: Any, actor: Actor, now: Optional[datetime] = None) -> dict[str, Any]:
    """Run one workflow action; a replayed idempotency key returns the recorded response."""
    ts = now or now_utc()
    handler = _HANDLERS[request.action]
    key = request.idempotency_key

    try:
        with UnitOfWork(db):
            if key:
                recorded = _recorded_response(db, idempotency_key=key, action=request.action)
                if recorded is not None:
                    logger.info("Workflow %s replayed for key %s", request.action, key)
                    return recorded
            response = handler(db, request, actor, ts)
            if key:
                db.add(
                    WorkflowRun(
                        idempotency_key=key,
                        action=request.action,
                        order_id=request.order_id,
                        response=response,
                    )
                )
    except IntegrityError:
        # A concurrent run with the same key committed first.
        db.rollback()
        if not key:
            raise
        recorded = _recorded_response(db, idempotency_key=key, action=request.action)
        if recorded is None:
            raise
        return recorded

    logger.info("Workflow %s completed for order %s", request.action, request.order_id)
    return response
