"""Order status transitions, processing queue and automation rules."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import SYSTEM, Actor
from ..domain_errors import DomainError
from ..models import AutomationRule, Order, OrderStatusHistory, QueueEntry
from ..schemas import QueueEntryResponse, QueueFilters, dump
from ..services.notifications import enqueue_order_communication
from ..services.order_state import (
    closes_queue_entry,
    holds_queue_entry,
    normalize_order_status,
    notification_for_status,
    now_utc,
    validate_status_transition,
)
from ..services.order_summary import summarize_orders
from ..services.priority import PRIORITY_LEVELS, assess_priority
from ..unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def get_order_or_404(*, db: Session, order_id: UUID, for_update: bool = False) -> Order:
    query = db.query(Order).filter(Order.id == order_id)
    if for_update:
        # Concurrent transitions on one order serialize on the row lock.
        query = query.with_for_update()
    order = query.first()
    if not order:
        raise DomainError(
            code="ORDER_NOT_FOUND",
            http_status=404,
            message="Order not found",
            details={"order_id": str(order_id)},
        )
    return order


def _validated_next_status(order: Order, new_status: str) -> str:
    try:
        normalize_order_status(new_status)
    except ValueError as exc:
        raise DomainError(code="ORDER_UNKNOWN_STATUS", http_status=400, message=str(exc))
    try:
        return validate_status_transition(
            current_status=order.status,
            next_status=new_status,
            status_before_exception=order.status_before_exception,
        )
    except ValueError as exc:
        raise DomainError(
            code="ORDER_INVALID_STATUS_TRANSITION",
            http_status=409,
            message=str(exc),
            details={"order_id": str(order.id), "from": order.status, "to": new_status},
        )


def transition_order_status(
    *,
    db: Session,
    order: Order,
    new_status: str,
    actor: Actor = SYSTEM,
    notes: Optional[str] = None,
    status_reason: Optional[str] = None,
    exception_type: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[OrderStatusHistory]:
    """Apply one status change inside the caller's transaction.

    Returns the appended history entry, or None when the order is already in
    `new_status` (nothing is written).
    """
    nxt = _validated_next_status(order, new_status)
    previous = normalize_order_status(order.status)
    if nxt == previous:
        return None

    ts = now or now_utc()
    # The customer was already told about the status the order resumes.
    resumed = previous == "exception" and nxt == order.status_before_exception
    if nxt == "exception":
        order.status_before_exception = previous
    elif previous == "exception":
        order.status_before_exception = None
    order.status = nxt
    order.updated_at = ts
    if nxt == "delivered":
        order.delivered_at = ts

    entry = OrderStatusHistory(
        id=uuid.uuid4(),
        order_id=order.id,
        previous_status=previous,
        new_status=nxt,
        changed_by=actor.user_id,
        changed_by_system=actor.is_system,
        actor=actor.label,
        notes=notes,
        status_reason=status_reason,
        exception_type=exception_type,
        created_at=ts,
    )
    db.add(entry)

    if closes_queue_entry(nxt):
        queue_entry = db.query(QueueEntry).filter(QueueEntry.order_id == order.id).first()
        if queue_entry and queue_entry.queue_status != "completed":
            queue_entry.queue_status = "completed"
            queue_entry.actual_completion_time = ts
    elif previous == "exception" and holds_queue_entry(nxt):
        _reopen_queue_entry(db, order, now=ts)

    communication_type = notification_for_status(nxt)
    if communication_type and not resumed:
        enqueue_order_communication(
            db,
            order=order,
            communication_type=communication_type,
            idempotency_key=f"{communication_type}:{order.id}:{entry.id}",
            trigger_reason=f"Status changed to {nxt}",
        )

    logger.info("Order %s: %s -> %s by %s", order.order_number, previous, nxt, actor.label)
    return entry


def _reopen_queue_entry(db: Session, order: Order, *, now: datetime) -> None:
    entry, created = ensure_queue_entry(db=db, order=order, now=now)
    if not created and entry.queue_status == "completed":
        entry.queue_status = "waiting"
        entry.actual_completion_time = None
        logger.info("Reopened queue entry for order %s", order.order_number)


def update_order_status_use_case(
    *,
    db: Session,
    order_id: UUID,
    new_status: str,
    actor: Actor,
    notes: Optional[str] = None,
    status_reason: Optional[str] = None,
) -> dict[str, Any]:
    with UnitOfWork(db):
        order = get_order_or_404(db=db, order_id=order_id, for_update=True)
        entry = transition_order_status(
            db=db,
            order=order,
            new_status=new_status,
            actor=actor,
            notes=notes,
            status_reason=status_reason,
        )
        status = order.status
    return {
        "success": True,
        "order_id": str(order_id),
        "new_status": status,
        "changed": entry is not None,
    }


def ensure_queue_entry(
    *,
    db: Session,
    order: Order,
    now: Optional[datetime] = None,
    special_requirements: Optional[str] = None,
) -> tuple[QueueEntry, bool]:
    """Return the order's queue entry, scoring and creating it when missing."""
    existing = db.query(QueueEntry).filter(QueueEntry.order_id == order.id).first()
    if existing:
        return existing, False

    ts = now or now_utc()
    items = list(order.items or [])
    assessment = assess_priority(order, items=items, now=ts)
    entry = QueueEntry(
        id=uuid.uuid4(),
        order_id=order.id,
        priority_score=assessment.priority_score,
        priority_level=assessment.priority_level,
        queue_status="waiting",
        order_type=assessment.order_type,
        product_source=assessment.product_source,
        customer_tier=assessment.customer_tier,
        estimated_completion=assessment.estimated_completion(ts),
        meta_data={
            "total_amount": float(order.total_amount or 0),
            "item_count": len(items),
            "customer_tier": assessment.customer_tier,
            "rush_order": bool(order.is_rush_order),
            "special_requirements": special_requirements,
        },
        created_at=ts,
    )
    db.add(entry)

    order.priority_level = assessment.priority_level
    if not order.customer_tier:
        order.customer_tier = assessment.customer_tier
    if not order.estimated_processing_hours:
        order.estimated_processing_hours = assessment.estimated_hours

    logger.info(
        "Queued order %s: score=%s level=%s type=%s",
        order.order_number,
        assessment.priority_score,
        assessment.priority_level,
        assessment.order_type,
    )
    return entry, True


def create_order_queue_entry_use_case(
    *,
    db: Session,
    order_id: UUID,
    special_requirements: Optional[str] = None,
) -> dict[str, Any]:
    with UnitOfWork(db):
        order = get_order_or_404(db=db, order_id=order_id, for_update=True)
        entry, _created = ensure_queue_entry(db=db, order=order, special_requirements=special_requirements)
    return dump(QueueEntryResponse, entry)


def get_processing_queue_use_case(
    *,
    db: Session,
    filters: QueueFilters,
    limit: int = 100,
) -> list[dict[str, Any]]:
    query = db.query(QueueEntry)
    if filters.status:
        query = query.filter(QueueEntry.queue_status == filters.status)
    if filters.priority:
        query = query.filter(QueueEntry.priority_level == filters.priority)
    if filters.source:
        query = query.filter(QueueEntry.product_source == filters.source)
    entries = query.order_by(
        QueueEntry.priority_score.desc(),
        QueueEntry.created_at.asc(),
    ).limit(limit).all()
    return [dump(QueueEntryResponse, entry) for entry in entries]


def get_order_analytics_use_case(*, db: Session, limit: int = 1000, now: Optional[datetime] = None) -> dict[str, Any]:
    orders = db.query(Order).order_by(Order.created_at.desc()).limit(limit).all()
    return summarize_orders(orders, now or now_utc())


def _execute_rule(*, db: Session, rule: AutomationRule) -> dict[str, Any]:
    if rule.rule_type != "priority_assignment":
        return {"processed": 0}

    conditions = rule.conditions or {}
    actions = rule.actions or {}
    min_amount = conditions.get("min_amount")
    new_priority = actions.get("new_priority")
    if min_amount is None:
        raise ValueError("priority_assignment rule requires conditions.min_amount")
    if new_priority not in PRIORITY_LEVELS:
        raise ValueError(f"Unknown priority level: {new_priority}")

    entries = db.query(QueueEntry).join(Order, QueueEntry.order_id == Order.id).filter(
        QueueEntry.priority_level == "standard",
        QueueEntry.queue_status != "completed",
        Order.total_amount >= min_amount,
    ).all()
    for entry in entries:
        entry.priority_level = new_priority
    return {"processed": len(entries)}


def process_automation_rules_use_case(*, db: Session, now: Optional[datetime] = None) -> dict[str, Any]:
    """Run active rules in execution order; one failing rule does not stop the rest."""
    ts = now or now_utc()
    results: list[dict[str, Any]] = []
    with UnitOfWork(db):
        rules = db.query(AutomationRule).filter(
            AutomationRule.is_active.is_(True),
        ).order_by(AutomationRule.execution_order.asc()).all()

        for rule in rules:
            try:
                with db.begin_nested():
                    result = _execute_rule(db=db, rule=rule)
            except (ValueError, SQLAlchemyError) as exc:
                rule.failure_count = (rule.failure_count or 0) + 1
                rule.last_executed_at = ts
                results.append({"rule_id": str(rule.id), "success": False, "error": str(exc)})
                logger.warning("Automation rule %s failed: %s", rule.name, exc)
                continue
            rule.success_count = (rule.success_count or 0) + 1
            rule.last_executed_at = ts
            results.append({"rule_id": str(rule.id), "success": True, "result": result})

    return {"executed_rules": len(results), "results": results}
