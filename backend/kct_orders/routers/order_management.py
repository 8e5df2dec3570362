"""Order management endpoint: processing queue, status changes, automation rules."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Actor, get_current_actor
from ..database import get_db
from ..schemas import (
    CreateOrderQueueEntryRequest,
    GetOrderAnalyticsRequest,
    GetProcessingQueueRequest,
    OrderManagementBody,
    ProcessAutomationRulesRequest,
    UpdateOrderStatusRequest,
)
from ..use_cases.order_lifecycle import (
    create_order_queue_entry_use_case,
    get_order_analytics_use_case,
    get_processing_queue_use_case,
    process_automation_rules_use_case,
    update_order_status_use_case,
)

router = APIRouter(tags=["order-management"])


@router.post("/order-management")
def order_management(
    body: OrderManagementBody,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    request = body.root
    if isinstance(request, CreateOrderQueueEntryRequest):
        special = request.order_data.special_requirements if request.order_data else None
        data = create_order_queue_entry_use_case(
            db=db,
            order_id=request.target_order_id,
            special_requirements=special,
        )
    elif isinstance(request, GetProcessingQueueRequest):
        data = get_processing_queue_use_case(db=db, filters=request.filters, limit=request.limit)
    elif isinstance(request, UpdateOrderStatusRequest):
        data = update_order_status_use_case(
            db=db,
            order_id=request.order_id,
            new_status=request.order_data.new_status,
            actor=actor,
            notes=request.order_data.notes,
            status_reason=request.order_data.status_reason,
        )
    elif isinstance(request, GetOrderAnalyticsRequest):
        data = get_order_analytics_use_case(db=db, limit=request.limit)
    elif isinstance(request, ProcessAutomationRulesRequest):
        data = process_automation_rules_use_case(db=db)
    return {"data": data}
