"""Routing and coordination plans used by the order workflows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable, Optional
from uuid import UUID

from .priority import determine_order_type, estimated_hours_for

HIGH_VALUE_ROUTING_AMOUNT = 3000
HOURS_PER_BUNDLE_ITEM = 6
DEFAULT_PARTY_PROCESSING_HOURS = 48
PARTY_DELIVERY_BUFFER_HOURS = 24


@dataclass(frozen=True)
class RoutingDecision:
    order_type: str
    estimated_hours: int
    estimated_completion: datetime
    routing_reason: str
    assigned_processor: Optional[UUID] = None

    def as_response(self) -> dict[str, Any]:
        return {
            "assignedProcessor": str(self.assigned_processor) if self.assigned_processor else None,
            "estimatedTime": self.estimated_hours,
            "estimatedCompletion": self.estimated_completion.isoformat(),
            "routingReason": self.routing_reason,
            "orderType": self.order_type,
        }


def _amount(order: Any) -> float:
    value = getattr(order, "total_amount", 0) or 0
    return float(value) if isinstance(value, Decimal) else float(value)


def routing_reason(order: Any) -> str:
    # Later matches take precedence: group coordination over value over rush.
    reason = "Standard processing"
    if getattr(order, "is_rush_order", False):
        reason = "Rush order - expedited processing"
    if _amount(order) > HIGH_VALUE_ROUTING_AMOUNT:
        reason = "High-value order - premium processing"
    if getattr(order, "is_group_order", False):
        reason = "Group order - coordination required"
    return reason


def routing_decision(order: Any, *, now: datetime, processor_id: Optional[UUID] = None) -> RoutingDecision:
    order_type = determine_order_type(order)
    hours = estimated_hours_for(order_type)
    return RoutingDecision(
        order_type=order_type,
        estimated_hours=hours,
        estimated_completion=now + timedelta(hours=hours),
        routing_reason=routing_reason(order),
        assigned_processor=processor_id,
    )


def group_bundle_items(items: Iterable[Any]) -> dict[str, list[Any]]:
    groups: dict[str, list[Any]] = {}
    for item in items:
        groups.setdefault(getattr(item, "bundle_type", None) or "standard", []).append(item)
    return groups


def bundle_plan(bundle_type: str, items: list[Any]) -> dict[str, Any]:
    return {
        "bundleType": bundle_type,
        "itemCount": len(items),
        "estimatedTime": len(items) * HOURS_PER_BUNDLE_ITEM,
        "specialRequirements": "Coordination required" if bundle_type == "wedding_package" else "Standard processing",
    }


def wedding_coordination_plan(orders: list[Any], *, now: datetime) -> dict[str, Any]:
    """Synchronized delivery target for every order of a wedding party."""
    party_size = len(orders)
    longest = max(
        (getattr(order, "estimated_processing_hours", None) or DEFAULT_PARTY_PROCESSING_HOURS for order in orders),
        default=DEFAULT_PARTY_PROCESSING_HOURS,
    )
    target = now + timedelta(hours=longest + PARTY_DELIVERY_BUFFER_HOURS)
    return {
        "partySize": party_size,
        "targetDeliveryDate": target,
        "coordinationNotes": f"Wedding party of {party_size} orders - synchronized delivery",
        "processingStrategy": "parallel_with_coordination",
    }
