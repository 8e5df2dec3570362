"""Classification rules for order exceptions."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from ..config import settings


SEVERITY_RANK: dict[str, int] = {"low": 0, "medium": 1, "high": 2, "critical": 3}
IMPACT_LEVELS: tuple[str, ...] = ("minimal", "moderate", "significant", "severe")

DELIVERY_AFFECTING_TYPES: frozenset[str] = frozenset({"stock_out", "quality_issue", "shipping_delay"})
AUTO_RESOLVABLE_TYPES: frozenset[str] = frozenset({"payment_retry", "inventory_check", "address_validation"})
ORDER_BLOCKING_SEVERITIES: frozenset[str] = frozenset({"high", "critical"})

DELAY_DAYS: dict[str, dict[str, int]] = {
    "stock_out": {"low": 1, "medium": 3, "high": 7, "critical": 14},
    "quality_issue": {"low": 1, "medium": 2, "high": 5, "critical": 10},
    "shipping_delay": {"low": 1, "medium": 2, "high": 3, "critical": 5},
}

_EXCEPTION_STATUS_TRANSITIONS: dict[str, set[str]] = {
    "open": {"in_progress", "resolved", "escalated"},
    "in_progress": {"resolved"},
    "escalated": {"resolved"},
    "resolved": set(),
}


def normalize_severity(severity: str) -> str:
    value = (severity or "").strip().lower()
    if value not in SEVERITY_RANK:
        raise ValueError(f"Unknown exception severity: {severity}")
    return value


def affects_delivery(exception_type: str) -> bool:
    return exception_type in DELIVERY_AFFECTING_TYPES


def is_auto_resolvable(exception_type: str) -> bool:
    return exception_type in AUTO_RESOLVABLE_TYPES


def blocks_order(severity: str) -> bool:
    return normalize_severity(severity) in ORDER_BLOCKING_SEVERITIES


def estimated_delay_days(exception_type: str, severity: str) -> int:
    if not affects_delivery(exception_type):
        return 0
    return DELAY_DAYS.get(exception_type, {}).get(normalize_severity(severity), 0)


def _order_amount(order: Any) -> float:
    value = getattr(order, "total_amount", 0) or 0
    return float(value) if isinstance(value, Decimal) else float(value)


def assess_customer_impact(exception_type: str, severity: str, order: Any) -> str:
    """Impact tier from severity, exception type, order value and rush flag."""
    severity = normalize_severity(severity)
    delivery_affecting = affects_delivery(exception_type)
    high_value = _order_amount(order) > settings.HIGH_VALUE_EXCEPTION_AMOUNT
    rush = bool(getattr(order, "is_rush_order", False))

    if severity == "critical" or (delivery_affecting and rush):
        return "severe"
    if severity == "high" or (delivery_affecting and high_value):
        return "significant"
    if severity == "medium" or delivery_affecting:
        return "moderate"
    return "minimal"


def requires_customer_acceptance(impact_level: str) -> bool:
    return impact_level in {"significant", "severe"}


def exception_title(exception_type: str, order_number: str | None) -> str:
    label = exception_type.replace("_", " ").upper()
    return f"{label} - Order {order_number or 'unknown'}"


def validate_exception_transition(*, current_status: str, next_status: str) -> str:
    if next_status not in _EXCEPTION_STATUS_TRANSITIONS.get(current_status, set()):
        raise ValueError(f"Invalid exception status transition: {current_status} -> {next_status}")
    return next_status
