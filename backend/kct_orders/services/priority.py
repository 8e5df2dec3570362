"""Priority scoring for the processing queue.

Everything here is pure: the same order attributes and `now` always give the
same assessment. Order-like inputs may be ORM rows, pydantic payloads or
plain namespaces; missing attributes fall back to neutral defaults.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterable

from ..config import settings


BASE_PRIORITY_SCORE = 100
HIGH_VALUE_BONUS = 50
RUSH_BONUS = 100
GROUP_BONUS = 75
LARGE_PARTY_SIZE = 4

URGENT_EVENT_DAYS = 14
HIGH_EVENT_DAYS = 30

PRIORITY_LEVELS: tuple[str, ...] = ("standard", "high", "urgent")

# The one table of estimated completion hours by order type; queue entries and
# order routing both read it.
ESTIMATED_COMPLETION_HOURS: dict[str, int] = {
    "rush": 4,
    "standard": 24,
    "group": 24,
    "bundle": 48,
    "wedding_party": 72,
    "custom": 96,
}


@dataclass(frozen=True)
class PriorityAssessment:
    priority_level: str
    priority_score: int
    estimated_hours: int
    order_type: str
    customer_tier: str
    product_source: str

    def estimated_completion(self, now: datetime) -> datetime:
        return now + timedelta(hours=self.estimated_hours)


def _attr(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def _amount(order: Any) -> float:
    value = _attr(order, "total_amount", 0)
    if isinstance(value, Decimal):
        return float(value)
    return float(value or 0)


def _raise_level(current: str, target: str) -> str:
    return max(current, target, key=PRIORITY_LEVELS.index)


def customer_tier_for(order: Any) -> str:
    explicit = _attr(order, "customer_tier")
    if explicit:
        return str(explicit)
    amount = _amount(order)
    if amount > settings.VIP_ORDER_AMOUNT:
        return "vip"
    if amount > settings.PREMIUM_ORDER_AMOUNT:
        return "premium"
    return "standard"


def is_high_value(order: Any) -> bool:
    return _attr(order, "customer_tier") == "vip" or _amount(order) > settings.VIP_ORDER_AMOUNT


def determine_order_type(order: Any) -> str:
    if int(_attr(order, "wedding_party_size", 0)) > 1:
        return "wedding_party"
    if _attr(order, "bundle_type"):
        return "bundle"
    if _attr(order, "is_rush_order", False):
        return "rush"
    if _attr(order, "custom_measurements", False):
        return "custom"
    if int(_attr(order, "group_size", 0)) > 1 or _attr(order, "is_group_order", False):
        return "group"
    return "standard"


def determine_product_source(items: Iterable[Any] | None) -> str:
    items = list(items or [])
    if not items:
        return "catalog"
    stripe = 0
    catalog = 0
    for item in items:
        if _attr(item, "source") == "stripe" or _attr(item, "stripe_product_id"):
            stripe += 1
        else:
            catalog += 1
    if stripe and catalog:
        return "mixed"
    if stripe:
        return "stripe"
    return "catalog"


def days_until(event_date: date | datetime, now: datetime) -> float:
    if isinstance(event_date, datetime):
        event_at = event_date if event_date.tzinfo else event_date.replace(tzinfo=timezone.utc)
    else:
        event_at = datetime.combine(event_date, time.min, tzinfo=timezone.utc)
    return (event_at - now).total_seconds() / 86400


def priority_score(order: Any) -> int:
    score = BASE_PRIORITY_SCORE
    if is_high_value(order):
        score += HIGH_VALUE_BONUS
    if _attr(order, "is_rush_order", False):
        score += RUSH_BONUS
    if _attr(order, "is_group_order", False) or int(_attr(order, "wedding_party_size", 0)) > LARGE_PARTY_SIZE:
        score += GROUP_BONUS
    return min(settings.MAX_PRIORITY_SCORE, score)


def priority_level(order: Any, *, now: datetime) -> str:
    level = "standard"
    if is_high_value(order):
        level = _raise_level(level, "high")
    if _attr(order, "is_rush_order", False):
        level = _raise_level(level, "high")

    event_date = _attr(order, "event_date")
    if event_date is not None:
        remaining = days_until(event_date, now)
        if remaining < URGENT_EVENT_DAYS:
            level = _raise_level(level, "urgent")
        elif remaining < HIGH_EVENT_DAYS:
            level = _raise_level(level, "high")

    if int(_attr(order, "wedding_party_size", 0)) > LARGE_PARTY_SIZE:
        level = _raise_level(level, "high")
    return level


def estimated_hours_for(order_type: str) -> int:
    return ESTIMATED_COMPLETION_HOURS.get(order_type, ESTIMATED_COMPLETION_HOURS["standard"])


def assess_priority(order: Any, *, items: Iterable[Any] | None = None, now: datetime | None = None) -> PriorityAssessment:
    """Score an order for the processing queue."""
    ts = now or datetime.now(timezone.utc)
    order_type = _attr(order, "order_type") or determine_order_type(order)
    return PriorityAssessment(
        priority_level=priority_level(order, now=ts),
        priority_score=priority_score(order),
        estimated_hours=estimated_hours_for(order_type),
        order_type=order_type,
        customer_tier=customer_tier_for(order),
        product_source=determine_product_source(items if items is not None else _attr(order, "items", [])),
    )
