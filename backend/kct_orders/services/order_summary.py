"""Order overview figures for the order-management analytics action."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterable

PAID_PAYMENT_STATUSES: frozenset[str] = frozenset({"paid", "completed", "shipped", "delivered"})
SOURCE_BUCKETS: tuple[str, ...] = ("stripe", "catalog", "mixed", "unknown")


def _amount(order: Any) -> float:
    value = getattr(order, "total_amount", 0) or 0
    return float(value) if isinstance(value, Decimal) else float(value)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def overview(orders: list[Any], now: datetime) -> dict[str, Any]:
    today = datetime.combine(_aware(now).date(), time.min, tzinfo=timezone.utc)
    yesterday = today - timedelta(days=1)
    last_week = today - timedelta(days=7)
    last_month = today - timedelta(days=30)

    created = [_aware(order.created_at) for order in orders if order.created_at]
    today_count = sum(1 for ts in created if ts >= today)
    yesterday_count = sum(1 for ts in created if yesterday <= ts < today)
    growth = round((today_count - yesterday_count) / yesterday_count * 100, 2) if yesterday_count else 0
    return {
        "total_orders": len(orders),
        "today_orders": today_count,
        "yesterday_orders": yesterday_count,
        "week_orders": sum(1 for ts in created if ts >= last_week),
        "month_orders": sum(1 for ts in created if ts >= last_month),
        "growth_rate": growth,
    }


def status_breakdown(orders: Iterable[Any]) -> dict[str, int]:
    breakdown: dict[str, int] = {}
    for order in orders:
        breakdown[order.status] = breakdown.get(order.status, 0) + 1
    return breakdown


def revenue(orders: list[Any]) -> dict[str, float]:
    total = sum(_amount(order) for order in orders)
    paid = sum(_amount(order) for order in orders if getattr(order, "payment_status", None) in PAID_PAYMENT_STATUSES)
    return {
        "total_revenue": total,
        "paid_revenue": paid,
        "average_order_value": round(total / len(orders), 2) if orders else 0,
        "pending_revenue": total - paid,
    }


def source_breakdown(orders: Iterable[Any]) -> dict[str, int]:
    breakdown = {bucket: 0 for bucket in SOURCE_BUCKETS}
    for order in orders:
        source = getattr(order, "source", None) or "unknown"
        breakdown[source if source in breakdown else "unknown"] += 1
    return breakdown


def processing_days(orders: Iterable[Any]) -> dict[str, float]:
    durations = [
        (_aware(order.delivered_at) - _aware(order.created_at)).total_seconds() / 86400
        for order in orders
        if getattr(order, "delivered_at", None) and order.created_at
    ]
    if not durations:
        return {"average_days": 0, "fastest_days": 0, "slowest_days": 0}
    return {
        "average_days": round(sum(durations) / len(durations), 2),
        "fastest_days": round(min(durations), 2),
        "slowest_days": round(max(durations), 2),
    }


def summarize_orders(orders: Iterable[Any], now: datetime) -> dict[str, Any]:
    rows = list(orders)
    return {
        "overview": overview(rows, now),
        "status_breakdown": status_breakdown(rows),
        "revenue_analytics": revenue(rows),
        "source_breakdown": source_breakdown(rows),
        "processing_times": processing_days(rows),
    }
