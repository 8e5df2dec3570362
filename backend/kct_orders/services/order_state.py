"""Order status state machine."""

from __future__ import annotations

from datetime import datetime, timezone


ORDER_STATUSES: tuple[str, ...] = (
    "pending_payment",
    "payment_confirmed",
    "processing",
    "in_production",
    "quality_check",
    "packaging",
    "shipped",
    "delivered",
    "exception",
    "cancelled",
)

TERMINAL_STATUSES: set[str] = {"delivered", "cancelled"}
# Statuses at which the order leaves the processing queue.
QUEUE_TERMINAL_STATUSES: set[str] = {"shipped", "delivered", "cancelled"}

_ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending_payment": {"payment_confirmed", "exception", "cancelled"},
    "payment_confirmed": {"processing", "exception", "cancelled"},
    "processing": {"in_production", "exception", "cancelled"},
    "in_production": {"quality_check", "exception", "cancelled"},
    "quality_check": {"packaging", "shipped", "in_production", "exception", "cancelled"},
    "packaging": {"shipped", "exception", "cancelled"},
    "shipped": {"delivered", "exception"},
    "delivered": set(),
    "cancelled": set(),
    # Leaving "exception" also allows the status recorded before it (see allowed_next_statuses).
    "exception": {"processing", "cancelled"},
}

STATUS_NOTIFICATIONS: dict[str, str] = {
    "payment_confirmed": "payment_confirmation",
    "processing": "processing_update",
    "shipped": "shipping_notification",
    "delivered": "delivery_confirmation",
}


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def normalize_order_status(status: str | None) -> str:
    if not status:
        return "pending_payment"
    normalized = status.strip().lower()
    if normalized not in ORDER_STATUSES:
        raise ValueError(f"Unknown order status: {status}")
    return normalized


def allowed_next_statuses(current_status: str | None, *, status_before_exception: str | None = None) -> set[str]:
    current = normalize_order_status(current_status)
    allowed = set(_ALLOWED_TRANSITIONS.get(current, set()))
    if current == "exception" and status_before_exception:
        previous = normalize_order_status(status_before_exception)
        if previous not in TERMINAL_STATUSES and previous != "exception":
            allowed.add(previous)
        if previous == "pending_payment":
            # An unpaid order may only leave through payment confirmation or cancellation.
            allowed.discard("processing")
            allowed.add("payment_confirmed")
    return allowed


def validate_status_transition(
    *,
    current_status: str | None,
    next_status: str,
    status_before_exception: str | None = None,
) -> str:
    current = normalize_order_status(current_status)
    nxt = normalize_order_status(next_status)

    if nxt == current:
        return nxt

    allowed = allowed_next_statuses(current, status_before_exception=status_before_exception)
    if nxt not in allowed:
        raise ValueError(f"Invalid order status transition: {current} -> {nxt}")
    return nxt


def resume_status_after_exception(status_before_exception: str | None) -> str:
    """Status an order returns to once its last exception is resolved."""
    if not status_before_exception:
        return "processing"
    previous = normalize_order_status(status_before_exception)
    if previous in TERMINAL_STATUSES or previous == "exception":
        return "processing"
    return previous


def holds_queue_entry(status: str | None) -> bool:
    """Paid, live statuses that keep an open processing queue entry."""
    normalized = normalize_order_status(status)
    return normalized not in QUEUE_TERMINAL_STATUSES and normalized not in {"pending_payment", "exception"}


def is_terminal_status(status: str | None) -> bool:
    return normalize_order_status(status) in TERMINAL_STATUSES


def closes_queue_entry(status: str | None) -> bool:
    return normalize_order_status(status) in QUEUE_TERMINAL_STATUSES


def notification_for_status(status: str) -> str | None:
    return STATUS_NOTIFICATIONS.get(normalize_order_status(status))
