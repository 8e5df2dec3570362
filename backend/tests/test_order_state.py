from __future__ import annotations

import pytest

from kct_orders.services.order_state import (
    allowed_next_statuses,
    closes_queue_entry,
    holds_queue_entry,
    is_terminal_status,
    normalize_order_status,
    notification_for_status,
    resume_status_after_exception,
    validate_status_transition,
)


@pytest.mark.parametrize(
    ("current", "nxt"),
    [
        ("pending_payment", "payment_confirmed"),
        ("payment_confirmed", "processing"),
        ("processing", "in_production"),
        ("in_production", "quality_check"),
        ("quality_check", "packaging"),
        ("quality_check", "shipped"),
        ("packaging", "shipped"),
        ("shipped", "delivered"),
        ("processing", "exception"),
        ("exception", "processing"),
        ("in_production", "cancelled"),
    ],
)
def test_forward_transitions_are_allowed(current: str, nxt: str) -> None:
    assert validate_status_transition(current_status=current, next_status=nxt) == nxt


@pytest.mark.parametrize(
    ("current", "nxt"),
    [
        ("pending_payment", "shipped"),
        ("processing", "delivered"),
        ("delivered", "processing"),
        ("cancelled", "payment_confirmed"),
        ("shipped", "cancelled"),
    ],
)
def test_illegal_transitions_are_rejected(current: str, nxt: str) -> None:
    with pytest.raises(ValueError, match="Invalid order status transition"):
        validate_status_transition(current_status=current, next_status=nxt)


def test_same_status_is_accepted_as_no_op() -> None:
    assert validate_status_transition(current_status="processing", next_status="processing") == "processing"


def test_exception_can_return_to_status_held_before_it() -> None:
    allowed = allowed_next_statuses("exception", status_before_exception="quality_check")

    assert "quality_check" in allowed
    assert "processing" in allowed
    assert validate_status_transition(
        current_status="exception",
        next_status="quality_check",
        status_before_exception="quality_check",
    ) == "quality_check"


def test_exception_cannot_jump_to_unrelated_status() -> None:
    with pytest.raises(ValueError):
        validate_status_transition(
            current_status="exception",
            next_status="shipped",
            status_before_exception="processing",
        )


def test_terminal_statuses_have_no_successors() -> None:
    assert allowed_next_statuses("delivered") == set()
    assert allowed_next_statuses("cancelled") == set()
    assert is_terminal_status("delivered") is True
    assert is_terminal_status("shipped") is False


def test_unknown_status_raises() -> None:
    with pytest.raises(ValueError, match="Unknown order status"):
        normalize_order_status("teleported")


def test_missing_status_defaults_to_pending_payment() -> None:
    assert normalize_order_status(None) == "pending_payment"
    assert normalize_order_status(" Processing ") == "processing"


def test_queue_closes_on_shipping_and_terminal_statuses() -> None:
    assert closes_queue_entry("shipped") is True
    assert closes_queue_entry("cancelled") is True
    assert closes_queue_entry("quality_check") is False


def test_status_notifications() -> None:
    assert notification_for_status("payment_confirmed") == "payment_confirmation"
    assert notification_for_status("shipped") == "shipping_notification"
    assert notification_for_status("delivered") == "delivery_confirmation"
    assert notification_for_status("packaging") is None


def test_unpaid_order_leaves_exception_only_through_payment() -> None:
    allowed = allowed_next_statuses("exception", status_before_exception="pending_payment")

    assert allowed == {"pending_payment", "payment_confirmed", "cancelled"}
    assert validate_status_transition(
        current_status="exception",
        next_status="payment_confirmed",
        status_before_exception="pending_payment",
    ) == "payment_confirmed"
    with pytest.raises(ValueError):
        validate_status_transition(
            current_status="exception",
            next_status="processing",
            status_before_exception="pending_payment",
        )


@pytest.mark.parametrize(
    ("before", "expected"),
    [
        ("pending_payment", "pending_payment"),
        ("in_production", "in_production"),
        ("shipped", "shipped"),
        (None, "processing"),
        ("delivered", "processing"),
    ],
)
def test_resolution_resumes_status_held_before_exception(before, expected) -> None:
    assert resume_status_after_exception(before) == expected


def test_only_paid_live_statuses_hold_queue_entries() -> None:
    assert holds_queue_entry("payment_confirmed") is True
    assert holds_queue_entry("packaging") is True
    assert holds_queue_entry("pending_payment") is False
    assert holds_queue_entry("exception") is False
    assert holds_queue_entry("shipped") is False
    assert holds_queue_entry("cancelled") is False
