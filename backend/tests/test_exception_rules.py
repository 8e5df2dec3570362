from __future__ import annotations

from types import SimpleNamespace

import pytest

from kct_orders.services.exception_rules import (
    IMPACT_LEVELS,
    assess_customer_impact,
    blocks_order,
    estimated_delay_days,
    exception_title,
    is_auto_resolvable,
    requires_customer_acceptance,
    validate_exception_transition,
)

SEVERITIES = ("low", "medium", "high", "critical")
TYPES = (
    "payment_retry",
    "inventory_check",
    "address_validation",
    "stock_out",
    "quality_issue",
    "shipping_delay",
    "other",
)


@pytest.mark.parametrize("exception_type", TYPES)
@pytest.mark.parametrize("amount", [50, 5000])
@pytest.mark.parametrize("rush", [False, True])
def test_impact_never_decreases_with_severity(exception_type: str, amount: int, rush: bool) -> None:
    order = SimpleNamespace(total_amount=amount, is_rush_order=rush)
    ranks = [IMPACT_LEVELS.index(assess_customer_impact(exception_type, severity, order)) for severity in SEVERITIES]
    assert ranks == sorted(ranks)


def test_critical_payment_retry_on_small_order_is_severe() -> None:
    order = SimpleNamespace(total_amount=200, is_rush_order=False)

    assert assess_customer_impact("payment_retry", "critical", order) == "severe"
    assert is_auto_resolvable("payment_retry") is True
    assert blocks_order("critical") is True


def test_delivery_affecting_rush_order_is_severe_even_at_low_severity() -> None:
    order = SimpleNamespace(total_amount=100, is_rush_order=True)
    assert assess_customer_impact("stock_out", "low", order) == "severe"


def test_delivery_affecting_high_value_order_is_significant() -> None:
    order = SimpleNamespace(total_amount=2500, is_rush_order=False)
    assert assess_customer_impact("shipping_delay", "low", order) == "significant"


def test_low_severity_non_delivery_exception_is_minimal() -> None:
    order = SimpleNamespace(total_amount=100, is_rush_order=False)
    assert assess_customer_impact("address_validation", "low", order) == "minimal"


def test_delay_days_only_for_delivery_affecting_types() -> None:
    assert estimated_delay_days("stock_out", "critical") == 14
    assert estimated_delay_days("quality_issue", "medium") == 2
    assert estimated_delay_days("payment_retry", "critical") == 0


def test_unknown_severity_raises() -> None:
    with pytest.raises(ValueError, match="Unknown exception severity"):
        blocks_order("catastrophic")


def test_customer_acceptance_for_significant_impact_and_above() -> None:
    assert requires_customer_acceptance("severe") is True
    assert requires_customer_acceptance("significant") is True
    assert requires_customer_acceptance("moderate") is False


def test_exception_title() -> None:
    assert exception_title("stock_out", "KCT-1001") == "STOCK OUT - Order KCT-1001"


def test_exception_status_transitions() -> None:
    assert validate_exception_transition(current_status="open", next_status="in_progress") == "in_progress"
    assert validate_exception_transition(current_status="escalated", next_status="resolved") == "resolved"
    with pytest.raises(ValueError):
        validate_exception_transition(current_status="resolved", next_status="open")
    with pytest.raises(ValueError):
        validate_exception_transition(current_status="in_progress", next_status="escalated")
