from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

from kct_orders.services.routing import (
    bundle_plan,
    group_bundle_items,
    routing_decision,
    routing_reason,
    wedding_coordination_plan,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _order(**overrides):
    base = dict(
        total_amount=300,
        is_rush_order=False,
        is_group_order=False,
        wedding_party_size=None,
        bundle_type=None,
        custom_measurements=False,
        estimated_processing_hours=None,
    )
    base.update(overrides)
    return SimpleNamespace(**base)


def test_routing_reason_precedence() -> None:
    assert routing_reason(_order()) == "Standard processing"
    assert routing_reason(_order(is_rush_order=True)) == "Rush order - expedited processing"
    assert routing_reason(_order(is_rush_order=True, total_amount=3500)) == "High-value order - premium processing"
    assert routing_reason(_order(total_amount=3500, is_group_order=True)) == "Group order - coordination required"


def test_rush_routing_uses_four_hours() -> None:
    processor = uuid4()

    decision = routing_decision(_order(is_rush_order=True), now=NOW, processor_id=processor)

    assert decision.order_type == "rush"
    assert decision.estimated_hours == 4
    assert decision.estimated_completion == NOW + timedelta(hours=4)
    response = decision.as_response()
    assert response["assignedProcessor"] == str(processor)
    assert response["estimatedTime"] == 4


def test_bundle_plan_per_bundle_type() -> None:
    items = [
        SimpleNamespace(bundle_type="wedding_package"),
        SimpleNamespace(bundle_type="wedding_package"),
        SimpleNamespace(bundle_type=None),
    ]

    groups = group_bundle_items(items)
    plans = {name: bundle_plan(name, grouped) for name, grouped in groups.items()}

    assert plans["wedding_package"] == {
        "bundleType": "wedding_package",
        "itemCount": 2,
        "estimatedTime": 12,
        "specialRequirements": "Coordination required",
    }
    assert plans["standard"]["specialRequirements"] == "Standard processing"


def test_wedding_plan_targets_longest_order_plus_buffer() -> None:
    orders = [_order(estimated_processing_hours=24), _order(estimated_processing_hours=96), _order()]

    plan = wedding_coordination_plan(orders, now=NOW)

    assert plan["partySize"] == 3
    assert plan["targetDeliveryDate"] == NOW + timedelta(hours=120)
    assert plan["processingStrategy"] == "parallel_with_coordination"
