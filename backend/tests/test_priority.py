from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from kct_orders.services.priority import (
    ESTIMATED_COMPLETION_HOURS,
    assess_priority,
    customer_tier_for,
    determine_order_type,
    determine_product_source,
    priority_level,
    priority_score,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _order(**overrides):
    base = dict(
        total_amount=200,
        customer_tier=None,
        is_rush_order=False,
        is_group_order=False,
        wedding_party_size=None,
        bundle_type=None,
        custom_measurements=False,
        event_date=None,
        items=[],
    )
    base.update(overrides)
    return SimpleNamespace(**base)


def test_high_value_order_is_high_priority_with_bonus_score() -> None:
    order = _order(total_amount=6000)

    assessment = assess_priority(order, now=NOW)

    assert assessment.priority_level == "high"
    assert assessment.priority_score >= 150
    assert assessment.customer_tier == "vip"
    assert assessment.order_type == "standard"


def test_plain_order_is_standard() -> None:
    assessment = assess_priority(_order(), now=NOW)

    assert assessment.priority_level == "standard"
    assert assessment.priority_score == 100
    assert assessment.customer_tier == "standard"
    assert assessment.estimated_hours == ESTIMATED_COMPLETION_HOURS["standard"]


def test_rush_order_raises_level_and_uses_rush_hours() -> None:
    order = _order(is_rush_order=True)

    assessment = assess_priority(order, now=NOW)

    assert assessment.priority_level == "high"
    assert assessment.priority_score == 200
    assert assessment.order_type == "rush"
    assert assessment.estimated_hours == 4


@pytest.mark.parametrize(
    ("days_ahead", "expected"),
    [(5, "urgent"), (20, "high"), (60, "standard")],
)
def test_event_date_proximity_sets_level(days_ahead: int, expected: str) -> None:
    order = _order(event_date=(NOW + timedelta(days=days_ahead)).date())
    assert priority_level(order, now=NOW) == expected


def test_urgent_level_is_never_lowered_by_later_rules() -> None:
    order = _order(event_date=date(2026, 3, 5), wedding_party_size=6, total_amount=9000)
    assert priority_level(order, now=NOW) == "urgent"


def test_large_wedding_party_gets_group_bonus() -> None:
    order = _order(wedding_party_size=5)

    assert priority_score(order) == 175
    assert determine_order_type(order) == "wedding_party"


def test_score_is_capped() -> None:
    order = _order(total_amount=10_000, is_rush_order=True, is_group_order=True)
    assert priority_score(order) == 325
    assert priority_score(order) <= 500


@pytest.mark.parametrize(
    ("overrides", "expected"),
    [
        ({"wedding_party_size": 3, "bundle_type": "wedding_package"}, "wedding_party"),
        ({"bundle_type": "suit_bundle", "is_rush_order": True}, "bundle"),
        ({"is_rush_order": True, "custom_measurements": True}, "rush"),
        ({"custom_measurements": True}, "custom"),
        ({"is_group_order": True}, "group"),
        ({}, "standard"),
    ],
)
def test_order_type_precedence(overrides: dict, expected: str) -> None:
    assert determine_order_type(_order(**overrides)) == expected


def test_customer_tier_thresholds() -> None:
    assert customer_tier_for(_order(total_amount=5001)) == "vip"
    assert customer_tier_for(_order(total_amount=1500)) == "premium"
    assert customer_tier_for(_order(total_amount=1000)) == "standard"
    assert customer_tier_for(_order(total_amount=50, customer_tier="vip")) == "vip"


def test_product_source_from_items() -> None:
    stripe_item = SimpleNamespace(source="stripe", stripe_product_id="prod_1")
    catalog_item = SimpleNamespace(source="catalog", stripe_product_id=None)

    assert determine_product_source([]) == "catalog"
    assert determine_product_source([stripe_item]) == "stripe"
    assert determine_product_source([stripe_item, catalog_item]) == "mixed"


def test_assessment_is_deterministic_for_same_inputs() -> None:
    order = _order(total_amount=2500, event_date=date(2026, 3, 20))
    assert assess_priority(order, now=NOW) == assess_priority(order, now=NOW)
