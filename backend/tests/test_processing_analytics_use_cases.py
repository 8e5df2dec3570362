from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

from kct_orders.models import Order, OrderException, OrderStatusHistory, ProcessingAnalytics, QueueEntry
from kct_orders.use_cases.processing_analytics import (
    bottleneck_analysis_use_case,
    compute_order_metrics_use_case,
    efficiency_dashboard_use_case,
    processor_performance_use_case,
    real_time_metrics_use_case,
    sla_compliance_use_case,
)

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class _QueryStub:
    def __init__(self, rows=None, *, scalar=None):
        self._rows = list(rows or [])
        self._scalar = scalar

    def filter(self, *_args, **_kwargs):
        return self

    def order_by(self, *_args, **_kwargs):
        return self

    def group_by(self, *_args, **_kwargs):
        return self

    def with_for_update(self, *_args, **_kwargs):
        return self

    def first(self):
        return self._rows[0] if self._rows else None

    def all(self):
        return list(self._rows)

    def count(self):
        return len(self._rows)

    def scalar(self):
        return self._scalar


class _SessionStub:
    """Routes each query by its first entity; anything unlisted is the average query."""

    def __init__(self, routes, *, average=None):
        self._routes = routes
        self._average = average
        self.added = []
        self.commit_calls = 0

    def query(self, *entities):
        for entity, rows in self._routes:
            if entities[0] is entity:
                return _QueryStub(rows)
        return _QueryStub(scalar=self._average)

    def add(self, obj):
        self.added.append(obj)

    def commit(self):
        self.commit_calls += 1

    def rollback(self):
        pass


def _history(status, minutes):
    return SimpleNamespace(
        new_status=status,
        created_at=T0 + timedelta(minutes=minutes),
        exception_type=None,
        status_reason=None,
        notes=None,
    )


def _order(**overrides):
    base = dict(
        id=uuid4(),
        order_number="KCT-5001",
        is_rush_order=False,
        priority_level="standard",
        created_at=T0,
        delivered_at=T0 + timedelta(minutes=3000),
        total_amount=500,
    )
    base.update(overrides)
    return SimpleNamespace(**base)


def _analytics_row(order_id=None, **overrides):
    base = dict(
        order_id=order_id or uuid4(),
        created_at=NOW - timedelta(days=1),
        payment_to_processing_minutes=30.0,
        processing_to_production_minutes=60.0,
        production_to_quality_minutes=600.0,
        quality_to_shipping_minutes=120.0,
        shipping_to_delivery_minutes=2000.0,
        total_fulfillment_minutes=3000.0,
        processing_efficiency_score=95.0,
        bottleneck_stage="delivery",
        exceeded_sla=False,
        quality_issues_count=0,
    )
    base.update(overrides)
    return SimpleNamespace(**base)


def test_order_metrics_are_upserted() -> None:
    order = _order()
    history = [_history("payment_confirmed", 0), _history("processing", 30)]
    db = _SessionStub(
        [(Order, [order]), (OrderStatusHistory, history), (ProcessingAnalytics, [])],
        average=None,
    )

    result = compute_order_metrics_use_case(db=db, order_id=order.id)

    assert result["stageTimings"]["paymentToProcessing"] == 30
    assert result["totalFulfillmentTime"] == 3000
    assert result["slaTarget"] == 7200
    assert result["exceededSLA"] is False
    assert result["bottleneckStage"] == "payment_processing"
    assert result["performanceComparison"]["averageTime"] == 4320.0
    assert result["performanceComparison"]["performance"] == "excellent"

    rows = [obj for obj in db.added if isinstance(obj, ProcessingAnalytics)]
    assert len(rows) == 1
    assert rows[0].order_id == order.id
    assert rows[0].payment_to_processing_minutes == 30
    assert rows[0].sla_target_minutes == 7200
    assert db.commit_calls == 1


def test_recomputing_updates_existing_row_with_same_values() -> None:
    order = _order()
    history = [_history("payment_confirmed", 0), _history("processing", 30), _history("in_production", 90)]
    existing = SimpleNamespace(order_id=order.id)
    db = _SessionStub(
        [(Order, [order]), (OrderStatusHistory, history), (ProcessingAnalytics, [existing])],
        average=2500.0,
    )

    first = compute_order_metrics_use_case(db=db, order_id=order.id)
    snapshot = dict(vars(existing))
    second = compute_order_metrics_use_case(db=db, order_id=order.id)

    assert first == second
    assert vars(existing) == snapshot
    assert db.added == []
    assert existing.similar_orders_avg_time == 2500.0
    assert second["performanceComparison"]["performance"] == "needs_improvement"


def test_efficiency_dashboard_rolls_up_rows() -> None:
    row_a = _analytics_row()
    row_b = _analytics_row(exceeded_sla=True, total_fulfillment_minutes=9000.0, processing_efficiency_score=60.0)
    db = _SessionStub(
        [
            (ProcessingAnalytics, [row_a, row_b]),
            (Order.id, [(row_a.order_id, 400), (row_b.order_id, 600)]),
            (QueueEntry.queue_status, [("waiting", 4), ("completed", 9)]),
        ]
    )

    result = efficiency_dashboard_use_case(db=db, days=30, now=NOW)

    assert result["timeframe"] == "30 days"
    assert result["overview"]["totalOrders"] == 2
    assert result["overview"]["totalValue"] == 1000.0
    assert result["overview"]["slaComplianceRate"] == 50.0
    assert result["queueStatus"] == {"waiting": 4, "completed": 9}
    assert len(result["dailyMetrics"]) == 1


def test_processor_performance_without_analytics() -> None:
    processor = uuid4()
    db = _SessionStub([(Order, []), (ProcessingAnalytics, [])])

    result = processor_performance_use_case(db=db, processor_id=processor, days=30, now=NOW)

    assert result == {
        "processorId": str(processor),
        "timeframe": "30 days",
        "ordersProcessed": 0,
        "analytics": None,
    }


def test_processor_performance_averages_rows() -> None:
    processor = uuid4()
    orders = [_order(), _order()]
    rows = [
        _analytics_row(orders[0].id, processing_efficiency_score=80.0, quality_issues_count=1),
        _analytics_row(orders[1].id, processing_efficiency_score=100.0, exceeded_sla=True),
    ]
    db = _SessionStub([(Order, orders), (ProcessingAnalytics, rows)])

    result = processor_performance_use_case(db=db, processor_id=processor, days=30, now=NOW)

    assert result["ordersProcessed"] == 2
    assert result["avgEfficiencyScore"] == 90.0
    assert result["slaComplianceRate"] == 50.0
    assert result["qualityIssues"] == 1


def test_bottleneck_analysis() -> None:
    rows = [
        _analytics_row(bottleneck_stage="production"),
        _analytics_row(bottleneck_stage="production"),
        _analytics_row(bottleneck_stage="delivery"),
    ]
    db = _SessionStub([(ProcessingAnalytics, rows)])

    result = bottleneck_analysis_use_case(db=db, days=7, now=NOW)

    assert result["bottleneckFrequency"][0] == {"bottleneck_stage": "production", "count": 2}
    assert result["avgStageTimes"]["payment_to_processing_minutes"] == 30.0
    assert result["recommendations"] == ["Consider adding production capacity or optimizing workflow"]


def test_sla_compliance() -> None:
    rows = [
        _analytics_row(created_at=NOW - timedelta(days=5), exceeded_sla=True),
        _analytics_row(created_at=NOW - timedelta(days=4), exceeded_sla=True),
        _analytics_row(created_at=NOW - timedelta(days=2), exceeded_sla=False),
        _analytics_row(created_at=NOW - timedelta(days=1), exceeded_sla=False),
    ]
    db = _SessionStub([(ProcessingAnalytics, rows)])

    result = sla_compliance_use_case(db=db, days=30, now=NOW)

    assert result["totalOrders"] == 4
    assert result["violations"] == 2
    assert result["complianceRate"] == 50.0
    assert result["trend"] == "improving"


def test_real_time_metrics() -> None:
    db = _SessionStub(
        [
            (Order.status, [("processing", 3), ("exception", 1)]),
            (OrderException.severity, [("critical", 1)]),
            (QueueEntry, [object(), object()]),
        ]
    )

    result = real_time_metrics_use_case(db=db, now=NOW)

    assert result["todayOrders"] == {"processing": 3, "exception": 1}
    assert result["activeExceptions"] == {"critical": 1}
    assert result["queueLength"] == 2
    assert result["systemStatus"] == "operational"
    assert result["timestamp"] == NOW.isoformat()
