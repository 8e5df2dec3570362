"""Processing analytics: per-order metrics upsert and dashboards."""
from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import Order, OrderException, OrderStatusHistory, ProcessingAnalytics, QueueEntry
from ..services.order_state import now_utc
from ..services.stage_metrics import (
    average_stage_times,
    bottleneck_frequency,
    bottleneck_recommendations,
    compliance_rate,
    compliance_trend,
    compute_order_metrics,
    daily_metrics,
    efficiency_overview,
    performance_comparison,
)
from ..unit_of_work import UnitOfWork
from .order_lifecycle import get_order_or_404

logger = logging.getLogger(__name__)


def _window_start(days: int, now: Optional[datetime]) -> datetime:
    return (now or now_utc()) - timedelta(days=days)


def _analytics_since(db: Session, since: datetime) -> list[ProcessingAnalytics]:
    return db.query(ProcessingAnalytics).filter(
        ProcessingAnalytics.created_at >= since,
    ).order_by(ProcessingAnalytics.created_at.asc()).all()


def compute_order_metrics_use_case(*, db: Session, order_id: UUID) -> dict[str, Any]:
    """Recompute and upsert the analytics row of one order.

    Recomputing over an unchanged history writes the same values again.
    """
    with UnitOfWork(db):
        order = get_order_or_404(db=db, order_id=order_id, for_update=True)
        history = db.query(OrderStatusHistory).filter(
            OrderStatusHistory.order_id == order.id,
        ).order_by(OrderStatusHistory.created_at.asc()).all()
        metrics = compute_order_metrics(order, history)

        average = db.query(func.avg(ProcessingAnalytics.total_fulfillment_minutes)).filter(
            ProcessingAnalytics.order_id != order.id,
            ProcessingAnalytics.total_fulfillment_minutes > 0,
        ).scalar()
        comparison = performance_comparison(metrics.total_fulfillment_minutes, average)

        row = db.query(ProcessingAnalytics).filter(ProcessingAnalytics.order_id == order.id).first()
        if row is None:
            row = ProcessingAnalytics(order_id=order.id)
            db.add(row)

        timings = metrics.stage_timings
        row.payment_to_processing_minutes = timings.payment_to_processing
        row.processing_to_production_minutes = timings.processing_to_production
        row.production_to_quality_minutes = timings.production_to_quality
        row.quality_to_shipping_minutes = timings.quality_to_shipping
        row.shipping_to_delivery_minutes = timings.shipping_to_delivery
        row.total_fulfillment_minutes = metrics.total_fulfillment_minutes
        row.processing_efficiency_score = metrics.efficiency_score
        row.bottleneck_stage = metrics.bottleneck_stage
        row.sla_target_minutes = metrics.sla_target_minutes
        row.exceeded_sla = metrics.exceeded_sla
        row.vs_average_performance = comparison["vsAverage"]
        row.similar_orders_avg_time = comparison["averageTime"]
        row.quality_issues_count = metrics.quality_issues_count
        row.reprocessing_required = metrics.reprocessing_required

    logger.info(
        "Metrics for order %s: total=%.1f min, bottleneck=%s, exceeded_sla=%s",
        order_id,
        metrics.total_fulfillment_minutes,
        metrics.bottleneck_stage,
        metrics.exceeded_sla,
    )
    return {
        "orderId": str(order_id),
        "stageTimings": timings.as_response(),
        "totalFulfillmentTime": metrics.total_fulfillment_minutes,
        "efficiencyScore": metrics.efficiency_score,
        "bottleneckStage": metrics.bottleneck_stage,
        "exceededSLA": metrics.exceeded_sla,
        "slaTarget": metrics.sla_target_minutes,
        "performanceComparison": comparison,
        "qualityIssuesCount": metrics.quality_issues_count,
        "reprocessingRequired": metrics.reprocessing_required,
    }


def efficiency_dashboard_use_case(*, db: Session, days: int = 30, now: Optional[datetime] = None) -> dict[str, Any]:
    rows = _analytics_since(db, _window_start(days, now))
    order_ids = [row.order_id for row in rows]
    order_values: dict[Any, float] = {}
    if order_ids:
        order_values = {
            order_id: float(amount or 0)
            for order_id, amount in db.query(Order.id, Order.total_amount).filter(Order.id.in_(order_ids)).all()
        }
    metrics = daily_metrics(rows, order_values)
    queue_status = {
        status: count
        for status, count in db.query(QueueEntry.queue_status, func.count(QueueEntry.id)).group_by(
            QueueEntry.queue_status,
        ).all()
    }
    return {
        "timeframe": f"{days} days",
        "overview": efficiency_overview(metrics),
        "queueStatus": queue_status,
        "dailyMetrics": metrics,
    }


def processor_performance_use_case(
    *,
    db: Session,
    processor_id: UUID,
    days: int = 30,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    orders = db.query(Order).filter(
        Order.assigned_processor_id == processor_id,
        Order.created_at >= _window_start(days, now),
    ).all()
    rows: list[ProcessingAnalytics] = []
    if orders:
        rows = db.query(ProcessingAnalytics).filter(
            ProcessingAnalytics.order_id.in_([order.id for order in orders]),
        ).all()
    if not rows:
        return {
            "processorId": str(processor_id),
            "timeframe": f"{days} days",
            "ordersProcessed": len(orders),
            "analytics": None,
        }

    return {
        "processorId": str(processor_id),
        "timeframe": f"{days} days",
        "ordersProcessed": len(orders),
        "ordersWithAnalytics": len(rows),
        "avgEfficiencyScore": sum(float(row.processing_efficiency_score or 0) for row in rows) / len(rows),
        "avgFulfillmentTimeMinutes": sum(float(row.total_fulfillment_minutes or 0) for row in rows) / len(rows),
        "slaComplianceRate": compliance_rate(rows),
        "qualityIssues": sum(int(row.quality_issues_count or 0) for row in rows),
    }


def bottleneck_analysis_use_case(*, db: Session, days: int = 7, now: Optional[datetime] = None) -> dict[str, Any]:
    rows = _analytics_since(db, _window_start(days, now))
    frequency = bottleneck_frequency(rows)
    return {
        "timeframe": f"{days} days",
        "bottleneckFrequency": frequency,
        "avgStageTimes": average_stage_times(rows),
        "recommendations": bottleneck_recommendations(frequency),
    }


def sla_compliance_use_case(*, db: Session, days: int = 30, now: Optional[datetime] = None) -> dict[str, Any]:
    rows = _analytics_since(db, _window_start(days, now))
    violations = sum(1 for row in rows if row.exceeded_sla)
    return {
        "timeframe": f"{days} days",
        "totalOrders": len(rows),
        "violations": violations,
        "complianceRate": compliance_rate(rows),
        "trend": compliance_trend(rows),
    }


def real_time_metrics_use_case(*, db: Session, now: Optional[datetime] = None) -> dict[str, Any]:
    ts = now or now_utc()
    today = datetime.combine(ts.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)

    today_orders = {
        status: count
        for status, count in db.query(Order.status, func.count(Order.id)).filter(
            Order.created_at >= today,
        ).group_by(Order.status).all()
    }
    active_exceptions = {
        severity: count
        for severity, count in db.query(OrderException.severity, func.count(OrderException.id)).filter(
            OrderException.status != "resolved",
        ).group_by(OrderException.severity).all()
    }
    queue_length = db.query(QueueEntry).filter(QueueEntry.queue_status == "waiting").count()
    return {
        "timestamp": ts.isoformat(),
        "todayOrders": today_orders,
        "activeExceptions": active_exceptions,
        "queueLength": queue_length,
        "systemStatus": "operational",
    }
