"""Stage timing, SLA and efficiency calculations derived from status history."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional


RUSH_SLA_MINUTES = 2880
HIGH_PRIORITY_SLA_MINUTES = 4320
STANDARD_SLA_MINUTES = 7200
DEFAULT_AVERAGE_FULFILLMENT_MINUTES = 4320.0

MAX_OVERRUN_PENALTY = 50.0
RUSH_ON_TIME_BONUS = 10.0
RUSH_ON_TIME_RATIO = 0.8

# (status of an entry, status of the next entry) -> stage field.
STAGE_BOUNDARIES: dict[tuple[str, str], str] = {
    ("payment_confirmed", "processing"): "payment_to_processing",
    ("processing", "in_production"): "processing_to_production",
    ("in_production", "quality_check"): "production_to_quality",
    ("quality_check", "shipped"): "quality_to_shipping",
    ("quality_check", "packaging"): "quality_to_shipping",
    ("packaging", "shipped"): "quality_to_shipping",
    ("shipped", "delivered"): "shipping_to_delivery",
}

BOTTLENECK_STAGES: tuple[str, ...] = ("payment_processing", "production", "quality_shipping", "delivery")

STAGE_LABELS: dict[str, str] = {
    "payment_processing": "Payment to processing",
    "production": "Production",
    "quality_shipping": "Quality control and shipping",
    "delivery": "Delivery",
}


@dataclass(frozen=True)
class StageTimings:
    payment_to_processing: float = 0.0
    processing_to_production: float = 0.0
    production_to_quality: float = 0.0
    quality_to_shipping: float = 0.0
    shipping_to_delivery: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return asdict(self)

    def as_response(self) -> dict[str, float]:
        return {
            "paymentToProcessing": self.payment_to_processing,
            "processingToProduction": self.processing_to_production,
            "productionToQuality": self.production_to_quality,
            "qualityToShipping": self.quality_to_shipping,
            "shippingToDelivery": self.shipping_to_delivery,
        }


@dataclass(frozen=True)
class OrderMetrics:
    stage_timings: StageTimings
    total_fulfillment_minutes: float
    efficiency_score: float
    bottleneck_stage: str
    sla_target_minutes: int
    exceeded_sla: bool
    quality_issues_count: int
    reprocessing_required: bool


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def minutes_between(start: datetime, end: datetime) -> float:
    return (_aware(end) - _aware(start)).total_seconds() / 60


def sort_history(history: Iterable[Any]) -> list[Any]:
    return sorted(history, key=lambda entry: _aware(entry.created_at))


def calculate_stage_timings(history: Iterable[Any]) -> StageTimings:
    """Sum the minutes between adjacent history entries that cross a known stage boundary.

    Pairs that do not match a boundary are ignored.
    """
    ordered = sort_history(history)
    totals: dict[str, float] = {name: 0.0 for name in StageTimings.__dataclass_fields__}
    for current, nxt in zip(ordered, ordered[1:]):
        field = STAGE_BOUNDARIES.get((current.new_status, nxt.new_status))
        if field is None:
            continue
        totals[field] += minutes_between(current.created_at, nxt.created_at)
    return StageTimings(**totals)


def total_fulfillment_minutes(order: Any) -> float:
    created_at = getattr(order, "created_at", None)
    delivered_at = getattr(order, "delivered_at", None)
    if created_at and delivered_at:
        return minutes_between(created_at, delivered_at)
    return 0.0


def sla_target(order: Any) -> int:
    """SLA target in minutes: rush, then high/urgent priority, then standard."""
    if getattr(order, "is_rush_order", False):
        return RUSH_SLA_MINUTES
    if getattr(order, "priority_level", None) in {"high", "urgent"}:
        return HIGH_PRIORITY_SLA_MINUTES
    return STANDARD_SLA_MINUTES


def efficiency_score(stage_timings: StageTimings, total_minutes: float, order: Any) -> float:
    score = 100.0
    target = sla_target(order)
    if total_minutes > target:
        score -= min(MAX_OVERRUN_PENALTY, (total_minutes - target) / target * 100)
    if getattr(order, "is_rush_order", False) and total_minutes <= target * RUSH_ON_TIME_RATIO:
        score += RUSH_ON_TIME_BONUS
    return max(0.0, min(100.0, score))


def bottleneck_durations(stage_timings: StageTimings) -> dict[str, float]:
    return {
        "payment_processing": stage_timings.payment_to_processing,
        "production": stage_timings.processing_to_production + stage_timings.production_to_quality,
        "quality_shipping": stage_timings.quality_to_shipping,
        "delivery": stage_timings.shipping_to_delivery,
    }


def identify_bottleneck(stage_timings: StageTimings) -> str:
    """Stage with the longest duration; ties go to the earliest stage."""
    durations = bottleneck_durations(stage_timings)
    return max(BOTTLENECK_STAGES, key=lambda stage: durations[stage])


def count_quality_issues(history: Iterable[Any]) -> int:
    return sum(1 for entry in history if "quality" in (getattr(entry, "exception_type", None) or ""))


def requires_reprocessing(history: Iterable[Any]) -> bool:
    for entry in history:
        text = " ".join(
            filter(None, [getattr(entry, "status_reason", None), getattr(entry, "notes", None)])
        ).lower()
        if "reprocess" in text or "redo" in text:
            return True
    return False


def compute_order_metrics(order: Any, history: Iterable[Any]) -> OrderMetrics:
    entries = list(history)
    timings = calculate_stage_timings(entries)
    total = total_fulfillment_minutes(order)
    target = sla_target(order)
    return OrderMetrics(
        stage_timings=timings,
        total_fulfillment_minutes=total,
        efficiency_score=efficiency_score(timings, total, order),
        bottleneck_stage=identify_bottleneck(timings),
        sla_target_minutes=target,
        exceeded_sla=total > target,
        quality_issues_count=count_quality_issues(entries),
        reprocessing_required=requires_reprocessing(entries),
    )


def performance_comparison(total_minutes: float, average_minutes: Optional[float]) -> dict[str, Any]:
    average = float(average_minutes) if average_minutes else DEFAULT_AVERAGE_FULFILLMENT_MINUTES
    vs_average = (total_minutes - average) / average * 100
    if vs_average < -10:
        performance = "excellent"
    elif vs_average < 10:
        performance = "good"
    else:
        performance = "needs_improvement"
    return {"averageTime": average, "vsAverage": vs_average, "performance": performance}


# Dashboard rollups over stored analytics rows

def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _row_day(row: Any) -> date:
    created_at = getattr(row, "created_at", None) or datetime.now(timezone.utc)
    return _aware(created_at).date()


def daily_metrics(rows: Iterable[Any], order_values: dict[Any, float]) -> list[dict[str, Any]]:
    by_day: dict[date, list[Any]] = {}
    for row in rows:
        by_day.setdefault(_row_day(row), []).append(row)

    days = []
    for day in sorted(by_day):
        day_rows = by_day[day]
        days.append(
            {
                "processing_date": day.isoformat(),
                "order_count": len(day_rows),
                "total_value": sum(order_values.get(row.order_id, 0.0) for row in day_rows),
                "avg_fulfillment_time": _mean([float(row.total_fulfillment_minutes or 0) for row in day_rows]),
                "avg_efficiency_score": _mean([float(row.processing_efficiency_score or 0) for row in day_rows]),
                "sla_violations": sum(1 for row in day_rows if row.exceeded_sla),
            }
        )
    return days


def efficiency_overview(days: list[dict[str, Any]]) -> dict[str, Any]:
    total_orders = sum(day["order_count"] for day in days)
    total_value = sum(day["total_value"] for day in days)
    violations = sum(day["sla_violations"] for day in days)
    return {
        "totalOrders": total_orders,
        "totalValue": total_value,
        "avgOrderValue": total_value / total_orders if total_orders else 0,
        "avgFulfillmentTimeMinutes": _mean([day["avg_fulfillment_time"] for day in days]),
        "avgEfficiencyScore": _mean([day["avg_efficiency_score"] for day in days]),
        "slaComplianceRate": (total_orders - violations) / total_orders * 100 if total_orders else 100,
    }


def compliance_rate(rows: list[Any]) -> float:
    if not rows:
        return 100.0
    violations = sum(1 for row in rows if row.exceeded_sla)
    return (len(rows) - violations) / len(rows) * 100


def compliance_trend(rows: Iterable[Any], *, tolerance: float = 5.0) -> str:
    """Compare SLA compliance of the older half of the window with the newer half."""
    ordered = sorted(rows, key=lambda row: _aware(row.created_at))
    if len(ordered) < 2:
        return "stable"
    middle = len(ordered) // 2
    earlier = compliance_rate(ordered[:middle])
    later = compliance_rate(ordered[middle:])
    if later - earlier > tolerance:
        return "improving"
    if earlier - later > tolerance:
        return "declining"
    return "stable"


def average_stage_times(rows: list[Any]) -> dict[str, float]:
    fields = [f"{name}_minutes" for name in StageTimings.__dataclass_fields__]
    return {field: _mean([float(getattr(row, field) or 0) for row in rows]) for field in fields}


def bottleneck_frequency(rows: Iterable[Any]) -> list[dict[str, Any]]:
    counts: dict[str, int] = {}
    for row in rows:
        if row.bottleneck_stage:
            counts[row.bottleneck_stage] = counts.get(row.bottleneck_stage, 0) + 1

    def rank(item: tuple[str, int]) -> tuple[int, int]:
        stage, count = item
        order = BOTTLENECK_STAGES.index(stage) if stage in BOTTLENECK_STAGES else len(BOTTLENECK_STAGES)
        return -count, order

    return [{"bottleneck_stage": stage, "count": count} for stage, count in sorted(counts.items(), key=rank)]


def bottleneck_recommendations(frequency: list[dict[str, Any]]) -> list[str]:
    if not frequency:
        return []
    top = frequency[0]["bottleneck_stage"]
    if top == "production":
        return ["Consider adding production capacity or optimizing workflow"]
    if top == "quality_shipping":
        return ["Review quality control processes for efficiency improvements"]
    if top == "payment_processing":
        return ["Review payment confirmation hand-off to processing"]
    if top == "delivery":
        return ["Review carrier performance and shipping service levels"]
    return []
