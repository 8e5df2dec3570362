"""Processing analytics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Actor, get_current_actor
from ..database import get_db
from ..schemas import (
    BottleneckAnalysisRequest,
    CalculateOrderMetricsRequest,
    GetEfficiencyDashboardRequest,
    ProcessingAnalyticsBody,
    ProcessorPerformanceRequest,
    RealTimeMetricsRequest,
    SlaComplianceRequest,
)
from ..use_cases import processing_analytics as analytics

router = APIRouter(tags=["processing-analytics"])


@router.post("/processing-analytics")
def processing_analytics(
    body: ProcessingAnalyticsBody,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    request = body.root
    if isinstance(request, CalculateOrderMetricsRequest):
        data = analytics.compute_order_metrics_use_case(db=db, order_id=request.order_id)
    elif isinstance(request, GetEfficiencyDashboardRequest):
        data = analytics.efficiency_dashboard_use_case(db=db, days=request.timeframe)
    elif isinstance(request, ProcessorPerformanceRequest):
        data = analytics.processor_performance_use_case(
            db=db,
            processor_id=request.processor_id,
            days=request.timeframe,
        )
    elif isinstance(request, BottleneckAnalysisRequest):
        data = analytics.bottleneck_analysis_use_case(db=db, days=request.timeframe)
    elif isinstance(request, SlaComplianceRequest):
        data = analytics.sla_compliance_use_case(db=db, days=request.timeframe)
    elif isinstance(request, RealTimeMetricsRequest):
        data = analytics.real_time_metrics_use_case(db=db)
    return {"data": data}
