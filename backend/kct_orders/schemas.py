"""Pydantic schemas for API."""
from pydantic import BaseModel, Field, ConfigDict, RootModel, model_validator
from typing import Any, Literal, Optional, Union
from datetime import datetime
from uuid import UUID


OrderStatus = Literal[
    "pending_payment", "payment_confirmed", "processing", "in_production",
    "quality_check", "packaging", "shipped", "delivered", "exception", "cancelled",
]
ExceptionType = Literal[
    "payment_retry", "inventory_check", "address_validation", "stock_out",
    "quality_issue", "shipping_delay", "other",
]
Severity = Literal["low", "medium", "high", "critical"]
OrderCommunicationType = Literal[
    "order_confirmation", "payment_confirmation", "processing_update",
    "shipping_notification", "delivery_confirmation", "exception_alert",
]


class ActionRequest(BaseModel):
    """Base for `{action, ...fields}` bodies; camelCase and snake_case names are both accepted."""
    model_config = ConfigDict(populate_by_name=True)


# Order management
class QueueOrderData(BaseModel):
    order_id: UUID
    special_requirements: Optional[str] = None


class CreateOrderQueueEntryRequest(ActionRequest):
    action: Literal["create_order_queue_entry"]
    order_id: Optional[UUID] = None
    order_data: Optional[QueueOrderData] = None

    @model_validator(mode="after")
    def _require_order_id(self):
        if self.order_id is None and self.order_data is None:
            raise ValueError("order_id is required")
        return self

    @property
    def target_order_id(self) -> UUID:
        return self.order_id or self.order_data.order_id


class QueueFilters(BaseModel):
    status: Optional[Literal["waiting", "assigned", "completed"]] = None
    priority: Optional[Literal["standard", "high", "urgent"]] = None
    source: Optional[Literal["catalog", "stripe", "mixed"]] = None


class GetProcessingQueueRequest(ActionRequest):
    action: Literal["get_processing_queue"]
    filters: QueueFilters = Field(default_factory=QueueFilters)
    limit: int = Field(default=100, ge=1, le=500)


class StatusChangeData(BaseModel):
    new_status: OrderStatus
    notes: Optional[str] = None
    status_reason: Optional[str] = None


class UpdateOrderStatusRequest(ActionRequest):
    action: Literal["update_order_status"]
    order_id: UUID
    order_data: StatusChangeData


class GetOrderAnalyticsRequest(ActionRequest):
    action: Literal["get_order_analytics"]
    limit: int = Field(default=1000, ge=1, le=10000)


class ProcessAutomationRulesRequest(ActionRequest):
    action: Literal["process_automation_rules"]


class OrderManagementBody(RootModel):
    root: Union[
        CreateOrderQueueEntryRequest,
        GetProcessingQueueRequest,
        UpdateOrderStatusRequest,
        GetOrderAnalyticsRequest,
        ProcessAutomationRulesRequest,
    ] = Field(discriminator="action")


# Workflow automation
class WorkflowRequest(ActionRequest):
    order_id: UUID = Field(alias="orderId")
    # External trigger id (e.g. payment event id); replays return the recorded response.
    idempotency_key: Optional[str] = Field(default=None, alias="idempotencyKey", max_length=255)


class ProcessPaymentConfirmationRequest(WorkflowRequest):
    action: Literal["process_payment_confirmation"]


class RoutingParameters(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    processor_id: Optional[UUID] = Field(default=None, alias="processorId")


class IntelligentOrderRoutingRequest(WorkflowRequest):
    action: Literal["intelligent_order_routing"]
    parameters: RoutingParameters = Field(default_factory=RoutingParameters)


class BundleOrderProcessingRequest(WorkflowRequest):
    action: Literal["bundle_order_processing"]


class WeddingPartyCoordinationRequest(WorkflowRequest):
    action: Literal["wedding_party_coordination"]


class ExceptionParameters(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    type: ExceptionType
    severity: Severity = "medium"
    description: Optional[str] = None
    notify_customer: bool = Field(default=False, alias="notifyCustomer")
    customer_message: Optional[str] = Field(default=None, alias="customerMessage")


class ExceptionHandlingWorkflowRequest(WorkflowRequest):
    action: Literal["exception_handling"]
    parameters: ExceptionParameters


class QualityAssuranceWorkflowRequest(WorkflowRequest):
    action: Literal["quality_assurance_workflow"]


class WorkflowActionBody(RootModel):
    root: Union[
        ProcessPaymentConfirmationRequest,
        IntelligentOrderRoutingRequest,
        BundleOrderProcessingRequest,
        WeddingPartyCoordinationRequest,
        ExceptionHandlingWorkflowRequest,
        QualityAssuranceWorkflowRequest,
    ] = Field(discriminator="action")


# Exception handling
class CreateExceptionRequest(ActionRequest):
    action: Literal["create_exception"]
    order_id: UUID = Field(alias="orderId")
    exception_type: ExceptionType = Field(alias="exceptionType")
    severity: Severity
    description: Optional[str] = None


class ExceptionActionRequest(ActionRequest):
    exception_id: UUID = Field(alias="exceptionId")


class AcknowledgeExceptionRequest(ExceptionActionRequest):
    action: Literal["acknowledge_exception"]


class ResolveExceptionRequest(ExceptionActionRequest):
    action: Literal["resolve_exception"]
    resolution_notes: Optional[str] = Field(default=None, alias="resolutionNotes")


class EscalateExceptionRequest(ExceptionActionRequest):
    action: Literal["escalate_exception"]
    escalate_to_user_id: UUID = Field(alias="escalateToUserId")
    escalation_reason: Optional[str] = Field(default=None, alias="escalationReason")


class AutoResolveAttemptRequest(ExceptionActionRequest):
    action: Literal["auto_resolve_attempt"]


class GetExceptionsRequest(ActionRequest):
    action: Literal["get_exceptions"]
    order_id: Optional[UUID] = Field(default=None, alias="orderId")


class NotifyCustomerRequest(ExceptionActionRequest):
    action: Literal["notify_customer"]


class ExceptionHandlingBody(RootModel):
    root: Union[
        CreateExceptionRequest,
        AcknowledgeExceptionRequest,
        ResolveExceptionRequest,
        EscalateExceptionRequest,
        AutoResolveAttemptRequest,
        GetExceptionsRequest,
        NotifyCustomerRequest,
    ] = Field(discriminator="action")


# Processing analytics
class CalculateOrderMetricsRequest(ActionRequest):
    action: Literal["calculate_order_metrics"]
    order_id: UUID = Field(alias="orderId")


class GetEfficiencyDashboardRequest(ActionRequest):
    action: Literal["get_efficiency_dashboard"]
    timeframe: int = Field(default=30, ge=1, le=365)


class ProcessorPerformanceRequest(ActionRequest):
    action: Literal["processor_performance"]
    processor_id: UUID = Field(alias="processorId")
    timeframe: int = Field(default=30, ge=1, le=365)


class BottleneckAnalysisRequest(ActionRequest):
    action: Literal["bottleneck_analysis"]
    timeframe: int = Field(default=7, ge=1, le=365)


class SlaComplianceRequest(ActionRequest):
    action: Literal["sla_compliance"]
    timeframe: int = Field(default=30, ge=1, le=365)


class RealTimeMetricsRequest(ActionRequest):
    action: Literal["real_time_metrics"]


class ProcessingAnalyticsBody(RootModel):
    root: Union[
        CalculateOrderMetricsRequest,
        GetEfficiencyDashboardRequest,
        ProcessorPerformanceRequest,
        BottleneckAnalysisRequest,
        SlaComplianceRequest,
        RealTimeMetricsRequest,
    ] = Field(discriminator="action")


# Customer communication
class SendCommunicationRequest(ActionRequest):
    action: Literal["send_communication"]
    order_id: UUID = Field(alias="orderId")
    communication_type: OrderCommunicationType = Field(alias="communicationType")
    custom_message: Optional[str] = Field(default=None, alias="customMessage")
    trigger_reason: Optional[str] = Field(default=None, alias="triggerReason")
    recipient_override: Optional[str] = Field(default=None, alias="recipientOverride")


# Wedding party members
class PartyMemberData(BaseModel):
    wedding_id: UUID
    first_name: str = Field(min_length=1, max_length=100)
    last_name: Optional[str] = None
    email: str = Field(min_length=3, max_length=255)
    phone: Optional[str] = None
    role: str = Field(min_length=1, max_length=50)
    special_requests: Optional[str] = None
    custom_message: Optional[str] = None


class BulkPartyMemberData(BaseModel):
    # Missing emails are reported per item instead of rejecting the batch.
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: str = "groomsman"
    special_requests: Optional[str] = None
    custom_message: Optional[str] = None


class InvitePartyMemberRequest(ActionRequest):
    action: Literal["invite_party_member"]
    member_data: PartyMemberData


class BulkInvitePartyMembersRequest(ActionRequest):
    action: Literal["bulk_invite_party_members"]
    wedding_id: UUID
    members: list[BulkPartyMemberData] = Field(min_length=1, max_length=100)


class GetPartyMembersRequest(ActionRequest):
    action: Literal["get_party_members"]
    wedding_id: UUID


class MemberStatusData(BaseModel):
    invite_status: Literal["pending", "accepted", "declined"]


class UpdateMemberStatusRequest(ActionRequest):
    action: Literal["update_member_status"]
    party_member_id: UUID
    member_data: MemberStatusData


class PartyMemberBody(RootModel):
    root: Union[
        InvitePartyMemberRequest,
        BulkInvitePartyMembersRequest,
        GetPartyMembersRequest,
        UpdateMemberStatusRequest,
    ] = Field(discriminator="action")


# Response schemas
class OrderBrief(BaseModel):
    id: UUID
    order_number: str
    customer_name: Optional[str] = None
    total_amount: float
    status: str
    priority_level: str
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class QueueEntryResponse(BaseModel):
    id: UUID
    order_id: UUID
    priority_score: int
    priority_level: str
    queue_status: str
    order_type: str
    product_source: str
    customer_tier: str
    assigned_to_user_id: Optional[UUID] = None
    assigned_at: Optional[datetime] = None
    estimated_completion: Optional[datetime] = None
    actual_completion_time: Optional[datetime] = None
    meta_data: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None
    order: Optional[OrderBrief] = None
    model_config = ConfigDict(from_attributes=True)


class OrderExceptionResponse(BaseModel):
    id: UUID
    order_id: UUID
    exception_type: str
    severity: str
    status: str
    title: str
    description: Optional[str] = None
    auto_resolvable: bool
    affects_delivery_date: bool
    estimated_delay_days: int
    customer_impact_level: str
    customer_acceptance_required: bool
    resolution_attempted: bool
    resolution_notes: Optional[str] = None
    escalation_required: bool
    escalation_reason: Optional[str] = None
    escalated_to_user_id: Optional[UUID] = None
    escalation_level: int
    customer_notified: bool
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    escalated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class PartyMemberResponse(BaseModel):
    id: UUID
    wedding_id: UUID
    first_name: str
    last_name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    role: str
    invite_code: str
    invite_status: str
    special_requests: Optional[str] = None
    invited_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


def dump(model: type[BaseModel], obj: Any) -> dict[str, Any]:
    """Serialize an ORM row through a response schema into JSON-safe primitives."""
    return model.model_validate(obj).model_dump(mode="json")
