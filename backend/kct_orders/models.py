"""SQLAlchemy models for the order lifecycle, queue, exceptions and analytics."""
from sqlalchemy import (
    Boolean, Column, String, Integer, Date, DateTime, Text, Numeric, Float,
    ForeignKey, CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from .database import Base


ORDER_STATUS_VALUES = (
    'pending_payment', 'payment_confirmed', 'processing', 'in_production',
    'quality_check', 'packaging', 'shipped', 'delivered', 'exception', 'cancelled',
)
PRIORITY_LEVEL_VALUES = ('standard', 'high', 'urgent')
EXCEPTION_TYPE_VALUES = (
    'payment_retry', 'inventory_check', 'address_validation', 'stock_out',
    'quality_issue', 'shipping_delay', 'other',
)
SEVERITY_VALUES = ('low', 'medium', 'high', 'critical')
EXCEPTION_STATUS_VALUES = ('open', 'in_progress', 'resolved', 'escalated')
IMPACT_LEVEL_VALUES = ('minimal', 'moderate', 'significant', 'severe')


class Order(Base):
    """Customer order moving through the fulfillment lifecycle."""
    __tablename__ = "orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    customer_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(30), nullable=False, default='pending_payment', index=True)
    # Where to return once the order leaves the exception branch.
    status_before_exception = Column(String(30), nullable=True)
    priority_level = Column(String(20), nullable=False, default='standard')
    customer_tier = Column(String(20), nullable=True)
    is_rush_order = Column(Boolean, nullable=False, default=False)
    is_group_order = Column(Boolean, nullable=False, default=False)
    group_order_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    wedding_party_size = Column(Integer, nullable=True)
    bundle_type = Column(String(50), nullable=True)
    custom_measurements = Column(Boolean, nullable=False, default=False)
    event_date = Column(Date, nullable=True)
    source = Column(String(20), nullable=True)
    payment_status = Column(String(30), nullable=True)
    assigned_processor_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    estimated_processing_hours = Column(Integer, nullable=True)
    estimated_delivery_date = Column(DateTime(timezone=True), nullable=True)
    processing_notes = Column(Text, nullable=True)
    tracking_number = Column(String(100), nullable=True)
    shipping_carrier = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(status.in_(ORDER_STATUS_VALUES), name='chk_order_status'),
        CheckConstraint(priority_level.in_(PRIORITY_LEVEL_VALUES), name='chk_order_priority_level'),
    )

    # Relationships
    items = relationship("OrderItem", back_populates="order")
    status_history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        order_by="OrderStatusHistory.created_at",
    )
    queue_entry = relationship("QueueEntry", back_populates="order", uselist=False)
    exceptions = relationship("OrderException", back_populates="order")
    analytics = relationship("ProcessingAnalytics", back_populates="order", uselist=False)


class OrderItem(Base):
    """Line item of an order."""
    __tablename__ = "order_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    stripe_product_id = Column(String(100), nullable=True)
    source = Column(String(20), nullable=True)
    is_bundle_item = Column(Boolean, nullable=False, default=False)
    bundle_type = Column(String(50), nullable=True)

    order = relationship("Order", back_populates="items")


class OrderStatusHistory(Base):
    """Append-only ledger of order status transitions."""
    __tablename__ = "order_status_history"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    previous_status = Column(String(30), nullable=True)
    new_status = Column(String(30), nullable=False)
    changed_by = Column(UUID(as_uuid=True), nullable=True)
    changed_by_system = Column(Boolean, nullable=False, default=True)
    actor = Column(String(100), nullable=False, default='system')
    notes = Column(Text, nullable=True)
    status_reason = Column(String(255), nullable=True)
    exception_type = Column(String(30), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_status_history_order_created', 'order_id', 'created_at'),
    )

    order = relationship("Order", back_populates="status_history")


class QueueEntry(Base):
    """Scheduling record of an order in the processing queue."""
    __tablename__ = "order_processing_queue"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, unique=True)
    priority_score = Column(Integer, nullable=False, default=100)
    priority_level = Column(String(20), nullable=False, default='standard')
    queue_status = Column(String(20), nullable=False, default='waiting', index=True)
    order_type = Column(String(30), nullable=False, default='standard')
    product_source = Column(String(20), nullable=False, default='catalog')
    customer_tier = Column(String(20), nullable=False, default='standard')
    assigned_to_user_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    estimated_completion = Column(DateTime(timezone=True), nullable=True)
    actual_completion_time = Column(DateTime(timezone=True), nullable=True)
    meta_data = Column(JSONB, default={})
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(queue_status.in_(['waiting', 'assigned', 'completed']), name='chk_queue_status'),
        CheckConstraint(priority_level.in_(PRIORITY_LEVEL_VALUES), name='chk_queue_priority_level'),
        Index('idx_queue_waiting_priority', 'queue_status', 'priority_score', 'created_at'),
    )

    order = relationship("Order", back_populates="queue_entry")


class OrderException(Base):
    """Recorded anomaly threatening an order's timely fulfillment."""
    __tablename__ = "order_exceptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    exception_type = Column(String(30), nullable=False)
    severity = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default='open', index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    auto_resolvable = Column(Boolean, nullable=False, default=False)
    affects_delivery_date = Column(Boolean, nullable=False, default=False)
    estimated_delay_days = Column(Integer, nullable=False, default=0)
    customer_impact_level = Column(String(20), nullable=False, default='minimal')
    customer_acceptance_required = Column(Boolean, nullable=False, default=False)
    resolution_attempted = Column(Boolean, nullable=False, default=False)
    resolution_notes = Column(Text, nullable=True)
    escalation_required = Column(Boolean, nullable=False, default=False)
    escalation_reason = Column(String(255), nullable=True)
    escalated_to_user_id = Column(UUID(as_uuid=True), nullable=True)
    escalation_level = Column(Integer, nullable=False, default=0)
    customer_notified = Column(Boolean, nullable=False, default=False)
    customer_notification_sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    escalated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(exception_type.in_(EXCEPTION_TYPE_VALUES), name='chk_exception_type'),
        CheckConstraint(severity.in_(SEVERITY_VALUES), name='chk_exception_severity'),
        CheckConstraint(status.in_(EXCEPTION_STATUS_VALUES), name='chk_exception_status'),
        CheckConstraint(customer_impact_level.in_(IMPACT_LEVEL_VALUES), name='chk_exception_impact'),
    )

    order = relationship("Order", back_populates="exceptions")


class ProcessingAnalytics(Base):
    """Per-order stage timings derived from the status history (one row per order)."""
    __tablename__ = "processing_analytics"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, unique=True)
    payment_to_processing_minutes = Column(Float, nullable=False, default=0)
    processing_to_production_minutes = Column(Float, nullable=False, default=0)
    production_to_quality_minutes = Column(Float, nullable=False, default=0)
    quality_to_shipping_minutes = Column(Float, nullable=False, default=0)
    shipping_to_delivery_minutes = Column(Float, nullable=False, default=0)
    total_fulfillment_minutes = Column(Float, nullable=False, default=0)
    processing_efficiency_score = Column(Float, nullable=False, default=100)
    bottleneck_stage = Column(String(30), nullable=True, index=True)
    sla_target_minutes = Column(Integer, nullable=False)
    exceeded_sla = Column(Boolean, nullable=False, default=False)
    vs_average_performance = Column(Float, nullable=True)
    similar_orders_avg_time = Column(Float, nullable=True)
    quality_issues_count = Column(Integer, nullable=False, default=0)
    reprocessing_required = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    order = relationship("Order", back_populates="analytics")


class AutomationRule(Base):
    """Active rule executed by `process_automation_rules`."""
    __tablename__ = "order_automation_rules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    rule_type = Column(String(50), nullable=False)
    conditions = Column(JSONB, default={})
    actions = Column(JSONB, default={})
    execution_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    success_count = Column(Integer, nullable=False, default=0)
    failure_count = Column(Integer, nullable=False, default=0)
    last_executed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AutoResolutionTask(Base):
    """Durable, delayed auto-resolution attempt for one exception."""
    __tablename__ = "auto_resolution_tasks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exception_id = Column(UUID(as_uuid=True), ForeignKey("order_exceptions.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default='pending', index=True)
    attempts = Column(Integer, nullable=False, default=0)
    run_after = Column(DateTime(timezone=True), nullable=False)
    last_error = Column(Text, nullable=True)
    idempotency_key = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(status.in_(['pending', 'done', 'skipped', 'failed']), name='chk_auto_resolution_status'),
        Index('idx_auto_resolution_due', 'status', 'run_after', postgresql_where=(status == 'pending')),
    )


class CommunicationLog(Base):
    """
    Customer communication outbox - ONE ROW PER MESSAGE.
    Delivered by the Celery worker with SELECT FOR UPDATE SKIP LOCKED.
    """
    __tablename__ = "customer_communication_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=True, index=True)
    communication_type = Column(String(50), nullable=False)
    communication_channel = Column(String(20), nullable=False, default='email')
    recipient_email = Column(String(255), nullable=True)
    recipient_name = Column(String(255), nullable=True)
    subject = Column(String(500), nullable=False)
    message_content = Column(Text, nullable=False)
    trigger_reason = Column(String(255), nullable=True)
    is_automated = Column(Boolean, nullable=False, default=True)

    status = Column(String(20), default='pending', index=True)  # pending/sent/failed/skipped
    attempts = Column(Integer, default=0)
    next_retry_at = Column(DateTime(timezone=True), nullable=True, index=True)
    last_error = Column(Text, nullable=True)
    idempotency_key = Column(String(255), unique=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            communication_type.in_([
                'order_confirmation', 'payment_confirmation', 'processing_update',
                'shipping_notification', 'delivery_confirmation', 'exception_alert',
                'wedding_invitation',
            ]),
            name='chk_communication_type'
        ),
        CheckConstraint(
            status.in_(['pending', 'sent', 'failed', 'skipped']),
            name='chk_communication_status'
        ),
        Index('idx_communication_pending_retry', 'status', 'next_retry_at',
              postgresql_where=(status == 'pending')),
    )


class WorkflowRun(Base):
    """Idempotency ledger for externally triggered workflow actions."""
    __tablename__ = "workflow_runs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    idempotency_key = Column(String(255), unique=True, nullable=False)
    action = Column(String(50), nullable=False)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=True, index=True)
    response = Column(JSONB, default={})
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class WeddingPartyMember(Base):
    """Invited member of a wedding party."""
    __tablename__ = "wedding_party_members"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    wedding_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    role = Column(String(50), nullable=False)
    invite_code = Column(String(12), unique=True, nullable=False)
    invite_status = Column(String(20), nullable=False, default='pending')
    special_requests = Column(Text, nullable=True)
    invited_at = Column(DateTime(timezone=True), server_default=func.now())
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('wedding_id', 'email', name='uq_party_member_wedding_email'),
        CheckConstraint(invite_status.in_(['pending', 'accepted', 'declined']), name='chk_invite_status'),
    )
