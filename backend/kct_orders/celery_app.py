"""
Celery worker: auto-resolution queue and customer communication outbox.

Both queues are claimed with SELECT FOR UPDATE SKIP LOCKED so concurrent
workers never process the same row.
"""
from celery import Celery
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from datetime import timedelta
import logging
from .config import settings
from .database import SessionLocal
from .domain_errors import DomainError
from .models import AutoResolutionTask, CommunicationLog, OrderException
from .services.notifications import send_email_via_sendgrid
from .services.order_state import now_utc
from .use_cases.exception_tracker import attempt_auto_resolution

logger = logging.getLogger(__name__)

celery_app = Celery(
    "kct_orders",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
)

DUE_AUTO_RESOLUTIONS = text("""
    SELECT id
    FROM auto_resolution_tasks
    WHERE status = 'pending'
      AND run_after <= NOW()
    ORDER BY run_after
    LIMIT :batch_size
    FOR UPDATE SKIP LOCKED
""")

DUE_COMMUNICATIONS = text("""
    SELECT id
    FROM customer_communication_logs
    WHERE status = 'pending'
      AND (next_retry_at IS NULL OR next_retry_at <= NOW())
    ORDER BY created_at
    LIMIT :batch_size
    FOR UPDATE SKIP LOCKED
""")


def backoff_seconds(attempts: int) -> int:
    """2min, 4min, 8min..."""
    return 2 ** attempts * 60


def run_auto_resolution_task(db, task: AutoResolutionTask) -> str:
    """Attempt one queued auto-resolution; returns the task's new status."""
    now = now_utc()
    exception = db.query(OrderException).filter(
        OrderException.id == task.exception_id
    ).with_for_update().first()

    # Resolved or escalated by hand while the task waited.
    if exception is None or exception.status != "open" or not exception.auto_resolvable:
        task.status = 'skipped'
        task.completed_at = now
        return task.status

    task.attempts += 1
    try:
        with db.begin_nested():
            attempt_auto_resolution(db=db, exception=exception, now=now)
    except (DomainError, SQLAlchemyError) as exc:
        task.last_error = str(exc)
        if task.attempts >= settings.AUTO_RESOLUTION_MAX_ATTEMPTS:
            task.status = 'failed'
            task.completed_at = now
            logger.error("Auto-resolution %s failed after %s attempts: %s", task.id, task.attempts, exc)
        else:
            task.run_after = now + timedelta(seconds=backoff_seconds(task.attempts))
            logger.warning("Auto-resolution %s retry %s: %s", task.id, task.attempts, exc)
        return task.status

    task.status = 'done'
    task.last_error = None
    task.completed_at = now
    return task.status


def deliver_communication(log: CommunicationLog) -> str:
    """Send one outbox row and apply the retry policy; returns its new status."""
    now = now_utc()
    if not log.recipient_email:
        log.status = 'skipped'
        log.last_error = "No recipient email"
        return log.status

    success, error = send_email_via_sendgrid(
        to_email=log.recipient_email,
        to_name=log.recipient_name,
        subject=log.subject,
        content=log.message_content,
        is_html=log.communication_type == "wedding_invitation",
    )

    if success:
        log.status = 'sent'
        log.sent_at = now
        log.last_error = None
        return log.status

    log.attempts = (log.attempts or 0) + 1
    log.last_error = error

    if error and error.startswith("RATE_LIMIT:"):
        # 429 - wait as long as the provider asks
        try:
            retry_after = int(error.split(":", 1)[1])
        except ValueError:
            retry_after = 60
        log.next_retry_at = now + timedelta(seconds=retry_after)
        logger.warning("Rate limited for %ss: %s", retry_after, log.id)
    elif log.attempts >= settings.OUTBOX_MAX_ATTEMPTS:
        log.status = 'failed'
        log.failed_at = now
        logger.error("Communication %s failed after %s attempts: %s", log.id, log.attempts, error)
    else:
        delay = backoff_seconds(log.attempts)
        log.next_retry_at = now + timedelta(seconds=delay)
        logger.warning("Retry %s/%s in %ss: %s", log.attempts, settings.OUTBOX_MAX_ATTEMPTS, delay, log.id)
    return log.status


@celery_app.task(name="process_auto_resolution_queue")
def process_auto_resolution_queue(batch_size: int = 50):
    """Attempt due auto-resolutions queued by exception creation."""
    db = SessionLocal()
    task_ids = []
    resolved = 0

    try:
        result = db.execute(DUE_AUTO_RESOLUTIONS, {"batch_size": batch_size})
        task_ids = [row[0] for row in result.fetchall()]

        for task_id in task_ids:
            task = db.query(AutoResolutionTask).filter(AutoResolutionTask.id == task_id).first()
            if task and run_auto_resolution_task(db, task) == 'done':
                resolved += 1

        db.commit()
        logger.info("Processed %s/%s auto-resolution tasks", resolved, len(task_ids))

    except Exception as e:
        db.rollback()
        logger.error("Error processing auto-resolution queue: %s", e, exc_info=True)
        raise

    finally:
        db.close()

    return {"processed": resolved, "total_locked": len(task_ids)}


@celery_app.task(name="process_communication_outbox")
def process_communication_outbox(batch_size: int = 100):
    """Deliver pending customer communications."""
    db = SessionLocal()
    log_ids = []
    sent = 0

    try:
        result = db.execute(DUE_COMMUNICATIONS, {"batch_size": batch_size})
        log_ids = [row[0] for row in result.fetchall()]
        logger.info("Locked %s communications for delivery", len(log_ids))

        for log_id in log_ids:
            log = db.query(CommunicationLog).filter(CommunicationLog.id == log_id).first()
            if log and deliver_communication(log) == 'sent':
                sent += 1

        db.commit()
        logger.info("Sent %s/%s communications", sent, len(log_ids))

    except Exception as e:
        db.rollback()
        logger.error("Error processing outbox: %s", e, exc_info=True)
        raise

    finally:
        db.close()

    return {"processed": sent, "total_locked": len(log_ids)}


# Schedule periodic processing
celery_app.conf.beat_schedule = {
    'process-auto-resolution-queue': {
        'task': 'process_auto_resolution_queue',
        'schedule': settings.AUTO_RESOLUTION_POLL_SECONDS,
    },
    'process-communication-outbox': {
        'task': 'process_communication_outbox',
        'schedule': settings.OUTBOX_POLL_SECONDS,
    },
}
