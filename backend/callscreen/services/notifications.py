"""Qualified-candidate alerts, delivered through an outbox table.

Ingestion only queues a row; dispatch runs later (Celery task or the beat
sweep), so a slow mail provider never affects the webhook.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from callscreen.core.clock import Clock, system_clock
from callscreen.core.config import settings
from callscreen.core.database import dialect_insert
from callscreen.models import CallRecord, NotificationOutbox, Qualification, User
from callscreen.services.mailer import Mailer, OutgoingEmail
from callscreen.services.reports import templates

logger = logging.getLogger(__name__)

QUALIFIED_KIND = "qualified"
PENDING = "pending"
SENT = "sent"
FAILED = "failed"


class NotificationDeliveryError(Exception):
    pass


def queue_qualification_notice(
    db: Session, record: CallRecord, clock: Clock = system_clock
) -> Optional[NotificationOutbox]:
    """Queue at most one alert per qualified call; repeats are no-ops."""
    if record.qualification is not Qualification.QUALIFIED:
        return None
    stmt = (
        dialect_insert(db, NotificationOutbox)
        .values(call_record_id=record.id, kind=QUALIFIED_KIND, status=PENDING, attempts=0, created_at=clock.now())
        .on_conflict_do_nothing(index_elements=["call_record_id", "kind"])
    )
    db.execute(stmt)
    db.commit()
    return (
        db.query(NotificationOutbox)
        .filter(NotificationOutbox.call_record_id == record.id, NotificationOutbox.kind == QUALIFIED_KIND)
        .first()
    )


def enqueue_dispatch(notice: Optional[NotificationOutbox]) -> bool:
    if notice is None or notice.status != PENDING:
        return False
    if settings.notification_dispatch != "celery":
        return False
    try:
        from celery_app import celery_app

        celery_app.send_task("callscreen.tasks.dispatch_qualification_notice", args=[notice.id], retry=False)
    except Exception:
        # The outbox sweep retries anything left pending.
        logger.warning("Could not enqueue notification %s; leaving it for the outbox sweep", notice.id, exc_info=True)
        return False
    return True


def notification_recipients(db: Session) -> list[User]:
    return (
        db.query(User)
        .filter(User.receive_notifications.is_(True), User.is_active.is_(True), User.email.isnot(None), User.email != "")
        .order_by(User.id)
        .all()
    )


def _render(record: CallRecord) -> tuple[str, str, str]:
    extracted = record.extracted_data or {}
    context = {"record": record, "duration": extracted.get("call_duration")}
    subject = f"Qualified candidate: {record.display_name}"
    html = templates.get_template("qualification_notice.html").render(**context)
    text = templates.get_template("qualification_notice.txt").render(**context)
    return subject, html, text


def dispatch_notice(
    db: Session,
    notice_id: int,
    mailer: Mailer,
    clock: Clock = system_clock,
    max_attempts: int | None = None,
    message_stream: Optional[str] = None,
) -> NotificationOutbox | None:
    """Send one queued alert to every subscribed user.

    Raises NotificationDeliveryError while retries remain and nobody could
    be reached.
    """
    max_attempts = max_attempts or settings.notification_max_attempts
    notice = db.get(NotificationOutbox, notice_id)
    if notice is None or notice.status != PENDING:
        return notice
    record = db.get(CallRecord, notice.call_record_id)
    recipients = notification_recipients(db)
    if record is None or not recipients:
        notice.status = SENT
        notice.sent_at = clock.now()
        db.commit()
        return notice

    subject, html, text = _render(record)
    delivered = 0
    errors: list[str] = []
    for recipient in recipients:
        try:
            outcome = mailer.send(
                OutgoingEmail(to=recipient.email, subject=subject, html_body=html, text_body=text, message_stream=message_stream)
            )
        except Exception as exc:
            logger.exception("Error sending qualification notice to %s", recipient.email)
            errors.append(f"{recipient.email}: {exc}")
            continue
        if outcome.success:
            delivered += 1
        else:
            errors.append(f"{recipient.email}: {outcome.error}")

    notice.attempts += 1
    if delivered:
        notice.status = SENT
        notice.sent_at = clock.now()
        notice.last_error = "; ".join(errors) or None
        db.commit()
        logger.info("Qualification notice %s delivered to %s recipient(s)", notice.id, delivered)
        return notice

    notice.last_error = "; ".join(errors)[:2000]
    if notice.attempts >= max_attempts:
        notice.status = FAILED
        db.commit()
        logger.error("Qualification notice %s failed permanently: %s", notice.id, notice.last_error)
        return notice
    db.commit()
    raise NotificationDeliveryError(f"Notice {notice.id} not delivered: {notice.last_error}")


def pending_notice_ids(db: Session, limit: int = 100) -> list[int]:
    rows = (
        db.query(NotificationOutbox.id)
        .filter(NotificationOutbox.status == PENDING)
        .order_by(NotificationOutbox.id)
        .limit(limit)
        .all()
    )
    return [row.id for row in rows]
