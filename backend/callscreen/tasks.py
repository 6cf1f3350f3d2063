import logging

from celery import shared_task
from sqlalchemy.orm import Session
from callscreen.core.config import settings
from callscreen.core.database import SessionLocal
from callscreen.services.mailer import build_mailer
from callscreen.services.notifications import NotificationDeliveryError, dispatch_notice, pending_notice_ids

logger = logging.getLogger(__name__)


@shared_task(
    name="callscreen.tasks.dispatch_qualification_notice",
    bind=True,
    autoretry_for=(NotificationDeliveryError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 5},
)
def dispatch_qualification_notice(self, notice_id: int):
    db: Session = SessionLocal()
    try:
        notice = dispatch_notice(
            db,
            notice_id,
            build_mailer(settings),
            max_attempts=settings.notification_max_attempts,
            message_stream=settings.postmark_notification_stream,
        )
        return notice.status if notice else None
    finally:
        db.close()


@shared_task(name="callscreen.tasks.flush_notification_outbox")
def flush_notification_outbox():
    db: Session = SessionLocal()
    try:
        notice_ids = pending_notice_ids(db)
    finally:
        db.close()
    for notice_id in notice_ids:
        dispatch_qualification_notice.delay(notice_id)
    if notice_ids:
        logger.info("Re-dispatched %s pending notifications", len(notice_ids))
    return len(notice_ids)
