from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from callscreen.models import EmailLog

SENT = "sent"
FAILED = "failed"
SUBJECT_MAX_LENGTH = EmailLog.__table__.c.subject.type.length


def record_delivery(
    db: Session,
    *,
    report_config_id: Optional[int],
    recipient_email: str,
    subject: str,
    status: str,
    sent_at: datetime,
    recipient_user_id: Optional[int] = None,
    provider_message_id: Optional[str] = None,
    error_message: Optional[str] = None,
    report_period_start: Optional[datetime] = None,
    report_period_end: Optional[datetime] = None,
    report_data: Optional[dict[str, Any]] = None,
) -> EmailLog:
    """Append one delivery attempt; rows are never updated afterwards."""
    entry = EmailLog(
        report_config_id=report_config_id,
        recipient_email=recipient_email,
        recipient_user_id=recipient_user_id,
        subject=subject[:SUBJECT_MAX_LENGTH],
        status=status,
        provider_message_id=provider_message_id,
        error_message=error_message,
        sent_at=sent_at,
        report_period_start=report_period_start,
        report_period_end=report_period_end,
        report_data=report_data,
    )
    db.add(entry)
    db.commit()
    return entry


def list_deliveries(db: Session, report_config_id: Optional[int] = None, limit: int = 100) -> list[EmailLog]:
    query = db.query(EmailLog)
    if report_config_id is not None:
        query = query.filter(EmailLog.report_config_id == report_config_id)
    return query.order_by(EmailLog.sent_at.desc(), EmailLog.id.desc()).limit(limit).all()
