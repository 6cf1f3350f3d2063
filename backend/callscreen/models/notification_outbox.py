from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from callscreen.core.clock import utcnow
from callscreen.core.database import Base


class NotificationOutbox(Base):
    __tablename__ = "notification_outbox"
    __table_args__ = (UniqueConstraint("call_record_id", "kind", name="uq_notification_outbox_call_kind"),)

    id = Column(Integer, primary_key=True)
    call_record_id = Column(Integer, ForeignKey("call_records.id", ondelete="CASCADE"), nullable=False)
    kind = Column(String(40), nullable=False, default="qualified")
    status = Column(String(20), nullable=False, default="pending", index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    sent_at = Column(DateTime)
