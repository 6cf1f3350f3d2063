from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text
from callscreen.core.clock import utcnow
from callscreen.core.database import Base


class EmailLog(Base):
    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True)
    report_config_id = Column(Integer, ForeignKey("reports_config.id", ondelete="SET NULL"), index=True)
    recipient_email = Column(String(255), nullable=False)
    recipient_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    subject = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False)
    provider_message_id = Column(String(128))
    error_message = Column(Text)
    sent_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    report_period_start = Column(DateTime)
    report_period_end = Column(DateTime)
    report_data = Column(JSON)
