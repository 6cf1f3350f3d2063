import enum

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String
from callscreen.core.clock import utcnow
from callscreen.core.database import Base


class ReportFrequency(enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


DEFAULT_METRICS = {"total_calls": True, "qualified_leads": True, "conversion_rate": True}
DEFAULT_SUBJECT_TEMPLATE = "TruckRecruit Pro - {period} Report"


class ReportConfig(Base):
    __tablename__ = "reports_config"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), unique=True, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    frequency = Column(String(20), nullable=False)
    frequency_value = Column(Integer, default=1)
    day_of_week = Column(Integer)
    day_of_month = Column(Integer)
    hour_of_day = Column(Integer, default=9)

    report_type = Column(String(20), nullable=False, default="summary")
    include_metrics = Column(JSON, default=lambda: dict(DEFAULT_METRICS))
    include_call_details = Column(Boolean, default=True, nullable=False)
    subject_template = Column(String(255), default=DEFAULT_SUBJECT_TEMPLATE)
    template_data = Column(JSON, default=dict)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    last_sent_at = Column(DateTime)
    next_send_at = Column(DateTime, index=True)
