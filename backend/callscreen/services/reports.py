"""Report assembly, rendering and per-recipient delivery."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from callscreen.models import CallRecord, Qualification, ReportConfig, User
from callscreen.models.report_config import DEFAULT_METRICS, DEFAULT_SUBJECT_TEMPLATE
from callscreen.services import call_store, delivery_log
from callscreen.services.export import calls_to_csv
from callscreen.services.mailer import Attachment, Mailer, OutgoingEmail, SendResult
from callscreen.services.periods import ReportPeriod, format_date, period_for

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"
RECENT_CALLS_LIMIT = 10
TOP_AGENTS_LIMIT = 5

templates = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)
templates.filters["date"] = format_date


class CallSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    conversation_id: str
    agent_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    qualification: Qualification
    created_at: datetime

    @property
    def display_name(self) -> str:
        return f"{self.first_name or 'Unknown'} {self.last_name or ''}".strip()


class AgentPerformance(BaseModel):
    agent_id: str
    calls: int
    qualified: int


class ReportData(BaseModel):
    period: str
    period_start: datetime
    period_end: datetime
    total_calls: int
    qualified_leads: int
    conversion_rate: float
    call_records: list[CallSummary]
    top_performing_agents: list[AgentPerformance]


@dataclass
class EmailTemplate:
    subject: str
    html_body: str
    text_body: str


@dataclass
class DeliveryResult:
    sent: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


def conversion_rate(total_calls: int, qualified_leads: int) -> float:
    if not total_calls:
        return 0.0
    rate = Decimal(qualified_leads * 100) / Decimal(total_calls)
    return float(rate.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def fetch_period_records(db: Session, period: ReportPeriod) -> list[CallRecord]:
    try:
        return call_store.records_between(db, period.start, period.end)
    except SQLAlchemyError:
        logger.exception("Range query for report period failed; filtering all records instead")
        db.rollback()
    return [
        record
        for record in call_store.all_records(db)
        if period.start <= record.created_at <= period.end
    ]


def top_performing_agents(records: list[CallRecord], limit: int = TOP_AGENTS_LIMIT) -> list[AgentPerformance]:
    stats: dict[str, AgentPerformance] = {}
    for record in records:
        entry = stats.setdefault(record.agent_id, AgentPerformance(agent_id=record.agent_id, calls=0, qualified=0))
        entry.calls += 1
        if record.qualification is Qualification.QUALIFIED:
            entry.qualified += 1
    ranked = sorted(
        stats.values(),
        key=lambda agent: (-(agent.qualified / agent.calls if agent.calls else 0), -agent.calls),
    )
    return ranked[:limit]


def build_report_data(period: ReportPeriod, records: list[CallRecord]) -> ReportData:
    total_calls = len(records)
    qualified_leads = sum(1 for record in records if record.qualification is Qualification.QUALIFIED)
    return ReportData(
        period=period.label,
        period_start=period.start,
        period_end=period.end,
        total_calls=total_calls,
        qualified_leads=qualified_leads,
        conversion_rate=conversion_rate(total_calls, qualified_leads),
        call_records=[CallSummary.model_validate(record) for record in records],
        top_performing_agents=top_performing_agents(records),
    )


def generate_report_data(
    db: Session, config: ReportConfig, now: datetime, period: Optional[ReportPeriod] = None
) -> ReportData:
    period = period or period_for(config.frequency, now)
    return build_report_data(period, fetch_period_records(db, period))


def render_subject(template: str, data: ReportData) -> str:
    return (
        template.replace("{period}", data.period)
        .replace("{totalCalls}", str(data.total_calls))
        .replace("{qualifiedLeads}", str(data.qualified_leads))
        .replace("{conversionRate}", f"{data.conversion_rate:.1f}%")
    )


def render_report_email(config: ReportConfig, data: ReportData, generated_at: datetime) -> EmailTemplate:
    metrics = config.include_metrics if config.include_metrics is not None else DEFAULT_METRICS
    recent = data.call_records[:RECENT_CALLS_LIMIT]
    context = {
        "data": data,
        "metrics": metrics,
        "include_call_details": bool(config.include_call_details) and bool(data.call_records),
        "recent_calls": recent,
        "remaining_calls": max(len(data.call_records) - len(recent), 0),
        "generated_at": generated_at.strftime("%Y-%m-%d %H:%M UTC"),
    }
    return EmailTemplate(
        subject=render_subject(config.subject_template or DEFAULT_SUBJECT_TEMPLATE, data),
        html_body=templates.get_template("report_email.html").render(**context),
        text_body=templates.get_template("report_email.txt").render(**context),
    )


def report_recipients(db: Session) -> list[User]:
    return (
        db.query(User)
        .filter(User.email_notifications.is_(True), User.is_active.is_(True), User.email.isnot(None), User.email != "")
        .order_by(User.id)
        .all()
    )


def _report_attachments(config: ReportConfig, records: list[CallRecord]) -> list[Attachment]:
    if config.report_type != "detailed":
        return []
    return [Attachment(name="calls.csv", content=calls_to_csv(records).encode("utf-8"), content_type="text/csv")]


def send_report(
    db: Session, config: ReportConfig, mailer: Mailer, now: datetime, message_stream: Optional[str] = None
) -> DeliveryResult:
    """Generate the report once and mail it to every recipient independently.

    Each attempt is appended to the email log; one recipient failing never
    stops delivery to the rest.
    """
    result = DeliveryResult()
    period = period_for(config.frequency, now)
    records = fetch_period_records(db, period)
    data = build_report_data(period, records)

    recipients = report_recipients(db)
    if not recipients:
        logger.info("No recipients found for report: %s", config.name)
        return result

    template = render_report_email(config, data, now)
    attachments = _report_attachments(config, records)
    snapshot = data.model_dump(mode="json")

    for recipient in recipients:
        email = OutgoingEmail(
            to=recipient.email,
            subject=template.subject,
            html_body=template.html_body,
            text_body=template.text_body,
            attachments=attachments,
            metadata={"reportConfigId": str(config.id), "reportType": config.report_type, "period": data.period},
            message_stream=message_stream,
        )
        try:
            outcome = mailer.send(email)
        except Exception as exc:
            logger.exception("Error sending report to %s", recipient.email)
            outcome = SendResult(success=False, error=str(exc) or exc.__class__.__name__)

        delivery_log.record_delivery(
            db,
            report_config_id=config.id,
            recipient_email=recipient.email,
            recipient_user_id=recipient.id,
            subject=template.subject,
            status=delivery_log.SENT if outcome.success else delivery_log.FAILED,
            sent_at=now,
            provider_message_id=outcome.message_id,
            error_message=outcome.error,
            report_period_start=data.period_start,
            report_period_end=data.period_end,
            report_data=snapshot,
        )
        if outcome.success:
            result.sent += 1
            logger.info("Report sent successfully to %s", recipient.email)
        else:
            result.failed += 1
            result.errors.append(f"{recipient.email}: {outcome.error}")
            logger.error("Failed to send report to %s: %s", recipient.email, outcome.error)

    logger.info("Report %r completed: %s sent, %s failed", config.name, result.sent, result.failed)
    return result


def send_test_report(
    db: Session,
    mailer: Mailer,
    recipient_email: str,
    now: datetime,
    config: Optional[ReportConfig] = None,
    message_stream: Optional[str] = None,
) -> SendResult:
    if config is None:
        config = ReportConfig(
            id=0,
            name="Test Report",
            frequency="weekly",
            report_type="summary",
            include_metrics=dict(DEFAULT_METRICS),
            include_call_details=True,
            subject_template="TruckRecruit Pro - Test Report",
        )
    data = generate_report_data(db, config, now, period=period_for("weekly", now))
    template = render_report_email(config, data, now)
    try:
        return mailer.send(
            OutgoingEmail(
                to=recipient_email,
                subject=template.subject,
                html_body=template.html_body,
                text_body=template.text_body,
                message_stream=message_stream,
            )
        )
    except Exception as exc:
        logger.exception("Failed to send test report to %s", recipient_email)
        return SendResult(success=False, error=str(exc) or exc.__class__.__name__)
