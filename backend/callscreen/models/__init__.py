from callscreen.models.user import User, UserRole
from callscreen.models.refresh_token import RefreshToken
from callscreen.models.audit_log import AuditLog
from callscreen.models.call_record import CallRecord, Qualification
from callscreen.models.report_config import ReportConfig, ReportFrequency
from callscreen.models.email_log import EmailLog
from callscreen.models.notification_outbox import NotificationOutbox

__all__ = [
    "User",
    "UserRole",
    "RefreshToken",
    "AuditLog",
    "CallRecord",
    "Qualification",
    "ReportConfig",
    "ReportFrequency",
    "EmailLog",
    "NotificationOutbox",
]
