import base64
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

import requests

from callscreen.core.config import Settings

logger = logging.getLogger(__name__)

POSTMARK_API = "https://api.postmarkapp.com"


@dataclass
class Attachment:
    name: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    html_body: str
    text_body: str
    attachments: List[Attachment] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)
    message_stream: Optional[str] = None


class Mailer(Protocol):
    def send(self, email: OutgoingEmail) -> SendResult:
        ...


class PostmarkMailer:
    def __init__(
        self,
        server_token: str,
        from_email: str,
        default_stream: str = "outbound",
        timeout: float = 15.0,
        base_url: str = POSTMARK_API,
    ) -> None:
        self.server_token = server_token
        self.from_email = from_email
        self.default_stream = default_stream
        self.timeout = timeout
        self.base_url = base_url
        self.session = requests.Session()

    def _payload(self, email: OutgoingEmail) -> dict:
        payload = {
            "From": self.from_email,
            "To": email.to,
            "Subject": email.subject,
            "HtmlBody": email.html_body,
            "TextBody": email.text_body,
            "MessageStream": email.message_stream or self.default_stream,
            "TrackOpens": True,
            "TrackLinks": "TextOnly",
        }
        if email.metadata:
            payload["Metadata"] = email.metadata
        if email.attachments:
            payload["Attachments"] = [
                {
                    "Name": attachment.name,
                    "Content": base64.b64encode(attachment.content).decode("ascii"),
                    "ContentType": attachment.content_type,
                }
                for attachment in email.attachments
            ]
        return payload

    def send(self, email: OutgoingEmail) -> SendResult:
        try:
            response = self.session.post(
                f"{self.base_url}/email",
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                    "X-Postmark-Server-Token": self.server_token,
                },
                json=self._payload(email),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Postmark request failed for %s: %s", email.to, exc)
            return SendResult(success=False, error=str(exc))

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code != 200 or body.get("ErrorCode", 0) != 0:
            error = body.get("Message") or f"HTTP {response.status_code}"
            logger.error("Postmark rejected email to %s: %s", email.to, error)
            return SendResult(success=False, error=error)

        message_id = body.get("MessageID")
        logger.info("Email sent to %s, MessageID: %s", email.to, message_id)
        return SendResult(success=True, message_id=message_id)


class DisabledMailer:
    """Used when no Postmark token is configured; every send fails softly."""

    reason = "Postmark not configured"

    def send(self, email: OutgoingEmail) -> SendResult:
        logger.warning("Email to %s not sent: %s", email.to, self.reason)
        return SendResult(success=False, error=self.reason)


def build_mailer(settings: Settings) -> Mailer:
    if not settings.postmark_server_token:
        logger.warning("POSTMARK_SERVER_TOKEN not configured - email sending disabled")
        return DisabledMailer()
    return PostmarkMailer(
        server_token=settings.postmark_server_token,
        from_email=settings.postmark_from_email,
        default_stream=settings.postmark_notification_stream,
        timeout=settings.http_timeout_seconds,
    )
