import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.orm import Session

from callscreen.core.clock import Clock, system_clock
from callscreen.models import CallRecord, NotificationOutbox
from callscreen.services import call_store, notifications
from callscreen.services.elevenlabs import ConversationProvider, ConversationProviderError

logger = logging.getLogger(__name__)


class InvalidWebhookPayload(ValueError):
    pass


@dataclass
class IngestionResult:
    record: CallRecord
    notice: Optional[NotificationOutbox] = None


def resolve_payload(provider: Optional[ConversationProvider], conversation_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Full conversation details from the provider, or the webhook body when unavailable."""
    if provider is None:
        return data
    try:
        return provider.get_conversation_details(conversation_id)
    except ConversationProviderError as exc:
        logger.warning("Falling back to webhook payload for %s: %s", conversation_id, exc)
        return data


def ingest_conversation(
    db: Session,
    data: dict[str, Any],
    provider: Optional[ConversationProvider] = None,
    clock: Clock = system_clock,
) -> IngestionResult:
    conversation_id = data.get("conversation_id")
    if not conversation_id or not isinstance(conversation_id, str):
        raise InvalidWebhookPayload("Missing conversation_id")

    payload = resolve_payload(provider, conversation_id, data)
    agent_id = payload.get("agent_id") or data.get("agent_id") or ""
    status = payload.get("status") or data.get("status") or "unknown"

    record = call_store.upsert_call_record(
        db,
        conversation_id=conversation_id,
        agent_id=str(agent_id),
        status=str(status),
        raw_payload=payload,
        clock=clock,
    )
    notice = notifications.queue_qualification_notice(db, record, clock=clock)
    return IngestionResult(record=record, notice=notice)
