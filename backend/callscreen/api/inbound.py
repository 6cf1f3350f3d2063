import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from callscreen.core.clock import Clock
from callscreen.core.config import settings
from callscreen.core.database import get_db
from callscreen.core.deps import get_clock, get_conversation_provider
from callscreen.schemas import CallRecordOut
from callscreen.services.ingestion import InvalidWebhookPayload, ingest_conversation
from callscreen.services.notifications import enqueue_dispatch
from callscreen.services.signature import verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["inbound"])

SIGNATURE_HEADERS = ("elevenlabs-signature", "x-elevenlabs-signature")


def _signature_header(request: Request) -> str:
    for name in SIGNATURE_HEADERS:
        value = request.headers.get(name)
        if value:
            return value
    return ""


@router.post("/inbound")
async def inbound_webhook(
    request: Request,
    db: Session = Depends(get_db),
    provider=Depends(get_conversation_provider),
    clock: Clock = Depends(get_clock),
):
    raw_body = await request.body()
    if not verify_signature(
        raw_body,
        _signature_header(request),
        settings.elevenlabs_webhook_secret,
        tolerance_seconds=settings.webhook_tolerance_seconds,
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        body = json.loads(raw_body)
    except ValueError as exc:
        logger.warning("Rejected webhook with malformed JSON")
        raise HTTPException(status_code=400, detail="Invalid JSON") from exc
    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, dict):
        logger.warning("Rejected webhook without a data object")
        raise HTTPException(status_code=400, detail="Missing data")

    agent_id = data.get("agent_id")
    target_agent = settings.elevenlabs_agent_id
    if target_agent and agent_id != target_agent:
        logger.info("Ignoring webhook for agent %s", agent_id)
        return {"status": "ignored", "reason": f"Agent {agent_id} is not the configured agent"}

    try:
        result = await run_in_threadpool(ingest_conversation, db, data, provider, clock)
    except InvalidWebhookPayload as exc:
        logger.warning("Rejected webhook: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Failed to process webhook")
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal server error") from exc

    await run_in_threadpool(enqueue_dispatch, result.notice)
    return {
        "status": "processed",
        "callRecord": CallRecordOut.model_validate(result.record).model_dump(mode="json"),
    }
