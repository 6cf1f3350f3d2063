import logging
import math
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from callscreen.core.clock import Clock, system_clock
from callscreen.core.database import dialect_insert
from callscreen.models import CallRecord, Qualification
from callscreen.services.extraction import extract

logger = logging.getLogger(__name__)

MAX_QUERY_LIMIT = 500


def get_by_conversation_id(db: Session, conversation_id: str) -> Optional[CallRecord]:
    return db.query(CallRecord).filter(CallRecord.conversation_id == conversation_id).first()


def upsert_call_record(
    db: Session,
    conversation_id: str,
    agent_id: str,
    status: str,
    raw_payload: dict,
    clock: Clock = system_clock,
) -> CallRecord:
    """Insert or overwrite the record for ``conversation_id`` in one statement.

    Relies on the unique constraint so concurrent deliveries of the same
    conversation converge on a single row.
    """
    extracted = extract(raw_payload)
    now = clock.now()
    values: dict[str, Any] = {
        "agent_id": agent_id,
        "status": status,
        "first_name": extracted.first_name,
        "last_name": extracted.last_name,
        "phone": extracted.phone,
        "qualification": extracted.qualification,
        "raw_data": raw_payload,
        "extracted_data": extracted.model_dump(mode="json"),
        "updated_at": now,
    }
    stmt = dialect_insert(db, CallRecord).values(conversation_id=conversation_id, created_at=now, **values)
    stmt = stmt.on_conflict_do_update(index_elements=["conversation_id"], set_=values)
    db.execute(stmt)
    db.commit()
    record = get_by_conversation_id(db, conversation_id)
    db.refresh(record)
    logger.info(
        "Stored call record %s for conversation %s (%s)",
        record.id,
        conversation_id,
        record.qualification.value,
    )
    return record


def get_call_record(db: Session, record_id: int) -> Optional[CallRecord]:
    return db.get(CallRecord, record_id)


def set_qualification(db: Session, record_id: int, qualification: Qualification, clock: Clock = system_clock) -> Optional[CallRecord]:
    record = db.get(CallRecord, record_id)
    if not record:
        return None
    record.qualification = qualification
    record.updated_at = clock.now()
    db.commit()
    db.refresh(record)
    return record


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def query_call_records(
    db: Session,
    agent_id: Optional[str] = None,
    search: Optional[str] = None,
    qualification: Optional[Qualification] = None,
    limit: int = 100,
    case_insensitive: bool = False,
) -> list[CallRecord]:
    query = db.query(CallRecord)
    if agent_id:
        query = query.filter(CallRecord.agent_id == agent_id)
    if search:
        pattern = f"%{_escape_like(search)}%"
        columns = (CallRecord.first_name, CallRecord.last_name, CallRecord.phone, CallRecord.conversation_id)
        if case_insensitive:
            clauses = [column.ilike(pattern, escape="\\") for column in columns]
        else:
            clauses = [column.like(pattern, escape="\\") for column in columns]
        query = query.filter(or_(*clauses))
    if qualification is not None:
        query = query.filter(CallRecord.qualification == qualification)
    limit = max(1, min(limit, MAX_QUERY_LIMIT))
    return query.order_by(CallRecord.created_at.desc(), CallRecord.id.desc()).limit(limit).all()


def records_between(db: Session, start: datetime, end: datetime) -> list[CallRecord]:
    return (
        db.query(CallRecord)
        .filter(CallRecord.created_at >= start, CallRecord.created_at <= end)
        .order_by(CallRecord.created_at.desc(), CallRecord.id.desc())
        .all()
    )


def all_records(db: Session) -> list[CallRecord]:
    return db.query(CallRecord).order_by(CallRecord.created_at.desc(), CallRecord.id.desc()).all()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def call_stats(db: Session, clock: Clock = system_clock, zone_name: str = "UTC") -> dict[str, int]:
    """Counters for the dashboard; "today" starts at midnight in ``zone_name``."""
    day_start = clock.today(zone_name)
    today_calls = (
        db.query(func.count(CallRecord.id)).filter(CallRecord.created_at >= day_start).scalar() or 0
    )
    qualified = (
        db.query(func.count(CallRecord.id))
        .filter(CallRecord.qualification == Qualification.QUALIFIED)
        .scalar()
        or 0
    )
    pending = (
        db.query(func.count(CallRecord.id))
        .filter(CallRecord.qualification == Qualification.PENDING)
        .scalar()
        or 0
    )
    reviewed = (
        db.query(func.count(CallRecord.id))
        .filter(CallRecord.qualification != Qualification.PENDING)
        .scalar()
        or 0
    )
    rate = round_half_up(qualified / reviewed * 100) if reviewed else 0
    return {
        "today_calls": today_calls,
        "qualified": qualified,
        "pending": pending,
        "qualification_rate": rate,
    }
