from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session
from callscreen.core.clock import Clock
from callscreen.core.config import settings
from callscreen.core.database import get_db
from callscreen.core.deps import get_clock, get_current_user
from callscreen.models import Qualification, User, UserRole
from callscreen.schemas import CallRecordDetail, CallRecordOut, CallStats, QualificationUpdate
from callscreen.services import call_store
from callscreen.services.export import calls_to_csv
from callscreen.services.notifications import enqueue_dispatch, queue_qualification_notice

router = APIRouter(prefix="/calls", tags=["calls"])


@router.get("", response_model=list[CallRecordOut])
def list_calls(
    agent_id: str | None = None,
    search: str | None = None,
    qualification: Qualification | None = None,
    limit: int = Query(default=100, ge=1, le=call_store.MAX_QUERY_LIMIT),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return call_store.query_call_records(
        db,
        agent_id=agent_id,
        search=search,
        qualification=qualification,
        limit=limit,
        case_insensitive=settings.call_search_case_insensitive,
    )


@router.get("/stats", response_model=CallStats)
def call_stats(db: Session = Depends(get_db), clock: Clock = Depends(get_clock), user: User = Depends(get_current_user)):
    return call_store.call_stats(db, clock=clock, zone_name=settings.report_timezone)


@router.get("/export")
def export_calls(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if user.role != UserRole.ADMIN.value and not settings.allow_csv_export_for_recruiters:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Export not allowed")
    records = call_store.all_records(db)
    return Response(
        content=calls_to_csv(records),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="calls.csv"'},
    )


@router.get("/{record_id}", response_model=CallRecordDetail)
def get_call(record_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    record = call_store.get_call_record(db, record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Call record not found")
    return record


@router.post("/{record_id}/qualification", response_model=CallRecordOut)
def set_qualification(
    record_id: int,
    payload: QualificationUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    user: User = Depends(get_current_user),
):
    record = call_store.set_qualification(db, record_id, payload.qualification, clock=clock)
    if not record:
        raise HTTPException(status_code=404, detail="Call record not found")
    enqueue_dispatch(queue_qualification_notice(db, record, clock=clock))
    return record
