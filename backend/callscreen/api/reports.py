from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from callscreen.core.clock import Clock
from callscreen.core.config import settings
from callscreen.core.database import get_db
from callscreen.core.deps import get_clock, get_mailer, get_scheduler, require_admin
from callscreen.models import ReportConfig, User
from callscreen.models.report_config import DEFAULT_SUBJECT_TEMPLATE
from callscreen.schemas import (
    DeliveryResultOut,
    EmailLogOut,
    ReportConfigCreate,
    ReportConfigOut,
    ReportConfigUpdate,
    ReportPreview,
    ReportTestRequest,
    SchedulerStatus,
    SendResultOut,
)
from callscreen.services import report_configs
from callscreen.services.audit import log_event
from callscreen.services.delivery_log import list_deliveries
from callscreen.services.reports import generate_report_data, render_subject, send_test_report
from callscreen.services.scheduler import ReportScheduler

router = APIRouter(prefix="/reports", tags=["reports"])


def _get_config_or_404(db: Session, config_id: int) -> ReportConfig:
    config = report_configs.get_report_config(db, config_id)
    if not config:
        raise HTTPException(status_code=404, detail="Report config not found")
    return config


def _ensure_unique_name(db: Session, name: str, exclude_id: int | None = None) -> None:
    query = db.query(ReportConfig).filter(ReportConfig.name == name)
    if exclude_id is not None:
        query = query.filter(ReportConfig.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=400, detail="Report config name already exists")


@router.get("/configs", response_model=list[ReportConfigOut])
def list_configs(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return report_configs.list_report_configs(db)


@router.post("/configs", response_model=ReportConfigOut)
def create_config(payload: ReportConfigCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    _ensure_unique_name(db, payload.name)
    config = report_configs.create_report_config(db, payload.model_dump())
    log_event(db, "create_report_config", "success", user_id=admin.id, details={"name": config.name})
    return config


@router.get("/configs/{config_id}", response_model=ReportConfigOut)
def get_config(config_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return _get_config_or_404(db, config_id)


@router.patch("/configs/{config_id}", response_model=ReportConfigOut)
def update_config(
    config_id: int, payload: ReportConfigUpdate, db: Session = Depends(get_db), admin: User = Depends(require_admin)
):
    values = payload.model_dump(exclude_unset=True)
    if values.get("name"):
        _ensure_unique_name(db, values["name"], exclude_id=config_id)
    config = report_configs.update_report_config(db, config_id, values)
    if not config:
        raise HTTPException(status_code=404, detail="Report config not found")
    log_event(db, "update_report_config", "success", user_id=admin.id, details={"name": config.name, "fields": sorted(values)})
    return config


@router.delete("/configs/{config_id}")
def delete_config(config_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if not report_configs.delete_report_config(db, config_id):
        raise HTTPException(status_code=404, detail="Report config not found")
    log_event(db, "delete_report_config", "success", user_id=admin.id, details={"id": config_id})
    return {"status": "ok"}


@router.get("/configs/{config_id}/preview", response_model=ReportPreview)
def preview_config(
    config_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    admin: User = Depends(require_admin),
):
    config = _get_config_or_404(db, config_id)
    data = generate_report_data(db, config, clock.now())
    return ReportPreview(subject=render_subject(config.subject_template or DEFAULT_SUBJECT_TEMPLATE, data), data=data)


@router.get("/logs", response_model=list[EmailLogOut])
def list_logs(
    report_config_id: int | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return list_deliveries(db, report_config_id=report_config_id, limit=limit)


@router.get("/scheduler", response_model=SchedulerStatus)
def scheduler_status(scheduler: ReportScheduler = Depends(get_scheduler), admin: User = Depends(require_admin)):
    return scheduler.status()


@router.post("/scheduler/start", response_model=SchedulerStatus)
async def start_scheduler(scheduler: ReportScheduler = Depends(get_scheduler), admin: User = Depends(require_admin)):
    scheduler.start()
    return scheduler.status()


@router.post("/scheduler/stop", response_model=SchedulerStatus)
async def stop_scheduler(scheduler: ReportScheduler = Depends(get_scheduler), admin: User = Depends(require_admin)):
    await scheduler.stop()
    return scheduler.status()


@router.post("/scheduler/refresh", response_model=SchedulerStatus)
async def refresh_scheduler(scheduler: ReportScheduler = Depends(get_scheduler), admin: User = Depends(require_admin)):
    await run_in_threadpool(scheduler.refresh_schedule)
    return scheduler.status()


@router.post("/scheduler/run", response_model=list[DeliveryResultOut])
async def run_scheduler(scheduler: ReportScheduler = Depends(get_scheduler), admin: User = Depends(require_admin)):
    results = await run_in_threadpool(scheduler.process_due_reports)
    return [
        DeliveryResultOut(report_config_id=config_id, sent=result.sent, failed=result.failed, errors=result.errors)
        for config_id, result in results.items()
    ]


@router.post("/test", response_model=SendResultOut)
def send_test(
    payload: ReportTestRequest,
    db: Session = Depends(get_db),
    mailer=Depends(get_mailer),
    clock: Clock = Depends(get_clock),
    admin: User = Depends(require_admin),
):
    config = _get_config_or_404(db, payload.report_config_id) if payload.report_config_id is not None else None
    result = send_test_report(
        db,
        mailer,
        payload.email,
        clock.now(),
        config=config,
        message_stream=settings.postmark_report_stream,
    )
    log_event(
        db,
        "send_test_report",
        "success" if result.success else "failed",
        message=result.error or "",
        user_id=admin.id,
        details={"email": payload.email},
    )
    return SendResultOut(success=result.success, message_id=result.message_id, error=result.error)
