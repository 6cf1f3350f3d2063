from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from callscreen.models import ReportConfig


def list_report_configs(db: Session, enabled_only: bool = False) -> list[ReportConfig]:
    query = db.query(ReportConfig)
    if enabled_only:
        query = query.filter(ReportConfig.enabled.is_(True))
    return query.order_by(ReportConfig.id).all()


def get_report_config(db: Session, config_id: int) -> Optional[ReportConfig]:
    return db.get(ReportConfig, config_id)


def configs_due_now(db: Session, now: datetime) -> list[ReportConfig]:
    return (
        db.query(ReportConfig)
        .filter(ReportConfig.enabled.is_(True))
        .filter(or_(ReportConfig.next_send_at.is_(None), ReportConfig.next_send_at <= now))
        .order_by(ReportConfig.id)
        .all()
    )


def create_report_config(db: Session, values: dict) -> ReportConfig:
    config = ReportConfig(**values)
    db.add(config)
    db.commit()
    db.refresh(config)
    return config


def update_report_config(db: Session, config_id: int, values: dict) -> Optional[ReportConfig]:
    config = db.get(ReportConfig, config_id)
    if not config:
        return None
    for key, value in values.items():
        setattr(config, key, value)
    db.commit()
    db.refresh(config)
    return config


def delete_report_config(db: Session, config_id: int) -> bool:
    config = db.get(ReportConfig, config_id)
    if not config:
        return False
    db.delete(config)
    db.commit()
    return True


def update_config_schedule(
    db: Session, config_id: int, last_sent_at: datetime, next_send_at: datetime
) -> Optional[ReportConfig]:
    config = db.get(ReportConfig, config_id)
    if not config:
        return None
    config.last_sent_at = last_sent_at
    config.next_send_at = next_send_at
    db.commit()
    return config
