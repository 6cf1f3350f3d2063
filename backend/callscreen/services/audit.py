from sqlalchemy.orm import Session
from callscreen.models import AuditLog


def log_event(db: Session, action: str, status: str, message: str = "", user_id: int | None = None, details: dict | None = None) -> None:
    entry = AuditLog(
        user_id=user_id,
        action=action,
        status=status,
        message=message[:255],
        details=details or {},
    )
    db.add(entry)
    db.commit()
