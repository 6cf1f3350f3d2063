import logging

import redis
from fastapi import APIRouter, HTTPException
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from callscreen.core.database import SessionLocal
from callscreen.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/ready")
def ready():
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Readiness check failed: database unavailable (%s)", exc)
        raise HTTPException(status_code=503, detail="Database unavailable") from exc
    finally:
        db.close()
    try:
        redis.Redis.from_url(settings.redis_url, socket_connect_timeout=2).ping()
    except RedisError as exc:
        logger.error("Readiness check failed: redis unavailable (%s)", exc)
        raise HTTPException(status_code=503, detail="Redis unavailable") from exc
    return {"status": "ready"}
