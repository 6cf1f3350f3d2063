from celery import Celery
from callscreen.core.config import settings

celery_app = Celery(
    "callscreen",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["callscreen.tasks"],
)

celery_app.conf.beat_schedule = {
    "flush-notification-outbox-every-60s": {
        "task": "callscreen.tasks.flush_notification_outbox",
        "schedule": 60.0,
    }
}
