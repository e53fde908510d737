from celery import Celery
from celery.schedules import crontab

from app.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "bizdesk_api",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.notifications.tasks"],
)

celery_app.conf.beat_schedule = {
    "deliver-pending-notifications": {
        "task": "app.notifications.deliver_pending",
        "schedule": 60.0,
    },
    "due-date-reminders": {
        "task": "app.notifications.due_date_reminders",
        "schedule": crontab(minute=0, hour="*/6"),
    },
    "purge-old-notifications": {
        "task": "app.notifications.purge_old",
        "schedule": crontab(minute=30, hour=3),
    },
    "purge-expired-sessions": {
        "task": "app.users.purge_expired_sessions",
        "schedule": crontab(minute=0, hour=4),
    },
}
celery_app.conf.timezone = "UTC"
