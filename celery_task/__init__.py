import os

from celery import Celery
from celery.schedules import crontab

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/1")
ERROR_CLEANUP_HOUR = int(os.getenv("ERROR_CLEANUP_HOUR", "3"))

celery_app = Celery(
    "celery_task",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=[
        "celery_task.maintenance_task",
    ],
)

celery_app.conf.update(
    task_track_started=True,
    timezone="UTC",
    beat_schedule={
        # 매일 한 번 보관기간 지난 에러 로그 정리
        "cleanup-old-error-logs": {
            "task": "errors.cleanup_old_logs",
            "schedule": crontab(hour=ERROR_CLEANUP_HOUR, minute=0),
        },
    },
)
