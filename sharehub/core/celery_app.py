"""
Celery application: broker and result backend from settings.
Tasks: sharehub.workers.tasks.payments (наблюдение за счётом, истечение зависших счетов).
"""
from celery import Celery
from celery.schedules import crontab

from sharehub.core.config import settings

celery_app = Celery(
    "sharehub",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "sharehub.workers.tasks.payments",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=900,
    result_expires=86400,
    beat_schedule={
        "expire-stale-purchases": {
            "task": "sharehub.workers.tasks.payments.expire_stale_purchases",
            "schedule": crontab(minute="*/30"),
        },
    },
)

celery_app.conf.task_routes = {
    "sharehub.workers.tasks.payments.watch_invoice": {"queue": "payments"},
}
