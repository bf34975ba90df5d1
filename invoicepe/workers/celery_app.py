"""
Celery application configuration.
"""

from celery import Celery

from invoicepe.config import settings

celery_app = Celery(
    "invoicepe",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "invoicepe.workers.notifications",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Asia/Kolkata",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=60,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)
