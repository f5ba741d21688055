"""
Celery Worker Configuration

Redis is both broker and result backend. The only workload is the order
history export, which writes one shared workbook, so workers take one task
at a time and acknowledge late to survive a crash mid-write.

Start a worker from the project root:
    celery -A tableside.celery_worker worker --loglevel=info
"""

from celery import Celery

from tableside.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    'tableside_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['tableside.tasks'],
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    task_default_queue='tableside',

    worker_prefetch_multiplier=1,
    worker_concurrency=2,

    result_expires=3600,

    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=120,

    broker_connection_retry_on_startup=True,
)


if __name__ == '__main__':
    celery_app.start()
