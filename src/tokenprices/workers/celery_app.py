from celery import Celery

from tokenprices.config import settings

celery_app = Celery(
    "tokenprices",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["tokenprices.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    # A backfill is long-running; hand a worker one job at a time
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)
