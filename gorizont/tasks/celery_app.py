import asyncio

from celery import Celery
from celery.schedules import crontab

from gorizont.config import settings

app = Celery(
    "gorizont",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "gorizont.tasks.dispute_tasks.*": {"queue": "disputes"},
        "gorizont.tasks.review_tasks.*": {"queue": "reviews"},
    },
    beat_schedule={
        "check-dispute-escalations": {
            "task": "gorizont.tasks.dispute_tasks.check_all_escalations",
            "schedule": crontab(minute=0),  # every hour
        },
        "recompute-product-ratings": {
            "task": "gorizont.tasks.review_tasks.recompute_all_product_ratings",
            "schedule": crontab(hour=3, minute=15),
        },
    },
)

app.autodiscover_tasks(
    [
        "gorizont.tasks.dispute_tasks",
        "gorizont.tasks.review_tasks",
    ]
)


def run_async(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()
