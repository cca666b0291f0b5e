"""
Celery application: broker and result backend from settings.
Tasks are in storybook.workers.tasks (render_page, watchdog_books).
"""
from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from storybook.core.config import settings
from storybook.core.logging import configure_logging

celery_app = Celery(
    "storybook",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "storybook.workers.tasks.render_page",
        "storybook.workers.tasks.watchdog_books",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    # trigger backoff + 15 min of polling + download/upload
    task_time_limit=1800,
    result_expires=86400,
    beat_schedule={
        "fail-stuck-books": {
            "task": "storybook.workers.tasks.watchdog_books.fail_stuck_books",
            "schedule": crontab(minute="*/5"),
        },
    },
)

celery_app.conf.task_routes = {
    "storybook.workers.tasks.render_page.render_page": {"queue": "rendering"},
}


@setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    configure_logging()
