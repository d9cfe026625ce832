from __future__ import annotations

from celery import Celery

from jobtracker.config import settings


def make_celery() -> Celery:
    """Create the Celery app.

    Kept in a function so tests can import tasks without touching a broker.
    """

    celery = Celery(
        "jobtracker",
        broker=settings.redis_url,
        backend=settings.redis_url,
        include=["jobtracker.worker.tasks"],
    )

    celery.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        task_track_started=True,
        timezone="UTC",
        enable_utc=True,
    )

    return celery


celery_app = make_celery()
