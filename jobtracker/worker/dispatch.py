from __future__ import annotations

import logging

from jobtracker.config import settings
from jobtracker.schemas.job import Job


logger = logging.getLogger(__name__)


def enqueue_job(job: Job) -> bool:
    """Hand a freshly created job to the workers.

    Best effort: a broker outage must not fail job creation. The job stays
    ``pending`` and can be picked up later. Returns True if a task was sent.
    """

    if not settings.celery_enabled:
        return False

    try:
        # Imported lazily so the API can start without a broker configured.
        from jobtracker.worker import tasks

        if job.kind == "image-generation":
            tasks.process_image_job.delay(job.id)
        elif job.kind == "matchmaking":
            tasks.run_matchmaking.delay()
        else:
            return False
        return True
    except Exception:
        logger.exception("Failed to enqueue job (job_id=%s kind=%s)", job.id, job.kind)
        return False
