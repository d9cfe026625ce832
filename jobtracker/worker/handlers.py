"""Worker-side job handling.

A worker that accepts a job must drive it to a terminal status; anything left
in ``processing`` is orphaned. Generator errors therefore become ``failed``
transitions instead of exceptions.
"""

from __future__ import annotations

import logging

from jobtracker.errors import InvalidTransition, JobConflict
from jobtracker.schemas.job import GameSessionRead, ImageGenerationInput, ImageGenerationOutput, Job, JobErrorDetail
from jobtracker.services.matchmaking import GameAllocator, Matchmaker
from jobtracker.services.task_queue import TaskQueue
from jobtracker.worker.generation import ImageGenerator


logger = logging.getLogger("jobtracker.worker")


async def process_image_job(queue: TaskQueue, job_id: str, generator: ImageGenerator) -> Job | None:
    """Run one image-generation job. Returns None if the job was not ours to run."""

    job = await queue.get_task(job_id)
    if not isinstance(job.input, ImageGenerationInput):
        logger.warning("job_wrong_kind job_id=%s kind=%s", job_id, job.kind)
        return None

    try:
        job = await queue.advance(job_id, "processing")
    except (JobConflict, InvalidTransition):
        # Another worker claimed it, or it already finished.
        logger.info("job_skipped job_id=%s", job_id)
        return None

    try:
        urls = await generator.generate(job.input)
        output = ImageGenerationOutput(image_urls=urls)
    except Exception as exc:
        logger.exception("job_generation_failed job_id=%s", job_id)
        return await queue.advance_with_retry(
            job_id,
            "failed",
            error=JobErrorDetail(reason=str(exc) or type(exc).__name__, code="generation_failed"),
        )

    return await queue.advance_with_retry(job_id, "completed", output=output)


async def run_matchmaking(queue: TaskQueue, allocator: GameAllocator) -> list[GameSessionRead]:
    return await Matchmaker(queue, allocator).run_once()
