"""
Background worker for processing queued jobs.

Usage:
    python -m portal.worker

The worker polls for pending jobs (notification emails queued by request
handlers after their mutation committed) and processes them.
"""

import asyncio
import logging

from portal.core.config import settings
from portal.db.session import SessionLocal
from portal.jobs.registry import resolve_job_handler
from portal.services import job_service

logger = logging.getLogger(__name__)


async def process_job(db, job) -> None:
    """Process a single job based on its type."""
    logger.info("Processing job %s (type=%s, attempt=%s)", job.id, job.job_type, job.attempts)
    handler = resolve_job_handler(job.job_type)
    await handler(db, job)


async def run_once(db, batch_size: int | None = None) -> int:
    """Process one batch of due jobs. Returns the number of jobs picked up."""
    jobs = job_service.due_jobs(db, limit=batch_size or settings.WORKER_BATCH_SIZE)
    if jobs:
        logger.info("Found %d pending jobs", len(jobs))

    for job in jobs:
        job_service.start_job(db, job)
        try:
            await process_job(db, job)
        except Exception as e:
            db.rollback()
            job_service.finish_job(db, job, error=str(e))
            logger.error("Job %s failed: %s", job.id, type(e).__name__)
            continue
        job_service.finish_job(db, job)
        logger.info("Job %s completed successfully", job.id)
    return len(jobs)


async def worker_loop() -> None:
    """Main worker loop - polls for and processes pending jobs."""
    logger.info(
        "Worker starting (poll interval: %ss, batch size: %s)",
        settings.WORKER_POLL_INTERVAL,
        settings.WORKER_BATCH_SIZE,
    )
    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not set - emails will not be sent")

    while True:
        with SessionLocal() as db:
            try:
                await run_once(db)
            except Exception as e:
                logger.error("Error in worker loop: %s", e)

        await asyncio.sleep(settings.WORKER_POLL_INTERVAL)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker stopped")


if __name__ == "__main__":
    main()
