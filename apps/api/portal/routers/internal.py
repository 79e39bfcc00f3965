"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header. `portal.cli crontab` prints the
matching cron lines.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.core.deps import get_db, require_internal_secret
from portal.jobs.schedule import CRON_SCHEDULE, run_scheduled_job

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/internal/scheduled",
    tags=["internal"],
    dependencies=[Depends(require_internal_secret)],
)


@router.get("")
def list_scheduled_jobs():
    return [
        {"name": job.name, "cron": job.cron, "path": job.path, "description": job.description}
        for job in CRON_SCHEDULE
    ]


@router.post("/{path}")
async def run_scheduled(path: str, db: Session = Depends(get_db)):
    """Run the job mounted at `path` and return its stats."""
    job = next((j for j in CRON_SCHEDULE if j.path == path), None)
    if not job:
        raise HTTPException(status_code=404, detail=f"Unknown scheduled job: {path}")

    result = await run_scheduled_job(db, job.name)
    if result.get("errors"):
        logger.warning("Scheduled job %s finished with %d error(s)", job.name, len(result["errors"]))
    return {"job": job.name, **result}
