"""Runner for ScheduledJob rows (deferred invitation batches)."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from flask import current_app

from clubsponsor.extensions import db
from clubsponsor.models import ScheduledJob
from clubsponsor.services.invitations import send_invitations

log = logging.getLogger(__name__)


def _process(job: ScheduledJob, now: datetime) -> Optional[str]:
    """Run one job; returns an error message or None on success."""
    if job.job_type != "email_invitation":
        return f"Unknown job type: {job.job_type}"
    payload = job.payload or {}
    sponsor_ids = payload.get("sponsor_ids") or []
    if not sponsor_ids:
        return "No sponsors in job payload."

    result = send_invitations(
        job.campaign,
        sponsor_ids,
        reminder_days=payload.get("reminder_days") or [],
        now=now,
    )
    if result["emails_sent"] > 0:
        return None
    return "; ".join(result["errors"]) or "No invitation could be sent."


def run_pending_jobs(now: Optional[datetime] = None, limit: Optional[int] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    limit = int(limit or current_app.config.get("JOB_BATCH_SIZE", 10))
    jobs = (
        ScheduledJob.query.filter(ScheduledJob.status == "pending", ScheduledJob.scheduled_at <= now)
        .order_by(ScheduledJob.scheduled_at.asc())
        .limit(limit)
        .all()
    )
    if not jobs:
        return {"message": "No pending jobs", "processed": 0, "results": []}

    results: List[Dict[str, Any]] = []
    for job in jobs:
        job.status = "processing"
        db.session.commit()
        try:
            error = _process(job, now)
        except Exception as exc:
            db.session.rollback()
            log.exception("Job %s crashed", job.id)
            error = str(exc)

        job.status = "failed" if error else "completed"
        job.executed_at = now
        job.error_message = error
        db.session.commit()
        results.append({"job_id": job.id, "status": job.status, "error": error})

    log.info("Processed %s scheduled job(s)", len(results))
    return {"message": "Jobs processed", "processed": len(results), "results": results}
