"""
Machine endpoints (bearer token): email provider events and cron triggers.
"""

from __future__ import annotations

import logging

from flask import Blueprint, g

from clubsponsor.routes.api_auth_utils import _get_payload, _ok, require_bearer
from clubsponsor.services.email_events import record_email_event
from clubsponsor.services.jobs import run_pending_jobs
from clubsponsor.services.reminders import process_due_reminders, send_automatic_reminders

log = logging.getLogger(__name__)

bp = Blueprint("webhooks", __name__)


@bp.post("/email-events")
@require_bearer(scopes=["events:write"])
def email_events():
    result = record_email_event(_get_payload())
    return _ok(**result)


@bp.post("/jobs/run")
@require_bearer(scopes=["jobs:run"])
def run_jobs():
    result = run_pending_jobs()
    log.info("Job run triggered by %s: %s processed", g.api_subject, result["processed"])
    return _ok(**result)


@bp.post("/reminders/run")
@require_bearer(scopes=["jobs:run"])
def run_reminders():
    due = process_due_reminders()
    automatic = send_automatic_reminders()
    return _ok(reminders=due, automatic=automatic)
