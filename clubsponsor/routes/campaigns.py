"""
Club campaign API.

CRUD, public sharing, stats, forecast scenarios, invitations (now or
scheduled), email metrics, CSV/PDF exports, QR codes and flyers.
"""

from __future__ import annotations

import io
import logging
from datetime import datetime

from flask import Blueprint, g, send_file, url_for
from flask_login import current_user
from werkzeug.exceptions import NotFound as HTTPNotFound

from clubsponsor.forms import validated
from clubsponsor.forms.campaign_form import CampaignForm, ScenarioForm
from clubsponsor.routes.api_auth_utils import _get_payload, _ok, club_required
from clubsponsor.services import campaigns as campaign_svc
from clubsponsor.services import exports, qr, stats
from clubsponsor.services.email_events import campaign_email_metrics
from clubsponsor.services.errors import ValidationFailed
from clubsponsor.services.invitations import (
    cancel_job,
    list_invitations,
    list_jobs,
    parse_reminder_days,
    parse_sponsor_ids,
    public_link,
    schedule_invitations,
    send_invitations,
)

log = logging.getLogger(__name__)

bp = Blueprint("campaigns", __name__)

TRUTHY = ("1", "true", "yes", "on")


def _campaign(campaign_id: int):
    return campaign_svc.get_campaign(g.tenant.id, campaign_id)


def _flag(value) -> bool:
    return value is True or str(value).strip().lower() in TRUTHY


def _download(content: bytes, filename: str, mimetype: str):
    return send_file(io.BytesIO(content), mimetype=mimetype, as_attachment=True, download_name=filename)


# ─────────────────────────────────────────────────────────────
# CRUD
# ─────────────────────────────────────────────────────────────
@bp.get("/")
@club_required()
def index():
    rows = campaign_svc.list_campaigns(g.tenant.id)
    return _ok(campaigns=[c.to_dict() for c in rows])


@bp.post("/")
@club_required(write=True)
def create():
    data = _get_payload()
    form = validated(CampaignForm, data)
    campaign = campaign_svc.create_campaign(g.tenant.id, form, lighting_hours=data.get("lighting_hours"))
    return _ok(201, campaign=campaign.to_dict())


@bp.get("/<int:campaign_id>")
@club_required()
def show(campaign_id: int):
    return _ok(campaign=_campaign(campaign_id).to_dict())


@bp.put("/<int:campaign_id>")
@club_required(write=True)
def update(campaign_id: int):
    campaign = _campaign(campaign_id)
    data = _get_payload()
    form = validated(CampaignForm, data)
    campaign_svc.update_campaign(campaign, form, lighting_hours=data.get("lighting_hours"))
    return _ok(campaign=campaign.to_dict())


@bp.delete("/<int:campaign_id>")
@club_required(write=True)
def destroy(campaign_id: int):
    campaign_svc.delete_campaign(_campaign(campaign_id))
    return _ok()


@bp.post("/<int:campaign_id>/share")
@club_required(write=True)
def share(campaign_id: int):
    campaign = _campaign(campaign_id)
    enabled = _flag(_get_payload().get("enabled", True))
    campaign_svc.set_public_share(campaign, enabled)
    url = public_link(campaign.public_slug) if campaign.is_public_share_enabled else None
    return _ok(campaign=campaign.to_dict(), public_url=url)


# ─────────────────────────────────────────────────────────────
# Stats, forecast, scenarios
# ─────────────────────────────────────────────────────────────
@bp.get("/<int:campaign_id>/stats")
@club_required()
def campaign_stats(campaign_id: int):
    return _ok(stats=stats.campaign_stats(_campaign(campaign_id)))


@bp.post("/<int:campaign_id>/forecast")
@club_required()
def forecast(campaign_id: int):
    campaign = _campaign(campaign_id)
    form = validated(ScenarioForm, _get_payload())
    return _ok(forecast=stats.forecast(campaign, form.price_per_sponsor.data, form.expected_sponsors.data))


@bp.get("/<int:campaign_id>/scenarios")
@club_required()
def scenarios(campaign_id: int):
    rows = stats.list_scenarios(_campaign(campaign_id))
    return _ok(scenarios=[s.to_dict() for s in rows])


@bp.post("/<int:campaign_id>/scenarios")
@club_required(write=True)
def save_scenario(campaign_id: int):
    campaign = _campaign(campaign_id)
    form = validated(ScenarioForm, _get_payload())
    scenario = stats.save_scenario(campaign, form.name.data, form.price_per_sponsor.data, form.expected_sponsors.data)
    return _ok(201, scenario=scenario.to_dict())


@bp.delete("/<int:campaign_id>/scenarios/<int:scenario_id>")
@club_required(write=True)
def delete_scenario(campaign_id: int, scenario_id: int):
    stats.delete_scenario(_campaign(campaign_id), scenario_id)
    return _ok()


# ─────────────────────────────────────────────────────────────
# Invitations
# ─────────────────────────────────────────────────────────────
@bp.get("/<int:campaign_id>/invitations")
@club_required()
def invitations(campaign_id: int):
    return _ok(invitations=list_invitations(_campaign(campaign_id)))


@bp.post("/<int:campaign_id>/invitations")
@club_required(write=True)
def send(campaign_id: int):
    campaign = _campaign(campaign_id)
    data = _get_payload()
    sponsor_ids = parse_sponsor_ids(data.get("sponsor_ids"))
    reminder_days = parse_reminder_days(data.get("reminder_days"))
    result = send_invitations(
        campaign,
        sponsor_ids,
        reminder_days=reminder_days,
        expires_in_days=data.get("expires_in_days"),
        send_emails=_flag(data.get("send_emails", True)),
    )
    return _ok(**result)


@bp.post("/<int:campaign_id>/schedule")
@club_required(write=True)
def schedule(campaign_id: int):
    campaign = _campaign(campaign_id)
    data = _get_payload()
    raw = str(data.get("scheduled_at") or "").strip()
    try:
        scheduled_at = datetime.fromisoformat(raw.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        raise ValidationFailed("Invalid scheduled date.", errors={"scheduled_at": "Use ISO 8601."})

    job = schedule_invitations(
        campaign,
        parse_sponsor_ids(data.get("sponsor_ids")),
        scheduled_at,
        reminder_days=parse_reminder_days(data.get("reminder_days")),
        user_id=current_user.id,
    )
    return _ok(201, job=job.to_dict())


@bp.get("/<int:campaign_id>/jobs")
@club_required()
def jobs(campaign_id: int):
    campaign = _campaign(campaign_id)
    return _ok(jobs=[j.to_dict() for j in list_jobs(g.tenant.id, campaign.id)])


@bp.post("/jobs/<int:job_id>/cancel")
@club_required(write=True)
def cancel(job_id: int):
    return _ok(job=cancel_job(g.tenant.id, job_id).to_dict())


@bp.get("/<int:campaign_id>/metrics")
@club_required()
def metrics(campaign_id: int):
    return _ok(metrics=campaign_email_metrics(_campaign(campaign_id).id))


# ─────────────────────────────────────────────────────────────
# Exports
# ─────────────────────────────────────────────────────────────
@bp.get("/<int:campaign_id>/export.csv")
@club_required()
def export_csv(campaign_id: int):
    filename, content = exports.campaign_csv(_campaign(campaign_id))
    return _download(content, filename, "text/csv; charset=utf-8")


@bp.get("/<int:campaign_id>/report.pdf")
@club_required()
def report_pdf(campaign_id: int):
    campaign = _campaign(campaign_id)
    now = datetime.utcnow()
    content = exports.build_report_pdf(campaign, now=now)
    return _download(content, exports.report_filename(campaign, now), "application/pdf")


@bp.post("/<int:campaign_id>/report")
@club_required()
def store_report(campaign_id: int):
    stored = exports.store_report(_campaign(campaign_id))
    return _ok(201, path=stored["path"], size=int(stored["size"]),
               url=url_for("campaigns.download_export", rel_path=stored["path"]))


@bp.get("/exports/<path:rel_path>")
@club_required()
def download_export(rel_path: str):
    if rel_path.split("/", 1)[0] != str(g.tenant.id):
        raise HTTPNotFound("Export not found.")
    path = exports.resolve_export(rel_path)
    if path is None:
        raise HTTPNotFound("Export not found.")
    return send_file(path, mimetype="application/pdf", as_attachment=True)


# ─────────────────────────────────────────────────────────────
# QR + flyer
# ─────────────────────────────────────────────────────────────
@bp.get("/<int:campaign_id>/qr.<fmt>")
@club_required()
def qr_code(campaign_id: int, fmt: str):
    filename, mimetype, content = qr.campaign_qr(_campaign(campaign_id), fmt)
    return send_file(io.BytesIO(content), mimetype=mimetype, download_name=filename)


@bp.get("/<int:campaign_id>/qr")
@club_required()
def qr_info(campaign_id: int):
    return _ok(**qr.campaign_qr_info(_campaign(campaign_id)))


@bp.get("/<int:campaign_id>/flyer.pdf")
@club_required()
def flyer(campaign_id: int):
    filename, content = qr.build_flyer_pdf(_campaign(campaign_id))
    return _download(content, filename, "application/pdf")
