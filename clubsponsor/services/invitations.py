"""
Invitations and pledges.

  send_invitations        create invitation rows, mail them, record events
  schedule_invitations    same batch later, through a ScheduledJob
  respond_to_invitation   token-based answer (one pledge per invitation)
  submit_public_pledge    answer from the public campaign page / QR code
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from clubsponsor.extensions import db
from clubsponsor.forms import validated
from clubsponsor.forms.pledge_form import PledgeResponseForm
from clubsponsor.models import Campaign, Invitation, Pledge, Reminder, ScheduledJob, Sponsor
from clubsponsor.models.mixins import euros_to_cents, iso
from clubsponsor.services.campaigns import get_public_campaign
from clubsponsor.services.email_events import add_invitation_event
from clubsponsor.services.email_legal import extract_rgpd_excerpt
from clubsponsor.services.errors import Conflict, Gone, NotFound, TooManyRequests, ValidationFailed
from clubsponsor.services.mailer import deliver, render_email
from clubsponsor.services.notify import announce_pledge
from clubsponsor.services.placeholders import confirmation_values, invitation_values, reminder_values
from clubsponsor.services.sponsors import find_or_create_sponsor
from clubsponsor.services.stats import campaign_totals

log = logging.getLogger(__name__)


def invite_link(token: str) -> str:
    return f"{current_app.config.get('PUBLIC_BASE_URL', '')}/respond/{token}"


def public_link(slug: str) -> str:
    return f"{current_app.config.get('PUBLIC_BASE_URL', '')}/p/{slug}"


def parse_reminder_days(raw: Any) -> List[int]:
    if raw in (None, ""):
        return []
    if isinstance(raw, str):
        raw = [p for p in raw.replace(";", ",").split(",") if p.strip()]
    if not isinstance(raw, (list, tuple)):
        raw = [raw]
    days: List[int] = []
    for value in raw:
        try:
            d = int(value)
        except (TypeError, ValueError):
            raise ValidationFailed("Invalid reminder days.", errors={"reminder_days": f"Not a number: {value!r}"})
        if d <= 0:
            raise ValidationFailed("Invalid reminder days.", errors={"reminder_days": "Days must be positive."})
        days.append(d)
    return sorted(set(days))


def parse_sponsor_ids(raw: Any) -> List[int]:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValidationFailed("Select at least one sponsor.", errors={"sponsor_ids": "Required."})
    try:
        return [int(x) for x in raw]
    except (TypeError, ValueError):
        raise ValidationFailed("Invalid sponsor ids.", errors={"sponsor_ids": "Must be integers."})


# ─────────────────────────────────────────────────────────────
# Sending
# ─────────────────────────────────────────────────────────────
def send_invitation_email(invitation: Invitation, *, key: str = "invitation") -> None:
    """Render and send one invitation-family email. Raises on delivery failure."""
    campaign = invitation.campaign
    tenant = campaign.tenant
    build = reminder_values if key.startswith("reminder") else invitation_values
    values = build(tenant, campaign, invitation.sponsor, invite_link(invitation.token))
    rendered = render_email(key, tenant, values)
    deliver(rendered, invitation.email, tenant=tenant)


def send_invitations(
    campaign: Campaign,
    sponsor_ids: Iterable[int],
    *,
    reminder_days: Optional[Iterable[int]] = None,
    expires_in_days: Optional[int] = None,
    send_emails: bool = True,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    ids = list(sponsor_ids)
    expiry = int(expires_in_days or current_app.config.get("INVITATION_EXPIRY_DAYS", 30))
    sponsors = Sponsor.query.filter(Sponsor.tenant_id == campaign.tenant_id, Sponsor.id.in_(ids)).all()

    results: Dict[str, Any] = {"created": 0, "emails_sent": 0, "failed": 0, "invitations": [], "errors": []}
    missing = set(ids) - {s.id for s in sponsors}
    for sid in sorted(missing):
        results["errors"].append(f"Sponsor {sid} not found.")

    for sponsor in sponsors:
        invitation = Invitation.issue(campaign, sponsor, expiry_days=expiry, now=now)
        db.session.add(invitation)
        db.session.flush()
        results["created"] += 1

        for d in reminder_days or ():
            db.session.add(Reminder(invitation_id=invitation.id, scheduled_for=now + timedelta(days=d)))

        if send_emails:
            try:
                send_invitation_email(invitation)
            except Exception as exc:
                log.warning("Invitation %s to %s failed: %s", invitation.id, invitation.email, exc)
                invitation.status = "bounced"
                add_invitation_event(invitation, "bounced", metadata={"failure_reason": str(exc)})
                results["failed"] += 1
                results["errors"].append(f"Failed to send email to {invitation.email}: {exc}")
            else:
                add_invitation_event(invitation, "sent", metadata={"to": invitation.email})
                results["emails_sent"] += 1

        results["invitations"].append(invitation)

    db.session.commit()
    results["invitations"] = [inv.to_dict() for inv in results["invitations"]]
    log.info(
        "Campaign %s: %s invitations created, %s emails sent, %s failed",
        campaign.id,
        results["created"],
        results["emails_sent"],
        results["failed"],
    )
    return results


def list_invitations(campaign: Campaign) -> List[Dict[str, Any]]:
    rows = campaign.invitations.order_by(Invitation.created_at.desc(), Invitation.id.desc()).all()
    out = []
    for inv in rows:
        data = inv.to_dict()
        data["sponsor_name"] = inv.sponsor.display_name if inv.sponsor else inv.email
        data["has_pledge"] = inv.pledge is not None
        out.append(data)
    return out


# ─────────────────────────────────────────────────────────────
# Scheduling
# ─────────────────────────────────────────────────────────────
def schedule_invitations(
    campaign: Campaign,
    sponsor_ids: List[int],
    scheduled_at: datetime,
    *,
    reminder_days: Optional[List[int]] = None,
    user_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ScheduledJob:
    now = now or datetime.utcnow()
    if scheduled_at <= now:
        raise ValidationFailed("Scheduled date must be in the future.", errors={"scheduled_at": "Past date."})
    job = ScheduledJob(
        tenant_id=campaign.tenant_id,
        campaign_id=campaign.id,
        job_type="email_invitation",
        scheduled_at=scheduled_at,
        status="pending",
        payload={"sponsor_ids": list(sponsor_ids), "reminder_days": list(reminder_days or [])},
        created_by=user_id,
    )
    db.session.add(job)
    db.session.commit()
    log.info("Job %s scheduled for campaign %s at %s", job.id, campaign.id, scheduled_at)
    return job


def list_jobs(tenant_id: int, campaign_id: Optional[int] = None) -> List[ScheduledJob]:
    q = ScheduledJob.query.filter_by(tenant_id=tenant_id)
    if campaign_id is not None:
        q = q.filter_by(campaign_id=campaign_id)
    return q.order_by(ScheduledJob.scheduled_at.desc()).all()


def cancel_job(tenant_id: int, job_id: int) -> ScheduledJob:
    job = ScheduledJob.query.filter_by(id=job_id, tenant_id=tenant_id).first()
    if job is None:
        raise NotFound("Scheduled send not found.")
    if job.status != "pending":
        raise Conflict(f"Only pending sends can be cancelled (status is {job.status}).")
    job.status = "cancelled"
    db.session.commit()
    return job


# ─────────────────────────────────────────────────────────────
# Responding
# ─────────────────────────────────────────────────────────────
def _club_dict(tenant) -> Dict[str, Any]:
    return {
        "name": tenant.name,
        "logo_url": tenant.logo_url,
        "primary_color": tenant.primary_color,
        "secondary_color": tenant.secondary_color,
        "rgpd_excerpt": extract_rgpd_excerpt(tenant.rgpd_content_md),
    }


def get_invitation(token: str, now: Optional[datetime] = None) -> Invitation:
    invitation = Invitation.query.filter_by(token=token).first()
    if invitation is None:
        raise NotFound("Invitation not found.")
    if invitation.is_expired(now):
        raise Gone("This invitation has expired.")
    return invitation


def invitation_view(token: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    invitation = get_invitation(token, now)
    campaign = invitation.campaign
    sponsor = invitation.sponsor
    return {
        "invitation": {
            "email": invitation.email,
            "status": invitation.status,
            "expires_at": iso(invitation.expires_at),
        },
        "campaign": campaign.public_dict(campaign.tenant.name),
        "club": _club_dict(campaign.tenant),
        "sponsor": {
            "name": sponsor.contact_name if sponsor else None,
            "company": sponsor.company if sponsor else None,
            "email": invitation.email,
            "phone": sponsor.phone if sponsor else None,
        },
        "already_responded": invitation.pledge is not None,
    }


def _pledge_from_form(form, campaign: Campaign, **extra) -> Pledge:
    status = form.status.data
    return Pledge(
        campaign_id=campaign.id,
        status=status,
        amount_cents=euros_to_cents(form.amount.data) if status == "yes" else 0,
        comment=form.comment.data or None,
        consent=bool(form.consent.data),
        sponsor_name=form.name.data,
        sponsor_email=form.email.data,
        sponsor_company=form.company.data or None,
        sponsor_phone=form.phone.data or None,
        **extra,
    )


def send_confirmation(pledge: Pledge, campaign: Campaign) -> bool:
    if not pledge.sponsor_email:
        return False
    tenant = campaign.tenant
    rendered = render_email("confirmation", tenant, confirmation_values(tenant, campaign, pledge))
    try:
        deliver(rendered, pledge.sponsor_email, tenant=tenant)
        return True
    except Exception as exc:
        log.warning("Confirmation to %s failed: %s", pledge.sponsor_email, exc)
        return False


def _after_pledge(pledge: Pledge, campaign: Campaign, send_copy: bool) -> Dict[str, Any]:
    announce_pledge(pledge, campaign)
    confirmation_sent = send_confirmation(pledge, campaign) if send_copy else False
    return {"pledge": pledge.to_dict(), "confirmation_sent": confirmation_sent}


def respond_to_invitation(token: str, payload: Mapping[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    invitation = get_invitation(token, now)
    if invitation.pledge is not None:
        raise Conflict("You have already answered this invitation.")

    form = validated(PledgeResponseForm, payload)
    campaign = invitation.campaign
    pledge = _pledge_from_form(form, campaign, sponsor_id=invitation.sponsor_id,
                               invitation_id=invitation.id, source="invite")
    db.session.add(pledge)
    invitation.status = "responded"
    invitation.responded_at = now
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise Conflict("You have already answered this invitation.") from exc

    log.info("Invitation %s answered: %s", invitation.id, pledge.status)
    return _after_pledge(pledge, campaign, bool(form.send_copy.data))


def public_campaign_view(slug: str) -> Dict[str, Any]:
    campaign = get_public_campaign(slug)
    return {
        "campaign": campaign.public_dict(campaign.tenant.name),
        "club": _club_dict(campaign.tenant),
        "progress": campaign_totals(campaign),
        "url": public_link(slug),
    }


def submit_public_pledge(slug: str, payload: Mapping[str, Any], now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """Returns None when the honeypot was filled (caller still answers success)."""
    now = now or datetime.utcnow()
    campaign = get_public_campaign(slug)
    if str(payload.get("website") or "").strip():
        log.info("Public pledge on %s dropped by honeypot", slug)
        return None

    form = validated(PledgeResponseForm, payload)
    email = form.email.data
    cooldown = int(current_app.config.get("PUBLIC_SUBMIT_COOLDOWN_SECONDS", 3))
    recent = (
        Pledge.query.filter(
            Pledge.campaign_id == campaign.id,
            Pledge.sponsor_email == email,
            Pledge.created_at >= now - timedelta(seconds=cooldown),
        ).first()
    )
    if recent is not None:
        raise TooManyRequests("Please wait a few seconds before submitting again.")

    sponsor = find_or_create_sponsor(
        campaign.tenant_id,
        email,
        company=form.company.data or None,
        contact_name=form.name.data,
        phone=form.phone.data or None,
        notes=f"Source: public page - {slug}",
    )
    source = "qr" if str(payload.get("source") or "").lower() == "qr" else "public"
    pledge = _pledge_from_form(form, campaign, sponsor_id=sponsor.id, source=source, created_at=now, updated_at=now)
    db.session.add(pledge)
    db.session.commit()

    log.info("Public pledge %s on campaign %s (%s)", pledge.id, campaign.id, source)
    return _after_pledge(pledge, campaign, bool(form.send_copy.data))
