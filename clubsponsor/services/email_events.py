"""
Email delivery/engagement events and the per-campaign metrics built on them.

Provider events are folded into the stored vocabulary: "delivered" is kept
as "sent" and "complained" as "bounced".
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import func

from clubsponsor.extensions import db
from clubsponsor.models import EMAIL_EVENT_TYPES, EmailEvent, Invitation
from clubsponsor.services.errors import ServiceError

log = logging.getLogger(__name__)

STORED_AS: Dict[str, str] = {"delivered": "sent", "complained": "bounced"}
# Invitation statuses an event may move a still-"sent" invitation to.
STATUS_FROM_EVENT: Dict[str, str] = {"opened": "opened", "clicked": "clicked", "bounced": "bounced"}

NO_INVITATION_WARNING = "No invitation matches this event; nothing recorded."


def add_invitation_event(
    invitation: Invitation,
    event_type: str,
    *,
    metadata: Optional[Mapping[str, Any]] = None,
    original_event: Optional[str] = None,
    timestamp: Optional[str] = None,
) -> EmailEvent:
    """Stage an EmailEvent for `invitation` (caller commits)."""
    campaign = invitation.campaign
    event = EmailEvent(
        invitation_id=invitation.id,
        campaign_id=invitation.campaign_id,
        sponsor_id=invitation.sponsor_id,
        tenant_id=campaign.tenant_id if campaign is not None else None,
        email=invitation.email,
        event_type=event_type,
        event_data={
            "timestamp": timestamp or datetime.utcnow().isoformat(),
            "metadata": dict(metadata or {}),
            "original_event": original_event or event_type,
        },
    )
    db.session.add(event)
    return event


def _find_invitation(payload: Mapping[str, Any]) -> Optional[Invitation]:
    raw_id = payload.get("invitation_id")
    if raw_id not in (None, ""):
        try:
            inv = db.session.get(Invitation, int(raw_id))
        except (TypeError, ValueError):
            inv = None
        if inv is not None:
            return inv

    token = str(payload.get("invitation_token") or payload.get("token") or "").strip()
    if token:
        inv = Invitation.query.filter_by(token=token).first()
        if inv is not None:
            return inv

    email = str(payload.get("email") or "").strip().lower()
    if email:
        return (
            Invitation.query.filter(Invitation.email == email)
            .order_by(Invitation.created_at.desc(), Invitation.id.desc())
            .first()
        )
    return None


def record_email_event(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Webhook entry point. Raises ServiceError(400) for an unknown event type."""
    event_type = str(payload.get("type") or payload.get("event_type") or "").strip().lower()
    if event_type not in EMAIL_EVENT_TYPES:
        raise ServiceError(
            f"Unknown event type '{event_type}'.",
            status=400,
            errors={"type": f"Expected one of: {', '.join(EMAIL_EVENT_TYPES)}"},
        )

    invitation = _find_invitation(payload)
    if invitation is None:
        log.info("Email event %s ignored: %s", event_type, NO_INVITATION_WARNING)
        return {"processed": False, "warning": NO_INVITATION_WARNING}

    stored = STORED_AS.get(event_type, event_type)
    event = add_invitation_event(
        invitation,
        stored,
        metadata=payload.get("metadata") if isinstance(payload.get("metadata"), Mapping) else None,
        original_event=event_type,
        timestamp=payload.get("timestamp"),
    )
    if invitation.status == "sent" and stored in STATUS_FROM_EVENT:
        invitation.status = STATUS_FROM_EVENT[stored]

    db.session.commit()
    return {"processed": True, "event": event.to_dict(), "invitation_status": invitation.status}


def _rate(num: int, den: int) -> float:
    return round(num / den * 100, 1) if den else 0.0


def campaign_email_metrics(campaign_id: int) -> Dict[str, Any]:
    counts = dict(
        db.session.query(EmailEvent.event_type, func.count(EmailEvent.id))
        .filter(EmailEvent.campaign_id == campaign_id)
        .group_by(EmailEvent.event_type)
        .all()
    )
    sent = int(counts.get("sent", 0))
    opened = int(counts.get("opened", 0))
    clicked = int(counts.get("clicked", 0))
    return {
        "sent": sent,
        "delivered": sent,
        "opened": opened,
        "clicked": clicked,
        "bounced": int(counts.get("bounced", 0)),
        "failed": 0,
        "open_rate": _rate(opened, sent),
        "click_rate": _rate(clicked, opened),
    }
