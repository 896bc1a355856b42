"""
Reminder mail.

Two sources:
  * explicit Reminder rows created alongside invitations (`reminder` template)
  * automatic rules, run daily: `reminder_5d` five days after an invitation
    on a campaign without deadline, `reminder_10d` ten days before a deadline
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Optional

from clubsponsor.extensions import db
from clubsponsor.models import Campaign, Invitation, Pledge, Reminder
from clubsponsor.services.invitations import send_invitation_email

log = logging.getLogger(__name__)

AUTO_REMINDER_DAYS_AFTER_INVITE = 5
AUTO_REMINDER_DAYS_BEFORE_DEADLINE = 10


def _has_pledge(invitation: Invitation) -> bool:
    if invitation.pledge is not None:
        return True
    return (
        Pledge.query.filter_by(campaign_id=invitation.campaign_id, sponsor_id=invitation.sponsor_id).first()
        is not None
    )


def process_due_reminders(now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or datetime.utcnow()
    due = (
        Reminder.query.filter(Reminder.status == "pending", Reminder.scheduled_for <= now)
        .order_by(Reminder.scheduled_for.asc())
        .all()
    )
    counts = {"processed": 0, "sent": 0, "skipped": 0, "failed": 0}
    for reminder in due:
        counts["processed"] += 1
        invitation = reminder.invitation
        if _has_pledge(invitation) or invitation.is_expired(now):
            reminder.status = "skipped"
            counts["skipped"] += 1
            continue
        try:
            send_invitation_email(invitation, key="reminder")
        except Exception as exc:
            # Left pending; picked up again on the next run.
            log.warning("Reminder %s to %s failed: %s", reminder.id, invitation.email, exc)
            counts["failed"] += 1
            continue
        reminder.status = "sent"
        reminder.sent_at = now
        counts["sent"] += 1

    db.session.commit()
    log.info("Due reminders: %s", counts)
    return counts


def _send_auto(invitation: Invitation, key: str, counts: Dict[str, int]) -> None:
    try:
        send_invitation_email(invitation, key=key)
    except Exception as exc:
        log.warning("%s to %s failed: %s", key, invitation.email, exc)
        counts["failed"] += 1
    else:
        counts[key] += 1


def send_automatic_reminders(now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or datetime.utcnow()
    counts = {"reminder_5d": 0, "reminder_10d": 0, "failed": 0}

    no_deadline = (
        Invitation.query.join(Campaign, Invitation.campaign_id == Campaign.id)
        .filter(Invitation.status == "sent", Campaign.deadline.is_(None))
        .all()
    )
    for invitation in no_deadline:
        if _has_pledge(invitation):
            continue
        if (now - invitation.created_at).days == AUTO_REMINDER_DAYS_AFTER_INVITE:
            _send_auto(invitation, "reminder_5d", counts)

    with_deadline = (
        Invitation.query.join(Campaign, Invitation.campaign_id == Campaign.id)
        .filter(Invitation.status == "sent", Campaign.deadline.isnot(None))
        .all()
    )
    for invitation in with_deadline:
        if _has_pledge(invitation):
            continue
        if (invitation.campaign.deadline - now.date()).days == AUTO_REMINDER_DAYS_BEFORE_DEADLINE:
            _send_auto(invitation, "reminder_10d", counts)

    log.info("Automatic reminders: %s", counts)
    return counts
