"""Out-of-band notifications for new pledges (Slack + Socket.IO)."""

import logging

import requests
from flask import current_app

from clubsponsor.extensions import emit_socket

log = logging.getLogger(__name__)


def tenant_room(tenant_id: int) -> str:
    return f"tenant:{tenant_id}"


def send_slack_alert(message: str) -> bool:
    """Best-effort Slack webhook alert; no-op when no webhook is configured."""
    webhook = current_app.config.get("SLACK_WEBHOOK_URL")
    if not webhook:
        return False
    try:
        requests.post(webhook, json={"text": message}, timeout=5)
        return True
    except requests.RequestException as exc:
        log.warning("Slack alert failed: %s", exc)
        return False


def announce_pledge(pledge, campaign) -> None:
    emit_socket(
        "pledge:new",
        {
            "campaign_id": campaign.id,
            "pledge": pledge.to_dict(),
        },
        room=tenant_room(campaign.tenant_id),
    )
    if pledge.status == "yes":
        who = pledge.sponsor_company or pledge.sponsor_name or pledge.sponsor_email
        send_slack_alert(f"New pledge on {campaign.title}: {who} ({pledge.amount_euros:.2f} EUR)")
