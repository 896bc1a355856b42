from datetime import date, timedelta

import jwt

from clubsponsor.extensions import db
from clubsponsor.models import Campaign, EmailEvent, Invitation
from clubsponsor.services.email_events import add_invitation_event, campaign_email_metrics
from tests.conftest import API_HEADERS

JWT_SECRET = "webhook-signing-secret-0123456789abcdef"


def _invite(campaign, sponsor):
    invitation = Invitation.issue(campaign, sponsor, expiry_days=30)
    db.session.add(invitation)
    db.session.commit()
    return invitation


def test_webhook_requires_bearer(client):
    resp = client.post("/webhooks/email-events", json={"type": "opened"})
    assert resp.status_code == 401
    assert resp.get_json()["ok"] is False

    resp = client.post("/webhooks/email-events", json={"type": "opened"},
                       headers={"Authorization": "Bearer wrong"})
    assert resp.status_code == 401


def test_webhook_accepts_scoped_jwt(app, client, campaign, sponsors):
    app.config["JWT_SECRET"] = JWT_SECRET
    invitation = _invite(campaign, sponsors[0])
    good = jwt.encode({"sub": "mailer", "scope": "events:write"}, JWT_SECRET, algorithm="HS256")
    resp = client.post("/webhooks/email-events", json={"type": "opened", "token": invitation.token},
                       headers={"Authorization": f"Bearer {good}"})
    assert resp.status_code == 200

    weak = jwt.encode({"sub": "cron", "scope": "jobs:run"}, JWT_SECRET, algorithm="HS256")
    resp = client.post("/webhooks/email-events", json={"type": "opened", "token": invitation.token},
                       headers={"Authorization": f"Bearer {weak}"})
    assert resp.status_code == 403


def test_unknown_event_type(client):
    resp = client.post("/webhooks/email-events", json={"type": "exploded"}, headers=API_HEADERS)
    assert resp.status_code == 400
    assert "type" in resp.get_json()["error"]["errors"]


def test_event_without_invitation_is_ignored(client):
    resp = client.post("/webhooks/email-events", json={"type": "opened", "email": "ghost@acme-corp.fr"},
                       headers=API_HEADERS)
    assert resp.status_code == 200
    assert resp.get_json()["processed"] is False
    assert EmailEvent.query.count() == 0


def test_event_updates_invitation_status(client, campaign, sponsors):
    invitation = _invite(campaign, sponsors[0])
    resp = client.post(
        "/webhooks/email-events",
        json={"type": "opened", "email": invitation.email.upper(), "metadata": {"ip": "1.2.3.4"}},
        headers=API_HEADERS,
    )
    body = resp.get_json()
    assert body["processed"] is True
    assert body["invitation_status"] == "opened"
    assert body["event"]["event_data"]["metadata"] == {"ip": "1.2.3.4"}

    # Later events never move an invitation past its first transition.
    client.post("/webhooks/email-events", json={"type": "clicked", "invitation_id": invitation.id},
                headers=API_HEADERS)
    db.session.refresh(invitation)
    assert invitation.status == "opened"


def test_delivered_and_complained_are_stored_as_sent_and_bounced(client, campaign, sponsors):
    invitation = _invite(campaign, sponsors[0])
    for kind in ("delivered", "complained"):
        client.post("/webhooks/email-events", json={"type": kind, "token": invitation.token}, headers=API_HEADERS)
    events = EmailEvent.query.order_by(EmailEvent.id).all()
    assert [e.event_type for e in events] == ["sent", "bounced"]
    assert [e.event_data["original_event"] for e in events] == ["delivered", "complained"]


def test_campaign_metrics(club_client, campaign, sponsors):
    invitations = [_invite(campaign, s) for s in sponsors]
    for inv in invitations:
        add_invitation_event(inv, "sent")
    add_invitation_event(invitations[0], "opened")
    add_invitation_event(invitations[1], "opened")
    add_invitation_event(invitations[0], "clicked")
    add_invitation_event(invitations[2], "bounced")
    db.session.commit()

    metrics = campaign_email_metrics(campaign.id)
    assert metrics["sent"] == 3
    assert metrics["delivered"] == 3
    assert metrics["bounced"] == 1
    assert metrics["open_rate"] == 66.7
    assert metrics["click_rate"] == 50.0

    resp = club_client.get(f"/api/campaigns/{campaign.id}/metrics")
    assert resp.get_json()["metrics"] == metrics


def test_metrics_without_events(app, campaign):
    metrics = campaign_email_metrics(campaign.id)
    assert metrics["sent"] == 0
    assert metrics["open_rate"] == 0.0
    assert metrics["click_rate"] == 0.0


def test_invitation_token_picks_the_right_campaign(client, campaign, sponsors):
    spring = Campaign(tenant_id=campaign.tenant_id, title="Spring banners", objective_cents=200_000,
                      deadline=date.today() + timedelta(days=30))
    db.session.add(spring)
    db.session.commit()
    first = _invite(campaign, sponsors[0])
    second = _invite(spring, sponsors[0])

    resp = client.post(
        "/webhooks/email-events",
        json={"event_type": "opened", "email": sponsors[0].email, "invitation_token": first.token},
        headers=API_HEADERS,
    )
    assert resp.get_json()["event"]["invitation_id"] == first.id
    db.session.refresh(first)
    db.session.refresh(second)
    assert (first.status, second.status) == ("opened", "sent")


def test_non_string_identifiers_are_not_a_server_error(client, campaign, sponsors):
    _invite(campaign, sponsors[0])
    resp = client.post("/webhooks/email-events", json={"type": "opened", "token": 5, "email": ["x"]},
                       headers=API_HEADERS)
    assert resp.status_code == 200
    assert resp.get_json()["processed"] is False
