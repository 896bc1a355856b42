from datetime import datetime, timedelta

import pytest

from clubsponsor.extensions import db
from clubsponsor.models import EmailEvent, Invitation, Pledge, Reminder, Sponsor
from clubsponsor.services.errors import ValidationFailed
from clubsponsor.services.invitations import parse_reminder_days, parse_sponsor_ids, send_invitations

ANSWER = {
    "status": "yes",
    "name": "Paul Petit",
    "email": "paul@boulangerie-petit.fr",
    "company": "Boulangerie Petit",
    "amount": "2500",
    "comment": "Happy to help",
    "consent": True,
}


def test_parse_reminder_days():
    assert parse_reminder_days("7; 3,7") == [3, 7]
    assert parse_reminder_days(None) == []
    assert parse_reminder_days([5]) == [5]
    with pytest.raises(ValidationFailed):
        parse_reminder_days("0")
    with pytest.raises(ValidationFailed):
        parse_reminder_days("soon")


def test_parse_sponsor_ids():
    assert parse_sponsor_ids(["1", 2]) == [1, 2]
    with pytest.raises(ValidationFailed):
        parse_sponsor_ids([])
    with pytest.raises(ValidationFailed):
        parse_sponsor_ids(["x"])


def test_send_invitations_endpoint(club_client, campaign, sponsors, outbox):
    ids = [s.id for s in sponsors] + [9999]
    resp = club_client.post(
        f"/api/campaigns/{campaign.id}/invitations",
        json={"sponsor_ids": ids, "reminder_days": "3,7"},
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["created"] == 3
    assert body["emails_sent"] == 3
    assert body["failed"] == 0
    assert body["errors"] == ["Sponsor 9999 not found."]

    assert len(outbox) == 3
    msg = next(m for m in outbox if m.recipients == ["paul@boulangerie-petit.fr"])
    assert msg.subject == "FC Lyon Nord: sponsorship opportunity for LED screens 2027"
    invitation = Invitation.query.filter_by(email="paul@boulangerie-petit.fr").one()
    assert f"https://sponsor.example.org/respond/{invitation.token}" in msg.html
    assert "Data protection" in msg.html
    assert "--- Data protection ---" in msg.body

    assert EmailEvent.query.filter_by(event_type="sent", campaign_id=campaign.id).count() == 3
    assert Reminder.query.count() == 6

    listing = club_client.get(f"/api/campaigns/{campaign.id}/invitations").get_json()["invitations"]
    assert len(listing) == 3
    assert all(row["has_pledge"] is False for row in listing)


def test_send_without_emails_records_no_events(app, campaign, sponsors, outbox):
    result = send_invitations(campaign, [sponsors[0].id], send_emails=False)
    assert result["created"] == 1
    assert result["emails_sent"] == 0
    assert outbox == []
    assert EmailEvent.query.count() == 0


def test_failed_send_marks_invitation_bounced(app, campaign, sponsors, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("smtp down")

    monkeypatch.setattr("clubsponsor.services.invitations.deliver", boom)
    result = send_invitations(campaign, [sponsors[1].id])
    assert result["failed"] == 1
    assert "smtp down" in result["errors"][0]
    invitation = Invitation.query.one()
    assert invitation.status == "bounced"
    event = EmailEvent.query.one()
    assert event.event_type == "bounced"
    assert event.event_data["metadata"]["failure_reason"] == "smtp down"


def _invite(campaign, sponsor, **kw):
    invitation = Invitation.issue(campaign, sponsor, expiry_days=30, **kw)
    db.session.add(invitation)
    db.session.commit()
    return invitation


def test_invitation_view(client, campaign, sponsors):
    invitation = _invite(campaign, sponsors[0])
    resp = client.get(f"/public/respond/{invitation.token}")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["campaign"]["title"] == "LED screens 2027"
    assert body["campaign"]["club_name"] == "FC Lyon Nord"
    assert body["club"]["rgpd_excerpt"] == "Your details are only used to manage sponsorship."
    assert body["sponsor"]["company"] == "Boulangerie Petit"
    assert body["already_responded"] is False


def test_unknown_and_expired_invitations(client, campaign, sponsors):
    assert client.get("/public/respond/does-not-exist").status_code == 404

    expired = _invite(campaign, sponsors[0], now=datetime.utcnow() - timedelta(days=31))
    resp = client.get(f"/public/respond/{expired.token}")
    assert resp.status_code == 410
    assert resp.get_json()["error"]["message"] == "This invitation has expired."


def test_respond_creates_single_pledge(client, campaign, sponsors, outbox):
    invitation = _invite(campaign, sponsors[0])
    resp = client.post(f"/public/respond/{invitation.token}", json={**ANSWER, "send_copy": True})
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["pledge"]["amount_cents"] == 250_000
    assert body["pledge"]["source"] == "invite"
    assert body["confirmation_sent"] is True
    assert outbox[-1].subject == "Thank you for your answer: LED screens 2027"

    db.session.refresh(invitation)
    assert invitation.status == "responded"
    assert invitation.responded_at is not None

    again = client.post(f"/public/respond/{invitation.token}", json=ANSWER)
    assert again.status_code == 409
    assert Pledge.query.count() == 1


def test_respond_zeroes_amount_unless_yes(client, campaign, sponsors):
    invitation = _invite(campaign, sponsors[1])
    resp = client.post(
        f"/public/respond/{invitation.token}",
        json={**ANSWER, "status": "Maybe", "email": "lea@garage-central.fr"},
    )
    assert resp.status_code == 201
    assert resp.get_json()["pledge"]["amount_cents"] == 0
    assert resp.get_json()["pledge"]["status"] == "maybe"


def test_respond_validation(client, campaign, sponsors):
    invitation = _invite(campaign, sponsors[0])
    resp = client.post(
        f"/public/respond/{invitation.token}",
        json={"status": "perhaps", "name": "P", "email": "bad", "consent": False, "amount": "-5"},
    )
    assert resp.status_code == 422
    errors = resp.get_json()["error"]["errors"]
    assert set(errors) >= {"status", "name", "email", "consent", "amount"}
    assert Pledge.query.count() == 0


def test_public_page(client, public_campaign):
    resp = client.get("/public/p/led-screens-2027")
    assert resp.status_code == 200
    assert resp.headers["Cache-Control"] == "private, max-age=30"
    body = resp.get_json()
    assert body["url"] == "https://sponsor.example.org/p/led-screens-2027"
    assert body["progress"]["objective"] == 10000.0
    assert body["progress"]["total_pledged"] == 0.0


def test_public_page_hidden_when_disabled_or_tenant_inactive(client, public_campaign, tenant):
    public_campaign.is_public_share_enabled = False
    db.session.commit()
    assert client.get("/public/p/led-screens-2027").status_code == 404

    public_campaign.is_public_share_enabled = True
    tenant.status = "inactive"
    db.session.commit()
    assert client.get("/public/p/led-screens-2027").status_code == 404


def test_public_pledge_creates_sponsor(client, public_campaign, tenant):
    payload = {**ANSWER, "email": "new@traiteur-lyon.fr", "company": "Traiteur Lyon", "source": "qr"}
    resp = client.post("/public/p/led-screens-2027", json=payload)
    assert resp.status_code == 201
    assert resp.get_json()["pledge"]["source"] == "qr"

    sponsor = Sponsor.query.filter_by(tenant_id=tenant.id, email="new@traiteur-lyon.fr").one()
    assert sponsor.segment == "other"
    assert sponsor.notes == "Source: public page - led-screens-2027"

    again = client.post("/public/p/led-screens-2027", json=payload)
    assert again.status_code == 429


def test_public_pledge_honeypot(client, public_campaign):
    resp = client.post("/public/p/led-screens-2027", json={**ANSWER, "website": "http://spam.example"})
    assert resp.status_code == 201
    assert resp.get_json() == {"ok": True}
    assert Pledge.query.count() == 0


def test_public_pledge_non_string_honeypot(client, public_campaign):
    resp = client.post("/public/p/led-screens-2027", json={**ANSWER, "website": 123})
    assert resp.status_code == 201
    assert Pledge.query.count() == 0
