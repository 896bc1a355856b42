from datetime import date, timedelta

from clubsponsor.extensions import db
from clubsponsor.models import Campaign, EmailEvent, Invitation, Sponsor
from clubsponsor.services.campaigns import slugify, unique_slug
from clubsponsor.services.email_events import add_invitation_event


def _campaign_payload(**kw):
    data = {
        "title": "Écrans Stade 2027",
        "location": "Stade Gerland",
        "objective_amount": "15000",
        "screen_type": "led_int",
        "annual_price_hint": "1800.50",
        "daily_footfall_estimate": "900",
        "deadline": (date.today() + timedelta(days=30)).isoformat(),
    }
    data.update(kw)
    return data


def test_slugify():
    assert slugify("Écrans LED: Saison 2027 !") == "ecrans-led-saison-2027"
    assert slugify("***") == "campaign"
    assert len(slugify("a" * 200)) == 60


def test_unique_slug_suffixes(campaign):
    campaign.public_slug = "led-screens-2027"
    db.session.commit()
    assert unique_slug("LED screens 2027") == "led-screens-2027-2"
    assert unique_slug("LED screens 2027", exclude_id=campaign.id) == "led-screens-2027"


def test_create_and_list_campaign(club_client):
    resp = club_client.post("/api/campaigns/", json=_campaign_payload())
    assert resp.status_code == 201
    created = resp.get_json()["campaign"]
    assert created["objective_cents"] == 1_500_000
    assert created["annual_price_hint"] == 1800.5
    assert created["screen_type_label"] == "Indoor LED"
    assert created["is_public_share_enabled"] is False

    listing = club_client.get("/api/campaigns/").get_json()
    assert [c["id"] for c in listing["campaigns"]] == [created["id"]]


def test_create_campaign_validation(club_client):
    resp = club_client.post(
        "/api/campaigns/",
        json=_campaign_payload(title="ab", objective_amount="0", deadline=date.today().isoformat()),
    )
    assert resp.status_code == 422
    errors = resp.get_json()["error"]["errors"]
    assert set(errors) >= {"title", "objective_amount", "deadline"}


def test_update_and_delete_campaign(club_client, campaign):
    resp = club_client.put(f"/api/campaigns/{campaign.id}", json=_campaign_payload(title="New title"))
    assert resp.status_code == 200
    assert resp.get_json()["campaign"]["title"] == "New title"

    assert club_client.delete(f"/api/campaigns/{campaign.id}").status_code == 200
    assert db.session.get(Campaign, campaign.id) is None


def test_delete_campaign_drops_its_email_events(club_client, campaign, sponsors):
    invitation = Invitation.issue(campaign, sponsors[0], expiry_days=30)
    db.session.add(invitation)
    db.session.flush()
    add_invitation_event(invitation, "delivered")
    db.session.commit()
    assert EmailEvent.query.filter_by(campaign_id=campaign.id).count() == 1

    assert club_client.delete(f"/api/campaigns/{campaign.id}").status_code == 200
    assert EmailEvent.query.count() == 0
    assert Invitation.query.count() == 0


def test_share_assigns_slug_once(club_client, campaign):
    resp = club_client.post(f"/api/campaigns/{campaign.id}/share", json={"enabled": True})
    body = resp.get_json()
    assert body["campaign"]["public_slug"] == "led-screens-2027"
    assert body["public_url"] == "https://sponsor.example.org/p/led-screens-2027"

    resp = club_client.post(f"/api/campaigns/{campaign.id}/share", json={"enabled": False})
    body = resp.get_json()
    assert body["public_url"] is None
    assert body["campaign"]["public_slug"] == "led-screens-2027"


def test_campaign_of_other_tenant_is_not_found(club_client, other_tenant):
    foreign = Campaign(tenant_id=other_tenant.id, title="Foreign", location="Elsewhere", objective_cents=100)
    db.session.add(foreign)
    db.session.commit()
    resp = club_client.get(f"/api/campaigns/{foreign.id}")
    assert resp.status_code == 404
    assert resp.get_json()["ok"] is False


def test_sponsor_crud(club_client):
    resp = club_client.post(
        "/api/sponsors/",
        json={"email": "  Jean@Fleuriste-Lyon.FR ", "company": "Fleuriste", "segment": "Gold", "phone": "04 78 00 00 00"},
    )
    assert resp.status_code == 201
    sponsor = resp.get_json()["sponsor"]
    assert sponsor["email"] == "jean@fleuriste-lyon.fr"
    assert sponsor["segment"] == "gold"

    dup = club_client.post("/api/sponsors/", json={"email": "jean@fleuriste-lyon.fr"})
    assert dup.status_code == 409

    resp = club_client.put(f"/api/sponsors/{sponsor['id']}", json={"email": "jean@fleuriste-lyon.fr", "segment": "bronze"})
    assert resp.get_json()["sponsor"]["segment"] == "bronze"

    assert club_client.get("/api/sponsors/?segment=bronze").get_json()["total"] == 1
    assert club_client.delete(f"/api/sponsors/{sponsor['id']}").status_code == 200
    assert club_client.get(f"/api/sponsors/{sponsor['id']}").status_code == 404


def test_sponsor_validation(club_client):
    resp = club_client.post("/api/sponsors/", json={"email": "nope", "phone": "12", "segment": "diamond"})
    assert resp.status_code == 422
    assert set(resp.get_json()["error"]["errors"]) == {"email", "phone", "segment"}


def test_sponsors_are_tenant_scoped(club_client, other_tenant):
    db.session.add(Sponsor(tenant_id=other_tenant.id, email="hidden@acme-corp.fr"))
    db.session.commit()
    assert club_client.get("/api/sponsors/").get_json()["total"] == 0
