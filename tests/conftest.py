from __future__ import annotations

from datetime import date, timedelta

import pytest

from clubsponsor import create_app
from clubsponsor.extensions import db, mail
from clubsponsor.models import AppUser, Campaign, Sponsor, Tenant

CLUB_ADMIN_EMAIL = "admin@fc-lyon-nord.fr"
SUPER_ADMIN_EMAIL = "root@clubsponsor.fr"
PASSWORD = "secret123"
API_HEADERS = {"Authorization": "Bearer test-token"}


@pytest.fixture
def app(tmp_path):
    app = create_app("testing")
    app.config["EXPORTS_DIR"] = str(tmp_path / "exports")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def outbox(app):
    with mail.record_messages() as messages:
        yield messages


@pytest.fixture
def tenant(app):
    t = Tenant(
        name="FC Lyon Nord",
        email_contact="contact@fc-lyon-nord.fr",
        status="active",
        email_signature_html="<p>Le bureau du FC Lyon Nord</p>",
        rgpd_content_md="# Data protection\nYour details are only used to manage sponsorship.",
    )
    db.session.add(t)
    db.session.commit()
    return t


@pytest.fixture
def other_tenant(app):
    t = Tenant(name="AS Villeurbanne", email_contact="contact@as-villeurbanne.fr", status="active")
    db.session.add(t)
    db.session.commit()
    return t


@pytest.fixture
def club_admin(tenant):
    user = AppUser(email=CLUB_ADMIN_EMAIL, name="Claire Martin", role="club_admin", tenant_id=tenant.id)
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def super_admin(app):
    user = AppUser(email=SUPER_ADMIN_EMAIL, name="Platform", role="super_admin")
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


def login(client, email, password=PASSWORD):
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return resp


@pytest.fixture
def club_client(client, club_admin):
    login(client, CLUB_ADMIN_EMAIL)
    return client


@pytest.fixture
def admin_client(client, super_admin):
    login(client, SUPER_ADMIN_EMAIL)
    return client


@pytest.fixture
def campaign(tenant):
    c = Campaign(
        tenant_id=tenant.id,
        title="LED screens 2027",
        location="Stade Municipal",
        screen_type="led_ext",
        objective_cents=1_000_000,
        annual_price_hint_cents=250_000,
        daily_footfall_estimate=1200,
        deadline=date.today() + timedelta(days=60),
    )
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def public_campaign(campaign):
    campaign.is_public_share_enabled = True
    campaign.public_slug = "led-screens-2027"
    db.session.commit()
    return campaign


@pytest.fixture
def sponsors(tenant):
    rows = [
        Sponsor(tenant_id=tenant.id, company="Boulangerie Petit", contact_name="Paul Petit",
                email="paul@boulangerie-petit.fr", segment="gold"),
        Sponsor(tenant_id=tenant.id, company="Garage Central", contact_name="Lea Roux",
                email="lea@garage-central.fr", segment="silver"),
        Sponsor(tenant_id=tenant.id, company="Pharmacie du Parc", contact_name="Marc Blanc",
                email="marc@pharmacie-parc.fr", segment="bronze"),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows
