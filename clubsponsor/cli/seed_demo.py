import random
from datetime import date, timedelta

import click
from faker import Faker
from flask import current_app
from flask.cli import with_appcontext

from clubsponsor.extensions import db

fake = Faker("fr_FR")

DEMO_PASSWORD = "demo123"


@click.command("seed-demo")
@click.option("--tenants", default=2, show_default=True, help="Number of demo clubs.")
@click.option("--sponsors", default=12, show_default=True, help="Sponsors per club.")
@click.option("--campaigns", default=2, show_default=True, help="Campaigns per club.")
@click.option("--clear", is_flag=True, help="Clear existing demo data first.")
@with_appcontext
def seed_demo(tenants, sponsors, campaigns, clear):
    """🌱 Seed demo clubs, sponsors, campaigns and answers."""
    # lazy import to prevent circular imports
    from clubsponsor.models import Tenant

    if clear:
        _clear_data()

    for _ in range(tenants):
        tenant = _seed_tenant(Tenant)
        sponsor_objs = _seed_sponsors(tenant, sponsors)
        for _ in range(campaigns):
            campaign = _seed_campaign(tenant)
            _seed_pledges(campaign, sponsor_objs)
        click.echo(f"✨ {tenant.name}: {len(sponsor_objs)} sponsors, {campaigns} campaigns")

    db.session.commit()
    click.secho(f"✅ Demo data seeded! (admin password: {DEMO_PASSWORD})", fg="bright_green", bold=True)


# ---------- Helpers ----------
def _clear_data():
    """Remove every club (cascades to its users, sponsors and campaigns)."""
    click.secho("🧹 Clearing demo data…", fg="yellow")
    from clubsponsor.models import Tenant
    from clubsponsor.services.templates_flex import delete_tenant_templates

    deleted = 0
    for tenant in Tenant.query.all():
        delete_tenant_templates(tenant.id)
        db.session.delete(tenant)
        deleted += 1
    db.session.commit()
    click.secho(f"  ↳ {deleted} Tenant removed", fg="yellow")


def _seed_tenant(Tenant):
    from clubsponsor.models import AppUser

    city = fake.city()
    tenant = Tenant(
        name=f"FC {city}",
        email_contact=f"contact@fc-{fake.unique.slug()}.fr",
        phone=fake.phone_number(),
        address=fake.address(),
        primary_color=fake.hex_color(),
        secondary_color=fake.hex_color(),
        status="active",
        rgpd_content_md=(
            "# Data protection\n"
            f"Your details are only used by FC {city} to manage sponsorship."
        ),
    )
    db.session.add(tenant)
    db.session.flush()

    admin = AppUser(
        email=f"admin+{tenant.id}@{tenant.email_contact.split('@', 1)[1]}",
        name=fake.name(),
        role="club_admin",
        tenant_id=tenant.id,
    )
    admin.set_password(DEMO_PASSWORD)
    db.session.add(admin)
    return tenant


def _seed_sponsors(tenant, count):
    from clubsponsor.models import SPONSOR_SEGMENTS, Sponsor

    out = []
    for _ in range(count):
        sponsor = Sponsor(
            tenant_id=tenant.id,
            company=fake.company(),
            contact_name=fake.name(),
            email=fake.unique.company_email().lower(),
            phone=fake.phone_number(),
            segment=random.choice(SPONSOR_SEGMENTS),
        )
        db.session.add(sponsor)
        out.append(sponsor)
    db.session.flush()
    return out


def _seed_campaign(tenant):
    from clubsponsor.models import SCREEN_TYPES, Campaign
    from clubsponsor.services.campaigns import unique_slug

    title = f"{fake.word().capitalize()} screens {date.today().year + 1}"
    campaign = Campaign(
        tenant_id=tenant.id,
        title=title,
        location=f"Stade {fake.last_name()}",
        screen_type=random.choice(list(SCREEN_TYPES)),
        objective_cents=random.choice([20_000, 35_000, 50_000]) * 100,
        annual_price_hint_cents=random.choice([1_500, 2_500, 4_000]) * 100,
        daily_footfall_estimate=random.randint(500, 8000),
        deadline=date.today() + timedelta(days=random.randint(20, 120)),
        description_md=fake.paragraph(nb_sentences=3),
        is_public_share_enabled=True,
        public_slug=unique_slug(title),
    )
    db.session.add(campaign)
    db.session.flush()
    return campaign


def _seed_pledges(campaign, sponsors):
    from clubsponsor.models import Invitation, Pledge

    expiry = int(current_app.config.get("INVITATION_EXPIRY_DAYS", 30))
    for sponsor in random.sample(sponsors, k=min(len(sponsors), 8)):
        invitation = Invitation.issue(campaign, sponsor, expiry_days=expiry)
        db.session.add(invitation)
        db.session.flush()
        if fake.boolean(60):
            status = random.choice(["yes", "yes", "maybe", "no"])
            db.session.add(
                Pledge(
                    campaign_id=campaign.id,
                    sponsor_id=sponsor.id,
                    invitation_id=invitation.id,
                    status=status,
                    amount_cents=random.choice([1_000, 2_500, 5_000]) * 100 if status == "yes" else 0,
                    consent=True,
                    source="invite",
                    sponsor_name=sponsor.contact_name,
                    sponsor_email=sponsor.email,
                    sponsor_company=sponsor.company,
                    sponsor_phone=sponsor.phone,
                )
            )
            invitation.status = "responded"
