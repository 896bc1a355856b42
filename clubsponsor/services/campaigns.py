"""Campaign CRUD and public-share slugs, always scoped to one tenant."""

from __future__ import annotations

import logging
import re
import unicodedata
import uuid
from typing import List, Optional

from clubsponsor.extensions import db
from clubsponsor.models import Campaign
from clubsponsor.models.mixins import euros_to_cents
from clubsponsor.services.errors import NotFound

log = logging.getLogger(__name__)

SLUG_MAX = 60


def slugify(text: str) -> str:
    ascii_text = unicodedata.normalize("NFD", text or "").encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")
    return slug[:SLUG_MAX].strip("-") or "campaign"


def unique_slug(title: str, *, exclude_id: Optional[int] = None) -> str:
    base = slugify(title)
    candidate = base
    n = 2
    while True:
        q = Campaign.query.filter(Campaign.public_slug == candidate)
        if exclude_id is not None:
            q = q.filter(Campaign.id != exclude_id)
        if q.first() is None:
            return candidate
        if n > 50:
            return f"{base}-{uuid.uuid4().hex[:6]}"
        candidate = f"{base}-{n}"
        n += 1


def get_campaign(tenant_id: int, campaign_id: int) -> Campaign:
    campaign = Campaign.query.filter_by(id=campaign_id, tenant_id=tenant_id).first()
    if campaign is None:
        raise NotFound("Campaign not found.")
    return campaign


def get_public_campaign(slug: str) -> Campaign:
    campaign = Campaign.query.filter_by(public_slug=slug).first()
    if campaign is None or not campaign.is_public_share_enabled:
        raise NotFound("Campaign not found.")
    if campaign.tenant is not None and not campaign.tenant.is_active:
        raise NotFound("Campaign not found.")
    return campaign


def list_campaigns(tenant_id: int) -> List[Campaign]:
    return (
        Campaign.query.filter_by(tenant_id=tenant_id)
        .order_by(Campaign.created_at.desc(), Campaign.id.desc())
        .all()
    )


def _apply_form(campaign: Campaign, form) -> None:
    campaign.title = form.title.data
    campaign.location = form.location.data
    campaign.screen_type = form.screen_type.data or None
    campaign.objective_cents = euros_to_cents(form.objective_amount.data)
    campaign.annual_price_hint_cents = (
        euros_to_cents(form.annual_price_hint.data) if form.annual_price_hint.data is not None else None
    )
    campaign.daily_footfall_estimate = form.daily_footfall_estimate.data
    campaign.deadline = form.deadline.data
    campaign.cover_image_url = form.cover_image_url.data or None
    campaign.description_md = form.description_md.data or None


def create_campaign(tenant_id: int, form, *, lighting_hours=None) -> Campaign:
    campaign = Campaign(tenant_id=tenant_id)
    _apply_form(campaign, form)
    if isinstance(lighting_hours, dict):
        campaign.lighting_hours = lighting_hours
    db.session.add(campaign)
    db.session.commit()
    log.info("Campaign %s created for tenant %s", campaign.id, tenant_id)
    return campaign


def update_campaign(campaign: Campaign, form, *, lighting_hours=None) -> Campaign:
    _apply_form(campaign, form)
    if isinstance(lighting_hours, dict):
        campaign.lighting_hours = lighting_hours
    db.session.commit()
    return campaign


def delete_campaign(campaign: Campaign) -> None:
    campaign_id = campaign.id
    db.session.delete(campaign)
    db.session.commit()
    log.info("Campaign %s deleted", campaign_id)


def set_public_share(campaign: Campaign, enabled: bool) -> Campaign:
    """Enabling assigns a slug once; disabling keeps the existing slug."""
    campaign.is_public_share_enabled = bool(enabled)
    if enabled and not campaign.public_slug:
        campaign.public_slug = unique_slug(campaign.title, exclude_id=campaign.id)
    db.session.commit()
    return campaign
