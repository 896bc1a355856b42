"""Sponsor CRUD for one tenant."""

import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from clubsponsor.extensions import db
from clubsponsor.models import Sponsor
from clubsponsor.services.errors import Conflict, NotFound

log = logging.getLogger(__name__)

DUPLICATE_EMAIL = "A sponsor with this email already exists."


def get_sponsor(tenant_id: int, sponsor_id: int) -> Sponsor:
    sponsor = Sponsor.query.filter_by(id=sponsor_id, tenant_id=tenant_id).first()
    if sponsor is None:
        raise NotFound("Sponsor not found.")
    return sponsor


def list_sponsors(tenant_id: int, *, q: Optional[str] = None, segment: Optional[str] = None) -> List[Sponsor]:
    query = Sponsor.query.filter_by(tenant_id=tenant_id)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(
            or_(Sponsor.email.ilike(like), Sponsor.company.ilike(like), Sponsor.contact_name.ilike(like))
        )
    if segment and segment != "all":
        query = query.filter(Sponsor.segment == segment)
    return query.order_by(Sponsor.company.asc(), Sponsor.email.asc()).all()


def _apply_form(sponsor: Sponsor, form) -> None:
    sponsor.email = form.email.data
    sponsor.company = form.company.data or None
    sponsor.contact_name = form.contact_name.data or None
    sponsor.phone = form.phone.data or None
    sponsor.segment = form.segment.data or "other"
    sponsor.notes = form.notes.data or None


def _commit_unique() -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise Conflict(DUPLICATE_EMAIL, errors={"email": DUPLICATE_EMAIL}) from exc


def create_sponsor(tenant_id: int, form) -> Sponsor:
    sponsor = Sponsor(tenant_id=tenant_id)
    _apply_form(sponsor, form)
    db.session.add(sponsor)
    _commit_unique()
    return sponsor


def update_sponsor(sponsor: Sponsor, form) -> Sponsor:
    _apply_form(sponsor, form)
    _commit_unique()
    return sponsor


def delete_sponsor(sponsor: Sponsor) -> None:
    db.session.delete(sponsor)
    db.session.commit()
    log.info("Sponsor %s deleted from tenant %s", sponsor.id, sponsor.tenant_id)


def find_or_create_sponsor(tenant_id: int, email: str, **fields) -> Sponsor:
    """Sponsor for (tenant, email); new rows are staged, not committed."""
    email = (email or "").strip().lower()
    sponsor = Sponsor.query.filter_by(tenant_id=tenant_id, email=email).first()
    if sponsor is not None:
        return sponsor
    sponsor = Sponsor(tenant_id=tenant_id, email=email, segment="other", **fields)
    db.session.add(sponsor)
    db.session.flush()
    return sponsor
