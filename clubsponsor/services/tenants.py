"""Super-admin tenant lifecycle: list, create (with first admin), edit, suspend, delete."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy import func, or_

from clubsponsor.extensions import db
from clubsponsor.models import AppUser, Campaign, Tenant
from clubsponsor.services.errors import Conflict, NotFound
from clubsponsor.services.mailer import send_welcome_email
from clubsponsor.services.templates_flex import delete_tenant_templates

log = logging.getLogger(__name__)

DUPLICATE_ADMIN = "A user with this email already exists."
CLUB_FIELDS = (
    "name",
    "email_contact",
    "logo_url",
    "address",
    "phone",
    "primary_color",
    "secondary_color",
    "email_domain",
)
LEGAL_FIELDS = ("email_signature_html", "rgpd_content_md", "cgu_content_md", "privacy_content_md")


def get_tenant(tenant_id: int) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFound("Tenant not found.")
    return tenant


def list_tenants(q: Optional[str] = None, page: int = 1, per_page: Optional[int] = None) -> Dict[str, Any]:
    per_page = int(per_page or current_app.config.get("TENANTS_PER_PAGE", 10))
    page = max(1, int(page or 1))

    query = Tenant.query
    if q and q.strip():
        like = f"%{q.strip()}%"
        query = query.filter(or_(Tenant.name.ilike(like), Tenant.email_contact.ilike(like)))

    total = query.count()
    tenants = query.order_by(Tenant.created_at.desc(), Tenant.id.desc()).offset((page - 1) * per_page).limit(per_page).all()

    counts = dict(
        db.session.query(Campaign.tenant_id, func.count(Campaign.id))
        .filter(Campaign.tenant_id.in_([t.id for t in tenants] or [0]))
        .group_by(Campaign.tenant_id)
        .all()
    )
    rows = []
    for t in tenants:
        data = t.to_dict()
        data["campaigns_count"] = int(counts.get(t.id, 0))
        rows.append(data)

    return {
        "rows": rows,
        "total": total,
        "page": page,
        "per_page": per_page,
        "pages": max(1, (total + per_page - 1) // per_page),
    }


def create_tenant(form, *, created_by: Optional[int] = None) -> Dict[str, Any]:
    admin_email = form.admin_email.data
    if AppUser.query.filter(func.lower(AppUser.email) == admin_email).first() is not None:
        raise Conflict(DUPLICATE_ADMIN, errors={"admin_email": DUPLICATE_ADMIN})

    tenant = Tenant(
        name=form.name.data,
        email_contact=form.email_contact.data,
        logo_url=form.logo_url.data or None,
        status="active",
    )
    db.session.add(tenant)
    db.session.flush()

    admin = AppUser(
        email=admin_email,
        name=form.admin_name.data or None,
        role="club_admin",
        tenant_id=tenant.id,
    )
    admin.set_password(form.admin_password.data)
    db.session.add(admin)
    db.session.commit()
    log.info("Tenant %s (%s) created with admin %s", tenant.id, tenant.name, admin_email)

    send_welcome_email(tenant, admin_email, user_id=created_by)
    return {"tenant": tenant.to_dict(), "admin": admin.to_dict()}


def update_tenant(tenant: Tenant, form) -> Tenant:
    tenant.name = form.name.data
    tenant.email_contact = form.email_contact.data
    tenant.logo_url = form.logo_url.data or None
    db.session.commit()
    return tenant


def toggle_status(tenant: Tenant) -> Tenant:
    tenant.status = "inactive" if tenant.status == "active" else "active"
    db.session.commit()
    log.info("Tenant %s is now %s", tenant.id, tenant.status)
    return tenant


def delete_tenant(tenant: Tenant) -> None:
    tenant_id = tenant.id
    delete_tenant_templates(tenant_id)
    db.session.delete(tenant)
    db.session.commit()
    log.warning("Tenant %s deleted", tenant_id)


def update_club_settings(tenant: Tenant, form) -> Tenant:
    if (form.email_domain.data or None) != tenant.email_domain:
        tenant.email_domain_verified = False
    for name in CLUB_FIELDS:
        setattr(tenant, name, getattr(form, name).data or None)
    db.session.commit()
    return tenant


def update_legal(tenant: Tenant, payload: Dict[str, Any]) -> Tenant:
    for name in LEGAL_FIELDS:
        if name in payload:
            value = payload.get(name)
            setattr(tenant, name, str(value) if value not in (None, "") else None)
    if "opt_out_default" in payload:
        tenant.opt_out_default = str(payload.get("opt_out_default")).lower() in ("1", "true", "yes", "on")
    db.session.commit()
    return tenant
