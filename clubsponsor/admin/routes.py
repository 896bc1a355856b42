"""
Super-admin console API.

- Tenants: search + pagination, create (with first club admin), edit,
  suspend/reactivate, delete (cascade)
- Masquerade: view any club as its admin
- Platform dashboard, global template push, test mail, email logs
"""

from __future__ import annotations

import logging

from flask import Blueprint, request
from flask_login import current_user

from clubsponsor.forms import validated
from clubsponsor.forms.tenant_form import TenantCreateForm, TenantUpdateForm
from clubsponsor.routes.api_auth_utils import _get_payload, _ok, super_admin_required
from clubsponsor.services import tenants as tenant_svc
from clubsponsor.services.email_logs import load_email_logs
from clubsponsor.services.errors import ValidationFailed
from clubsponsor.services.mailer import send_test_email
from clubsponsor.services.stats import platform_dashboard
from clubsponsor.services.templates_flex import push_global_templates
from clubsponsor.services.tenancy import start_masquerade, stop_masquerade

log = logging.getLogger(__name__)

bp = Blueprint("admin", __name__)

# Export alias for auto-registrar
admin_bp = bp


# ── Dashboard ────────────────────────────────────────────────────────────────
@bp.get("/dashboard")
@super_admin_required
def dashboard():
    return _ok(**platform_dashboard())


# ── Tenants ──────────────────────────────────────────────────────────────────
@bp.get("/tenants")
@super_admin_required
def tenants():
    page = request.args.get("page", 1, type=int)
    return _ok(**tenant_svc.list_tenants(request.args.get("q"), page=page))


@bp.post("/tenants")
@super_admin_required
def create_tenant():
    form = validated(TenantCreateForm, _get_payload())
    created = tenant_svc.create_tenant(form, created_by=current_user.id)
    return _ok(201, **created)


@bp.get("/tenants/<int:tenant_id>")
@super_admin_required
def show_tenant(tenant_id: int):
    return _ok(tenant=tenant_svc.get_tenant(tenant_id).to_dict(include_legal=True))


@bp.put("/tenants/<int:tenant_id>")
@super_admin_required
def update_tenant(tenant_id: int):
    tenant = tenant_svc.get_tenant(tenant_id)
    form = validated(TenantUpdateForm, _get_payload())
    tenant_svc.update_tenant(tenant, form)
    return _ok(tenant=tenant.to_dict())


@bp.post("/tenants/<int:tenant_id>/toggle")
@super_admin_required
def toggle_tenant(tenant_id: int):
    tenant = tenant_svc.toggle_status(tenant_svc.get_tenant(tenant_id))
    return _ok(tenant=tenant.to_dict())


@bp.delete("/tenants/<int:tenant_id>")
@super_admin_required
def delete_tenant(tenant_id: int):
    tenant_svc.delete_tenant(tenant_svc.get_tenant(tenant_id))
    return _ok()


# ── Masquerade ───────────────────────────────────────────────────────────────
@bp.post("/tenants/<int:tenant_id>/masquerade")
@super_admin_required
def masquerade(tenant_id: int):
    tenant = start_masquerade(tenant_id, current_user)
    return _ok(tenant=tenant.to_dict(), is_masquerading=True)


@bp.delete("/masquerade")
@super_admin_required
def end_masquerade():
    stop_masquerade()
    return _ok(is_masquerading=False)


# ── Templates / mail ─────────────────────────────────────────────────────────
def _as_int(value, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed("Validation failed.", errors={field: "Must be an integer."})


@bp.post("/templates/push")
@super_admin_required
def push_templates():
    data = _get_payload()
    ids = data.get("tenant_ids")
    tenant_ids = [_as_int(i, "tenant_ids") for i in ids] if isinstance(ids, list) else None
    counts = push_global_templates(str(data.get("mode") or "safe"), tenant_ids, user_id=current_user.id)
    return _ok(**counts)


@bp.post("/email/test")
@super_admin_required
def email_test():
    data = _get_payload()
    to = str(data.get("to") or "").strip()
    if "@" not in to:
        raise ValidationFailed("A recipient email is required.", errors={"to": "Invalid email."})
    tenant = tenant_svc.get_tenant(_as_int(data["tenant_id"], "tenant_id")) if data.get("tenant_id") else None
    entry = send_test_email(to, tenant, user_id=current_user.id)
    return _ok(log=entry.as_dict(), sent=entry.status == "sent")


@bp.get("/email/logs")
@super_admin_required
def email_logs():
    return _ok(**load_email_logs(request.args))
