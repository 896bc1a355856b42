"""
Email template editor API.

Club admins edit their own overrides and read the global set. A super-admin
outside masquerade edits the global templates (tenant_id NULL).
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, request
from flask_login import current_user

from clubsponsor.routes.api_auth_utils import READ_ONLY_MESSAGE, _get_payload, _json, _ok, _require_login
from clubsponsor.services.errors import Forbidden, ValidationFailed
from clubsponsor.services.mailer import preview_template
from clubsponsor.services.placeholders import DEFAULT_EXAMPLE_VALUES, PLACEHOLDERS, used_placeholders
from clubsponsor.services.templates_flex import (
    TemplateInput,
    detect_mode,
    get_template_flex,
    list_versions,
    load_templates_flex,
    rollback_to_version,
    save_template_flex,
)
from clubsponsor.services.tenancy import current_tenant, is_read_only, start_masquerade

bp = Blueprint("templates", __name__)


def _scope(write: bool = False) -> Tuple[Optional[Any], Optional[int]]:
    """(tenant, tenant_id) the caller works on; (None, None) means the global set."""
    _require_login()
    as_tenant = request.args.get("as_tenant", type=int)
    if as_tenant and current_user.is_super_admin:
        start_masquerade(as_tenant, current_user)

    tenant = current_tenant(current_user)
    if tenant is None and not current_user.is_super_admin:
        raise Forbidden("No club selected.")
    if write and is_read_only(tenant):
        raise Forbidden(READ_ONLY_MESSAGE)
    return tenant, (tenant.id if tenant else None)


def _owned(template_id: int, tenant_id: Optional[int], *, write: bool) -> Dict[str, Any]:
    row, _ = get_template_flex(template_id)
    if row["tenant_id"] is None:
        if write and tenant_id is not None:
            raise Forbidden("Global templates are read-only for clubs; save a club copy instead.")
        return row
    if row["tenant_id"] != tenant_id:
        raise Forbidden("This template belongs to another club.")
    return row


def _save_result(res):
    data = res.to_dict()
    if res.ok:
        return _json(data, 201 if res.action == "insert" else 200)
    return _json(data, res.error.status if res.error else 500)


@bp.get("/")
def index():
    _, tenant_id = _scope()
    res = load_templates_flex(tenant_id)
    if not res.ok:
        return _json(res.to_dict(), res.error.status)
    return _json(res.to_dict())


@bp.get("/mode")
def mode():
    _scope()
    return _ok(mode=detect_mode())


@bp.get("/placeholders")
def placeholders():
    _require_login()
    return _ok(placeholders=PLACEHOLDERS, examples=DEFAULT_EXAMPLE_VALUES)


@bp.get("/<int:template_id>")
def show(template_id: int):
    _, tenant_id = _scope()
    row = _owned(template_id, tenant_id, write=False)
    row["placeholders"] = used_placeholders(f"{row['subject']} {row['html']}")
    return _ok(template=row)


def _input_from(data: Dict[str, Any], **extra) -> TemplateInput:
    key = str(data.get("key") or data.get("type") or "").strip()
    subject = str(data.get("subject") or "").strip()
    errors = {}
    if not key:
        errors["key"] = "Required."
    if not subject:
        errors["subject"] = "Required."
    if errors:
        raise ValidationFailed("Validation failed.", errors=errors)
    return TemplateInput(
        key=key,
        subject=subject,
        html=str(data.get("html") or data.get("html_body") or ""),
        text_body=data.get("text_body"),
        updated_by=current_user.id,
        **extra,
    )


@bp.post("/")
def create():
    _, tenant_id = _scope(write=True)
    return _save_result(save_template_flex(_input_from(_get_payload(), tenant_id=tenant_id)))


@bp.put("/<int:template_id>")
def update(template_id: int):
    _, tenant_id = _scope(write=True)
    _owned(template_id, tenant_id, write=True)
    return _save_result(save_template_flex(_input_from(_get_payload(), id=template_id)))


@bp.get("/<int:template_id>/versions")
def versions(template_id: int):
    _, tenant_id = _scope()
    _owned(template_id, tenant_id, write=False)
    return _ok(versions=[v.to_dict() for v in list_versions(template_id)])


@bp.post("/<int:template_id>/versions/<int:version_id>/rollback")
def rollback(template_id: int, version_id: int):
    _, tenant_id = _scope(write=True)
    _owned(template_id, tenant_id, write=True)
    return _save_result(rollback_to_version(template_id, version_id, user_id=current_user.id))


@bp.post("/preview")
def preview():
    tenant, _ = _scope()
    data = _get_payload()
    values = data.get("values") if isinstance(data.get("values"), dict) else {}
    rendered = preview_template(
        str(data.get("subject") or ""),
        str(data.get("html") or ""),
        tenant,
        values,
    )
    return _ok(preview=rendered)
