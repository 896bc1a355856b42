"""Current club: context, dashboard, profile/legal settings, test mail, full export."""

from __future__ import annotations

import io

from flask import Blueprint, g, send_file
from flask_login import current_user

from clubsponsor.forms import validated
from clubsponsor.forms.tenant_form import ClubSettingsForm
from clubsponsor.routes.api_auth_utils import _get_payload, _ok, club_required
from clubsponsor.services import exports, stats, tenants
from clubsponsor.services.campaigns import list_campaigns
from clubsponsor.services.errors import ValidationFailed
from clubsponsor.services.mailer import send_test_email
from clubsponsor.services.tenancy import context_dict

bp = Blueprint("club", __name__)


@bp.get("/context")
@club_required()
def context():
    return _ok(**context_dict(current_user))


@bp.get("/dashboard")
@club_required()
def dashboard():
    return _ok(**stats.tenant_dashboard(g.tenant.id))


@bp.get("/settings")
@club_required()
def settings():
    return _ok(club=g.tenant.to_dict(include_legal=True))


@bp.put("/settings")
@club_required(write=True)
def update_settings():
    form = validated(ClubSettingsForm, _get_payload())
    tenants.update_club_settings(g.tenant, form)
    return _ok(club=g.tenant.to_dict(include_legal=True))


@bp.get("/legal")
@club_required()
def legal():
    return _ok(legal=g.tenant.legal_dict(), opt_out_default=bool(g.tenant.opt_out_default))


@bp.put("/legal")
@club_required(write=True)
def update_legal():
    tenants.update_legal(g.tenant, _get_payload())
    return _ok(legal=g.tenant.legal_dict(), opt_out_default=bool(g.tenant.opt_out_default))


@bp.post("/test-email")
@club_required(write=True)
def test_email():
    data = _get_payload()
    to = str(data.get("to") or current_user.email or "").strip()
    if "@" not in to:
        raise ValidationFailed("A recipient email is required.", errors={"to": "Invalid email."})
    entry = send_test_email(to, g.tenant, key=str(data.get("key") or "test"), user_id=current_user.id)
    return _ok(log=entry.as_dict(), sent=entry.status == "sent")


@bp.get("/export.csv")
@club_required()
def export_all():
    filename, content = exports.tenant_csv(g.tenant, list_campaigns(g.tenant.id))
    return send_file(io.BytesIO(content), mimetype="text/csv; charset=utf-8", as_attachment=True,
                     download_name=filename)
