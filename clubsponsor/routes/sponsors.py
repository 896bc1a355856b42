"""Sponsor directory API for the current club, including CSV import."""

from __future__ import annotations

from flask import Blueprint, g, request

from clubsponsor.forms import validated
from clubsponsor.forms.sponsor_form import SponsorForm
from clubsponsor.routes.api_auth_utils import _get_payload, _ok, club_required
from clubsponsor.services import sponsors as sponsor_svc
from clubsponsor.services.csv_import import import_sponsors
from clubsponsor.services.errors import ValidationFailed

bp = Blueprint("sponsors", __name__)


@bp.get("/")
@club_required()
def index():
    rows = sponsor_svc.list_sponsors(
        g.tenant.id,
        q=request.args.get("q"),
        segment=request.args.get("segment"),
    )
    return _ok(sponsors=[s.to_dict() for s in rows], total=len(rows))


@bp.post("/")
@club_required(write=True)
def create():
    form = validated(SponsorForm, _get_payload())
    sponsor = sponsor_svc.create_sponsor(g.tenant.id, form)
    return _ok(201, sponsor=sponsor.to_dict())


@bp.get("/<int:sponsor_id>")
@club_required()
def show(sponsor_id: int):
    return _ok(sponsor=sponsor_svc.get_sponsor(g.tenant.id, sponsor_id).to_dict())


@bp.put("/<int:sponsor_id>")
@club_required(write=True)
def update(sponsor_id: int):
    sponsor = sponsor_svc.get_sponsor(g.tenant.id, sponsor_id)
    form = validated(SponsorForm, _get_payload())
    sponsor_svc.update_sponsor(sponsor, form)
    return _ok(sponsor=sponsor.to_dict())


@bp.delete("/<int:sponsor_id>")
@club_required(write=True)
def destroy(sponsor_id: int):
    sponsor_svc.delete_sponsor(sponsor_svc.get_sponsor(g.tenant.id, sponsor_id))
    return _ok()


@bp.post("/import")
@club_required(write=True)
def import_csv():
    upload = request.files.get("file")
    if upload is not None and upload.filename:
        content = upload.read()
    else:
        content = request.get_data()
    if not content:
        raise ValidationFailed("Choose a CSV file to import.", errors={"file": "Required."})
    result = import_sponsors(g.tenant.id, content)
    return _ok(**result.to_dict())
