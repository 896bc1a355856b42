"""Unauthenticated sponsor-facing endpoints: invitation answers and public campaign pages."""

from __future__ import annotations

import logging

from flask import Blueprint

from clubsponsor.routes.api_auth_utils import _get_payload, _json, _ok
from clubsponsor.services.invitations import (
    invitation_view,
    public_campaign_view,
    respond_to_invitation,
    submit_public_pledge,
)

log = logging.getLogger(__name__)

bp = Blueprint("public", __name__)


@bp.get("/respond/<token>")
def invitation(token: str):
    return _ok(**invitation_view(token))


@bp.post("/respond/<token>")
def respond(token: str):
    result = respond_to_invitation(token, _get_payload())
    return _ok(201, **result)


@bp.get("/p/<slug>")
def campaign_page(slug: str):
    return _json({"ok": True, **public_campaign_view(slug)}, max_age=30)


@bp.post("/p/<slug>")
def campaign_submit(slug: str):
    result = submit_public_pledge(slug, _get_payload())
    if result is None:
        return _ok(201)
    return _ok(201, **result)
