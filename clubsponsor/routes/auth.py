"""Session login for club admins and super-admins."""

from __future__ import annotations

import logging

from flask import Blueprint
from flask_login import current_user, login_user, logout_user
from sqlalchemy import func
from werkzeug.exceptions import Unauthorized

from clubsponsor.models import AppUser
from clubsponsor.routes.api_auth_utils import _get_payload, _ok, _require_login
from clubsponsor.services.errors import ValidationFailed
from clubsponsor.services.tenancy import context_dict, stop_masquerade

log = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

INVALID_CREDENTIALS = "Invalid email or password."


@bp.post("/login")
def login():
    data = _get_payload()
    email = str(data.get("email") or "").strip().lower()
    password = str(data.get("password") or "")
    if not email or not password:
        raise ValidationFailed("Email and password are required.",
                               errors={k: "Required." for k in ("email", "password") if not data.get(k)})

    user = AppUser.query.filter(func.lower(AppUser.email) == email).first()
    if user is None or not user.is_active or not user.check_password(password):
        log.info("Failed login for %s", email)
        raise Unauthorized(INVALID_CREDENTIALS)

    login_user(user, remember=str(data.get("remember", "")).lower() in ("1", "true", "yes", "on"))
    log.info("User %s signed in", user.id)
    return _ok(user=user.to_dict(), context=context_dict(user))


@bp.post("/logout")
def logout():
    stop_masquerade()
    logout_user()
    return _ok()


@bp.get("/me")
def me():
    _require_login()
    return _ok(user=current_user.to_dict(), context=context_dict(current_user))
