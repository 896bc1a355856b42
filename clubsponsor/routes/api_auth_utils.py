# clubsponsor/routes/api_auth_utils.py
# ─────────────────────────────────────────────────────────────────────────────
# 🔐 Auth + tenant context + JSON helpers shared by the API blueprints
# ─────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Dict, List, Optional, Set, Tuple

import jwt  # PyJWT
from flask import current_app, g, jsonify, make_response, request
from flask_login import current_user
from werkzeug.exceptions import BadRequest, Unauthorized

from clubsponsor.services.errors import Forbidden
from clubsponsor.services.tenancy import current_tenant, is_read_only, start_masquerade

log = logging.getLogger(__name__)

READ_ONLY_MESSAGE = "This club is suspended: read-only mode."


def _cfg(name: str, default: Any = None) -> Any:
    return current_app.config.get(name, default)


# =============================================================================
# Token Helpers
# =============================================================================


def _api_tokens() -> Set[str]:
    """Return static API tokens from config (CSV)."""
    raw = str(_cfg("API_TOKENS", "") or "")
    return {t.strip() for t in raw.split(",") if t.strip()}


def _bearer_token() -> Optional[str]:
    """Extract bearer token from request headers."""
    h = request.headers.get("Authorization", "")
    return h.split(" ", 1)[1].strip() if h.lower().startswith("bearer ") else None


def _token_scopes_from_claims(claims: Dict[str, Any]) -> Set[str]:
    """Extract scopes from common JWT claim fields."""
    if isinstance(claims.get("scope"), str):
        return set(claims["scope"].split())
    if isinstance(claims.get("scopes"), (list, tuple)):
        return set(map(str, claims["scopes"]))
    return set()


def _verify_bearer_token(tok: str) -> Tuple[str, Set[str]]:
    """
    Verify bearer token as either:
    1. Static API token (full scope).
    2. HS-signed JWT when JWT_SECRET is configured.
    """
    if tok in _api_tokens():
        return f"apikey:{tok[-4:]}", {"*"}

    jwt_secret = str(_cfg("JWT_SECRET", "") or "")
    jwt_alg = str(_cfg("JWT_ALG", "HS256") or "HS256")
    if jwt_secret:
        try:
            claims = jwt.decode(tok, key=jwt_secret, algorithms=[jwt_alg])
        except jwt.PyJWTError as exc:
            log.info("Rejected bearer token: %s", exc)
            raise Unauthorized("Invalid bearer token.")
        return str(claims.get("sub", "jwt")), _token_scopes_from_claims(claims)

    raise Unauthorized("Invalid or unsupported bearer token.")


def require_bearer(optional: bool = False, scopes: Optional[List[str]] = None):
    """
    Decorator to enforce bearer authentication + scope checking.
    Example:
        @bp.post("/jobs/run")
        @require_bearer(scopes=["jobs:run"])
        def run_jobs(): ...
    """
    needed = set(scopes or [])

    def decorator(fn):
        @wraps(fn)
        def wrapped(*args, **kwargs):
            tok = _bearer_token()
            if not tok:
                if optional:
                    return fn(*args, **kwargs)
                raise Unauthorized("Missing bearer token.")

            subject, granted = _verify_bearer_token(tok)
            g.api_subject = subject
            g.api_scopes = granted

            if needed and not (needed.issubset(granted) or "*" in granted):
                raise Forbidden("Insufficient scope.")

            return fn(*args, **kwargs)

        return wrapped

    return decorator


# =============================================================================
# Session auth + tenant context
# =============================================================================


def _require_login() -> None:
    if not getattr(current_user, "is_authenticated", False):
        raise Unauthorized("Authentication required.")


def club_required(write: bool = False):
    """
    Resolve the effective tenant into `g.tenant` before the view runs.

    Super-admins may pass `?as_tenant=<id>` to start viewing a club. Write
    endpoints refuse suspended tenants.
    """

    def decorator(fn):
        @wraps(fn)
        def wrapped(*args, **kwargs):
            _require_login()

            as_tenant = request.args.get("as_tenant", type=int)
            if as_tenant and current_user.is_super_admin:
                start_masquerade(as_tenant, current_user)

            tenant = current_tenant(current_user)
            if tenant is None:
                raise Forbidden("No club selected.")
            if write and is_read_only(tenant):
                raise Forbidden(READ_ONLY_MESSAGE)

            g.tenant = tenant
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def super_admin_required(fn):
    @wraps(fn)
    def wrapped(*args, **kwargs):
        _require_login()
        if not current_user.is_super_admin:
            raise Forbidden("Super-admin access required.")
        return fn(*args, **kwargs)

    return wrapped


# =============================================================================
# JSON + Validation Helpers
# =============================================================================


def _json(
    data: Dict[str, Any],
    status: int = 200,
    etag: Optional[str] = None,
    max_age: int = 0,
):
    """Return JSON with optional cache + ETag headers."""
    resp = make_response(jsonify(data), status)
    if request.method == "GET":
        resp.headers.setdefault("Cache-Control", f"private, max-age={max_age}" if max_age else "no-store")
        if etag:
            resp.set_etag(etag)
    return resp


def _ok(status: int = 200, **data: Any):
    return _json({"ok": True, **data}, status)


def _get_payload() -> Dict[str, Any]:
    """JSON body, else form fields (query args fill gaps)."""
    data: Dict[str, Any] = dict(request.args.items())
    if request.is_json:
        body = request.get_json(silent=True)
        if body is not None and not isinstance(body, dict):
            raise BadRequest("JSON body must be an object.")
        data.update(body or {})
    else:
        data.update(request.form.to_dict())
    data.pop("as_tenant", None)
    return data

