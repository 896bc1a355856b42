"""
Tenant context for the current request.

  effective tenant = masqueraded tenant (super-admins only) or the user's own
  masquerading     = super-admin with a masquerade tenant in the session
  read-only        = the effective tenant is suspended (status "inactive")
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import session
from flask_login import current_user

from clubsponsor.extensions import db
from clubsponsor.models import Tenant
from clubsponsor.services.errors import Forbidden, NotFound

log = logging.getLogger(__name__)

MASQUERADE_SESSION_KEY = "as_tenant_id"


def _user(user=None):
    if user is not None:
        return user
    if current_user and getattr(current_user, "is_authenticated", False):
        return current_user
    return None


def masquerade_tenant_id() -> Optional[int]:
    raw = session.get(MASQUERADE_SESSION_KEY)
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def start_masquerade(tenant_id: int, user=None) -> Tenant:
    u = _user(user)
    if u is None or not u.is_super_admin:
        raise Forbidden("Only super-admins can view a club as its admin.")
    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFound("Tenant not found.")
    session[MASQUERADE_SESSION_KEY] = tenant.id
    log.info("User %s masquerading as tenant %s", u.id, tenant.id)
    return tenant


def stop_masquerade() -> None:
    session.pop(MASQUERADE_SESSION_KEY, None)


def effective_tenant_id(user=None) -> Optional[int]:
    u = _user(user)
    if u is None:
        return None
    if u.is_super_admin:
        return masquerade_tenant_id() or u.tenant_id
    return u.tenant_id


def is_masquerading(user=None) -> bool:
    u = _user(user)
    return bool(u is not None and u.is_super_admin and masquerade_tenant_id())


def current_tenant(user=None) -> Optional[Tenant]:
    tid = effective_tenant_id(user)
    return db.session.get(Tenant, tid) if tid else None


def is_read_only(tenant: Optional[Tenant]) -> bool:
    return tenant is not None and tenant.status == "inactive"


def context_dict(user=None) -> Dict[str, Any]:
    tenant = current_tenant(user)
    return {
        "tenant": tenant.to_dict() if tenant else None,
        "effective_tenant_id": tenant.id if tenant else None,
        "is_masquerading": is_masquerading(user),
        "read_only": is_read_only(tenant),
    }
