"""
Rendering and delivery of club emails.

Templates are looked up tenant-first through services.templates_flex; when a
key has no row at all the built-in defaults below are used so a fresh
database can still send mail.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from email.utils import parseaddr
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from flask import current_app

from clubsponsor.extensions import build_message, db, send_email_async, send_with_retry
from clubsponsor.models import EmailLog
from clubsponsor.services.email_legal import append_legal, html_to_text, inject_signature_and_rgpd
from clubsponsor.services.errors import ServiceError
from clubsponsor.services.placeholders import DEFAULT_EXAMPLE_VALUES, apply_placeholders, club_values
from clubsponsor.services.templates_flex import resolve_template

log = logging.getLogger(__name__)

DEFAULT_TEMPLATES: Dict[str, Dict[str, str]] = {
    "invitation": {
        "subject": "{{club_name}}: sponsorship opportunity for {{campaign_title}}",
        "html": (
            "<p>Hello {{sponsor_name}},</p>"
            "<p>{{club_name}} is looking for partners for <strong>{{campaign_title}}</strong> "
            "({{screen_type}}, about {{footfall}} visitors a day).</p>"
            "<p>Suggested yearly contribution: {{amount_hint}} €.</p>"
            '<p><a href="{{invite_link}}">Give us your answer</a></p>'
        ),
    },
    "reminder": {
        "subject": "Reminder: {{campaign_title}}",
        "html": (
            "<p>Hello {{sponsor_name}},</p>"
            "<p>We have not heard back from you about <strong>{{campaign_title}}</strong> yet.</p>"
            '<p><a href="{{invite_link}}">Answer in one minute</a></p>'
        ),
    },
    "reminder_5d": {
        "subject": "Reminder: {{campaign_title}}",
        "html": (
            "<p>Hello {{sponsor_name}},</p>"
            "<p>A few days ago {{club_name}} invited you to support <strong>{{campaign_title}}</strong>.</p>"
            '<p><a href="{{invite_link}}">Give us your answer</a></p>'
        ),
    },
    "reminder_10d": {
        "subject": "10 days left: {{campaign_title}}",
        "html": (
            "<p>Hello {{sponsor_name}},</p>"
            "<p>Answers for <strong>{{campaign_title}}</strong> close on {{deadline}}.</p>"
            '<p><a href="{{invite_link}}">Give us your answer</a></p>'
        ),
    },
    "confirmation": {
        "subject": "Thank you for your answer: {{campaign_title}}",
        "html": (
            "<p>Hello {{sponsor_name}},</p>"
            "<p>We recorded your answer for <strong>{{campaign_title}}</strong>: {{response_status}}.</p>"
            "<p>Amount: {{pledge_amount}} €</p>"
        ),
    },
    "welcome": {
        "subject": "Welcome to ClubSponsor, {{club_name}}",
        "html": (
            "<p>Your club space for <strong>{{club_name}}</strong> is ready.</p>"
            "<p>Sign in with {{admin_email}} at <a href=\"{{login_url}}\">{{login_url}}</a>.</p>"
        ),
    },
    "test": {
        "subject": "[Test] {{club_name}}",
        "html": "<p>This is a test email sent from ClubSponsor.</p>",
    },
}


@dataclass
class RenderedEmail:
    key: str
    subject: str
    html: str
    text: str
    source: str
    template_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "subject": self.subject,
            "html": self.html,
            "text": self.text,
            "source": self.source,
            "template_id": self.template_id,
        }


def _template_source(key: str, tenant) -> Tuple[str, str, str, Optional[int]]:
    row = resolve_template(tenant.id if tenant is not None else None, key)
    if row is not None:
        return row["subject"], row["html"], row["scope"], row["id"]
    default = DEFAULT_TEMPLATES.get(key)
    if default is None:
        raise ServiceError(f"No email template for '{key}'.", status=500)
    return default["subject"], default["html"], "builtin", None


def render_email(key: str, tenant, values: Mapping[str, Any], *, with_legal: bool = True) -> RenderedEmail:
    subject, html, source, template_id = _template_source(key, tenant)
    subject = apply_placeholders(subject, values)
    html = apply_placeholders(html, values)
    text = html_to_text(html)
    if with_legal:
        html, text = inject_signature_and_rgpd(html, text, tenant)
    return RenderedEmail(key=key, subject=subject, html=html, text=text, source=source, template_id=template_id)


def preview_template(subject: str, html: str, tenant, values: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
    """Editor preview: example values, caller overrides, compact legal footer."""
    merged: Dict[str, Any] = dict(DEFAULT_EXAMPLE_VALUES)
    merged.update(club_values(tenant))
    merged.update(values or {})
    body = append_legal(apply_placeholders(html, merged), tenant)
    return {
        "subject": apply_placeholders(subject, merged),
        "html": body,
        "text": html_to_text(body),
    }


# ─────────────────────────────────────────────────────────────
# Delivery
# ─────────────────────────────────────────────────────────────
def sender_for(tenant) -> Union[str, Tuple[str, str]]:
    default = current_app.config.get("MAIL_DEFAULT_SENDER") or "no-reply@localhost"
    if tenant is None:
        return default
    _, address = parseaddr(default)
    if tenant.email_domain and tenant.email_domain_verified:
        address = f"no-reply@{tenant.email_domain}"
    return (tenant.name, address)


def deliver(rendered: RenderedEmail, to: str, *, tenant=None) -> None:
    """Send synchronously; raises on final failure."""
    msg = build_message(
        rendered.subject,
        [to],
        html=rendered.html,
        body=rendered.text,
        sender=sender_for(tenant),
        reply_to=getattr(tenant, "email_contact", None) or None,
    )
    send_with_retry(msg, max_retries=int(current_app.config.get("MAIL_MAX_RETRIES", 2)))


def log_email(
    to: str,
    subject: Optional[str],
    status: str,
    *,
    tenant_id: Optional[int] = None,
    user_id: Optional[int] = None,
    template_key: Optional[str] = None,
    error: Optional[str] = None,
) -> EmailLog:
    entry = EmailLog(
        to_email=to,
        subject=subject,
        status=status,
        tenant_id=tenant_id,
        user_id=user_id,
        template_key=template_key,
        error=error,
    )
    db.session.add(entry)
    return entry


def send_test_email(to: str, tenant, *, key: str = "test", user_id: Optional[int] = None) -> EmailLog:
    values = dict(DEFAULT_EXAMPLE_VALUES)
    values.update(club_values(tenant))
    rendered = render_email(key, tenant, values)
    tenant_id = tenant.id if tenant is not None else None
    try:
        deliver(rendered, to, tenant=tenant)
    except Exception as exc:
        log.warning("Test email to %s failed: %s", to, exc)
        entry = log_email(to, rendered.subject, "failed", tenant_id=tenant_id, user_id=user_id,
                          template_key=key, error=str(exc))
    else:
        entry = log_email(to, rendered.subject, "sent", tenant_id=tenant_id, user_id=user_id, template_key=key)
    db.session.commit()
    return entry


def send_welcome_email(tenant, admin_email: str, *, user_id: Optional[int] = None) -> None:
    """Welcome mail for a new club admin; async unless MAIL_ASYNC is off."""
    app = current_app._get_current_object()
    values = club_values(tenant)
    values.update(
        {
            "admin_email": admin_email,
            "login_url": f"{app.config.get('PUBLIC_BASE_URL', '')}/login",
        }
    )
    rendered = render_email("welcome", tenant, values)
    tenant_id = tenant.id

    if not app.config.get("MAIL_ASYNC", True):
        try:
            deliver(rendered, admin_email, tenant=None)
        except Exception as exc:
            log.warning("Welcome email to %s failed: %s", admin_email, exc)
            log_email(admin_email, rendered.subject, "failed", tenant_id=tenant_id, user_id=user_id,
                      template_key="welcome", error=str(exc))
        else:
            log_email(admin_email, rendered.subject, "sent", tenant_id=tenant_id, user_id=user_id,
                      template_key="welcome")
        db.session.commit()
        return

    def _record(ok: bool, error: Optional[str]) -> None:
        log_email(admin_email, rendered.subject, "sent" if ok else "failed", tenant_id=tenant_id,
                  user_id=user_id, template_key="welcome", error=error)
        db.session.commit()

    send_email_async(
        app,
        rendered.subject,
        [admin_email],
        html=rendered.html,
        body=rendered.text,
        sender=app.config.get("MAIL_DEFAULT_SENDER"),
        on_done=_record,
        max_retries=int(app.config.get("MAIL_MAX_RETRIES", 2)),
    )
