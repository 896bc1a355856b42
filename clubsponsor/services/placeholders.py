"""
Email placeholders: the catalogue shown in the template editor, example
values for previews, and the `{{name}}` substitution itself.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional

PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")

PLACEHOLDERS: Dict[str, Dict[str, str]] = {
    "club_name": {"label": "Club name", "description": "Name of the club sending the email"},
    "campaign_title": {"label": "Campaign title", "description": "Title of the sponsorship campaign"},
    "invite_link": {"label": "Invitation link", "description": "Personal link to answer the invitation"},
    "deadline": {"label": "Deadline", "description": "Campaign answer deadline"},
    "sponsor_name": {"label": "Sponsor name", "description": "Contact name of the sponsor"},
    "sponsor_company": {"label": "Sponsor company", "description": "Company of the sponsor"},
    "amount_hint": {"label": "Suggested amount", "description": "Indicative yearly price"},
    "footfall": {"label": "Daily footfall", "description": "Estimated daily visitors in front of the screen"},
    "screen_type": {"label": "Screen type", "description": "Kind of screen or display"},
    "campaign_objective": {"label": "Campaign objective", "description": "Fundraising target in euros"},
    "pledge_amount": {"label": "Pledged amount", "description": "Amount pledged by the sponsor"},
    "response_status": {"label": "Response", "description": "Sponsor answer (yes / maybe / no)"},
    "club_contact_name": {"label": "Club contact", "description": "Name of the club contact person"},
    "club_contact_email": {"label": "Club email", "description": "Contact email of the club"},
    "club_contact_phone": {"label": "Club phone", "description": "Contact phone of the club"},
}

DEFAULT_EXAMPLE_VALUES: Dict[str, str] = {
    "club_name": "FC Example",
    "campaign_title": "LED Screens 2025",
    "invite_link": "https://app.example.com/invite/abc123",
    "deadline": "2025-12-31",
    "sponsor_name": "Jean Dupont",
    "sponsor_company": "ABC Company",
    "amount_hint": "2500",
    "footfall": "5000",
    "screen_type": "Outdoor LED",
    "campaign_objective": "50000",
    "pledge_amount": "3000",
    "response_status": "Yes, I'm in",
    "club_contact_name": "Marie Martin",
    "club_contact_email": "contact@fcexample.fr",
    "club_contact_phone": "+33 6 12 34 56 78",
}

RESPONSE_LABELS: Dict[str, str] = {
    "yes": "Yes, I'm in",
    "maybe": "Maybe",
    "no": "No, not this time",
}


def apply_placeholders(text: Optional[str], values: Mapping[str, Any]) -> str:
    """Replace every `{{key}}`; keys missing from `values` become ''."""

    def _sub(m: re.Match) -> str:
        key = m.group(1)
        if key not in values or values[key] is None:
            return ""
        return str(values[key])

    return PLACEHOLDER_RE.sub(_sub, text or "")


def used_placeholders(text: Optional[str]) -> list[str]:
    """Distinct placeholder names referenced by `text`, in order of appearance."""
    seen: Dict[str, None] = {}
    for m in PLACEHOLDER_RE.finditer(text or ""):
        seen.setdefault(m.group(1), None)
    return list(seen)


def _money(value: Any) -> str:
    if value is None or value == "":
        return ""
    amount = float(value)
    return f"{amount:,.0f}".replace(",", " ")


# ─────────────────────────────────────────────────────────────
# Variable builders
# ─────────────────────────────────────────────────────────────
def club_values(tenant) -> Dict[str, str]:
    if tenant is None:
        return {}
    return {
        "club_name": tenant.name or "",
        # No contact person is stored per club.
        "club_contact_name": "",
        "club_contact_email": tenant.email_contact or "",
        "club_contact_phone": tenant.phone or "",
    }


def invitation_values(tenant, campaign, sponsor, invite_link: str) -> Dict[str, str]:
    values = club_values(tenant)
    values.update(
        {
            "campaign_title": campaign.title,
            "invite_link": invite_link,
            "sponsor_name": sponsor.display_name,
            "sponsor_company": sponsor.company or "",
            "amount_hint": _money(campaign.annual_price_hint_euros),
            "footfall": str(campaign.daily_footfall_estimate or ""),
            "screen_type": campaign.screen_type_label,
            "campaign_objective": _money(campaign.objective_euros),
        }
    )
    return values


def reminder_values(tenant, campaign, sponsor, invite_link: str) -> Dict[str, str]:
    values = invitation_values(tenant, campaign, sponsor, invite_link)
    values["deadline"] = campaign.deadline.strftime("%d/%m/%Y") if campaign.deadline else ""
    return values


def confirmation_values(tenant, campaign, pledge) -> Dict[str, str]:
    values = club_values(tenant)
    values.update(
        {
            "campaign_title": campaign.title,
            "sponsor_name": pledge.sponsor_name or "",
            "sponsor_company": pledge.sponsor_company or "",
            "response_status": RESPONSE_LABELS.get(pledge.status, pledge.status),
            "pledge_amount": _money(pledge.amount_euros) if pledge.status == "yes" else "",
        }
    )
    return values
