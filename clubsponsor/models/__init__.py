from __future__ import annotations

from clubsponsor.extensions import db

from .campaign import SCREEN_TYPES, Campaign
from .email import EMAIL_EVENT_TYPES, EmailEvent, EmailLog, EmailTemplate, EmailTemplateVersion
from .invitation import Invitation
from .mixins import TimestampMixin
from .pledge import PLEDGE_STATUSES, Pledge
from .scenario import Scenario
from .scheduling import Reminder, ScheduledJob
from .sponsor import SPONSOR_SEGMENTS, Sponsor
from .tenant import Tenant
from .user import AppUser

__all__ = [
    "db",
    "TimestampMixin",
    "SCREEN_TYPES",
    "SPONSOR_SEGMENTS",
    "PLEDGE_STATUSES",
    "EMAIL_EVENT_TYPES",
    "Tenant",
    "AppUser",
    "Campaign",
    "Sponsor",
    "Invitation",
    "Pledge",
    "Scenario",
    "EmailTemplate",
    "EmailTemplateVersion",
    "EmailEvent",
    "EmailLog",
    "Reminder",
    "ScheduledJob",
]
