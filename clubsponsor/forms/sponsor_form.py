from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Email, Length, Optional

from clubsponsor.forms import lower_filter, strip_filter, validate_phone
from clubsponsor.models.sponsor import SPONSOR_SEGMENTS


class SponsorForm(FlaskForm):
    """Sponsor contact form (club side)."""

    email = StringField(
        "Email",
        validators=[
            DataRequired(message="Email is required."),
            Email(message="Please enter a valid email address."),
        ],
        filters=[lower_filter],
    )
    company = StringField(
        "Company",
        validators=[Optional(), Length(min=2, max=160, message="Company must be at least 2 characters.")],
        filters=[strip_filter],
    )
    contact_name = StringField(
        "Contact name",
        validators=[Optional(), Length(min=2, max=160, message="Name must be at least 2 characters.")],
        filters=[strip_filter],
    )
    phone = StringField(
        "Phone",
        validators=[Optional(), Length(max=40), validate_phone],
        filters=[strip_filter],
    )
    segment = StringField(
        "Segment",
        validators=[Optional(), AnyOf(list(SPONSOR_SEGMENTS), message="Unknown segment.")],
        filters=[lower_filter],
    )
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=5000)])
