from flask_wtf import FlaskForm
from wtforms import BooleanField, DecimalField, StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Email, Length, NumberRange, Optional

from clubsponsor.forms import lower_filter, strip_filter, validate_phone
from clubsponsor.models.pledge import PLEDGE_STATUSES


class PledgeResponseForm(FlaskForm):
    """Sponsor answer, from an invitation link or the public campaign page."""

    status = StringField(
        "Response",
        validators=[
            DataRequired(message="Please choose an answer."),
            AnyOf(list(PLEDGE_STATUSES), message="Answer must be yes, maybe or no."),
        ],
        filters=[lower_filter],
    )
    name = StringField(
        "Your name",
        validators=[
            DataRequired(message="Name is required."),
            Length(min=2, max=160, message="Name must be at least 2 characters."),
        ],
        filters=[strip_filter],
    )
    email = StringField(
        "Email",
        validators=[
            DataRequired(message="Email is required."),
            Email(message="Please enter a valid email address."),
        ],
        filters=[lower_filter],
    )
    company = StringField("Company", validators=[Optional(), Length(max=160)], filters=[strip_filter])
    phone = StringField("Phone", validators=[Optional(), Length(max=40), validate_phone], filters=[strip_filter])
    amount = DecimalField(
        "Amount (EUR)",
        validators=[Optional(), NumberRange(min=0, message="Amount cannot be negative.")],
        places=2,
    )
    comment = TextAreaField(
        "Comment",
        validators=[Optional(), Length(max=500, message="Comment must be 500 characters or less.")],
    )
    consent = BooleanField(
        "I agree to be contacted about this campaign",
        validators=[DataRequired(message="Consent is required.")],
    )
    send_copy = BooleanField("Send me a copy")
    # Honeypot: humans never see or fill this field.
    website = StringField("Website")
