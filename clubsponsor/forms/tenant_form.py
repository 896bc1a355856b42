from flask_wtf import FlaskForm
from wtforms import PasswordField, StringField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, Optional

from clubsponsor.forms import lower_filter, strip_filter, validate_phone


class TenantCreateForm(FlaskForm):
    """Super-admin: new club + its first club admin."""

    name = StringField(
        "Club name",
        validators=[DataRequired(message="Club name is required."), Length(max=160)],
        filters=[strip_filter],
    )
    email_contact = StringField(
        "Contact email",
        validators=[DataRequired(message="Contact email is required."), Email(message="Invalid contact email.")],
        filters=[lower_filter],
    )
    admin_email = StringField(
        "Admin email",
        validators=[DataRequired(message="Admin email is required."), Email(message="Invalid admin email.")],
        filters=[lower_filter],
    )
    admin_password = PasswordField(
        "Admin password",
        validators=[
            DataRequired(message="Password is required."),
            Length(min=6, message="Password must be at least 6 characters."),
        ],
    )
    admin_name = StringField("Admin name", validators=[Optional(), Length(max=160)], filters=[strip_filter])
    logo_url = StringField("Logo URL", validators=[Optional(), Length(max=500)], filters=[strip_filter])


class TenantUpdateForm(FlaskForm):
    name = StringField(
        "Club name",
        validators=[DataRequired(message="Club name is required."), Length(max=160)],
        filters=[strip_filter],
    )
    email_contact = StringField(
        "Contact email",
        validators=[DataRequired(message="Contact email is required."), Email(message="Invalid contact email.")],
        filters=[lower_filter],
    )
    logo_url = StringField("Logo URL", validators=[Optional(), Length(max=500)], filters=[strip_filter])


class ClubSettingsForm(TenantUpdateForm):
    """Club-side profile settings."""

    address = TextAreaField("Address", validators=[Optional(), Length(max=1000)])
    phone = StringField("Phone", validators=[Optional(), Length(max=40), validate_phone], filters=[strip_filter])
    primary_color = StringField("Primary color", validators=[Optional(), Length(max=20)])
    secondary_color = StringField("Secondary color", validators=[Optional(), Length(max=20)])
    email_domain = StringField("Email domain", validators=[Optional(), Length(max=255)], filters=[lower_filter])
