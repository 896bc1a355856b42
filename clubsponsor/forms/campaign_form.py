from datetime import date

from flask_wtf import FlaskForm
from wtforms import DateField, DecimalField, IntegerField, StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Length, NumberRange, Optional, ValidationError

from clubsponsor.forms import strip_filter
from clubsponsor.models.campaign import SCREEN_TYPES


class CampaignForm(FlaskForm):
    """Campaign create/update form."""

    title = StringField(
        "Title",
        validators=[
            DataRequired(message="Title is required."),
            Length(min=3, max=100, message="Title must be between 3 and 100 characters."),
        ],
        filters=[strip_filter],
    )
    location = StringField(
        "Location",
        validators=[
            DataRequired(message="Location is required."),
            Length(min=2, max=160, message="Location must be at least 2 characters."),
        ],
        filters=[strip_filter],
    )
    objective_amount = DecimalField(
        "Objective (EUR)",
        validators=[DataRequired(message="Objective is required.")],
        places=2,
    )
    screen_type = StringField(
        "Screen type",
        validators=[Optional(), AnyOf(list(SCREEN_TYPES), message="Unknown screen type.")],
    )
    annual_price_hint = DecimalField(
        "Suggested yearly price (EUR)",
        validators=[Optional(), NumberRange(min=0, message="Price cannot be negative.")],
        places=2,
    )
    daily_footfall_estimate = IntegerField(
        "Daily footfall",
        validators=[Optional(), NumberRange(min=0, message="Footfall cannot be negative.")],
    )
    deadline = DateField("Deadline", validators=[Optional()], format="%Y-%m-%d")
    cover_image_url = StringField("Cover image", validators=[Optional(), Length(max=500)])
    description_md = TextAreaField("Description", validators=[Optional(), Length(max=20000)])

    def validate_objective_amount(self, field):
        if field.data is not None and field.data <= 0:
            raise ValidationError("Objective must be a positive amount.")

    def validate_deadline(self, field):
        if field.data and field.data <= date.today():
            raise ValidationError("Deadline must be in the future.")


class ScenarioForm(FlaskForm):
    """Forecast inputs; `name` is only required when saving."""

    price_per_sponsor = IntegerField(
        "Price per sponsor",
        validators=[
            DataRequired(message="Price per sponsor is required."),
            NumberRange(min=100, max=20000, message="Price must be between 100 and 20000."),
        ],
    )
    expected_sponsors = IntegerField(
        "Expected sponsors",
        validators=[Optional(), NumberRange(min=0, max=1000, message="Sponsor count out of range.")],
        default=0,
    )
    name = StringField("Scenario name", validators=[Optional(), Length(max=120)], filters=[strip_filter])
