from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Type, TypeVar

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms.validators import ValidationError

from clubsponsor.services.errors import ValidationFailed

F = TypeVar("F", bound=FlaskForm)

PHONE_RE = re.compile(r"^[\d\s+\-().]+$")
PHONE_MIN_DIGITS = 10


def strip_filter(x):
    return x.strip() if isinstance(x, str) else x


def lower_filter(x):
    return x.strip().lower() if isinstance(x, str) else x


def phone_ok(value: str) -> bool:
    return bool(PHONE_RE.match(value)) and sum(c.isdigit() for c in value) >= PHONE_MIN_DIGITS


def validate_phone(form, field) -> None:
    if field.data and not phone_ok(field.data):
        raise ValidationError("Invalid phone number (at least 10 digits).")


def _formdata(payload: Mapping[str, Any]) -> MultiDict:
    md: MultiDict = MultiDict()
    for k, v in payload.items():
        if v is None:
            continue
        if isinstance(v, bool):
            md.add(k, "y" if v else "false")
        else:
            md.add(k, str(v))
    return md


def bind_form(form_cls: Type[F], payload: Mapping[str, Any]) -> F:
    """Instantiate a form from a JSON-ish payload (CSRF handled by the blueprint)."""
    return form_cls(formdata=_formdata(payload), meta={"csrf": False})


def validated(form_cls: Type[F], payload: Mapping[str, Any]) -> F:
    form = bind_form(form_cls, payload)
    if not form.validate():
        raise ValidationFailed("Validation failed.", errors=_flat_errors(form.errors))
    return form


def _flat_errors(errors: Mapping[str, Any]) -> Dict[str, str]:
    return {k: (v[0] if isinstance(v, (list, tuple)) and v else str(v)) for k, v in errors.items()}
