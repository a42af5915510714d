"""
JSON request validation with Flask-WTF.

API forms subclass ``ApiForm`` and are filled from the request's JSON object
by ``validate_json``.  Field names match the camelCase JSON keys.  CSRF is off
because every state-changing endpoint is authenticated by bearer token rather
than a cookie.
"""
from flask_wtf import FlaskForm
from werkzeug.datastructures import ImmutableMultiDict

from utils.errors import ValidationError, form_errors
from utils.responses import get_json_body


class ApiForm(FlaskForm):

    class Meta:
        csrf = False

    def provided(self, data):
        """``{field: value}`` for the fields present in the raw *data*."""
        return {name: field.data for name, field in self._fields.items() if name in data}


def validate_json(form_class, data=None):
    """Build *form_class* from the JSON body and validate it.

    Nulls and nested objects are left out of the form data; routes read
    nested values from the raw body themselves.  Raises ``ValidationError``
    with per-field messages on failure.
    """
    data = get_json_body() if data is None else data
    formdata = ImmutableMultiDict([
        (key, _as_text(value)) for key, value in data.items()
        if value is not None and not isinstance(value, (dict, list))
    ])
    form = form_class(formdata=formdata)
    if not form.validate():
        raise ValidationError(field_errors=form_errors(form))
    return form


def _as_text(value):
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)
