"""
Centralized validation helpers shared by the service layer.
"""

from marshmallow import ValidationError as SchemaValidationError

from uride.services.errors import ValidationError


def load_or_raise(schema, data, **kwargs):
    """Load `data` with a marshmallow schema, raising our ValidationError on failure."""
    try:
        return schema.load(data, **kwargs)
    except SchemaValidationError as err:
        raise schema_errors_to_validation_error(err)


def schema_errors_to_validation_error(err):
    """Flatten a marshmallow error into a ValidationError naming the first bad field."""
    messages = err.messages if isinstance(err.messages, dict) else {'_schema': err.messages}
    field, detail = next(iter(messages.items()))
    path = [field]
    while isinstance(detail, dict):
        field, detail = next(iter(detail.items()))
        path.append(str(field))
    text = detail[0] if isinstance(detail, list) and detail else str(detail)
    dotted = '.'.join(str(p) for p in path)
    return ValidationError(f"{dotted}: {text}", field=dotted)
