"""
JSON Schema validation service.

Collects every error rather than failing on the first one, and reports each
against the field it concerns so callers can re-prompt field by field.
"""

from __future__ import annotations

from typing import Any

import jsonschema

from phc_screening.workflow.results import FieldError

# Validators whose message names the offending property in quotes
_NAMED_PROPERTY_VALIDATORS = {"required", "dependencies", "additionalProperties"}


def _field_for(error: jsonschema.ValidationError) -> str:
    path = ".".join(str(p) for p in error.absolute_path)
    if error.validator in _NAMED_PROPERTY_VALIDATORS and "'" in error.message:
        name = error.message.split("'")[1]
        return f"{path}.{name}" if path else name
    return path or "$"


def drop_empty(data: dict[str, Any]) -> dict[str, Any]:
    """Treat explicit nulls as absent fields."""
    return {k: v for k, v in data.items() if v is not None}


def validate_against_schema(data: Any, schema: dict[str, Any]) -> list[FieldError]:
    """
    Validate a payload against a JSON schema.
    Returns one FieldError per problem (empty list = valid), sorted by field.
    """
    validator = jsonschema.Draft7Validator(schema)
    errors = [
        FieldError(field=_field_for(error), message=error.message)
        for error in validator.iter_errors(data)
    ]
    return sorted(errors, key=lambda e: (e.field, e.message))
