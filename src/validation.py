"""
Schema Validation - JSON Schema validation of declarative resource specs.

Resource schemas are declared as Attribute definitions; this module turns
them into Draft 7 JSON Schemas, validates specs against them, and applies
attribute defaults.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft7Validator, ValidationError

from plugins.base import Attribute

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)


def validate_string_is_not_empty(value: Any, key: str) -> List[str]:
    if not isinstance(value, str) or value == "":
        return [f"expected {key!r} to not be an empty string, got {value!r}"]
    return []


def validate_is_uuid(value: Any, key: str) -> List[str]:
    if not isinstance(value, str) or not UUID_PATTERN.fullmatch(value):
        return [f"expected {key!r} to be a valid UUID, got {value!r}"]
    return []


def build_json_schema(attributes: Dict[str, Attribute]) -> Dict[str, Any]:
    """
    Build a JSON Schema for a resource from its attribute definitions.

    Args:
        attributes: Attribute definitions keyed by attribute name

    Returns:
        A Draft 7 JSON Schema describing a valid spec
    """
    return {
        "type": "object",
        "required": sorted(name for name, attr in attributes.items() if attr.required),
        "properties": {
            name: {"type": attr.type.value} for name, attr in attributes.items()
        },
        "additionalProperties": False,
    }


def validate_json_schema(schema: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate that a schema is a valid JSON Schema.

    Args:
        schema: The schema to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        Draft7Validator.check_schema(schema)
        return True, None
    except Exception as e:
        return False, f"Invalid schema: {str(e)}"


def validate_spec_against_schema(
    spec: Dict[str, Any], schema: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    """
    Validate a resource spec against a JSON Schema.

    Args:
        spec: The resource specification to validate
        schema: The JSON Schema to validate against

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        validator = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)
        errors = sorted(validator.iter_errors(spec), key=lambda e: list(e.absolute_path))

        if not errors:
            return True, None

        # Collect all validation errors
        error_messages = []
        for error in errors:
            path = ".".join(str(p) for p in error.absolute_path) or "(root)"
            error_messages.append(f"{path}: {error.message}")

        return False, "; ".join(error_messages)

    except ValidationError as e:
        return False, f"Validation error: {str(e)}"
    except Exception as e:
        logger.error(f"Unexpected error during validation: {e}")
        return False, f"Validation failed: {str(e)}"


def validate_attributes(
    spec: Dict[str, Any], attributes: Dict[str, Attribute]
) -> List[str]:
    """
    Validate a spec against attribute definitions.

    Runs the JSON Schema check first; attribute validate funcs only run
    when the structure is valid.

    Returns:
        List of error messages, empty if the spec is valid.
    """
    is_valid, error = validate_spec_against_schema(spec, build_json_schema(attributes))
    if not is_valid:
        return [error]

    errors: List[str] = []
    for name, attr in attributes.items():
        if attr.validate_func is not None and name in spec:
            errors.extend(attr.validate_func(spec[name], name))
    return errors


def apply_defaults(
    spec: Dict[str, Any], attributes: Dict[str, Attribute]
) -> Dict[str, Any]:
    """Return a copy of spec with defaults filled in for unset optional attributes."""
    result = dict(spec)
    for name, attr in attributes.items():
        if name not in result and attr.default is not None:
            result[name] = attr.default
    return result
