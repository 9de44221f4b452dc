"""Unit tests for validation.py - Schema validation of resource specs."""

import pytest

from plugins.base import Attribute, AttributeType
from validation import (
    apply_defaults,
    build_json_schema,
    validate_attributes,
    validate_is_uuid,
    validate_json_schema,
    validate_spec_against_schema,
    validate_string_is_not_empty,
)


@pytest.fixture
def attributes():
    return {
        "name": Attribute(
            type=AttributeType.STRING,
            required=True,
            validate_func=validate_string_is_not_empty,
        ),
        "template": Attribute(
            type=AttributeType.STRING, required=True, validate_func=validate_is_uuid
        ),
        "enabled": Attribute(type=AttributeType.BOOLEAN, optional=True, default=True),
        "count": Attribute(type=AttributeType.INTEGER, optional=True),
    }


class TestValidateFuncs:
    """Tests for the attribute validate funcs."""

    def test_not_empty(self):
        assert validate_string_is_not_empty("rule", "name") == []

    @pytest.mark.parametrize("value", ["", None, 3])
    def test_empty_or_not_string(self, value):
        errors = validate_string_is_not_empty(value, "name")
        assert len(errors) == 1
        assert "'name'" in errors[0]

    def test_uuid(self):
        assert validate_is_uuid("737a2ce1-70a3-4968-9e90-3e6aca836abf", "guid") == []
        assert validate_is_uuid("737A2CE1-70A3-4968-9E90-3E6ACA836ABF", "guid") == []

    @pytest.mark.parametrize(
        "value",
        [
            "not-a-uuid",
            "737a2ce170a349689e903e6aca836abf",
            "{737a2ce1-70a3-4968-9e90-3e6aca836abf}",
            "737a2ce1-70a3-4968-9e90-3e6aca836abf\n",
            " 737a2ce1-70a3-4968-9e90-3e6aca836abf",
            None,
        ],
    )
    def test_not_uuid(self, value):
        errors = validate_is_uuid(value, "guid")
        assert errors == [f"expected 'guid' to be a valid UUID, got {value!r}"]


class TestBuildJsonSchema:
    """Tests for building JSON Schemas from attributes."""

    def test_structure(self, attributes):
        schema = build_json_schema(attributes)
        assert schema["type"] == "object"
        assert schema["required"] == ["name", "template"]
        assert schema["properties"]["enabled"] == {"type": "boolean"}
        assert schema["properties"]["count"] == {"type": "integer"}
        assert schema["additionalProperties"] is False

    def test_is_valid_json_schema(self, attributes):
        is_valid, error = validate_json_schema(build_json_schema(attributes))
        assert is_valid is True
        assert error is None


class TestValidateJsonSchema:
    """Tests for validate_json_schema function."""

    def test_invalid_schema(self):
        is_valid, error = validate_json_schema({"type": "not-a-type"})
        assert is_valid is False
        assert error.startswith("Invalid schema:")


class TestValidateSpecAgainstSchema:
    """Tests for validate_spec_against_schema function."""

    def test_valid_spec(self, attributes):
        spec = {"name": "a", "template": "737a2ce1-70a3-4968-9e90-3e6aca836abf"}
        assert validate_spec_against_schema(spec, build_json_schema(attributes)) == (True, None)

    def test_reports_all_errors(self, attributes):
        spec = {"enabled": "yes", "extra": 1}
        is_valid, error = validate_spec_against_schema(spec, build_json_schema(attributes))
        assert is_valid is False
        assert "'name' is a required property" in error
        assert "'template' is a required property" in error
        assert "enabled: 'yes' is not of type 'boolean'" in error
        assert "Additional properties are not allowed ('extra' was unexpected)" in error


class TestValidateAttributes:
    """Tests for validate_attributes function."""

    def test_valid(self, attributes):
        spec = {"name": "a", "template": "737a2ce1-70a3-4968-9e90-3e6aca836abf", "enabled": False}
        assert validate_attributes(spec, attributes) == []

    def test_structural_errors_skip_validate_funcs(self, attributes):
        errors = validate_attributes({"name": "", "template": 5}, attributes)
        assert len(errors) == 1
        assert "template: 5 is not of type 'string'" in errors[0]

    def test_validate_funcs_run(self, attributes):
        errors = validate_attributes({"name": "", "template": "nope"}, attributes)
        assert errors == [
            "expected 'name' to not be an empty string, got ''",
            "expected 'template' to be a valid UUID, got 'nope'",
        ]


class TestApplyDefaults:
    """Tests for apply_defaults function."""

    def test_fills_unset(self, attributes):
        result = apply_defaults({"name": "a"}, attributes)
        assert result == {"name": "a", "enabled": True}

    def test_keeps_explicit_false(self, attributes):
        spec = {"name": "a", "enabled": False}
        result = apply_defaults(spec, attributes)
        assert result["enabled"] is False
        assert result is not spec
