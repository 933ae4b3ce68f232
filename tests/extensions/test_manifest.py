"""
Tests for extension and node descriptor validation.
"""
import json

import pytest

from vibenodes.extensions.errors import ErrorCode, InvalidManifestError
from vibenodes.extensions.manifest import (
    REQUIRED_FIELDS,
    parse_descriptor,
    validate_descriptor,
    validate_node_descriptor,
)


def test_valid_descriptor(valid_manifest):
    """Test a complete descriptor is accepted"""
    valid_manifest.update({"tags": ["demo"], "minAppVersion": "0.2.0", "icon": "icon.png"})

    descriptor = validate_descriptor(valid_manifest)

    assert descriptor.name == "Foo"
    assert descriptor.component_name == "foo"
    assert descriptor.main == "index.py"
    assert descriptor.tags == ["demo"]
    assert descriptor.min_app_version == "0.2.0"
    assert descriptor.description == "No description provided"


@pytest.mark.parametrize("field", REQUIRED_FIELDS)
def test_missing_required_field(valid_manifest, field):
    """Test every required field is enforced"""
    del valid_manifest[field]

    with pytest.raises(InvalidManifestError) as exc_info:
        validate_descriptor(valid_manifest)

    assert exc_info.value.missing_field == field
    assert exc_info.value.error_code == ErrorCode.INVALID_MANIFEST
    assert field in str(exc_info.value)


@pytest.mark.parametrize("field", REQUIRED_FIELDS)
def test_blank_required_field(valid_manifest, field):
    """Test empty strings count as missing"""
    valid_manifest[field] = "   "

    with pytest.raises(InvalidManifestError) as exc_info:
        validate_descriptor(valid_manifest)

    assert exc_info.value.missing_field == field


def test_first_missing_field_is_reported():
    """Test the first missing field in check order is named"""
    with pytest.raises(InvalidManifestError) as exc_info:
        validate_descriptor({"main": "index.py"})

    assert exc_info.value.missing_field == "name"


def test_non_object_descriptor():
    with pytest.raises(InvalidManifestError):
        validate_descriptor(["not", "a", "dict"])


def test_non_string_required_field(valid_manifest):
    valid_manifest["version"] = 1

    with pytest.raises(InvalidManifestError):
        validate_descriptor(valid_manifest)


def test_parse_descriptor_invalid_json():
    """Test malformed JSON is an invalid manifest"""
    with pytest.raises(InvalidManifestError) as exc_info:
        parse_descriptor("{not json")

    assert "could not parse" in str(exc_info.value)


def test_parse_descriptor_bytes(valid_manifest):
    descriptor = parse_descriptor(json.dumps(valid_manifest).encode("utf-8"))

    assert descriptor.component_name == "foo"


def test_node_descriptor_relaxed():
    """Test node descriptors need no author or componentName"""
    descriptor = validate_node_descriptor(
        {"component": "MathAdd", "name": "MathAdd Node", "version": "1.0.0", "main": "dist/index.py"}
    )

    assert descriptor.component == "MathAdd"
    assert descriptor.author == "Unknown"
    assert descriptor.description == "A mathadd node component"
    assert descriptor.default_config == {}


def test_node_descriptor_missing_component():
    with pytest.raises(InvalidManifestError) as exc_info:
        validate_node_descriptor({"name": "X", "version": "1", "main": "index.py"})

    assert exc_info.value.missing_field == "component"


@pytest.mark.parametrize("field", ["description", "minAppVersion", "icon"])
def test_non_string_optional_field(valid_manifest, field):
    """Test optional text fields must be strings when present"""
    valid_manifest[field] = 1

    with pytest.raises(InvalidManifestError) as exc_info:
        validate_descriptor(valid_manifest)

    assert field in str(exc_info.value)


def test_node_descriptor_default_config_must_be_object():
    with pytest.raises(InvalidManifestError):
        validate_node_descriptor(
            {"component": "X", "name": "X", "version": "1", "main": "index.py", "defaultConfig": [1, 2]}
        )
