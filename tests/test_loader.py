"""Unit tests for document loading and structural validation."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from openapi_to_typescript_generator.document import (
    CompositeSchema,
    EnumSchema,
    ObjectSchema,
    PrimitiveSchema,
    Reference,
)
from openapi_to_typescript_generator.errors import (
    DocumentValidationError,
    ErrorCode,
    ErrorKind,
    ParseError,
)
from openapi_to_typescript_generator.loader import load_document
from .fixture_helpers import PING_SPEC, fixture_path, parametrize_fixtures


def _payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "openapi": "3.1.0",
        "info": {"title": "Loader API", "version": "1.0.0"},
        "paths": {"/ping": {"get": {"responses": {"200": {"description": "ok"}}}}},
    }
    payload.update(overrides)
    return payload


@parametrize_fixtures()
def test_fixtures_load(fixture_path: Path) -> None:
    """Every fixture should parse and validate."""
    document, _ = load_document(fixture_path)
    assert document.openapi.startswith("3.1")
    assert document.paths
    assert document.source == str(fixture_path)


def test_yaml_text_is_detected_without_hint() -> None:
    """YAML input should load when no format hint is given."""
    document, _ = load_document(PING_SPEC)
    assert document.info.title == "Ping API"
    assert list(document.paths) == ["/ping"]
    ping = document.components.schemas["Ping"]
    assert isinstance(ping, ObjectSchema)
    assert ping.required == frozenset({"msg"})


def test_json_bytes_are_detected_without_hint() -> None:
    """JSON bytes should load when no format hint is given."""
    document, _ = load_document(json.dumps(_payload()).encode("utf-8"))
    assert document.info.version == "1.0.0"


def test_json_hint_rejects_yaml_text() -> None:
    """A JSON hint should not fall back to YAML."""
    with pytest.raises(ParseError) as excinfo:
        load_document(PING_SPEC, "json")
    assert excinfo.value.code is ErrorCode.JSON_PARSE
    assert excinfo.value.kind is ErrorKind.PARSE


def test_unparseable_text_reports_json_error_with_position() -> None:
    """When both decoders fail, the JSON error and its position are reported."""
    with pytest.raises(ParseError) as excinfo:
        load_document("{\n  'openapi': [unterminated")
    error = excinfo.value
    assert error.code is ErrorCode.JSON_PARSE
    assert error.location is not None
    assert error.location.line is not None


def test_unknown_format_hint_is_rejected() -> None:
    """Only json and yaml hints are accepted."""
    with pytest.raises(ParseError) as excinfo:
        load_document(PING_SPEC, "toml")
    assert excinfo.value.code is ErrorCode.UNSUPPORTED_FORMAT


def test_missing_file_is_a_file_read_error(tmp_path: Path) -> None:
    """Reading a missing path should raise a parse error with the file name."""
    missing = tmp_path / "missing.yaml"
    with pytest.raises(ParseError) as excinfo:
        load_document(missing)
    assert excinfo.value.code is ErrorCode.FILE_READ
    assert excinfo.value.location is not None
    assert excinfo.value.location.file == str(missing)


def test_non_mapping_document_is_rejected() -> None:
    """A document must decode to a mapping."""
    with pytest.raises(ParseError):
        load_document("- just\n- a list\n", "yaml")


def test_missing_version_field() -> None:
    """A document without ``openapi`` is a missing-field validation error."""
    payload = _payload()
    del payload["openapi"]
    with pytest.raises(DocumentValidationError) as excinfo:
        load_document(json.dumps(payload))
    assert excinfo.value.code is ErrorCode.MISSING_FIELD
    assert excinfo.value.location is not None
    assert excinfo.value.location.openapi_path == "#/openapi"


def test_openapi_30_requires_opt_in() -> None:
    """3.0 documents are rejected unless explicitly accepted."""
    text = json.dumps(_payload(openapi="3.0.3"))
    with pytest.raises(DocumentValidationError) as excinfo:
        load_document(text)
    assert excinfo.value.code is ErrorCode.UNSUPPORTED_VERSION

    document, _ = load_document(text, accept_openapi_30=True)
    assert document.openapi == "3.0.3"


def test_swagger_2_is_unsupported() -> None:
    """Versions other than 3.1 are rejected."""
    with pytest.raises(DocumentValidationError) as excinfo:
        load_document(json.dumps(_payload(openapi="2.0")))
    assert excinfo.value.code is ErrorCode.UNSUPPORTED_VERSION


def test_missing_info_title() -> None:
    """An empty title is a missing field at ``#/info/title``."""
    text = json.dumps(_payload(info={"title": " ", "version": "1"}))
    with pytest.raises(DocumentValidationError) as excinfo:
        load_document(text)
    assert excinfo.value.code is ErrorCode.MISSING_FIELD
    assert excinfo.value.location is not None
    assert excinfo.value.location.openapi_path == "#/info/title"


def test_empty_paths() -> None:
    """A document without paths cannot produce a client."""
    with pytest.raises(DocumentValidationError) as excinfo:
        load_document(json.dumps(_payload(paths={})))
    assert excinfo.value.code is ErrorCode.EMPTY_PATHS


def test_validation_can_be_deferred() -> None:
    """With ``validate=False`` structural problems are left to the caller."""
    document, _ = load_document(json.dumps(_payload(paths={})), validate=False)
    assert document.paths == {}


def test_unknown_top_level_field_is_a_warning() -> None:
    """Unknown top-level keys are reported but do not fail loading."""
    _, warnings = load_document(json.dumps(_payload(surprise=True)))
    assert any("Unknown top-level field 'surprise'" in warning.message for warning in warnings)


def test_schema_variants_are_parsed() -> None:
    """Schema nodes should map onto the matching variant."""
    document, _ = load_document(fixture_path("catalog.yaml"))
    schemas = document.components.schemas

    item = schemas["CatalogItem"]
    assert isinstance(item, ObjectSchema)
    assert list(item.properties) == ["item_id", "title", "price", "tags", "attributes", "kind"]
    price = item.properties["price"]
    assert isinstance(price, PrimitiveSchema)
    assert price.nullable
    assert item.properties["kind"] == Reference("#/components/schemas/ItemKind")

    kind = schemas["ItemKind"]
    assert isinstance(kind, EnumSchema)
    assert kind.values == ("physical", "digital")

    money = schemas["Money"]
    assert isinstance(money, CompositeSchema)
    assert len(money.members) == 2

    identifier = schemas["Identifier"]
    assert isinstance(identifier, PrimitiveSchema)
    assert identifier.format == "uuid"


def test_referenced_request_body_is_recorded() -> None:
    """References in operations stay verbatim until resolution."""
    document, _ = load_document(fixture_path("catalog.yaml"))
    operation = document.paths["/items/{item_id}"].operations["put"]
    assert operation.request_body == Reference("#/components/requestBodies/ItemBody")
    assert "ItemBody" in document.components.request_bodies
