"""Fixture-based OpenAPI conformance tests."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from openapi_to_typescript_generator.json_types import JSONObject
from openapi_to_typescript_generator.loader import conformance_warnings
from .fixture_helpers import fixture_dir, parametrize_fixtures


def _load_yaml(path: Path) -> JSONObject:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        pytest.fail(f"Failed to parse YAML in {path}: {exc}")
    except OSError as exc:
        pytest.fail(f"Failed to read fixture {path}: {exc}")

    if not isinstance(data, dict):
        pytest.fail(f"Fixture {path} must parse to a mapping, got {type(data)!r}")
    return data


def test_fixture_directory_exists() -> None:
    """Ensure the fixtures directory is present."""
    assert fixture_dir().is_dir(), f"Fixture directory not found: {fixture_dir()}"


@parametrize_fixtures()
def test_fixture_is_valid_openapi(fixture_path: Path) -> None:
    """Each fixture passes the OpenAPI conformance check without warnings."""
    warnings = conformance_warnings(_load_yaml(fixture_path))
    assert not warnings, "\n".join(str(warning) for warning in warnings)


def test_conformance_reports_schema_problems() -> None:
    """Structural problems found by the OpenAPI model are reported as warnings."""
    payload: JSONObject = {
        "openapi": "3.1.0",
        "info": {"title": "T"},
        "paths": {},
        "x-internal": True,
        "extras": 1,
    }
    messages = [warning.message for warning in conformance_warnings(payload)]
    assert "Unknown top-level field 'extras'" in messages
    assert not any("x-internal" in message for message in messages)
    assert any(message.startswith("OpenAPI schema check:") for message in messages)
