"""Shared helpers for fixture-driven tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, ParamSpec, TypeVar

import pytest
import yaml

from openapi_to_typescript_generator.config import GeneratorConfig
from openapi_to_typescript_generator.document import Document
from openapi_to_typescript_generator.loader import load_document
from openapi_to_typescript_generator.passes import IrContext
from openapi_to_typescript_generator.pipeline import default_pipeline

_FIXTURE_DIR = Path(__file__).resolve().parent / "fixtures" / "openapi_specs"
_P = ParamSpec("_P")
_R = TypeVar("_R")

PING_SPEC = """
openapi: 3.1.0
info:
  title: Ping API
  version: 1.0.0
paths:
  /ping:
    get:
      responses:
        "200":
          description: pong
components:
  schemas:
    Ping:
      type: object
      properties:
        msg:
          type: string
      required: [msg]
"""


def fixture_dir() -> Path:
    """Return the OpenAPI fixtures directory."""
    return _FIXTURE_DIR


def iter_fixture_paths() -> list[Path]:
    """Return all YAML fixture paths sorted by name."""
    paths = sorted(_FIXTURE_DIR.glob("*.yaml")) + sorted(_FIXTURE_DIR.glob("*.yml"))
    return [path for path in paths if path.is_file()]


def fixture_path(name: str) -> Path:
    """Return the path of one named fixture."""
    return _FIXTURE_DIR / name


def parametrize_fixtures() -> Callable[[Callable[_P, _R]], Callable[_P, _R]]:
    """Parametrize a test over all fixture paths."""

    def _decorator(func: Callable[_P, _R]) -> Callable[_P, _R]:
        decorator: Callable[[Callable[_P, _R]], Callable[_P, _R]]
        decorator = pytest.mark.parametrize(
            "fixture_path",
            iter_fixture_paths(),
            ids=lambda path: path.name,
        )
        return decorator(func)

    return _decorator


def spec_with_schemas(schemas: dict[str, Any], **extra: Any) -> str:
    """Return a minimal valid document text with the given component schemas."""
    payload: dict[str, Any] = {
        "openapi": "3.1.0",
        "info": {"title": "Test API", "version": "1.0.0"},
        "paths": {"/ping": {"get": {"responses": {"200": {"description": "ok"}}}}},
        "components": {"schemas": schemas},
    }
    payload.update(extra)
    return yaml.safe_dump(payload, sort_keys=False)


def load(text: str, config: GeneratorConfig | None = None) -> Document:
    """Parse and validate a document from text."""
    config = config or GeneratorConfig()
    document, _ = load_document(text, accept_openapi_30=config.accept_openapi_30)
    return document


def transformed(text: str, config: GeneratorConfig | None = None) -> IrContext:
    """Return the context after running the default pipeline over ``text``."""
    config = config or GeneratorConfig()
    context = IrContext(document=load(text, config), config=config)
    return default_pipeline().run(context)
