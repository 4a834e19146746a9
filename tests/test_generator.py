"""Integration tests for generator behavior."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from openapi_to_typescript_generator.config import GeneratorConfig
from openapi_to_typescript_generator.errors import (
    DocumentValidationError,
    ErrorCode,
    ReferenceResolutionError,
)
from openapi_to_typescript_generator.generator import (
    GenerationStage,
    Generator,
    generate,
    run_generation,
    validate,
)
from openapi_to_typescript_generator.model_types import FileCategory, GenerationResult
from openapi_to_typescript_generator.writer import WriteError
from .fixture_helpers import PING_SPEC, fixture_path, parametrize_fixtures, spec_with_schemas

_UNNORMALIZED_PATH_SPEC = """
openapi: 3.1.0
info:
  title: Pets
  version: 1.0.0
paths:
  pets/:
    get:
      operationId: listPets
      responses:
        "200":
          description: ok
"""

_MISSING_REF_SPEC = """
openapi: 3.1.0
info:
  title: Broken
  version: 1.0.0
paths:
  /things:
    get:
      responses:
        "200":
          description: ok
          content:
            application/json:
              schema:
                $ref: "#/components/schemas/Missing"
"""


def _contents(result: GenerationResult) -> dict[str, str]:
    return {path: item.content for path, item in result.by_path().items()}


def _json_content(schema: dict[str, Any]) -> dict[str, Any]:
    return {"application/json": {"schema": schema}}


def test_trivial_schema() -> None:
    """A single path and model generate the full package layout."""
    result = generate(PING_SPEC)
    files = _contents(result)
    assert result.languages == ("typescript",)
    assert "export interface Ping {\n  msg: string;\n}" in files["models/ping.ts"]
    api = files["apis/default-api.ts"]
    assert "export class DefaultApi extends BaseAPI {" in api
    assert "  async getPing(" in api
    assert "): Promise<ApiResponse<void>> {" in api
    assert "runtime.ts" in files
    assert "export * from './runtime';" in files["index.ts"]
    assert "export * from './apis/index';" in files["index.ts"]
    assert "export * from './models/index';" in files["index.ts"]
    assert "export { DefaultApi } from './default-api';" in files["apis/index.ts"]
    assert "export type { Ping } from './ping';" in files["models/index.ts"]


def test_typescript_files_start_with_header() -> None:
    """Every TypeScript file carries the generated-code banner."""
    files = _contents(generate(PING_SPEC))
    for path, content in files.items():
        if path.endswith(".ts"):
            assert content.startswith("/* tslint:disable */\n"), path
            assert "Do not edit the file manually." in content, path
        assert content.endswith("\n") and not content.endswith("\n\n"), path


def test_optional_property() -> None:
    """Properties missing from ``required`` become optional."""
    text = spec_with_schemas(
        {
            "User": {
                "type": "object",
                "properties": {"id": {"type": "integer"}, "email": {"type": "string"}},
                "required": ["id"],
            }
        }
    )
    content = _contents(generate(text))["models/user.ts"]
    assert "export interface User {\n  id: number;\n  email?: string;\n}" in content


@pytest.mark.parametrize(
    ("enum_style", "expected"),
    [
        ("union", "export type Status = 'active' | 'disabled';"),
        ("enum", "export enum Status {\n  Active = 'active',\n  Disabled = 'disabled',\n}"),
    ],
)
def test_enum_styles(enum_style: str, expected: str) -> None:
    """String enums become literal unions or TypeScript enums."""
    text = spec_with_schemas({"Status": {"type": "string", "enum": ["active", "disabled"]}})
    config = GeneratorConfig.from_mapping({"emission": {"enum_style": enum_style}})
    assert expected in _contents(generate(text, config=config))["models/status.ts"]


def test_one_of_with_cycle() -> None:
    """Recursive unions are emitted as top-level declarations with guards."""
    files = _contents(generate(fixture_path("cyclic.yaml")))
    node = files["models/node.ts"]
    assert "export type Node = Leaf | Branch;" in node
    assert "export function instanceOfNode(value: any): value is Node {" in node
    assert "import type { Branch } from './branch';" in node
    assert "children: Array<Node>;" in files["models/branch.ts"]
    assert "export interface Leaf {\n  value: string;\n}" in files["models/leaf.ts"]


def test_path_normalization() -> None:
    """A path without a leading slash is emitted with one."""
    api = _contents(generate(_UNNORMALIZED_PATH_SPEC))["apis/default-api.ts"]
    assert "  async listPets(" in api
    assert "path: '/pets'," in api


def test_missing_reference_fails_without_files() -> None:
    """A dangling reference stops the run after validation."""
    generator = Generator()
    with pytest.raises(ReferenceResolutionError) as excinfo:
        generator.generate(_MISSING_REF_SPEC)
    error = excinfo.value
    assert error.code is ErrorCode.INVALID_REFERENCE
    assert error.location is not None
    assert error.location.openapi_path == "#/components/schemas/Missing"
    assert generator.stage is GenerationStage.FAILED
    assert generator.failure is not None
    assert generator.failure.stage is GenerationStage.VALIDATED
    assert generator.failure.error is error
    assert generator.history == [
        GenerationStage.CREATED,
        GenerationStage.PARSED,
        GenerationStage.VALIDATED,
        GenerationStage.FAILED,
    ]


def test_successful_run_visits_every_stage() -> None:
    """A successful run moves through the stages in order."""
    generator = Generator()
    generator.generate(PING_SPEC)
    assert generator.stage is GenerationStage.EMITTED
    assert generator.failure is None
    assert generator.history == [
        GenerationStage.CREATED,
        GenerationStage.PARSED,
        GenerationStage.VALIDATED,
        GenerationStage.TRANSFORMED,
        GenerationStage.ANALYZED,
        GenerationStage.LOWERED,
        GenerationStage.PLANNED,
        GenerationStage.EMITTED,
    ]


def test_validation_failure_stage() -> None:
    """Structural problems fail the run after parsing."""
    generator = Generator()
    with pytest.raises(DocumentValidationError) as excinfo:
        generator.generate("openapi: 3.1.0\ninfo: {title: T, version: '1'}\npaths: {}\n")
    assert excinfo.value.code is ErrorCode.EMPTY_PATHS
    assert generator.failure is not None
    assert generator.failure.stage is GenerationStage.PARSED


def test_generation_is_deterministic() -> None:
    """The same input and configuration give identical output."""
    first = generate(fixture_path("petstore.yaml"))
    second = generate(fixture_path("petstore.yaml"))
    assert first.files == second.files


def test_petstore_output() -> None:
    """Tagged operations, model references and servers reach the output."""
    result = generate(fixture_path("petstore.yaml"))
    files = _contents(result)
    assert "export { PetsApi } from './pets-api';" in files["apis/index.ts"]
    assert "import type { PetStatus } from './pet-status';" in files["models/pet.ts"]
    assert (
        "export type PetStatus = 'available' | 'pending' | 'sold';" in files["models/pet-status.ts"]
    )
    assert "https://petstore.example.com/v1" in files["runtime.ts"]
    assert result.by_path()["models/pet.ts"].category is FileCategory.MODELS
    assert result.by_path()["apis/pets-api.ts"].category is FileCategory.APIS
    assert result.by_path()["package.json"].category is FileCategory.PROJECT_FILES
    for path, content in files.items():
        if path.endswith(".ts"):
            assert all(len(line) <= 80 for line in content.split("\n")), path


def test_package_json_uses_scope_and_title() -> None:
    """The npm package name comes from the title and configured scope."""
    config = GeneratorConfig.from_mapping({"package": {"scope": "acme"}})
    files = _contents(generate(fixture_path("petstore.yaml"), config=config))
    package = json.loads(files["package.json"])
    assert package["name"] == "@acme/petstore"
    assert package["version"] == "1.0.0"
    assert "tsconfig.esm.json" in files


def test_tab_indentation() -> None:
    """The configured indentation unit is used for declarations."""
    config = GeneratorConfig.from_mapping({"emission": {"indentation": "tabs"}})
    files = _contents(generate(PING_SPEC, config=config))
    assert "export interface Ping {\n\tmsg: string;\n}" in files["models/ping.ts"]


def test_unsupported_language_is_skipped_with_warning() -> None:
    """Languages without an emitter produce a warning, not an error."""
    config = GeneratorConfig.from_mapping({"languages": ["typescript", "rust"]})
    result = generate(PING_SPEC, config=config)
    assert result.languages == ("typescript",)
    assert any("'rust'" in warning.message for warning in result.warnings)


def test_only_unsupported_languages_emit_nothing() -> None:
    """A run targeting only languages without emitters returns no files."""
    config = GeneratorConfig.from_mapping({"languages": ["rust"]})
    result = generate(PING_SPEC, config=config)
    assert result.files == ()
    assert result.languages == ()


def test_validate_returns_warnings() -> None:
    """``validate`` checks the document and returns non-fatal findings."""
    text = PING_SPEC + "x_extra: true\n"
    warnings = validate(text)
    assert any("Unknown top-level field 'x_extra'" in warning.message for warning in warnings)


def test_run_generation_writes_files(tmp_path: Path) -> None:
    """``run_generation`` writes every generated file."""
    output_dir = tmp_path / "client"
    run = run_generation(input_path=fixture_path("petstore.yaml"), output_dir=output_dir)
    assert len(run.written) == len(run.result.files)
    assert (output_dir / "models" / "pet.ts").is_file()
    assert (output_dir / "apis" / "pets-api.ts").is_file()


def test_output_directory_must_be_empty(tmp_path: Path) -> None:
    """Generator refuses to write into a non-empty output directory."""
    output_dir = tmp_path / "existing"
    output_dir.mkdir()
    (output_dir / "stale.ts").write_text("", encoding="utf-8")
    with pytest.raises(WriteError):
        run_generation(input_path=fixture_path("petstore.yaml"), output_dir=output_dir)
    run = run_generation(
        input_path=fixture_path("petstore.yaml"), output_dir=output_dir, overwrite=True
    )
    assert run.written


@parametrize_fixtures()
def test_generation_smoke(fixture_path: Path, tmp_path: Path) -> None:
    """Each fixture should generate a client package without crashing."""
    output_dir = tmp_path / fixture_path.stem
    run = run_generation(input_path=fixture_path, output_dir=output_dir)
    assert (output_dir / "index.ts").is_file()
    assert (output_dir / "runtime.ts").is_file()
    assert any(path.parent.name == "apis" for path in run.written)


def test_tag_spellings_share_one_api_file() -> None:
    """Tags that map to the same class are written once, with every operation."""
    ok = {"200": {"description": "ok"}}
    pet_id = {"name": "petId", "in": "path", "required": True, "schema": {"type": "string"}}
    text = spec_with_schemas(
        {},
        paths={
            "/pets": {"get": {"operationId": "listPets", "tags": ["pets"], "responses": ok}},
            "/pets/{petId}": {
                "get": {
                    "operationId": "showPet",
                    "tags": ["Pets"],
                    "parameters": [pet_id],
                    "responses": ok,
                }
            },
        },
    )
    result = generate(text)
    api_paths = [path for path in result.by_path() if path.startswith("apis/")]
    assert sorted(api_paths) == ["apis/index.ts", "apis/pets-api.ts"]
    files = _contents(result)
    assert files["apis/index.ts"].count("PetsApi") == 1
    api = files["apis/pets-api.ts"]
    assert api.count("export class PetsApi extends BaseAPI {") == 1
    assert "  async listPets(" in api
    assert "  async showPet(" in api


def test_schema_named_blob_does_not_shadow_the_global() -> None:
    """A ``Blob`` schema is emitted as ``BlobModel`` next to a binary download."""
    blob_ref = {"$ref": "#/components/schemas/Blob"}
    text = spec_with_schemas(
        {"Blob": {"type": "object", "properties": {"size": {"type": "integer"}}}},
        paths={
            "/meta": {
                "get": {
                    "operationId": "getMeta",
                    "responses": {
                        "200": {
                            "description": "ok",
                            "content": {"application/json": {"schema": blob_ref}},
                        }
                    },
                }
            },
            "/download": {
                "get": {
                    "operationId": "download",
                    "responses": {
                        "200": {
                            "description": "ok",
                            "content": {"application/octet-stream": {}},
                        }
                    },
                }
            },
        },
    )
    files = _contents(generate(text))
    assert "export interface BlobModel {" in files["models/blob-model.ts"]
    api = files["apis/default-api.ts"]
    assert "): Promise<ApiResponse<BlobModel>> {" in api
    assert "): Promise<ApiResponse<Blob>> {" in api
    assert "BlobModelFromJSON" in api
    assert "import type { Blob }" not in api
    assert "models/blob.ts" not in files


def test_long_names_stay_within_width() -> None:
    """Every TypeScript line fits the width even with long model and parameter names."""
    name = "VeryLongDescriptiveInventoryReservationSummary"
    ref = {"$ref": f"#/components/schemas/{name}"}
    reservation_id = {
        "name": "reservationId",
        "in": "path",
        "required": True,
        "schema": {"type": "string"},
    }
    text = spec_with_schemas(
        {
            name: {
                "type": "object",
                "properties": {
                    "reservationId": {"type": "string"},
                    "warehouseReservationIdentifier": {"type": "string"},
                },
                "required": ["reservationId", "warehouseReservationIdentifier"],
            }
        },
        paths={
            "/reservations": {
                "get": {
                    "operationId": "listReservationSummaries",
                    "tags": ["inventory reservations"],
                    "responses": {
                        "200": {
                            "description": "ok",
                            "content": _json_content({"type": "array", "items": ref}),
                        }
                    },
                },
                "post": {
                    "operationId": "createReservationSummary",
                    "tags": ["inventory reservations"],
                    "requestBody": {"required": True, "content": _json_content(ref)},
                    "responses": {"201": {"description": "ok", "content": _json_content(ref)}},
                },
            },
            "/reservations/{reservationId}": {
                "get": {
                    "operationId": "getReservationSummary",
                    "tags": ["inventory reservations"],
                    "parameters": [reservation_id],
                    "responses": {"200": {"description": "ok", "content": _json_content(ref)}},
                }
            },
        },
    )
    files = _contents(generate(text))
    for path, content in files.items():
        if path.endswith(".ts"):
            long_lines = [line for line in content.split("\n") if len(line) > 80]
            assert not long_lines, (path, long_lines)
    api = files["apis/inventory-reservations-api.ts"]
    assert f"  ): Promise<\n    ApiResponse<Array<{name}>>\n  > {{" in api
    assert f"      (jsonValue) =>\n        jsonValue.map({name}FromJSON),\n" in api
