"""Unit tests for output file planning and import resolution."""

from __future__ import annotations

import pytest

from openapi_to_typescript_generator.api_lowering import ApiLowering
from openapi_to_typescript_generator.config import GeneratorConfig
from openapi_to_typescript_generator.lowering import TypeLowering
from openapi_to_typescript_generator.model_types import ImportRequest, LoweredProgram
from openapi_to_typescript_generator.planner import (
    FileKind,
    FilePlan,
    ImportCollector,
    plan_files,
    plan_summary,
    relative_module,
)
from openapi_to_typescript_generator.ts_ast import Export, Import, ImportSpecifier
from .fixture_helpers import fixture_path, transformed


def _program(name: str, config: GeneratorConfig | None = None) -> LoweredProgram:
    text = fixture_path(name).read_text(encoding="utf-8")
    context = transformed(text, config)
    types = TypeLowering(context.document, context.config, context.analysis)
    apis = ApiLowering(context.document, context.config, types)
    return LoweredProgram(models=types.lower_models(), apis=apis.lower_apis())


def _plans(config: GeneratorConfig | None = None) -> dict[str, FilePlan]:
    config = config or GeneratorConfig()
    return {plan.path: plan for plan in plan_files(_program("petstore.yaml", config), config)}


@pytest.mark.parametrize(
    ("from_module", "to_module", "expected"),
    [
        ("apis/pets-api", "models/pet", "../models/pet"),
        ("apis/pets-api", "runtime", "../runtime"),
        ("models/pet", "models/pet-status", "./pet-status"),
        ("models/index", "models/pet", "./pet"),
        ("index", "runtime", "./runtime"),
    ],
)
def test_relative_module(from_module: str, to_module: str, expected: str) -> None:
    """Specifiers are relative to the importing module's directory."""
    assert relative_module(from_module, to_module) == expected


def test_import_collector_merges_and_orders() -> None:
    """Values beat types, the file's own module is skipped, and runtime comes first."""
    collector = ImportCollector("apis/pets-api")
    collector.add_all(
        [
            ImportRequest("models/pet", "Pet"),
            ImportRequest("models/pet", "PetFromJSON", type_only=False),
            ImportRequest("models/new-pet", "NewPet"),
            ImportRequest("models/new-pet", "NewPet", type_only=False),
            ImportRequest("models/new-pet", "NewPet"),
            ImportRequest("runtime", "BaseAPI", type_only=False),
            ImportRequest("runtime", "ApiResponse"),
            ImportRequest("apis/pets-api", "PetsApi"),
        ]
    )
    assert collector.build() == (
        Import("../runtime", (ImportSpecifier("BaseAPI"),)),
        Import("../runtime", (ImportSpecifier("ApiResponse"),), type_only=True),
        Import("../models/new-pet", (ImportSpecifier("NewPet"),)),
        Import("../models/pet", (ImportSpecifier("PetFromJSON"),)),
        Import("../models/pet", (ImportSpecifier("Pet"),), type_only=True),
    )


def test_plan_paths_are_sorted() -> None:
    """Every category is planned and plans come back sorted by path."""
    assert list(_plans()) == [
        "README.md",
        "apis/index.ts",
        "apis/pets-api.ts",
        "index.ts",
        "models/index.ts",
        "models/new-pet.ts",
        "models/pet-status.ts",
        "models/pet.ts",
        "package.json",
        "runtime.ts",
        "tsconfig.esm.json",
        "tsconfig.json",
    ]


def test_model_plan_imports_referenced_models() -> None:
    """A model file imports the types of the models it references."""
    plan = _plans()["models/pet.ts"]
    assert plan.kind is FileKind.MODEL
    assert plan.module == "models/pet"
    assert Import("./pet-status", (ImportSpecifier("PetStatus"),), type_only=True) in plan.imports


def test_api_plan_imports_runtime_and_helpers() -> None:
    """API files import runtime classes as values and model helpers by name."""
    imports = _plans()["apis/pets-api.ts"].imports
    assert imports[0].module == "../runtime"
    runtime_values = {specifier.name for specifier in imports[0].specifiers}
    assert {"BaseAPI", "JSONApiResponse", "RequiredError", "VoidApiResponse"} <= runtime_values
    assert Import("../models/pet", (ImportSpecifier("PetFromJSON"),)) in imports
    assert Import("../models/new-pet", (ImportSpecifier("NewPetToJSON"),)) in imports


def test_models_index_exports() -> None:
    """The models index re-exports helpers as values and declarations as types."""
    exports = _plans()["models/index.ts"].exports
    assert Export("./pet-status", ("PetStatus",), type_only=True) in exports
    assert Export("./pet", ("Pet",), type_only=True) in exports
    assert (
        Export(
            "./pet",
            ("PetFromJSON", "PetFromJSONTyped", "PetToJSON", "PetToJSONTyped", "instanceOfPet"),
        )
        in exports
    )


def test_apis_index_and_barrel_exports() -> None:
    """The APIs index names each class and the barrel re-exports everything."""
    plans = _plans()
    assert plans["apis/index.ts"].exports == (Export("./pets-api", ("PetsApi",)),)
    assert plans["index.ts"].exports == (
        Export("./runtime"),
        Export("./apis/index"),
        Export("./models/index"),
    )


def test_esm_config_can_be_disabled() -> None:
    """``generate_esm_config: false`` drops the ESM tsconfig."""
    config = GeneratorConfig.from_mapping({"package": {"generate_esm_config": False}})
    assert "tsconfig.esm.json" not in _plans(config)


def test_plan_summary_counts_categories() -> None:
    """The summary counts planned files per category."""
    assert plan_summary(list(_plans().values())) == {
        "ProjectFiles": 4,
        "Apis": 2,
        "Runtime": 2,
        "Models": 4,
    }
