"""Partitioning of lowered declarations into output files, and import resolution."""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Optional

from .config import GeneratorConfig
from .model_types import (
    RUNTIME_MODULE,
    FileCategory,
    ImportRequest,
    LoweredApi,
    LoweredModel,
    LoweredProgram,
)
from .ts_ast import Export, Import, ImportSpecifier

logger = logging.getLogger(__name__)


class FileKind(StrEnum):
    """What an output file is built from."""

    MODEL = "model"
    MODELS_INDEX = "models-index"
    API = "api"
    APIS_INDEX = "apis-index"
    RUNTIME = "runtime"
    BARREL = "barrel"
    PACKAGE_JSON = "package.json"
    TSCONFIG = "tsconfig.json"
    TSCONFIG_ESM = "tsconfig.esm.json"
    README = "README.md"


@dataclass(frozen=True)
class FilePlan:
    """One file to emit.

    ``module`` is the package-relative module id of a TypeScript file
    (``"models/pet"``), or ``None`` for project files. ``source`` is the
    lowered model or API the file is built from, when there is one.
    """

    path: str
    category: FileCategory
    kind: FileKind
    module: Optional[str] = None
    source: Optional[LoweredModel | LoweredApi] = None
    imports: tuple[Import, ...] = ()
    exports: tuple[Export, ...] = ()


def relative_module(from_module: str, to_module: str) -> str:
    """Return the import specifier for ``to_module`` as seen from ``from_module``.

    Args:
        from_module (str): Importing module id, such as ``"apis/pet-api"``.
        to_module (str): Imported module id, such as ``"models/pet"``.

    Returns:
        str: A relative specifier starting with ``./`` or ``../``.
    """
    base = posixpath.dirname(from_module) or "."
    relative = posixpath.relpath(to_module, base)
    if not relative.startswith("."):
        relative = f"./{relative}"
    return relative


@dataclass
class ImportCollector:
    """Pending imports of one file, resolved into ``Import`` statements.

    A name requested both as a value and as a type is imported as a value.
    Imports of the file's own module are dropped.
    """

    module: str
    _pending: dict[str, dict[str, bool]] = field(default_factory=dict)

    def add(self, request: ImportRequest) -> None:
        if request.module == self.module:
            return
        names = self._pending.setdefault(request.module, {})
        names[request.name] = names.get(request.name, True) and request.type_only

    def add_all(self, requests: Iterable[ImportRequest]) -> None:
        for request in requests:
            self.add(request)

    def build(self) -> tuple[Import, ...]:
        """Return merged imports: runtime first, then other modules by path."""
        ordered = sorted(
            self._pending,
            key=lambda target: (target != RUNTIME_MODULE, relative_module(self.module, target)),
        )
        imports: list[Import] = []
        for target in ordered:
            specifier = relative_module(self.module, target)
            names = self._pending[target]
            values = sorted(name for name, type_only in names.items() if not type_only)
            types = sorted(name for name, type_only in names.items() if type_only)
            if values:
                imports.append(
                    Import(specifier, tuple(ImportSpecifier(name) for name in values))
                )
            if types:
                imports.append(
                    Import(
                        specifier,
                        tuple(ImportSpecifier(name) for name in types),
                        type_only=True,
                    )
                )
        return tuple(imports)


def plan_files(program: LoweredProgram, config: GeneratorConfig) -> list[FilePlan]:
    """Lay out every output file for a lowered program.

    Args:
        program (LoweredProgram): Lowered models and APIs.
        config (GeneratorConfig): Generator configuration.

    Returns:
        list[FilePlan]: Plans sorted by output path.
    """
    plans: list[FilePlan] = []

    for model in program.models:
        collector = ImportCollector(model.module)
        collector.add_all(model.imports)
        plans.append(
            FilePlan(
                path=f"{model.module}.ts",
                category=FileCategory.MODELS,
                kind=FileKind.MODEL,
                module=model.module,
                source=model,
                imports=collector.build(),
            )
        )
    plans.append(
        FilePlan(
            path="models/index.ts",
            category=FileCategory.MODELS,
            kind=FileKind.MODELS_INDEX,
            module="models/index",
            exports=_model_exports(program.models),
        )
    )

    for api in program.apis:
        collector = ImportCollector(api.module)
        collector.add_all(api.imports)
        plans.append(
            FilePlan(
                path=f"{api.module}.ts",
                category=FileCategory.APIS,
                kind=FileKind.API,
                module=api.module,
                source=api,
                imports=collector.build(),
            )
        )
    plans.append(
        FilePlan(
            path="apis/index.ts",
            category=FileCategory.APIS,
            kind=FileKind.APIS_INDEX,
            module="apis/index",
            exports=tuple(
                Export(relative_module("apis/index", api.module), (api.class_name,))
                for api in sorted(program.apis, key=lambda item: item.class_name)
            ),
        )
    )

    plans.append(
        FilePlan(
            path=f"{RUNTIME_MODULE}.ts",
            category=FileCategory.RUNTIME,
            kind=FileKind.RUNTIME,
            module=RUNTIME_MODULE,
        )
    )
    plans.append(
        FilePlan(
            path="index.ts",
            category=FileCategory.RUNTIME,
            kind=FileKind.BARREL,
            module="index",
            exports=(Export("./runtime"), Export("./apis/index"), Export("./models/index")),
        )
    )

    plans.append(FilePlan("package.json", FileCategory.PROJECT_FILES, FileKind.PACKAGE_JSON))
    plans.append(FilePlan("tsconfig.json", FileCategory.PROJECT_FILES, FileKind.TSCONFIG))
    if config.package.generate_esm_config:
        plans.append(
            FilePlan("tsconfig.esm.json", FileCategory.PROJECT_FILES, FileKind.TSCONFIG_ESM)
        )
    plans.append(FilePlan("README.md", FileCategory.PROJECT_FILES, FileKind.README))

    plans.sort(key=lambda plan: plan.path)
    logger.debug("Planned %d file(s)", len(plans))
    return plans


def _model_exports(models: list[LoweredModel]) -> tuple[Export, ...]:
    exports: list[Export] = []
    for model in sorted(models, key=lambda item: item.file_stem):
        specifier = relative_module("models/index", model.module)
        if model.value_names:
            exports.append(Export(specifier, tuple(sorted(model.value_names))))
        if model.type_names:
            exports.append(Export(specifier, tuple(sorted(model.type_names)), type_only=True))
    return tuple(exports)


def plan_summary(plans: list[FilePlan]) -> dict[str, int]:
    """Count planned files per category."""
    counts: dict[str, int] = {}
    for plan in plans:
        counts[plan.category.value] = counts.get(plan.category.value, 0) + 1
    return counts
