"""Internal datatypes passed from lowering to file planning."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Optional

from .errors import ParseWarning
from .ts_ast import Class, Declaration, Enum, Function, Interface, Property, TypeAlias

RUNTIME_MODULE = "runtime"


class FileCategory(StrEnum):
    """Partition of emitted files."""

    MODELS = "Models"
    APIS = "Apis"
    RUNTIME = "Runtime"
    PROJECT_FILES = "ProjectFiles"


@dataclass(frozen=True)
class GeneratedFile:
    """One emitted file; ``path`` is relative to the output directory."""

    path: str
    content: str
    category: FileCategory


@dataclass(frozen=True)
class ImportRequest:
    """A name a file needs from another generated module.

    ``module`` is a package-relative module id without extension, such as
    ``"runtime"`` or ``"models/pet"``.
    """

    module: str
    name: str
    type_only: bool = True


@dataclass(frozen=True)
class ModelHelpers:
    """Data for the per-model JSON helper functions.

    ``kind`` is ``"interface"`` for object models and ``"union"`` for aliases
    whose members are all models with helpers.
    """

    kind: str
    name: str
    properties: tuple[Property, ...] = ()
    has_index_signature: bool = False
    members: tuple[str, ...] = ()

    @property
    def required(self) -> tuple[Property, ...]:
        return tuple(prop for prop in self.properties if not prop.optional)


@dataclass(frozen=True)
class LoweredModel:
    """Declarations produced for one component schema."""

    name: str
    file_stem: str
    declarations: tuple[Declaration, ...]
    helpers: Optional[ModelHelpers] = None
    imports: tuple[ImportRequest, ...] = ()
    cyclic: bool = False

    @property
    def module(self) -> str:
        return f"models/{self.file_stem}"

    @property
    def type_names(self) -> tuple[str, ...]:
        """Names exported from the module that exist only at the type level."""
        return tuple(
            declaration.name
            for declaration in self.declarations
            if isinstance(declaration, (Interface, TypeAlias))
        )

    @property
    def value_names(self) -> tuple[str, ...]:
        """Names exported from the module that exist at run time."""
        names = [
            declaration.name
            for declaration in self.declarations
            if isinstance(declaration, (Enum, Function, Class))
        ]
        if self.helpers is not None:
            names.extend(helper_function_names(self.helpers))
        return tuple(names)


def helper_function_names(helpers: ModelHelpers) -> tuple[str, ...]:
    """Return the function names the helper template defines."""
    name = helpers.name
    return (
        f"instanceOf{name}",
        f"{name}FromJSON",
        f"{name}FromJSONTyped",
        f"{name}ToJSON",
        f"{name}ToJSONTyped",
    )


@dataclass(frozen=True)
class LoweredApi:
    """One API client class and what its file must import."""

    tag: str
    class_name: str
    file_stem: str
    declaration: Class
    imports: tuple[ImportRequest, ...] = ()
    operation_count: int = 0

    @property
    def module(self) -> str:
        return f"apis/{self.file_stem}"


@dataclass
class LoweredProgram:
    """Everything the file planner needs, in deterministic order."""

    models: list[LoweredModel] = field(default_factory=list)
    apis: list[LoweredApi] = field(default_factory=list)


@dataclass(frozen=True)
class GenerationResult:
    """Files emitted by one run, sorted by path, plus non-fatal findings."""

    files: tuple[GeneratedFile, ...]
    warnings: tuple[ParseWarning, ...] = ()
    languages: tuple[str, ...] = ()

    def by_path(self) -> dict[str, GeneratedFile]:
        return {item.path: item for item in self.files}
