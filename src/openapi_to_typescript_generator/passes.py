"""Transform passes over the document model.

Each pass reads and replaces ``IrContext.document`` (the model is immutable,
so a pass builds a new tree) or fills one of the analysis side tables.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import ClassVar, Optional

from .analysis import (
    SchemaAnalysis,
    SchemaKind,
    build_dependency_graph,
    classify_schemas,
    find_cycles,
)
from .config import GeneratorConfig
from .document import (
    HTTP_METHODS,
    ArraySchema,
    CompositeSchema,
    Document,
    ObjectSchema,
    PathItem,
    Reference,
    SchemaBase,
    SchemaOrRef,
    escape_pointer_token,
    iter_document_references,
    map_document_schemas,
    map_schema,
)
from .errors import (
    ErrorCode,
    ParseWarning,
    ReferenceResolutionError,
    SourceLocation,
    TransformError,
)
from .loader import validate_structure
from .naming import (
    DEFAULT_TAG,
    GENERATED_CODE_NAMES,
    api_class_name,
    convert_case,
    identifier,
)
from .resolver import ReferenceResolver, parse_pointer, schema_name

logger = logging.getLogger(__name__)

_PATH_PARAM_RE = re.compile(r"^\{[^{}]+\}$")


@dataclass
class IrContext:
    """The document being transformed plus the side tables passes produce."""

    document: Document
    config: GeneratorConfig = field(default_factory=GeneratorConfig)
    kinds: dict[str, SchemaKind] = field(default_factory=dict)
    dependencies: dict[str, tuple[str, ...]] = field(default_factory=dict)
    cycles: tuple[tuple[str, ...], ...] = ()
    renames: dict[str, str] = field(default_factory=dict)
    warnings: list[ParseWarning] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)

    @property
    def analysis(self) -> SchemaAnalysis:
        """Return a read-only snapshot of the analysis side tables."""
        return SchemaAnalysis(
            kinds=dict(self.kinds),
            dependencies=dict(self.dependencies),
            cycles=self.cycles,
        )

    def warn(self, message: str, openapi_path: Optional[str] = None) -> None:
        """Record a non-fatal finding."""
        location = SourceLocation(file=self.document.source, openapi_path=openapi_path)
        self.warnings.append(ParseWarning(message, location))


class TransformPass(ABC):
    """A named unit of transformation with declared dependencies."""

    name: ClassVar[str]

    def dependencies(self) -> tuple[str, ...]:
        """Return the names of passes that must run before this one."""
        return ()

    @abstractmethod
    def transform(self, context: IrContext) -> None:
        """Apply the pass to ``context``, raising ``GeneratorError`` on failure."""

    def error(
        self,
        message: str,
        code: ErrorCode,
        openapi_path: Optional[str] = None,
    ) -> TransformError:
        """Build a ``TransformError`` scoped to this pass."""
        location = SourceLocation(openapi_path=openapi_path) if openapi_path else None
        return TransformError(message, code=code, pass_name=self.name, location=location)


class ValidationPass(TransformPass):
    """Reassert the structural invariants checked at parse time."""

    name = "validation"

    def transform(self, context: IrContext) -> None:
        validate_structure(context.document, accept_openapi_30=context.config.accept_openapi_30)


class ReferenceResolutionPass(TransformPass):
    """Validate every pointer and collapse alias chains.

    Missing targets and pure alias cycles are fatal. External pointers are
    reported as warnings and left in place.
    """

    name = "reference-resolution"

    def dependencies(self) -> tuple[str, ...]:
        return ("validation",)

    def transform(self, context: IrContext) -> None:
        document = context.document
        resolver = ReferenceResolver(document)
        final: dict[str, str] = {}
        for location, reference in iter_document_references(document):
            try:
                parse_pointer(reference.pointer)
            except ReferenceResolutionError as exc:
                if exc.code is not ErrorCode.EXTERNAL_REFERENCE:
                    raise
                context.warn(f"External reference {reference.pointer} is not resolved", location)
                continue
            final[reference.pointer] = resolver.final_pointer(reference.pointer)

        aliases = {pointer: target for pointer, target in final.items() if pointer != target}
        if not aliases:
            return

        def _collapse(schema: SchemaOrRef) -> SchemaOrRef:
            if isinstance(schema, Reference) and schema.pointer in aliases:
                return Reference(aliases[schema.pointer])
            return schema

        for pointer, target in sorted(aliases.items()):
            logger.debug("Collapsing alias chain %s -> %s", pointer, target)
        context.document = map_document_schemas(document, _collapse)


def normalize_path(path: str) -> str:
    """Return ``path`` with a leading slash, no repeated or trailing slashes."""
    normalized = re.sub(r"/{2,}", "/", "/" + path.strip())
    if len(normalized) > 1:
        normalized = normalized.rstrip("/") or "/"
    return normalized


class PathNormalizationPass(TransformPass):
    """Canonicalize path keys and sort paths and their operations."""

    name = "path-normalization"

    def dependencies(self) -> tuple[str, ...]:
        return ("validation",)

    def transform(self, context: IrContext) -> None:
        normalized: dict[str, PathItem] = {}
        origins: dict[str, str] = {}
        for path, item in context.document.paths.items():
            key = normalize_path(path)
            if key in normalized:
                raise self.error(
                    f"Paths {origins[key]!r} and {path!r} both normalize to {key!r}",
                    ErrorCode.NORMALIZATION_CONFLICT,
                    f"#/paths/{escape_pointer_token(path)}",
                )
            if key != path:
                logger.debug("Normalized path %r to %r", path, key)
            origins[key] = path
            operations = {
                method: item.operations[method]
                for method in HTTP_METHODS
                if method in item.operations
            }
            normalized[key] = replace(item, operations=operations)
        paths = {key: normalized[key] for key in sorted(normalized)}
        context.document = replace(context.document, paths=paths)


def _api_class_names(document: Document) -> frozenset[str]:
    return frozenset(
        api_class_name(operation.tags[0] if operation.tags else DEFAULT_TAG)
        for item in document.paths.values()
        for operation in item.operations.values()
    )


class NamingConventionPass(TransformPass):
    """Rename component schemas (and optionally path segments) to the configured convention.

    A schema whose new name is already used by the generated client, such as
    ``Blob``, ``BaseAPI`` or an API class name, gets a ``Model`` suffix.
    """

    name = "naming-convention"

    def dependencies(self) -> tuple[str, ...]:
        return ("reference-resolution",)

    def transform(self, context: IrContext) -> None:
        document = context.document
        convention = context.config.naming.types
        renamed: dict[str, str] = {}
        owners: dict[str, str] = {}
        taken = GENERATED_CODE_NAMES | _api_class_names(document)
        for name in document.components.schemas:
            new_name = identifier(name, convention)
            if new_name in taken:
                shadowed = new_name
                new_name = f"{shadowed}Model"
                context.warn(
                    f"Schema {name!r} is renamed to {new_name!r}; "
                    f"{shadowed!r} is used by the generated client",
                    f"#/components/schemas/{escape_pointer_token(name)}",
                )
            if new_name in owners:
                raise self.error(
                    f"Schemas {owners[new_name]!r} and {name!r} both rename to {new_name!r}",
                    ErrorCode.RENAME_COLLISION,
                    f"#/components/schemas/{escape_pointer_token(name)}",
                )
            owners[new_name] = name
            renamed[name] = new_name

        changes = {old: new for old, new in renamed.items() if old != new}
        for old, new in changes.items():
            logger.debug("Renamed schema %s to %s", old, new)
        context.renames.update(changes)

        if changes:
            document = replace(
                document,
                components=replace(
                    document.components,
                    schemas={
                        renamed[name]: schema
                        for name, schema in document.components.schemas.items()
                    },
                ),
            )

            def _rename(schema: SchemaOrRef) -> SchemaOrRef:
                if isinstance(schema, Reference):
                    target = schema_name(schema.pointer)
                    if target in changes:
                        pointer = f"#/components/schemas/{escape_pointer_token(changes[target])}"
                        return Reference(pointer)
                return schema

            document = map_document_schemas(document, _rename)

        if context.config.naming.paths is not None:
            document = self._rename_paths(document, context)
        context.document = document

    def _rename_paths(self, document: Document, context: IrContext) -> Document:
        convention = context.config.naming.paths
        assert convention is not None
        paths: dict[str, PathItem] = {}
        for path, item in document.paths.items():
            segments = [
                segment
                if _PATH_PARAM_RE.match(segment)
                else convert_case(segment, convention) or segment
                for segment in path.split("/")
            ]
            new_path = "/".join(segments)
            if new_path in paths:
                raise self.error(
                    f"Two paths rename to {new_path!r}",
                    ErrorCode.RENAME_COLLISION,
                    f"#/paths/{escape_pointer_token(path)}",
                )
            if new_path != path:
                logger.debug("Renamed path %s to %s", path, new_path)
            paths[new_path] = item
        return replace(document, paths=paths)


class SchemaNormalizationPass(TransformPass):
    """Fill missing array items, collapse singleton compositions, optionally sort properties."""

    name = "schema-normalization"

    def dependencies(self) -> tuple[str, ...]:
        return ("reference-resolution",)

    def transform(self, context: IrContext) -> None:
        sort_properties = context.config.emission.sort_properties

        def _normalizer(location: str) -> Callable[[SchemaOrRef], SchemaOrRef]:
            def _normalize(schema: SchemaOrRef) -> SchemaOrRef:
                if isinstance(schema, ArraySchema) and schema.items is None:
                    context.warn(
                        "Array schema without 'items'; using a free-form item type", location
                    )
                    return replace(schema, items=ObjectSchema(additional_properties=True))
                if isinstance(schema, ObjectSchema) and sort_properties:
                    return replace(schema, properties=dict(sorted(schema.properties.items())))
                if (
                    isinstance(schema, CompositeSchema)
                    and len(schema.members) == 1
                    and not schema.nullable
                ):
                    return _unwrap(schema)
                return schema

            return _normalize

        document = context.document
        schemas = {
            name: map_schema(
                schema, _normalizer(f"#/components/schemas/{escape_pointer_token(name)}")
            )
            for name, schema in document.components.schemas.items()
        }
        document = replace(document, components=replace(document.components, schemas=schemas))
        context.document = map_document_schemas(document, _normalizer("#/paths"))


def _unwrap(schema: CompositeSchema) -> SchemaOrRef:
    member = schema.members[0]
    if isinstance(member, SchemaBase):
        return replace(
            member,
            title=member.title or schema.title,
            description=member.description or schema.description,
            deprecated=member.deprecated or schema.deprecated,
        )
    return member


class TypeInferencePass(TransformPass):
    """Materialize the schema kind table."""

    name = "type-inference"

    def dependencies(self) -> tuple[str, ...]:
        return ("naming-convention", "schema-normalization")

    def transform(self, context: IrContext) -> None:
        context.kinds = classify_schemas(context.document.components.schemas)


class DependencyAnalysisPass(TransformPass):
    """Build direct dependency sets between component schemas."""

    name = "dependency-analysis"

    def dependencies(self) -> tuple[str, ...]:
        return ("naming-convention", "schema-normalization")

    def transform(self, context: IrContext) -> None:
        context.dependencies = build_dependency_graph(context.document.components.schemas)


class CircularReferenceDetectionPass(TransformPass):
    """Record dependency cycles; cycles are not fatal."""

    name = "circular-reference-detection"

    def dependencies(self) -> tuple[str, ...]:
        return ("dependency-analysis",)

    def transform(self, context: IrContext) -> None:
        context.cycles = find_cycles(context.dependencies)
        for cycle in context.cycles:
            logger.debug("Detected schema cycle: %s", " -> ".join(cycle))
