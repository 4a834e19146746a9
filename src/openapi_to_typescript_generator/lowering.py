"""Schema to TypeScript type lowering and model declarations."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional

from .analysis import SchemaAnalysis, SchemaKind, classify
from .config import GeneratorConfig, NamingConvention
from .document import (
    ArraySchema,
    Combinator,
    CompositeSchema,
    Document,
    EnumSchema,
    ObjectSchema,
    PrimitiveSchema,
    Reference,
    SchemaBase,
    SchemaOrRef,
)
from .errors import ErrorCode, LoweringError, ReferenceResolutionError, SourceLocation
from .model_types import ImportRequest, LoweredModel, ModelHelpers
from .naming import convert_case, file_stem, identifier
from .resolver import schema_name
from .ts_ast import (
    ArrayType,
    Declaration,
    Enum,
    EnumMember,
    IndexSignature,
    Interface,
    IntersectionType,
    LiteralType,
    ObjectType,
    PrimitiveType,
    Property,
    TsPrimitive,
    TypeAlias,
    TypeExpr,
    TypeReference,
    UnionType,
    referenced_names,
)

logger = logging.getLogger(__name__)

UNKNOWN = PrimitiveType(TsPrimitive.UNKNOWN)
NULL = PrimitiveType(TsPrimitive.NULL)

_PRIMITIVES: dict[str, TsPrimitive] = {
    "string": TsPrimitive.STRING,
    "integer": TsPrimitive.NUMBER,
    "number": TsPrimitive.NUMBER,
    "boolean": TsPrimitive.BOOLEAN,
    "null": TsPrimitive.NULL,
}


def nullable(expr: TypeExpr) -> TypeExpr:
    """Return ``expr | null`` without duplicating an existing ``null`` member."""
    if expr == NULL:
        return expr
    if isinstance(expr, UnionType):
        if NULL in expr.members:
            return expr
        return UnionType((*expr.members, NULL))
    return UnionType((expr, NULL))


def describe(schema: Optional[SchemaOrRef]) -> Optional[str]:
    """Return documentation text for a schema, preferring its description."""
    if not isinstance(schema, SchemaBase):
        return None
    return schema.description or schema.title


def is_deprecated(schema: Optional[SchemaOrRef]) -> bool:
    return isinstance(schema, SchemaBase) and schema.deprecated


class TypeLowering:
    """Lower schemas of one transformed document to TypeScript.

    References to component schemas always lower to ``TypeReference(name)``,
    so no named schema is ever inlined into another and cycles need no
    special casing.
    """

    def __init__(
        self,
        document: Document,
        config: GeneratorConfig,
        analysis: SchemaAnalysis,
    ) -> None:
        self._document = document
        self._config = config
        self._analysis = analysis
        self._schemas = document.components.schemas
        self._stems = _model_stems(self._schemas, config.naming.files)

    def model_module(self, name: str) -> str:
        """Return the module id of the file declaring schema ``name``."""
        return f"models/{self._stems[name]}"

    def lower(self, schema: Optional[SchemaOrRef]) -> TypeExpr:
        """Lower one schema (or a missing schema) to a type expression."""
        if schema is None:
            return UNKNOWN
        if isinstance(schema, Reference):
            return self.lower_reference(schema.pointer)
        expr = self._lower_inline(schema)
        if schema.nullable:
            return nullable(expr)
        return expr

    def lower_reference(self, pointer: str) -> TypeExpr:
        """Lower a ``$ref``; external pointers become ``unknown``."""
        if not pointer.startswith("#"):
            return UNKNOWN
        name = schema_name(pointer)
        if name is None:
            raise LoweringError(
                f"Schema reference must point into #/components/schemas: {pointer}",
                code=ErrorCode.UNSUPPORTED_SCHEMA_SHAPE,
                location=SourceLocation(openapi_path=pointer),
            )
        if name not in self._schemas:
            raise ReferenceResolutionError(
                f"Unresolvable reference: {pointer}",
                code=ErrorCode.INVALID_REFERENCE,
                pointer=pointer,
            )
        return TypeReference(name)

    def _lower_inline(self, schema: SchemaBase) -> TypeExpr:
        if isinstance(schema, PrimitiveSchema):
            return PrimitiveType(_PRIMITIVES.get(schema.type, TsPrimitive.UNKNOWN))
        if isinstance(schema, EnumSchema):
            return self._lower_enum(schema)
        if isinstance(schema, ArraySchema):
            return ArrayType(self.lower(schema.items))
        if isinstance(schema, CompositeSchema):
            return self._lower_composite(schema)
        if isinstance(schema, ObjectSchema):
            return self._lower_object(schema)
        raise LoweringError(
            f"Unsupported schema variant {type(schema).__name__}",
            code=ErrorCode.UNSUPPORTED_SCHEMA_SHAPE,
        )

    def _lower_enum(self, schema: EnumSchema) -> TypeExpr:
        literals: list[TypeExpr] = []
        for value in schema.values:
            if not isinstance(value, (str, int, float, bool)):
                raise LoweringError(
                    f"Enum value {value!r} is not a string, number or boolean literal",
                    code=ErrorCode.UNSUPPORTED_SCHEMA_SHAPE,
                )
            literal = LiteralType(value)
            if literal not in literals:
                literals.append(literal)
        if not literals:
            if schema.base_type in _PRIMITIVES:
                return PrimitiveType(_PRIMITIVES[schema.base_type])
            return UNKNOWN
        if len(literals) == 1:
            return literals[0]
        return UnionType(tuple(literals))

    def _lower_composite(self, schema: CompositeSchema) -> TypeExpr:
        members: list[TypeExpr] = []
        for member in schema.members:
            expr = self.lower(member)
            if expr not in members:
                members.append(expr)
        if not members:
            return UNKNOWN
        if len(members) == 1:
            return members[0]
        if schema.combinator is Combinator.ALL_OF:
            return IntersectionType(tuple(members))
        return UnionType(tuple(members))

    def _lower_object(self, schema: ObjectSchema) -> TypeExpr:
        index = self._index_signature(schema)
        if not schema.properties:
            if index is None or index.value == UNKNOWN:
                return UNKNOWN
            return ObjectType((), index)
        return ObjectType(self.properties(schema), index)

    def _index_signature(self, schema: ObjectSchema) -> Optional[IndexSignature]:
        additional = schema.additional_properties
        if isinstance(additional, (Reference, SchemaBase)):
            return IndexSignature(self.lower(additional))
        if additional is True:
            return IndexSignature(UNKNOWN)
        return None

    def properties(self, schema: ObjectSchema) -> tuple[Property, ...]:
        """Lower object properties in document order.

        With ``naming.properties == "camel"`` field names are camel-cased and
        the JSON key is kept as ``wire_name``; names that would collide or
        cannot be camel-cased keep their original spelling.
        """
        names = self._property_names(list(schema.properties))
        result: list[Property] = []
        for wire, child in schema.properties.items():
            name = names[wire]
            result.append(
                Property(
                    name=name,
                    type=self.lower(child),
                    optional=wire not in schema.required,
                    documentation=describe(child),
                    deprecated=is_deprecated(child),
                    wire_name=wire if name != wire else None,
                )
            )
        return tuple(result)

    def _property_names(self, wires: list[str]) -> dict[str, str]:
        if self._config.naming.properties == "original":
            return {wire: wire for wire in wires}
        converted: dict[str, str] = {}
        for wire in wires:
            camel = convert_case(wire, NamingConvention.CAMEL)
            converted[wire] = camel if camel and not camel[0].isdigit() else wire
        counts = Counter(converted.values())
        return {
            wire: name if counts[name] == 1 or name == wire else wire
            for wire, name in converted.items()
        }

    def lower_models(self) -> list[LoweredModel]:
        """Lower every component schema in document order."""
        return [self.lower_model(name) for name in self._schemas]

    def lower_model(self, name: str) -> LoweredModel:
        """Build the top-level declarations for component schema ``name``."""
        schema = self._schemas[name]
        kind = self._analysis.kinds.get(name) or classify(schema)
        documentation = describe(schema)
        deprecated = is_deprecated(schema)
        helpers: Optional[ModelHelpers] = None
        imports: set[ImportRequest] = set()

        declaration: Declaration
        if self.has_interface(name):
            assert isinstance(schema, ObjectSchema)
            properties = self.properties(schema)
            index = self._index_signature(schema)
            declaration = Interface(
                name=name,
                properties=properties,
                index_signature=index,
                documentation=documentation,
                deprecated=deprecated,
            )
            helpers = ModelHelpers(
                kind="interface",
                name=name,
                properties=properties,
                has_index_signature=index is not None,
            )
        elif kind is SchemaKind.ENUM and self._enum_as_ts_enum(schema):
            assert isinstance(schema, EnumSchema)
            declaration = Enum(
                name=name,
                members=_enum_members(schema),
                documentation=documentation,
                deprecated=deprecated,
            )
        else:
            declaration = TypeAlias(
                name=name,
                type=self.lower(schema),
                documentation=documentation,
                deprecated=deprecated,
            )
            members = self._union_model_members(schema) if kind is SchemaKind.UNION else ()
            if members:
                helpers = ModelHelpers(kind="union", name=name, members=members)
                for member in members:
                    module = self.model_module(member)
                    imports.update(
                        ImportRequest(module, helper, type_only=False)
                        for helper in (
                            f"instanceOf{member}",
                            f"{member}FromJSONTyped",
                            f"{member}ToJSONTyped",
                        )
                    )

        for referenced in sorted(referenced_names(_declared_type(declaration)) - {name}):
            if referenced in self._schemas:
                imports.add(ImportRequest(self.model_module(referenced), referenced))

        cyclic = name in self._analysis.cyclic_names
        if cyclic:
            logger.debug("Schema %s is part of a cycle; emitted as a top-level declaration", name)
        return LoweredModel(
            name=name,
            file_stem=self._stems[name],
            declarations=(declaration,),
            helpers=helpers,
            imports=tuple(sorted(imports, key=lambda item: (item.module, item.name))),
            cyclic=cyclic,
        )

    def has_interface(self, name: str) -> bool:
        """Return whether schema ``name`` lowers to an interface with JSON helpers."""
        schema = self._schemas.get(name)
        kind = self._analysis.kinds.get(name) or (classify(schema) if schema else None)
        return (
            kind is SchemaKind.OBJECT
            and isinstance(schema, ObjectSchema)
            and not schema.nullable
        )

    def has_helpers(self, name: str) -> bool:
        """Return whether ``name`` gets ``FromJSON``/``ToJSON`` helpers."""
        schema = self._schemas.get(name)
        if schema is None:
            return False
        return self.has_interface(name) or bool(self._union_model_members(schema))

    def _union_model_members(self, schema: SchemaOrRef) -> tuple[str, ...]:
        if not isinstance(schema, CompositeSchema) or schema.combinator is Combinator.ALL_OF:
            return ()
        names: list[str] = []
        for member in schema.members:
            if not isinstance(member, Reference):
                return ()
            name = schema_name(member.pointer)
            if name is None or not self.has_interface(name):
                return ()
            if name not in names:
                names.append(name)
        return tuple(names)

    def _enum_as_ts_enum(self, schema: SchemaOrRef) -> bool:
        return (
            self._config.emission.enum_style == "enum"
            and isinstance(schema, EnumSchema)
            and not schema.nullable
            and bool(schema.values)
            and all(
                isinstance(value, (str, int, float)) and not isinstance(value, bool)
                for value in schema.values
            )
        )


def _declared_type(declaration: Declaration) -> TypeExpr:
    if isinstance(declaration, Interface):
        return ObjectType(declaration.properties, declaration.index_signature)
    if isinstance(declaration, TypeAlias):
        return declaration.type
    return UNKNOWN


def _enum_members(schema: EnumSchema) -> tuple[EnumMember, ...]:
    members: list[EnumMember] = []
    used: set[str] = set()
    for value in schema.values:
        assert isinstance(value, (str, int, float))
        base = identifier(str(value), NamingConvention.PASCAL) if str(value) else "Empty"
        name = base
        suffix = 2
        while name in used:
            name = f"{base}{suffix}"
            suffix += 1
        used.add(name)
        members.append(EnumMember(name, value))
    return tuple(members)


def _model_stems(schemas: dict[str, SchemaOrRef], convention: NamingConvention) -> dict[str, str]:
    stems: dict[str, str] = {}
    for name in schemas:
        stem = file_stem(name, convention)
        if stem == "index":
            stem = f"{stem}-model"
        stems[name] = stem
    return stems
