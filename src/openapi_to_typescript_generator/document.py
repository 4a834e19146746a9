"""In-memory OpenAPI document model.

The model is a tree of frozen dataclasses. Transform passes never mutate a
node in place; they build a replacement with :func:`dataclasses.replace` and
the helpers in this module, so every stage sees a consistent snapshot.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Optional

from .json_types import JSONObject, JSONValue, as_list, as_object, string_or_none

HTTP_METHODS: tuple[str, ...] = (
    "get",
    "post",
    "put",
    "delete",
    "patch",
    "head",
    "options",
    "trace",
)

COMPONENT_SECTIONS: tuple[str, ...] = (
    "schemas",
    "responses",
    "parameters",
    "requestBodies",
    "securitySchemes",
)

_PRIMITIVE_TYPES = {"string", "integer", "number", "boolean", "null"}
_CONSTRAINT_KEYS = (
    "minLength",
    "maxLength",
    "pattern",
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "multipleOf",
    "default",
    "example",
)


@dataclass(frozen=True)
class Reference:
    """A ``$ref`` pointer recorded verbatim."""

    pointer: str


@dataclass(frozen=True, kw_only=True)
class SchemaBase:
    """Metadata shared by every inline schema variant."""

    title: Optional[str] = None
    description: Optional[str] = None
    nullable: bool = False
    deprecated: bool = False


@dataclass(frozen=True, kw_only=True)
class ObjectSchema(SchemaBase):
    """An object with ordered properties."""

    properties: dict[str, SchemaOrRef] = field(default_factory=dict)
    required: frozenset[str] = frozenset()
    additional_properties: SchemaOrRef | bool | None = None


@dataclass(frozen=True, kw_only=True)
class ArraySchema(SchemaBase):
    """An array; ``items`` is ``None`` only before schema normalization."""

    items: Optional[SchemaOrRef] = None


class Combinator(StrEnum):
    """Composition keywords."""

    ONE_OF = "oneOf"
    ANY_OF = "anyOf"
    ALL_OF = "allOf"


@dataclass(frozen=True, kw_only=True)
class CompositeSchema(SchemaBase):
    """A ``oneOf``, ``anyOf`` or ``allOf`` composition."""

    combinator: Combinator
    members: tuple[SchemaOrRef, ...] = ()


@dataclass(frozen=True, kw_only=True)
class EnumSchema(SchemaBase):
    """A closed set of literal values."""

    values: tuple[JSONValue, ...] = ()
    base_type: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class PrimitiveSchema(SchemaBase):
    """A scalar type with optional format and validation constraints."""

    type: str
    format: Optional[str] = None
    constraints: dict[str, JSONValue] = field(default_factory=dict)


type Schema = ObjectSchema | ArraySchema | CompositeSchema | EnumSchema | PrimitiveSchema
type SchemaOrRef = Schema | Reference


@dataclass(frozen=True)
class Info:
    """Document ``info`` block."""

    title: str
    version: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Server:
    """One entry of the ``servers`` list."""

    url: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Tag:
    """One entry of the ``tags`` list."""

    name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Parameter:
    """An operation or path-item parameter."""

    name: str
    location: str
    required: bool = False
    schema: Optional[SchemaOrRef] = None
    description: Optional[str] = None
    deprecated: bool = False


@dataclass(frozen=True)
class MediaType:
    """Schema for one content type."""

    schema: Optional[SchemaOrRef] = None


@dataclass(frozen=True)
class RequestBody:
    """An operation request body."""

    content: dict[str, MediaType] = field(default_factory=dict)
    required: bool = False
    description: Optional[str] = None


@dataclass(frozen=True)
class Response:
    """One response of an operation."""

    description: Optional[str] = None
    content: dict[str, MediaType] = field(default_factory=dict)


@dataclass(frozen=True)
class Operation:
    """An HTTP-method-keyed action on a path."""

    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: tuple[str, ...] = ()
    parameters: tuple[Parameter | Reference, ...] = ()
    request_body: Optional[RequestBody | Reference] = None
    responses: dict[str, Response | Reference] = field(default_factory=dict)
    deprecated: bool = False


@dataclass(frozen=True)
class PathItem:
    """Operations available on one path, keyed by lowercase HTTP method."""

    operations: dict[str, Operation] = field(default_factory=dict)
    parameters: tuple[Parameter | Reference, ...] = ()


@dataclass(frozen=True)
class Components:
    """Named, reusable document sections."""

    schemas: dict[str, SchemaOrRef] = field(default_factory=dict)
    responses: dict[str, Response | Reference] = field(default_factory=dict)
    parameters: dict[str, Parameter | Reference] = field(default_factory=dict)
    request_bodies: dict[str, RequestBody | Reference] = field(default_factory=dict)
    security_schemes: dict[str, JSONObject] = field(default_factory=dict)

    def section(self, name: str) -> Mapping[str, object]:
        """Return a component section by its OpenAPI key."""
        sections: dict[str, Mapping[str, object]] = {
            "schemas": self.schemas,
            "responses": self.responses,
            "parameters": self.parameters,
            "requestBodies": self.request_bodies,
            "securitySchemes": self.security_schemes,
        }
        return sections[name]


@dataclass(frozen=True)
class Document:
    """A parsed OpenAPI document."""

    openapi: str
    info: Info
    paths: dict[str, PathItem]
    servers: tuple[Server, ...] = ()
    components: Components = Components()
    tags: tuple[Tag, ...] = ()
    source: Optional[str] = None


def parse_schema(node: JSONValue) -> SchemaOrRef:
    """Build a schema variant from a raw JSON schema node."""
    raw = as_object(node)
    ref = raw.get("$ref")
    if isinstance(ref, str):
        return Reference(ref)

    meta = {
        "title": string_or_none(raw.get("title")),
        "description": string_or_none(raw.get("description")),
        "deprecated": raw.get("deprecated") is True,
    }
    nullable = raw.get("nullable") is True
    raw_type = raw.get("type")
    types: list[str] = []
    if isinstance(raw_type, str):
        types = [raw_type]
    elif isinstance(raw_type, list):
        types = [item for item in raw_type if isinstance(item, str)]
    if "null" in types and len(types) > 1:
        nullable = True
        types = [item for item in types if item != "null"]

    if "const" in raw:
        values: list[JSONValue] = [raw["const"]]
        return _enum_schema(values, types, nullable, meta)
    if isinstance(raw.get("enum"), list):
        return _enum_schema(as_list(raw["enum"]), types, nullable, meta)

    for combinator in Combinator:
        members = raw.get(combinator.value)
        if isinstance(members, list):
            return CompositeSchema(
                combinator=combinator,
                members=tuple(parse_schema(member) for member in members),
                nullable=nullable,
                **meta,
            )

    if len(types) > 1:
        return CompositeSchema(
            combinator=Combinator.ANY_OF,
            members=tuple(_parse_typed(raw, item, {}) for item in types),
            nullable=nullable,
            **meta,
        )

    schema_type = types[0] if types else _infer_type(raw)
    return _parse_typed(raw, schema_type, {"nullable": nullable, **meta})


def _parse_typed(raw: JSONObject, schema_type: str, meta: dict[str, object]) -> Schema:
    if schema_type == "array":
        items = raw.get("items")
        return ArraySchema(
            items=parse_schema(items) if isinstance(items, Mapping) else None,
            **meta,
        )
    if schema_type in _PRIMITIVE_TYPES:
        constraints = {key: raw[key] for key in _CONSTRAINT_KEYS if key in raw}
        return PrimitiveSchema(
            type=schema_type,
            format=string_or_none(raw.get("format")),
            constraints=constraints,
            **meta,
        )

    properties = {
        str(name): parse_schema(value)
        for name, value in as_object(raw.get("properties")).items()
        if isinstance(value, Mapping)
    }
    required = frozenset(item for item in as_list(raw.get("required")) if isinstance(item, str))
    additional = raw.get("additionalProperties")
    additional_properties: SchemaOrRef | bool | None
    if isinstance(additional, bool):
        additional_properties = additional
    elif isinstance(additional, Mapping):
        additional_properties = parse_schema(additional) if additional else True
    elif not properties:
        additional_properties = True
    else:
        additional_properties = None
    return ObjectSchema(
        properties=properties,
        required=required,
        additional_properties=additional_properties,
        **meta,
    )


def _infer_type(raw: JSONObject) -> str:
    if "items" in raw:
        return "array"
    return "object"


def _enum_schema(
    values: list[JSONValue],
    types: list[str],
    nullable: bool,
    meta: dict[str, object],
) -> EnumSchema:
    if any(value is None for value in values):
        nullable = True
    literals = tuple(value for value in values if value is not None)
    base_type = types[0] if types else _literal_base_type(literals)
    return EnumSchema(values=literals, base_type=base_type, nullable=nullable, **meta)


def _literal_base_type(values: tuple[JSONValue, ...]) -> Optional[str]:
    if values and all(isinstance(value, str) for value in values):
        return "string"
    if values and all(isinstance(value, bool) for value in values):
        return "boolean"
    if values and all(
        isinstance(value, (int, float)) and not isinstance(value, bool) for value in values
    ):
        return "number"
    return None


def iter_schema_children(schema: SchemaOrRef) -> Iterator[SchemaOrRef]:
    """Yield the direct child schemas of ``schema``."""
    if isinstance(schema, ObjectSchema):
        yield from schema.properties.values()
        if isinstance(schema.additional_properties, (Reference, SchemaBase)):
            yield schema.additional_properties
    elif isinstance(schema, ArraySchema):
        if schema.items is not None:
            yield schema.items
    elif isinstance(schema, CompositeSchema):
        yield from schema.members


def map_schema(
    schema: SchemaOrRef,
    func: Callable[[SchemaOrRef], SchemaOrRef],
) -> SchemaOrRef:
    """Rebuild ``schema`` bottom-up, applying ``func`` to every node."""
    if isinstance(schema, ObjectSchema):
        additional = schema.additional_properties
        if isinstance(additional, (Reference, SchemaBase)):
            additional = map_schema(additional, func)
        schema = replace(
            schema,
            properties={
                name: map_schema(value, func) for name, value in schema.properties.items()
            },
            additional_properties=additional,
        )
    elif isinstance(schema, ArraySchema) and schema.items is not None:
        schema = replace(schema, items=map_schema(schema.items, func))
    elif isinstance(schema, CompositeSchema):
        schema = replace(
            schema,
            members=tuple(map_schema(member, func) for member in schema.members),
        )
    return func(schema)


def map_document_schemas(
    document: Document,
    func: Callable[[SchemaOrRef], SchemaOrRef],
) -> Document:
    """Apply :func:`map_schema` to every schema slot of the document."""

    def _schema(value: Optional[SchemaOrRef]) -> Optional[SchemaOrRef]:
        return map_schema(value, func) if value is not None else None

    def _media(content: dict[str, MediaType]) -> dict[str, MediaType]:
        return {key: MediaType(schema=_schema(media.schema)) for key, media in content.items()}

    def _parameter(value: Parameter | Reference) -> Parameter | Reference:
        if isinstance(value, Reference):
            return value
        return replace(value, schema=_schema(value.schema))

    def _body(value: Optional[RequestBody | Reference]) -> Optional[RequestBody | Reference]:
        if value is None or isinstance(value, Reference):
            return value
        return replace(value, content=_media(value.content))

    def _response(value: Response | Reference) -> Response | Reference:
        if isinstance(value, Reference):
            return value
        return replace(value, content=_media(value.content))

    def _operation(operation: Operation) -> Operation:
        return replace(
            operation,
            parameters=tuple(_parameter(item) for item in operation.parameters),
            request_body=_body(operation.request_body),
            responses={key: _response(value) for key, value in operation.responses.items()},
        )

    paths = {
        path: replace(
            item,
            operations={method: _operation(op) for method, op in item.operations.items()},
            parameters=tuple(_parameter(param) for param in item.parameters),
        )
        for path, item in document.paths.items()
    }
    components = replace(
        document.components,
        schemas={
            name: map_schema(value, func) for name, value in document.components.schemas.items()
        },
        responses={name: _response(value) for name, value in document.components.responses.items()},
        parameters={
            name: _parameter(value) for name, value in document.components.parameters.items()
        },
        request_bodies={
            name: _body(value) or value
            for name, value in document.components.request_bodies.items()
        },
    )
    return replace(document, paths=paths, components=components)


def iter_document_references(document: Document) -> Iterator[tuple[str, Reference]]:
    """Yield ``(openapi_path, reference)`` for every ``$ref`` in the document."""
    for name, schema in document.components.schemas.items():
        yield from _schema_references(schema, f"#/components/schemas/{name}")
    for name, response in document.components.responses.items():
        yield from _response_references(response, f"#/components/responses/{name}")
    for name, parameter in document.components.parameters.items():
        yield from _parameter_references(parameter, f"#/components/parameters/{name}")
    for name, body in document.components.request_bodies.items():
        yield from _body_references(body, f"#/components/requestBodies/{name}")

    for path, item in document.paths.items():
        base = f"#/paths/{escape_pointer_token(path)}"
        for index, parameter in enumerate(item.parameters):
            yield from _parameter_references(parameter, f"{base}/parameters/{index}")
        for method, operation in item.operations.items():
            op_base = f"{base}/{method}"
            for index, parameter in enumerate(operation.parameters):
                yield from _parameter_references(parameter, f"{op_base}/parameters/{index}")
            if operation.request_body is not None:
                yield from _body_references(operation.request_body, f"{op_base}/requestBody")
            for status, response in operation.responses.items():
                yield from _response_references(response, f"{op_base}/responses/{status}")


def _schema_references(schema: SchemaOrRef, location: str) -> Iterator[tuple[str, Reference]]:
    if isinstance(schema, Reference):
        yield location, schema
        return
    if isinstance(schema, ObjectSchema):
        for name, value in schema.properties.items():
            yield from _schema_references(
                value, f"{location}/properties/{escape_pointer_token(name)}"
            )
        if isinstance(schema.additional_properties, (Reference, SchemaBase)):
            yield from _schema_references(
                schema.additional_properties, f"{location}/additionalProperties"
            )
    elif isinstance(schema, ArraySchema) and schema.items is not None:
        yield from _schema_references(schema.items, f"{location}/items")
    elif isinstance(schema, CompositeSchema):
        for index, member in enumerate(schema.members):
            yield from _schema_references(member, f"{location}/{schema.combinator}/{index}")


def _parameter_references(
    parameter: Parameter | Reference, location: str
) -> Iterator[tuple[str, Reference]]:
    if isinstance(parameter, Reference):
        yield location, parameter
    elif parameter.schema is not None:
        yield from _schema_references(parameter.schema, f"{location}/schema")


def _body_references(
    body: RequestBody | Reference, location: str
) -> Iterator[tuple[str, Reference]]:
    if isinstance(body, Reference):
        yield location, body
        return
    for media_type, media in body.content.items():
        if media.schema is not None:
            yield from _schema_references(
                media.schema, f"{location}/content/{escape_pointer_token(media_type)}/schema"
            )


def _response_references(
    response: Response | Reference, location: str
) -> Iterator[tuple[str, Reference]]:
    if isinstance(response, Reference):
        yield location, response
        return
    for media_type, media in response.content.items():
        if media.schema is not None:
            yield from _schema_references(
                media.schema, f"{location}/content/{escape_pointer_token(media_type)}/schema"
            )


def escape_pointer_token(token: str) -> str:
    """Escape one JSON pointer token."""
    return token.replace("~", "~0").replace("/", "~1")


def unescape_pointer_token(token: str) -> str:
    """Unescape one JSON pointer token."""
    return token.replace("~1", "/").replace("~0", "~")
