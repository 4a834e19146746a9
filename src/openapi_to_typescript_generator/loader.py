"""OpenAPI document loading and structural validation."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Literal, Optional

import yaml
from openapi_python_client.schema import OpenAPI
from pydantic import ValidationError

from .document import (
    Components,
    Document,
    HTTP_METHODS,
    Info,
    MediaType,
    Operation,
    Parameter,
    PathItem,
    Reference,
    RequestBody,
    Response,
    Server,
    Tag,
    escape_pointer_token,
    parse_schema,
)
from .errors import (
    DocumentValidationError,
    ErrorCode,
    ParseError,
    ParseWarning,
    SourceLocation,
)
from .json_types import JSONObject, JSONValue, as_list, as_object, string_or_none

logger = logging.getLogger(__name__)

type InputFormat = Literal["json", "yaml"]
type DocumentSource = bytes | str | Path

_KNOWN_TOP_LEVEL_KEYS = {
    "openapi",
    "info",
    "jsonSchemaDialect",
    "servers",
    "paths",
    "webhooks",
    "components",
    "security",
    "tags",
    "externalDocs",
}
_SUFFIX_FORMATS: dict[str, InputFormat] = {".json": "json", ".yaml": "yaml", ".yml": "yaml"}


def load_document(
    source: DocumentSource,
    format_hint: Optional[str] = None,
    *,
    accept_openapi_30: bool = False,
    validate: bool = True,
) -> tuple[Document, list[ParseWarning]]:
    """Parse and structurally validate an OpenAPI document.

    Args:
        source (DocumentSource): A path, raw bytes, or document text.
        format_hint (Optional[str]): ``"json"``, ``"yaml"``, or ``None`` to detect.
        accept_openapi_30 (bool): Whether ``3.0.*`` documents are accepted.
        validate (bool): Whether to run ``validate_structure`` before returning.

    Returns:
        tuple[Document, list[ParseWarning]]: The document and non-fatal findings.
    """
    text, file_name, hint = _read_source(source, format_hint)
    payload = parse_text(text, hint, file_name=file_name)
    warnings = conformance_warnings(payload)
    document = build_document(payload, file_name=file_name, warnings=warnings)
    if validate:
        validate_structure(document, accept_openapi_30=accept_openapi_30)
    logger.debug("Loaded document %r with %d paths", document.info.title, len(document.paths))
    return document, warnings


def _read_source(
    source: DocumentSource,
    format_hint: Optional[str],
) -> tuple[str, Optional[str], Optional[InputFormat]]:
    hint = _normalize_hint(format_hint)
    if isinstance(source, Path):
        try:
            raw = source.read_bytes()
        except OSError as exc:
            raise ParseError(
                f"Failed to read OpenAPI file {source}: {exc}",
                code=ErrorCode.FILE_READ,
                location=SourceLocation(file=str(source)),
            ) from exc
        if hint is None:
            hint = _SUFFIX_FORMATS.get(source.suffix.lower())
        return _decode(raw, str(source)), str(source), hint
    if isinstance(source, bytes):
        return _decode(source, None), None, hint
    return source, None, hint


def _normalize_hint(format_hint: Optional[str]) -> Optional[InputFormat]:
    if format_hint is None:
        return None
    hint = format_hint.strip().lower()
    if hint == "json":
        return "json"
    if hint in {"yaml", "yml"}:
        return "yaml"
    if hint in {"", "unknown", "auto"}:
        return None
    raise ParseError(
        f"Unsupported input format {format_hint!r}; expected 'json' or 'yaml'",
        code=ErrorCode.UNSUPPORTED_FORMAT,
    )


def _decode(raw: bytes, file_name: Optional[str]) -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ParseError(
            f"OpenAPI input is not valid UTF-8: {exc}",
            code=ErrorCode.FILE_READ,
            location=SourceLocation(file=file_name),
        ) from exc


def parse_text(
    text: str,
    hint: Optional[InputFormat],
    *,
    file_name: Optional[str] = None,
) -> JSONObject:
    """Decode document text into a raw JSON object.

    With no hint, JSON is attempted first and then YAML; when both fail the
    JSON error is reported.
    """
    if hint == "json":
        payload = _parse_json(text, file_name)
    elif hint == "yaml":
        payload = _parse_yaml(text, file_name)
    else:
        try:
            payload = _parse_json(text, file_name)
        except ParseError as json_error:
            try:
                payload = _parse_yaml(text, file_name)
            except ParseError:
                raise json_error from json_error.__cause__

    if not isinstance(payload, Mapping):
        raise ParseError(
            f"OpenAPI document must deserialize to a mapping, got {type(payload).__name__}",
            code=ErrorCode.YAML_PARSE if hint == "yaml" else ErrorCode.JSON_PARSE,
            location=SourceLocation(file=file_name),
        )
    return payload


def _parse_json(text: str, file_name: Optional[str]) -> JSONValue:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(
            f"Failed to parse JSON: {exc.msg}",
            code=ErrorCode.JSON_PARSE,
            location=SourceLocation(file=file_name, line=exc.lineno, column=exc.colno),
        ) from exc


def _parse_yaml(text: str, file_name: Optional[str]) -> JSONValue:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        line: Optional[int] = None
        column: Optional[int] = None
        mark = getattr(exc, "problem_mark", None)
        if mark is not None:
            line = mark.line + 1
            column = mark.column + 1
        raise ParseError(
            f"Failed to parse YAML: {exc}",
            code=ErrorCode.YAML_PARSE,
            location=SourceLocation(file=file_name, line=line, column=column),
        ) from exc


def conformance_warnings(payload: JSONObject) -> list[ParseWarning]:
    """Check the raw tree against the full OpenAPI model; findings are warnings."""
    warnings: list[ParseWarning] = []
    for key in payload:
        if isinstance(key, str) and key not in _KNOWN_TOP_LEVEL_KEYS and not key.startswith("x-"):
            warnings.append(
                ParseWarning(
                    f"Unknown top-level field {key!r}",
                    SourceLocation(openapi_path=f"#/{escape_pointer_token(key)}"),
                )
            )
    try:
        OpenAPI.model_validate(payload)
    except ValidationError as exc:
        for error in exc.errors():
            pointer = "/".join(escape_pointer_token(str(part)) for part in error["loc"])
            warnings.append(
                ParseWarning(
                    f"OpenAPI schema check: {error['msg']}",
                    SourceLocation(openapi_path=f"#/{pointer}"),
                )
            )
    return warnings


def build_document(
    payload: JSONObject,
    *,
    file_name: Optional[str] = None,
    warnings: Optional[list[ParseWarning]] = None,
) -> Document:
    """Build the document model from a raw JSON object.

    References are recorded verbatim; nothing is resolved here.
    """
    sink = warnings if warnings is not None else []
    version = payload.get("openapi")
    raw_info = as_object(payload.get("info"))
    info = Info(
        title=_string(raw_info.get("title")),
        version=_string(raw_info.get("version")),
        description=string_or_none(raw_info.get("description")),
    )
    servers = tuple(
        Server(url=_string(item.get("url")), description=string_or_none(item.get("description")))
        for item in (as_object(value) for value in as_list(payload.get("servers")))
        if isinstance(item.get("url"), str)
    )
    tags = tuple(
        Tag(name=_string(item.get("name")), description=string_or_none(item.get("description")))
        for item in (as_object(value) for value in as_list(payload.get("tags")))
        if isinstance(item.get("name"), str)
    )

    paths: dict[str, PathItem] = {}
    for path, raw_item in as_object(payload.get("paths")).items():
        if not isinstance(raw_item, Mapping):
            sink.append(
                ParseWarning(
                    f"Ignoring non-object path item for {path!r}",
                    SourceLocation(openapi_path=f"#/paths/{escape_pointer_token(str(path))}"),
                )
            )
            continue
        paths[str(path)] = _build_path_item(raw_item)

    return Document(
        openapi=version.strip() if isinstance(version, str) else "",
        info=info,
        paths=paths,
        servers=servers,
        components=_build_components(as_object(payload.get("components"))),
        tags=tags,
        source=file_name,
    )


def validate_structure(document: Document, *, accept_openapi_30: bool = False) -> None:
    """Check version prefix, non-empty title and version, and non-empty paths."""
    if not document.openapi:
        raise DocumentValidationError(
            "Missing or invalid 'openapi' version field",
            code=ErrorCode.MISSING_FIELD,
            location=SourceLocation(file=document.source, openapi_path="#/openapi"),
        )
    supported = document.openapi.startswith("3.1") or (
        accept_openapi_30 and document.openapi.startswith("3.0")
    )
    if not supported:
        raise DocumentValidationError(
            f"Unsupported OpenAPI version {document.openapi}; only 3.1.* is supported",
            code=ErrorCode.UNSUPPORTED_VERSION,
            location=SourceLocation(file=document.source, openapi_path="#/openapi"),
        )
    for field_name, value in (("title", document.info.title), ("version", document.info.version)):
        if not value.strip():
            raise DocumentValidationError(
                f"Missing required field info.{field_name}",
                code=ErrorCode.MISSING_FIELD,
                location=SourceLocation(file=document.source, openapi_path=f"#/info/{field_name}"),
            )
    if not document.paths:
        raise DocumentValidationError(
            "Document declares no paths; a client needs at least one operation",
            code=ErrorCode.EMPTY_PATHS,
            location=SourceLocation(file=document.source, openapi_path="#/paths"),
        )


def _string(value: JSONValue) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _reference_or[T](raw: JSONObject, build: Callable[[JSONObject], T]) -> T | Reference:
    ref = raw.get("$ref")
    if isinstance(ref, str):
        return Reference(ref)
    return build(raw)


def _build_path_item(raw: JSONObject) -> PathItem:
    operations: dict[str, Operation] = {}
    for method in HTTP_METHODS:
        raw_operation = raw.get(method)
        if isinstance(raw_operation, Mapping):
            operations[method] = _build_operation(raw_operation)
    return PathItem(
        operations=operations,
        parameters=_build_parameters(raw.get("parameters")),
    )


def _build_operation(raw: JSONObject) -> Operation:
    raw_body = raw.get("requestBody")
    request_body = (
        _reference_or(raw_body, _build_request_body) if isinstance(raw_body, Mapping) else None
    )
    responses = {
        str(status): _reference_or(as_object(value), _build_response)
        for status, value in as_object(raw.get("responses")).items()
        if isinstance(value, Mapping)
    }
    return Operation(
        operation_id=string_or_none(raw.get("operationId")),
        summary=string_or_none(raw.get("summary")),
        description=string_or_none(raw.get("description")),
        tags=tuple(tag for tag in as_list(raw.get("tags")) if isinstance(tag, str)),
        parameters=_build_parameters(raw.get("parameters")),
        request_body=request_body,
        responses=responses,
        deprecated=raw.get("deprecated") is True,
    )


def _build_parameters(value: JSONValue) -> tuple[Parameter | Reference, ...]:
    return tuple(
        _reference_or(as_object(item), _build_parameter)
        for item in as_list(value)
        if isinstance(item, Mapping)
    )


def _build_parameter(raw: JSONObject) -> Parameter:
    location = _string(raw.get("in")) or "query"
    schema = raw.get("schema")
    return Parameter(
        name=_string(raw.get("name")),
        location=location,
        required=raw.get("required") is True or location == "path",
        schema=parse_schema(schema) if isinstance(schema, Mapping) else None,
        description=string_or_none(raw.get("description")),
        deprecated=raw.get("deprecated") is True,
    )


def _build_content(value: JSONValue) -> dict[str, MediaType]:
    content: dict[str, MediaType] = {}
    for media_type, media in as_object(value).items():
        schema = as_object(media).get("schema")
        content[str(media_type)] = MediaType(
            schema=parse_schema(schema) if isinstance(schema, Mapping) else None
        )
    return content


def _build_request_body(raw: JSONObject) -> RequestBody:
    return RequestBody(
        content=_build_content(raw.get("content")),
        required=raw.get("required") is True,
        description=string_or_none(raw.get("description")),
    )


def _build_response(raw: JSONObject) -> Response:
    return Response(
        description=string_or_none(raw.get("description")),
        content=_build_content(raw.get("content")),
    )


def _build_components(raw: JSONObject) -> Components:
    return Components(
        schemas={
            str(name): parse_schema(value)
            for name, value in as_object(raw.get("schemas")).items()
            if isinstance(value, Mapping)
        },
        responses={
            str(name): _reference_or(as_object(value), _build_response)
            for name, value in as_object(raw.get("responses")).items()
        },
        parameters={
            str(name): _reference_or(as_object(value), _build_parameter)
            for name, value in as_object(raw.get("parameters")).items()
        },
        request_bodies={
            str(name): _reference_or(as_object(value), _build_request_body)
            for name, value in as_object(raw.get("requestBodies")).items()
        },
        security_schemes={
            str(name): as_object(value)
            for name, value in as_object(raw.get("securitySchemes")).items()
        },
    )
