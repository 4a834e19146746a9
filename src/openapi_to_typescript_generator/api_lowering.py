"""Lowering of operations to API client classes."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from .config import GeneratorConfig, NamingConvention
from .document import (
    Document,
    MediaType,
    Operation,
    Parameter as DocumentParameter,
    PathItem,
    RequestBody,
    Response,
    escape_pointer_token,
)
from .errors import ParseWarning, SourceLocation
from .lowering import UNKNOWN, TypeLowering
from .model_types import RUNTIME_MODULE, ImportRequest, LoweredApi
from .naming import (
    DEFAULT_TAG,
    OperationSpec,
    api_class_name,
    file_stem,
    identifier,
    quote_string,
    resolve_operations,
)
from .resolver import ReferenceResolver
from .ts_ast import (
    ArrayType,
    Class,
    Method,
    Parameter,
    PrimitiveType,
    TsPrimitive,
    TypeExpr,
    TypeReference,
    UnionType,
    referenced_names,
)

logger = logging.getLogger(__name__)

_PATH_TEMPLATE_RE = re.compile(r"\{([^{}]+)\}")
_RESERVED_PARAMETER_NAMES = frozenset({"body", "initOverrides", "response"})

_BODY_TEMPLATES: dict[str, str] = {
    "get": "api/method_get.ts.j2",
    "post": "api/method_post_put_patch.ts.j2",
    "put": "api/method_post_put_patch.ts.j2",
    "patch": "api/method_post_put_patch.ts.j2",
    "delete": "api/method_delete.ts.j2",
}
_DEFAULT_BODY_TEMPLATE = "api/method_default.ts.j2"

_RESPONSE_CLASSES: dict[str, str] = {
    "json": "JSONApiResponse",
    "void": "VoidApiResponse",
    "text": "TextApiResponse",
    "blob": "BlobApiResponse",
}


def body_template_for(method: str) -> str:
    """Return the template that renders a method body for an HTTP verb."""
    return _BODY_TEMPLATES.get(method.lower(), _DEFAULT_BODY_TEMPLATE)


def path_expression(path: str, names: dict[str, str]) -> str:
    """Return a TypeScript expression building ``path`` from method arguments.

    Args:
        path (str): Path template such as ``/pets/{petId}``.
        names (dict[str, str]): Path parameter names mapped to argument names.

    Returns:
        str: A quoted string, or a template literal encoding each argument.
    """
    if not _PATH_TEMPLATE_RE.search(path):
        return quote_string(path)
    parts: list[str] = []
    position = 0
    for match in _PATH_TEMPLATE_RE.finditer(path):
        parts.append(_escape_template(path[position : match.start()]))
        argument = names.get(match.group(1), match.group(1))
        parts.append(f"${{encodeURIComponent(String({argument}))}}")
        position = match.end()
    parts.append(_escape_template(path[position:]))
    return "`" + "".join(parts) + "`"


def _escape_template(value: str) -> str:
    return value.replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${")


@dataclass(frozen=True)
class _Argument:
    name: str
    wire_name: str
    location: str
    required: bool
    type: TypeExpr
    documentation: Optional[str] = None


def _is_json(media_type: str) -> bool:
    base = media_type.split(";", 1)[0].strip().lower()
    return base == "application/json" or base.endswith("+json")


class ApiLowering:
    """Build one ``BaseAPI`` subclass per tag from the transformed document."""

    def __init__(
        self,
        document: Document,
        config: GeneratorConfig,
        types: TypeLowering,
    ) -> None:
        self._document = document
        self._config = config
        self._types = types
        self._resolver = ReferenceResolver(document)
        self._warnings: list[ParseWarning] = []

    @property
    def warnings(self) -> list[ParseWarning]:
        return list(self._warnings)

    def lower_apis(self) -> list[LoweredApi]:
        """Lower every operation, grouped by API class, in document order.

        Operations are grouped by the class name their first tag maps to, so
        tags that differ only in case or punctuation share one class. The
        class keeps the first spelling seen and the first tag description
        found among its spellings.
        """
        specs, warnings = resolve_operations(
            self._document,
            method_convention=self._config.naming.methods,
            default_tag=DEFAULT_TAG,
        )
        self._warnings.extend(warnings)

        grouped: dict[str, list[OperationSpec]] = {}
        for spec in specs:
            grouped.setdefault(api_class_name(spec.tag), []).append(spec)

        descriptions = {tag.name: tag.description for tag in self._document.tags}
        apis: list[LoweredApi] = []
        for class_name, tag_specs in grouped.items():
            tag = tag_specs[0].tag
            spellings = list(dict.fromkeys(spec.tag for spec in tag_specs))
            if len(spellings) > 1:
                logger.debug("Merged tags %s into %s", ", ".join(spellings), class_name)
            documentation = next(
                (descriptions[name] for name in spellings if descriptions.get(name)), None
            )
            imports: set[ImportRequest] = {
                ImportRequest(RUNTIME_MODULE, "BaseAPI", type_only=False),
                ImportRequest(RUNTIME_MODULE, "ApiResponse"),
                ImportRequest(RUNTIME_MODULE, "HTTPHeaders"),
                ImportRequest(RUNTIME_MODULE, "InitOverrideFunction"),
            }
            methods: list[Method] = []
            for spec in tag_specs:
                method, method_imports = self._lower_operation(spec)
                methods.append(method)
                imports.update(method_imports)
            declaration = Class(
                name=class_name,
                methods=tuple(methods),
                extends=TypeReference("BaseAPI"),
                documentation=documentation,
            )
            logger.debug("Lowered %s with %d operation(s)", class_name, len(methods))
            apis.append(
                LoweredApi(
                    tag=tag,
                    class_name=class_name,
                    file_stem=file_stem(class_name, self._config.naming.files),
                    declaration=declaration,
                    imports=tuple(sorted(imports, key=lambda item: (item.module, item.name))),
                    operation_count=len(methods),
                )
            )
        return apis

    def _lower_operation(self, spec: OperationSpec) -> tuple[Method, set[ImportRequest]]:
        operation = spec.operation
        location = f"#/paths/{escape_pointer_token(spec.path)}/{spec.method}"
        arguments = self._arguments(spec, location)
        body = self._body(operation, location)
        if body is not None:
            arguments.append(body[0])

        ordered = [arg for arg in arguments if arg.required] + [
            arg for arg in arguments if not arg.required
        ]
        parameters = [
            Parameter(name=arg.name, type=arg.type, optional=not arg.required) for arg in ordered
        ]
        parameters.append(
            Parameter(
                name="initOverrides",
                type=UnionType(
                    (TypeReference("RequestInit"), TypeReference("InitOverrideFunction"))
                ),
                optional=True,
            )
        )

        imports: set[ImportRequest] = set()
        return_kind, result_type = self._result(operation)
        transformer = None
        if return_kind == "json":
            transformer = self._json_mapper(result_type, "FromJSON", "jsonValue", imports)
        imports.add(ImportRequest(RUNTIME_MODULE, _RESPONSE_CLASSES[return_kind], type_only=False))

        required = [arg for arg in ordered if arg.required]
        if required:
            imports.add(ImportRequest(RUNTIME_MODULE, "RequiredError", type_only=False))

        body_context: Optional[dict[str, Any]] = None
        if body is not None:
            argument, content_type = body
            expression = argument.name
            if content_type is not None and _is_json(content_type):
                expression = (
                    self._json_mapper(argument.type, "ToJSON", argument.name, imports)
                    or argument.name
                )
            body_context = {
                "name": argument.name,
                "expr": expression,
                "content_type": content_type,
                "required": argument.required,
            }

        path_names = {arg.wire_name: arg.name for arg in arguments if arg.location == "path"}
        context: dict[str, Any] = {
            "method_name": spec.method_name,
            "http_method": spec.method.upper(),
            "path_expr": path_expression(spec.path, path_names),
            "required": [
                {"name": arg.name, "wire": arg.wire_name} for arg in required
            ],
            "query_params": [
                {"name": arg.name, "wire": arg.wire_name}
                for arg in arguments
                if arg.location == "query"
            ],
            "header_params": [
                {"name": arg.name, "wire": arg.wire_name}
                for arg in arguments
                if arg.location == "header"
            ],
            "body": body_context,
            "return_kind": return_kind,
            "response_class": _RESPONSE_CLASSES[return_kind],
            "transformer": transformer,
        }

        return_type = TypeReference(
            "Promise", (TypeReference("ApiResponse", (result_type,)),)
        )
        for parameter in parameters:
            imports.update(self._model_imports(parameter))
        imports.update(self._model_imports(return_type))

        method = Method(
            name=spec.method_name,
            parameters=tuple(parameters),
            return_type=return_type,
            is_async=True,
            documentation=_operation_docs(operation),
            deprecated=operation.deprecated,
            body_template=body_template_for(spec.method),
            body_context=context,
        )
        return method, imports

    def _arguments(self, spec: OperationSpec, location: str) -> list[_Argument]:
        item: PathItem = self._document.paths[spec.path]
        merged: dict[tuple[str, str], DocumentParameter] = {}
        for raw in (*item.parameters, *spec.operation.parameters):
            parameter = self._resolver.resolve_ref_or(raw, DocumentParameter)
            merged[(parameter.name, parameter.location)] = parameter

        template_names = _PATH_TEMPLATE_RE.findall(spec.path)
        declared_path = {name for name, place in merged if place == "path"}
        for name in template_names:
            if name not in declared_path:
                self._warn(
                    f"Path parameter {name!r} is not declared; treating it as a required string",
                    location,
                )
                merged[(name, "path")] = DocumentParameter(
                    name=name, location="path", required=True
                )

        used = set(_RESERVED_PARAMETER_NAMES)
        arguments: list[_Argument] = []
        for (name, place), parameter in merged.items():
            if place == "path" and name not in template_names:
                logger.debug(
                    "Path parameter %s is not in %s; sending it as a query parameter",
                    name,
                    spec.path,
                )
                place = "query"
            if place not in {"path", "query", "header"}:
                self._warn(f"Skipping unsupported {place} parameter {name!r}", location)
                continue
            arg_name = self._argument_name(name, used)
            schema_type = (
                self._types.lower(parameter.schema)
                if parameter.schema is not None
                else PrimitiveType(TsPrimitive.STRING)
            )
            arguments.append(
                _Argument(
                    name=arg_name,
                    wire_name=name,
                    location=place,
                    required=parameter.required or place == "path",
                    type=schema_type,
                    documentation=parameter.description,
                )
            )
        return arguments

    def _argument_name(self, wire: str, used: set[str]) -> str:
        base = identifier(wire, NamingConvention.CAMEL)
        name = base
        suffix = 2
        while name in used:
            name = f"{base}{suffix}"
            suffix += 1
        used.add(name)
        return name

    def _body(
        self, operation: Operation, location: str
    ) -> Optional[tuple[_Argument, Optional[str]]]:
        if operation.request_body is None:
            return None
        request_body = self._resolver.resolve_ref_or(operation.request_body, RequestBody)
        content_type, media = _pick_media(request_body.content)
        if content_type is not None and not _is_json(content_type):
            self._warn(
                f"Request body {content_type!r} is sent without serialization",
                f"{location}/requestBody",
            )
        body_type = self._types.lower(media.schema) if media is not None else UNKNOWN
        argument = _Argument(
            name="body",
            wire_name="body",
            location="body",
            required=request_body.required,
            type=body_type,
            documentation=request_body.description,
        )
        return argument, content_type

    def _result(self, operation: Operation) -> tuple[str, TypeExpr]:
        void = PrimitiveType(TsPrimitive.VOID)
        for status in sorted(operation.responses):
            if not status.startswith("2"):
                continue
            response = self._resolver.resolve_ref_or(operation.responses[status], Response)
            content_type, media = _pick_media(response.content)
            if content_type is None or media is None:
                continue
            if _is_json(content_type):
                if media.schema is None:
                    continue
                return "json", self._types.lower(media.schema)
            if content_type.startswith("text/"):
                return "text", PrimitiveType(TsPrimitive.STRING)
            return "blob", TypeReference("Blob")
        return "void", void

    def _json_mapper(
        self,
        expr: TypeExpr,
        suffix: str,
        variable: str,
        imports: set[ImportRequest],
    ) -> Optional[str]:
        """Return an expression mapping ``variable`` through model helpers, if any apply."""
        target = _strip_null(expr)
        if isinstance(target, TypeReference) and self._types.has_helpers(target.name):
            helper = f"{target.name}{suffix}"
            module = self._types.model_module(target.name)
            imports.add(ImportRequest(module, helper, type_only=False))
            if suffix == "FromJSON":
                return f"({variable}) => {helper}({variable})"
            return f"{helper}({variable})"
        if (
            isinstance(target, ArrayType)
            and isinstance(target.element, TypeReference)
            and self._types.has_helpers(target.element.name)
        ):
            helper = f"{target.element.name}{suffix}"
            module = self._types.model_module(target.element.name)
            imports.add(ImportRequest(module, helper, type_only=False))
            if suffix == "FromJSON":
                return f"({variable}) => {variable}.map({helper})"
            return f"{variable}?.map({helper})"
        return None

    def _model_imports(self, node: TypeExpr | Parameter) -> set[ImportRequest]:
        return {
            ImportRequest(self._types.model_module(name), name)
            for name in referenced_names(node)
            if name in self._document.components.schemas
        }

    def _warn(self, message: str, openapi_path: str) -> None:
        self._warnings.append(
            ParseWarning(
                message,
                SourceLocation(file=self._document.source, openapi_path=openapi_path),
            )
        )


def _pick_media(content: dict[str, MediaType]) -> tuple[Optional[str], Optional[MediaType]]:
    for content_type, media in content.items():
        if _is_json(content_type):
            return content_type, media
    first = next(iter(content.items()), None)
    if first is None:
        return None, None
    return first


def _strip_null(expr: TypeExpr) -> TypeExpr:
    if isinstance(expr, UnionType):
        members = [member for member in expr.members if member != PrimitiveType(TsPrimitive.NULL)]
        if len(members) == 1:
            return members[0]
    return expr


def _operation_docs(operation: Operation) -> Optional[str]:
    parts = [part.strip() for part in (operation.summary, operation.description) if part]
    return "\n\n".join(parts) or None

