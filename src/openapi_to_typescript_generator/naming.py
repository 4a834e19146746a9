"""Naming helpers for TypeScript identifiers, files, and API methods."""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass

from .config import NamingConvention
from .document import Document, Operation
from .errors import ParseWarning, SourceLocation

TS_RESERVED_WORDS: frozenset[str] = frozenset(
    {
        "any",
        "as",
        "boolean",
        "break",
        "case",
        "catch",
        "class",
        "const",
        "continue",
        "debugger",
        "declare",
        "default",
        "delete",
        "do",
        "else",
        "enum",
        "export",
        "extends",
        "false",
        "finally",
        "for",
        "function",
        "if",
        "implements",
        "import",
        "in",
        "instanceof",
        "interface",
        "let",
        "new",
        "null",
        "number",
        "package",
        "private",
        "protected",
        "public",
        "return",
        "static",
        "string",
        "super",
        "switch",
        "symbol",
        "this",
        "throw",
        "true",
        "try",
        "type",
        "typeof",
        "undefined",
        "var",
        "void",
        "while",
        "with",
        "yield",
    }
)

# Names the generated files use unqualified: runtime exports and the globals
# that appear in signatures and method bodies.
GENERATED_CODE_NAMES: frozenset[str] = frozenset(
    {
        "ApiResponse",
        "Array",
        "BASE_PATH",
        "BaseAPI",
        "Blob",
        "BlobApiResponse",
        "Boolean",
        "Configuration",
        "ConfigurationParameters",
        "Date",
        "DefaultConfig",
        "Error",
        "ErrorContext",
        "FetchAPI",
        "FetchError",
        "FetchParams",
        "FormData",
        "FromJSONTyped",
        "HTTPBody",
        "HTTPHeaders",
        "HTTPMethod",
        "HTTPQuery",
        "HTTPQueryValue",
        "HTTPRequestInit",
        "Headers",
        "HttpMethod",
        "InitOverrideFunction",
        "JSON",
        "JSONApiResponse",
        "Json",
        "Map",
        "Middleware",
        "Number",
        "Object",
        "Promise",
        "Record",
        "Request",
        "RequestContext",
        "RequestInit",
        "RequestOpts",
        "RequiredError",
        "Response",
        "ResponseContext",
        "ResponseError",
        "ResponseTransformer",
        "Set",
        "String",
        "Symbol",
        "TextApiResponse",
        "ToJSONTyped",
        "URLSearchParams",
        "VoidApiResponse",
        "exists",
        "mapValues",
        "querystring",
    }
)

DEFAULT_TAG = "Default"

_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z]|[0-9]|\b|_|$)|[A-Z]?[a-z]+|[A-Z]+|[0-9]+")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_ILLEGAL_CHARS_RE = re.compile(r"[^A-Za-z0-9_$]+")
_PATH_PARAM_RE = re.compile(r"^\{(?P<name>[^{}]+)\}$")


def split_words(raw: str) -> list[str]:
    """Split arbitrary text into words on case changes and separators."""
    words: list[str] = []
    for chunk in re.split(r"[^A-Za-z0-9]+", raw):
        words.extend(_WORD_RE.findall(chunk))
    return words


def convert_case(raw: str, convention: NamingConvention) -> str:
    """Render ``raw`` in the requested naming convention."""
    words = split_words(raw)
    if not words:
        return ""
    if convention is NamingConvention.SNAKE:
        return "_".join(word.lower() for word in words)
    if convention is NamingConvention.KEBAB:
        return "-".join(word.lower() for word in words)
    pascal = "".join(word[:1].upper() + word[1:].lower() for word in words)
    if convention is NamingConvention.PASCAL:
        return pascal
    return pascal[:1].lower() + pascal[1:]


def is_identifier(name: str) -> bool:
    """Return whether ``name`` is a legal, non-reserved TypeScript identifier."""
    return bool(_IDENTIFIER_RE.match(name)) and name not in TS_RESERVED_WORDS


def sanitize_identifier(raw: str) -> str:
    """Convert arbitrary text into a valid TypeScript identifier."""
    text = _ILLEGAL_CHARS_RE.sub("_", raw)
    if not text.strip("_"):
        text = "_"
    if text[0].isdigit() or text in TS_RESERVED_WORDS:
        text = f"_{text}"
    return text


def identifier(raw: str, convention: NamingConvention) -> str:
    """Convert ``raw`` to ``convention`` and sanitize the result."""
    return sanitize_identifier(convert_case(raw, convention) or raw)


def file_stem(name: str, convention: NamingConvention) -> str:
    """Return the filename stem for a declaration name."""
    return convert_case(name, convention) or "index_"


def property_key(name: str) -> str:
    """Return an object key, quoting it when it is not a plain identifier."""
    if _IDENTIFIER_RE.match(name):
        return name
    return quote_string(name)


def quote_string(value: str) -> str:
    """Render ``value`` as a single-quoted TypeScript string literal."""
    escaped = (
        value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n").replace("\r", "\\r")
    )
    return f"'{escaped}'"


def path_to_method_name(method: str, path: str, convention: NamingConvention) -> str:
    """Create a method name from the HTTP verb and path segments."""
    words = [method]
    params: list[str] = []
    for segment in (part for part in path.split("/") if part):
        match = _PATH_PARAM_RE.match(segment)
        if match:
            params.append(match.group("name"))
        else:
            words.append(segment)
    for index, param in enumerate(params):
        words.append("by" if index == 0 else "and")
        words.append(param)
    return identifier(" ".join(words), convention)


@dataclass(frozen=True)
class OperationSpec:
    """One operation with its resolved tag and method name."""

    path: str
    method: str
    tag: str
    method_name: str
    operation: Operation


def resolve_operations(
    document: Document,
    *,
    method_convention: NamingConvention = NamingConvention.CAMEL,
    default_tag: str = DEFAULT_TAG,
) -> tuple[list[OperationSpec], list[ParseWarning]]:
    """Extract operations and choose method names with path-based fallback.

    ``operationId`` values used by more than one operation fall back to
    path-based names; clashes remaining inside one API class get a numeric
    suffix. Tags that differ only in spelling, such as ``pets`` and ``Pets``,
    share a class and therefore share one set of method names.
    """
    candidates: list[tuple[str, str, Operation]] = [
        (path, method, operation)
        for path, item in document.paths.items()
        for method, operation in item.operations.items()
    ]
    counts = Counter(
        identifier(operation.operation_id, method_convention)
        for _, _, operation in candidates
        if operation.operation_id
    )
    conflicting = {name for name, count in counts.items() if count > 1}

    warnings: list[ParseWarning] = []
    if conflicting:
        warnings.append(
            ParseWarning(
                "Conflicting operationId values detected; using path-based naming for conflicts: "
                + ", ".join(sorted(conflicting)),
                SourceLocation(openapi_path="#/paths"),
            )
        )

    used: dict[str, set[str]] = {}
    resolved: list[OperationSpec] = []
    for path, method, operation in candidates:
        tag = operation.tags[0] if operation.tags else default_tag
        name = (
            identifier(operation.operation_id, method_convention)
            if operation.operation_id
            else ""
        )
        if not name or name in conflicting:
            name = path_to_method_name(method, path, method_convention)
        taken = used.setdefault(api_class_name(tag), set())
        candidate = name
        suffix = 2
        while candidate in taken:
            candidate = f"{name}{suffix}"
            suffix += 1
        taken.add(candidate)
        resolved.append(
            OperationSpec(
                path=path,
                method=method,
                tag=tag,
                method_name=candidate,
                operation=operation,
            )
        )
    return resolved, warnings


def api_class_name(tag: str, convention: NamingConvention = NamingConvention.PASCAL) -> str:
    """Return the API class name for a tag."""
    return identifier(f"{tag} Api", convention)
