"""TypeScript syntax tree and its layout as pretty-printer documents.

Every node exposes ``to_doc(context) -> Doc``. Type expressions and
declarations are frozen dataclasses; containers are dispatched by case in
the helpers at the bottom of the module rather than through a hierarchy.
"""

from __future__ import annotations

import textwrap
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any, Optional

from .naming import property_key, quote_string
from .pretty import (
    EMPTY,
    HARDLINE,
    LINE,
    SOFTLINE,
    Doc,
    adaptive_list,
    choice,
    concat,
    group,
    has_hard_line,
    if_break,
    join,
    nest,
    render,
    text,
)


@dataclass(frozen=True)
class EmissionContext:
    """Layout settings threaded through ``to_doc``.

    ``indent_level`` is the logical nesting of the node being laid out; it
    only affects wrapping of free text such as doc comments, because
    indentation itself comes from the enclosing ``Nest`` documents.
    """

    indent_level: int = 0
    max_width: int = 80
    include_docs: bool = True
    force_multiline: bool = False
    indent_unit: str = "  "
    render_body: Optional[Callable[[Method], str]] = field(default=None, compare=False)

    def nested(self, levels: int = 1) -> EmissionContext:
        """Return a context one or more levels deeper."""
        return replace(self, indent_level=self.indent_level + levels)

    def render(self, doc: Doc, start_column: int = 0) -> str:
        """Render ``doc`` with this context's width and indentation unit."""
        return render(doc, self.max_width, self.indent_unit, start_column)


class TsPrimitive(StrEnum):
    """Built-in TypeScript types."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    UNDEFINED = "undefined"
    ANY = "any"
    UNKNOWN = "unknown"
    VOID = "void"
    NEVER = "never"


@dataclass(frozen=True)
class PrimitiveType:
    kind: TsPrimitive

    def to_doc(self, context: EmissionContext) -> Doc:
        return text(self.kind.value)


@dataclass(frozen=True)
class LiteralType:
    value: str | int | float | bool

    def to_doc(self, context: EmissionContext) -> Doc:
        return text(literal_text(self.value))


@dataclass(frozen=True)
class TypeReference:
    """A named type, optionally with type arguments."""

    name: str
    arguments: tuple[TypeExpr, ...] = ()

    def to_doc(self, context: EmissionContext) -> Doc:
        if not self.arguments:
            return text(self.name)
        return type_arguments_doc(self.name, self.arguments, context)


@dataclass(frozen=True)
class GenericParam:
    """A use of a type parameter declared by an enclosing declaration."""

    name: str

    def to_doc(self, context: EmissionContext) -> Doc:
        return text(self.name)


@dataclass(frozen=True)
class ArrayType:
    element: TypeExpr

    def to_doc(self, context: EmissionContext) -> Doc:
        return type_arguments_doc("Array", (self.element,), context)


@dataclass(frozen=True)
class TupleType:
    elements: tuple[TypeExpr, ...]

    def to_doc(self, context: EmissionContext) -> Doc:
        return adaptive_list([element.to_doc(context) for element in self.elements], "[", "]")


@dataclass(frozen=True)
class UnionType:
    """Members in input order; broken layout puts one ``| member`` per line."""

    members: tuple[TypeExpr, ...]

    def to_doc(self, context: EmissionContext) -> Doc:
        docs = [_member_doc(member, context, parent=self) for member in self.members]
        return group(
            nest(1, concat(SOFTLINE, if_break(text("| ")), join(concat(LINE, text("| ")), docs)))
        )


@dataclass(frozen=True)
class IntersectionType:
    members: tuple[TypeExpr, ...]

    def to_doc(self, context: EmissionContext) -> Doc:
        docs = [_member_doc(member, context, parent=self) for member in self.members]
        return group(nest(1, join(concat(text(" &"), LINE), docs)))


@dataclass(frozen=True)
class IndexSignature:
    """``[key: string]: V``."""

    value: TypeExpr
    key_name: str = "key"

    def to_doc(self, context: EmissionContext) -> Doc:
        return concat(text(f"[{self.key_name}: string]: "), self.value.to_doc(context))


@dataclass(frozen=True)
class Property:
    """An interface, object type, or class field.

    ``wire_name`` is the JSON key when it differs from ``name``.
    """

    name: str
    type: TypeExpr
    optional: bool = False
    readonly: bool = False
    documentation: Optional[str] = None
    deprecated: bool = False
    wire_name: Optional[str] = None

    @property
    def json_name(self) -> str:
        return self.wire_name or self.name

    def to_doc(self, context: EmissionContext) -> Doc:
        head = "readonly " if self.readonly else ""
        marker = "?" if self.optional else ""
        return concat(
            doc_comment(self.documentation, context, deprecated=self.deprecated),
            text(f"{head}{property_key(self.name)}{marker}: "),
            self.type.to_doc(context),
            text(";"),
        )


@dataclass(frozen=True)
class ObjectType:
    properties: tuple[Property, ...] = ()
    index_signature: Optional[IndexSignature] = None

    def to_doc(self, context: EmissionContext) -> Doc:
        inner = context.nested()
        members = [
            replace(prop, documentation=None, deprecated=False).to_doc(inner)
            for prop in self.properties
        ]
        if self.index_signature is not None:
            members.append(concat(self.index_signature.to_doc(inner), text(";")))
        if not members:
            return text("{}")
        # Separators are folded into each member, so the flat form ends "...; }".
        flat_members = join(LINE, members)
        return group(
            concat(text("{"), nest(1, concat(LINE, flat_members)), LINE, text("}")),
            force_break=context.force_multiline,
        )


@dataclass(frozen=True)
class Parameter:
    """A function or method parameter."""

    name: str
    type: Optional[TypeExpr] = None
    optional: bool = False
    default: Optional[str] = None

    def to_doc(self, context: EmissionContext) -> Doc:
        marker = "?" if self.optional and self.default is None else ""
        parts: list[Doc] = [text(f"{self.name}{marker}")]
        if self.type is not None:
            parts.extend([text(": "), self.type.to_doc(context)])
        if self.default is not None:
            parts.append(text(f" = {self.default}"))
        return concat(*parts)


@dataclass(frozen=True)
class FunctionType:
    parameters: tuple[Parameter, ...]
    return_type: TypeExpr

    def to_doc(self, context: EmissionContext) -> Doc:
        params = adaptive_list([param.to_doc(context) for param in self.parameters], "(", ")")
        return concat(params, text(" => "), self.return_type.to_doc(context))


type TypeExpr = (
    PrimitiveType
    | LiteralType
    | TypeReference
    | GenericParam
    | ArrayType
    | TupleType
    | UnionType
    | IntersectionType
    | ObjectType
    | FunctionType
)


@dataclass(frozen=True)
class Generic:
    """A type parameter declaration: ``T extends C = D``."""

    name: str
    constraint: Optional[TypeExpr] = None
    default: Optional[TypeExpr] = None

    def to_doc(self, context: EmissionContext) -> Doc:
        parts: list[Doc] = [text(self.name)]
        if self.constraint is not None:
            parts.extend([text(" extends "), self.constraint.to_doc(context)])
        if self.default is not None:
            parts.extend([text(" = "), self.default.to_doc(context)])
        return concat(*parts)


@dataclass(frozen=True)
class Interface:
    name: str
    properties: tuple[Property, ...] = ()
    extends: tuple[TypeExpr, ...] = ()
    generics: tuple[Generic, ...] = ()
    index_signature: Optional[IndexSignature] = None
    documentation: Optional[str] = None
    deprecated: bool = False
    exported: bool = True

    def to_doc(self, context: EmissionContext) -> Doc:
        inner = context.nested()
        members = [prop.to_doc(inner) for prop in self.properties]
        if self.index_signature is not None:
            members.append(concat(self.index_signature.to_doc(inner), text(";")))
        return concat(
            doc_comment(self.documentation, context, deprecated=self.deprecated),
            interface_signature_doc(self, context),
            text(" "),
            _block(members),
        )


@dataclass(frozen=True)
class TypeAlias:
    name: str
    type: TypeExpr
    generics: tuple[Generic, ...] = ()
    documentation: Optional[str] = None
    deprecated: bool = False
    exported: bool = True

    def to_doc(self, context: EmissionContext) -> Doc:
        return concat(
            doc_comment(self.documentation, context, deprecated=self.deprecated),
            text(f"{_export(self.exported)}type {self.name}"),
            generic_list_doc(self.generics, context),
            text(" = "),
            self.type.to_doc(context),
            text(";"),
        )


@dataclass(frozen=True)
class EnumMember:
    name: str
    value: str | int | float

    def to_doc(self, context: EmissionContext) -> Doc:
        return text(f"{property_key(self.name)} = {literal_text(self.value)},")


@dataclass(frozen=True)
class Enum:
    name: str
    members: tuple[EnumMember, ...]
    documentation: Optional[str] = None
    deprecated: bool = False
    exported: bool = True

    def to_doc(self, context: EmissionContext) -> Doc:
        inner = context.nested()
        return concat(
            doc_comment(self.documentation, context, deprecated=self.deprecated),
            text(f"{_export(self.exported)}enum {self.name} "),
            _block([member.to_doc(inner) for member in self.members]),
        )


@dataclass(frozen=True)
class Method:
    """A class method.

    The body comes from ``body_template`` rendered with ``body_context`` when
    the emission context can render templates, else from raw ``body`` lines.
    """

    name: str
    parameters: tuple[Parameter, ...] = ()
    return_type: Optional[TypeExpr] = None
    generics: tuple[Generic, ...] = ()
    is_async: bool = False
    is_static: bool = False
    visibility: Optional[str] = None
    documentation: Optional[str] = None
    deprecated: bool = False
    body: tuple[str, ...] = ()
    body_template: Optional[str] = None
    body_context: Mapping[str, Any] = field(default_factory=dict, hash=False, compare=False)

    def to_doc(self, context: EmissionContext) -> Doc:
        if self.body_template is not None and context.render_body is not None:
            body_text = context.render_body(self).rstrip("\n")
        else:
            body_text = "\n".join(self.body)
        return concat(
            doc_comment(self.documentation, context, deprecated=self.deprecated),
            method_signature_doc(self, context),
            text(" "),
            _block([text(body_text)] if body_text else []),
        )


@dataclass(frozen=True)
class Class:
    name: str
    properties: tuple[Property, ...] = ()
    methods: tuple[Method, ...] = ()
    extends: Optional[TypeExpr] = None
    implements: tuple[TypeExpr, ...] = ()
    generics: tuple[Generic, ...] = ()
    documentation: Optional[str] = None
    deprecated: bool = False
    exported: bool = True
    abstract: bool = False
    imports: tuple[Import, ...] = ()

    def to_doc(self, context: EmissionContext) -> Doc:
        inner = context.nested()
        fields = [prop.to_doc(inner) for prop in self.properties]
        methods = [method.to_doc(inner) for method in self.methods]
        sections = [section for section in (join(HARDLINE, fields), *methods) if section != EMPTY]
        body: list[Doc] = [join(concat(HARDLINE, HARDLINE), sections)] if sections else []
        return concat(
            doc_comment(self.documentation, context, deprecated=self.deprecated),
            class_signature_doc(self, context),
            text(" "),
            _block(body),
        )


@dataclass(frozen=True)
class Function:
    name: str
    parameters: tuple[Parameter, ...] = ()
    return_type: Optional[TypeExpr] = None
    body: tuple[str, ...] = ()
    generics: tuple[Generic, ...] = ()
    documentation: Optional[str] = None
    exported: bool = True
    is_async: bool = False

    def to_doc(self, context: EmissionContext) -> Doc:
        head = f"{_export(self.exported)}{'async ' if self.is_async else ''}function {self.name}"
        signature = concat(
            text(head),
            generic_list_doc(self.generics, context),
            _parameters_doc(self.parameters, context),
            _return_doc(self.return_type, context),
        )
        body = [text("\n".join(self.body))] if self.body else []
        return concat(doc_comment(self.documentation, context), signature, text(" "), _block(body))


@dataclass(frozen=True)
class ImportSpecifier:
    name: str
    alias: Optional[str] = None
    type_only: bool = False

    def to_doc(self, context: EmissionContext) -> Doc:
        prefix = "type " if self.type_only else ""
        suffix = f" as {self.alias}" if self.alias else ""
        return text(f"{prefix}{self.name}{suffix}")


@dataclass(frozen=True)
class Import:
    """``import``, ``import type``, default, or namespace import of a module."""

    module: str
    specifiers: tuple[ImportSpecifier, ...] = ()
    default: Optional[str] = None
    namespace: Optional[str] = None
    type_only: bool = False

    def to_doc(self, context: EmissionContext) -> Doc:
        head = "import type " if self.type_only else "import "
        clauses: list[Doc] = []
        if self.default is not None:
            clauses.append(text(self.default))
        if self.namespace is not None:
            clauses.append(text(f"* as {self.namespace}"))
        if self.specifiers:
            clauses.append(
                _braced_list([specifier.to_doc(context) for specifier in self.specifiers])
            )
        if not clauses:
            return text(f"import {quote_string(self.module)};")
        return concat(
            text(head),
            join(text(", "), clauses),
            text(f" from {quote_string(self.module)};"),
        )


@dataclass(frozen=True)
class Export:
    """A re-export: ``export * from``, or ``export [type] { A, B } from``."""

    module: str
    names: tuple[str, ...] = ()
    type_only: bool = False

    def to_doc(self, context: EmissionContext) -> Doc:
        source = f" from {quote_string(self.module)};"
        if not self.names:
            return text(f"export *{source}")
        head = "export type " if self.type_only else "export "
        return concat(text(head), _braced_list([text(name) for name in self.names]), text(source))


type Declaration = Interface | TypeAlias | Enum | Class | Function | Import | Export


@dataclass(frozen=True)
class TsModule:
    """One output file: header, imports, then declarations."""

    path: str
    declarations: tuple[Declaration, ...] = ()
    imports: tuple[Import, ...] = ()
    header: Optional[str] = None

    def to_doc(self, context: EmissionContext) -> Doc:
        sections: list[Doc] = []
        if self.header:
            sections.append(text(self.header.rstrip("\n")))
        if self.imports:
            sections.append(join(HARDLINE, [item.to_doc(context) for item in self.imports]))
        exports = [item for item in self.declarations if isinstance(item, Export)]
        others = [item for item in self.declarations if not isinstance(item, Export)]
        if exports:
            sections.append(join(HARDLINE, [item.to_doc(context) for item in exports]))
        sections.extend(item.to_doc(context) for item in others)
        return concat(join(concat(HARDLINE, HARDLINE), sections), HARDLINE)


def render_module(module: TsModule, context: EmissionContext) -> str:
    """Render a module to text ending in a single newline."""
    return context.render(module.to_doc(context)).rstrip("\n") + "\n"


def literal_text(value: str | int | float | bool) -> str:
    """Render a literal value as TypeScript source."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return quote_string(value)
    return repr(value)


def doc_comment(
    documentation: Optional[str],
    context: EmissionContext,
    *,
    deprecated: bool = False,
) -> Doc:
    """Return a JSDoc block followed by a line break, or nothing.

    Paragraph text is wrapped to the width left after the indentation and the
    `` * `` prefix. ``*/`` inside the text is escaped.
    """
    if not context.include_docs or (not documentation and not deprecated):
        return EMPTY
    available = context.max_width - len(context.indent_unit * context.indent_level) - 3
    wrap_width = max(available, 20)
    lines: list[str] = []
    for paragraph in (documentation or "").strip().splitlines():
        paragraph = paragraph.rstrip().replace("*/", "*\\/")
        if not paragraph:
            lines.append("")
            continue
        lines.extend(
            textwrap.wrap(
                paragraph, wrap_width, break_long_words=False, break_on_hyphens=False
            )
            or [paragraph]
        )
    if deprecated:
        lines.append("@deprecated")
    body = [text(f" * {line}".rstrip()) for line in lines]
    return concat(text("/**"), HARDLINE, join(HARDLINE, body), HARDLINE, text(" */"), HARDLINE)


def generic_list_doc(generics: Iterable[Generic], context: EmissionContext) -> Doc:
    """Return ``<A extends B, C>``, wrapping one parameter per line when needed."""
    items = [generic.to_doc(context) for generic in generics]
    if not items:
        return EMPTY
    return adaptive_list(items, "<", ">")


def type_arguments_doc(
    name: str, arguments: tuple[TypeExpr, ...], context: EmissionContext
) -> Doc:
    """Return ``Name<A, B>``, breaking one argument per line only when it cannot fit.

    Because the flat form is tried first, enclosing groups such as a method's
    parameter list break before the type arguments do. A lone object or tuple
    argument keeps hugging the brackets and breaks on its own.
    """
    docs = [argument.to_doc(context) for argument in arguments]
    flat = concat(text(f"{name}<"), join(text(", "), docs), text(">"))
    hugs = len(arguments) == 1 and isinstance(arguments[0], (ObjectType, TupleType))
    if hugs or any(has_hard_line(doc) for doc in docs):
        return flat
    return choice(flat, adaptive_list(docs, f"{name}<", ">", force_break=True))


def method_signature_doc(method: Method, context: EmissionContext) -> Doc:
    """Return ``[visibility ][static ][async ]name<G>(params): R``."""
    modifiers = [
        modifier
        for modifier, present in (
            (method.visibility, method.visibility is not None),
            ("static", method.is_static),
            ("async", method.is_async),
        )
        if present
    ]
    head = " ".join([*modifiers, method.name])
    return concat(
        text(head),
        generic_list_doc(method.generics, context),
        _parameters_doc(method.parameters, context),
        _return_doc(method.return_type, context),
    )


def class_signature_doc(node: Class, context: EmissionContext) -> Doc:
    """Return ``[export ][abstract ]class N<G> extends E implements I``."""
    abstract = "abstract " if node.abstract else ""
    parts: list[Doc] = [
        text(f"{_export(node.exported)}{abstract}class {node.name}"),
        generic_list_doc(node.generics, context),
    ]
    if node.extends is not None:
        parts.extend([text(" extends "), node.extends.to_doc(context)])
    if node.implements:
        parts.extend(
            [
                text(" implements "),
                join(text(", "), [item.to_doc(context) for item in node.implements]),
            ]
        )
    return concat(*parts)


def interface_signature_doc(node: Interface, context: EmissionContext) -> Doc:
    """Return ``[export ]interface N<G> extends A, B``."""
    parts: list[Doc] = [
        text(f"{_export(node.exported)}interface {node.name}"),
        generic_list_doc(node.generics, context),
    ]
    if node.extends:
        parts.extend(
            [
                text(" extends "),
                join(text(", "), [item.to_doc(context) for item in node.extends]),
            ]
        )
    return concat(*parts)


def referenced_names(node: TypeExpr | Property | Parameter | Generic) -> set[str]:
    """Return the names of every ``TypeReference`` inside ``node``."""
    names: set[str] = set()
    pending: list[object] = [node]
    while pending:
        current = pending.pop()
        if isinstance(current, TypeReference):
            names.add(current.name)
            pending.extend(current.arguments)
        elif isinstance(current, ArrayType):
            pending.append(current.element)
        elif isinstance(current, TupleType):
            pending.extend(current.elements)
        elif isinstance(current, (UnionType, IntersectionType)):
            pending.extend(current.members)
        elif isinstance(current, ObjectType):
            pending.extend(current.properties)
            if current.index_signature is not None:
                pending.append(current.index_signature.value)
        elif isinstance(current, FunctionType):
            pending.extend(current.parameters)
            pending.append(current.return_type)
        elif isinstance(current, (Property, Parameter)):
            if current.type is not None:
                pending.append(current.type)
        elif isinstance(current, Generic):
            pending.extend(item for item in (current.constraint, current.default) if item)
    return names


def _member_doc(member: TypeExpr, context: EmissionContext, *, parent: TypeExpr) -> Doc:
    needs_parens = isinstance(member, FunctionType) or (
        isinstance(parent, IntersectionType) and isinstance(member, UnionType)
    )
    doc = member.to_doc(context)
    if needs_parens:
        return concat(text("("), doc, text(")"))
    return doc


def _parameters_doc(parameters: Iterable[Parameter], context: EmissionContext) -> Doc:
    return adaptive_list(
        [param.to_doc(context) for param in parameters], "(", ")", trailing_separator=True
    )


def _return_doc(return_type: Optional[TypeExpr], context: EmissionContext) -> Doc:
    if return_type is None:
        return EMPTY
    return concat(text(": "), return_type.to_doc(context))


def _braced_list(items: list[Doc]) -> Doc:
    return group(
        concat(
            text("{"),
            nest(1, concat(LINE, join(concat(text(","), LINE), items))),
            if_break(text(",")),
            LINE,
            text("}"),
        )
    )


def _block(members: list[Doc]) -> Doc:
    if not members:
        return text("{}")
    body = nest(1, concat(HARDLINE, join(HARDLINE, members)))
    return concat(text("{"), body, HARDLINE, text("}"))


def _export(exported: bool) -> str:
    return "export " if exported else ""
