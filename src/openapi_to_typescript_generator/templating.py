"""Jinja2 template engine with TypeScript formatting filters."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, TemplateNotFound

from .errors import EmissionError, ErrorCode
from .naming import quote_string
from .pretty import LINE, SOFTLINE, Doc, adaptive_list, concat, group, nest, render, text
from .ts_ast import (
    Class,
    EmissionContext,
    Generic,
    Import,
    Interface,
    Method,
    Property,
    TypeExpr,
    class_signature_doc,
    doc_comment,
    generic_list_doc,
    interface_signature_doc,
    method_signature_doc,
)

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
GENERATOR_NAME = "openapi-to-typescript-generator"

# Templates are written with two-space indentation; output is re-indented to the configured unit.
_TEMPLATE_UNIT = "  "
_LEADING_SPACES_RE = re.compile(r"^( +)", re.MULTILINE)
_LITERAL_TOKEN_RE = re.compile(r"\s*\S+\s*|\s+")

# Method bodies sit two levels deep: inside the class and the method block.
METHOD_BODY_INDENT = 2 * len(_TEMPLATE_UNIT)


class TemplateEngine:
    """Render templates by logical name with width-aware formatting filters.

    Every filter is a pure function of its arguments and the engine's
    maximum line width. Compiled templates are cached by the environment for
    the lifetime of the engine.
    """

    def __init__(
        self,
        *,
        max_width: int = 80,
        indent_unit: str = "  ",
        include_docs: bool = True,
        templates_dir: Path = TEMPLATES_DIR,
    ) -> None:
        self.max_width = max_width
        self.indent_unit = indent_unit
        self.include_docs = include_docs
        self._filter_context = EmissionContext(
            max_width=max_width,
            include_docs=include_docs,
            indent_unit=_TEMPLATE_UNIT,
        )
        self.env = Environment(
            loader=FileSystemLoader(templates_dir),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
            auto_reload=False,
        )
        self.env.filters.update(
            {
                "format_type_expr": self.format_type_expr,
                "format_method_signature": self.format_method_signature,
                "format_class_signature": self.format_class_signature,
                "format_interface_signature": self.format_interface_signature,
                "format_doc_comment": self.format_doc_comment,
                "format_import": self.format_import,
                "format_generic_list": self.format_generic_list,
                "indent": indent_lines,
                "format_call": self.format_call,
                "string_literal": self.string_literal,
                "instance_guard": self.instance_guard,
                "from_json_line": from_json_line,
                "to_json_line": to_json_line,
                "ts_string": quote_string,
                "json_string": json_string,
            }
        )
        self.env.globals.update(
            {"max_width": max_width, "generator_name": GENERATOR_NAME, "body_indent": 0}
        )

    def emission_context(self, *, force_multiline: bool = False) -> EmissionContext:
        """Return the context used to render AST nodes around template output."""
        return EmissionContext(
            max_width=self.max_width,
            include_docs=self.include_docs,
            force_multiline=force_multiline,
            indent_unit=self.indent_unit,
            render_body=self.render_method_body,
        )

    def render(self, template_name: str, **context: Any) -> str:
        """Render a template by name.

        Raises:
            EmissionError: ``TemplateNotFound`` for an unknown name,
                ``TemplateRender`` for any other template failure.
        """
        try:
            template = self.env.get_template(template_name)
            rendered = template.render(**context)
        except TemplateNotFound as exc:
            raise EmissionError(
                f"Template not found: {exc.name}",
                code=ErrorCode.TEMPLATE_NOT_FOUND,
            ) from exc
        except TemplateError as exc:
            raise EmissionError(
                f"Failed to render template {template_name}: {exc}",
                code=ErrorCode.TEMPLATE_RENDER,
            ) from exc
        logger.debug("Rendered template %s", template_name)
        return self._reindent(rendered)

    def render_method_body(self, method: Method) -> str:
        """Render the body template attached to an API method."""
        if method.body_template is None:
            return "\n".join(method.body)
        return self.render(
            method.body_template, body_indent=METHOD_BODY_INDENT, **method.body_context
        )

    def format_type_expr(self, expr: TypeExpr, indent: int = 0) -> str:
        """Pretty-print a type whose first line starts at column ``indent``."""
        return self._render(expr.to_doc(self._filter_context), indent)

    def format_method_signature(self, method: Method, indent: int = 0) -> str:
        return self._render(method_signature_doc(method, self._filter_context), indent)

    def format_class_signature(self, node: Class) -> str:
        return self._render(class_signature_doc(node, self._filter_context), 0)

    def format_interface_signature(self, node: Interface) -> str:
        return self._render(interface_signature_doc(node, self._filter_context), 0)

    def format_doc_comment(self, value: Optional[str], indent: int = 0) -> str:
        """Return a JSDoc block ending in a newline, or an empty string."""
        levels = indent // len(_TEMPLATE_UNIT)
        doc = doc_comment(value, self._filter_context.nested(levels))
        rendered = self._render(doc, indent)
        if not rendered:
            return ""
        return " " * indent + rendered.rstrip("\n") + "\n"

    def format_import(self, node: Import) -> str:
        return self._render(node.to_doc(self._filter_context), 0)

    def format_generic_list(self, generics: list[Generic]) -> str:
        return self._render(generic_list_doc(generics, self._filter_context), 0)

    def format_call(
        self,
        callee: str,
        arguments: list[str],
        indent: int = 0,
        offset: int = 0,
        suffix: str = "",
    ) -> str:
        """Lay out ``callee(arguments)`` followed by ``suffix``.

        Arguments go one per line with a trailing comma when the call does not
        fit; an arrow function argument may further break after ``=>``.

        Args:
            callee (str): Text before the opening parenthesis, such as
                ``"return new JSONApiResponse"``.
            arguments (list[str]): Argument expressions.
            indent (int): Template column the call starts at.
            offset (int): Columns the rendered block is later shifted by, such
                as :data:`METHOD_BODY_INDENT` for method bodies.
            suffix (str): Text after the closing parenthesis, such as ``";"``.

        Returns:
            str: The call without leading indentation on its first line.
        """
        items = [_argument_doc(argument) for argument in arguments]
        doc = concat(
            adaptive_list(items, f"{callee}(", ")", trailing_separator=True), text(suffix)
        )
        return self._render(doc, indent, offset)

    def string_literal(
        self, value: str, indent: int = 0, offset: int = 0, suffix: str = ""
    ) -> str:
        """Quote ``value``, splitting it into ``'...' +`` pieces when it does not fit.

        Pieces break after whitespace and continuation lines are indented one
        unit past ``indent``. ``offset`` has the same meaning as for
        :meth:`format_call`.
        """
        quoted = quote_string(value)
        column = offset + indent
        if column + len(quoted) + len(suffix) <= self.max_width:
            return quoted + suffix
        room = self.max_width - column - len(_TEMPLATE_UNIT) - max(len(" +"), len(suffix))
        pieces: list[str] = []
        current = ""
        for token in _LITERAL_TOKEN_RE.findall(value):
            if current and len(quote_string(current + token)) > room:
                pieces.append(current)
                current = ""
            current += token
        pieces.append(current)
        separator = " +\n" + " " * (indent + len(_TEMPLATE_UNIT))
        return separator.join(quote_string(piece) for piece in pieces) + suffix

    def instance_guard(self, prop: Property, indent: int = 2) -> str:
        return instance_guard(prop, indent, self.max_width)

    def _render(self, doc: Doc, indent: int, offset: int = 0) -> str:
        levels = indent // len(_TEMPLATE_UNIT)
        context = self._filter_context
        if offset:
            context = replace(context, max_width=self.max_width - offset)
        return context.render(nest(levels, doc), indent)

    def _reindent(self, rendered: str) -> str:
        if self.indent_unit == _TEMPLATE_UNIT:
            return rendered

        def _replace(match: re.Match[str]) -> str:
            levels, extra = divmod(len(match.group(1)), len(_TEMPLATE_UNIT))
            return self.indent_unit * levels + " " * extra

        return _LEADING_SPACES_RE.sub(_replace, rendered)


def indent_lines(value: str, width: int = 2, first: bool = True) -> str:
    """Prefix every non-empty line by ``width`` spaces."""
    prefix = " " * width
    lines = value.split("\n")
    return "\n".join(
        prefix + line if line.strip() and (first or index) else line
        for index, line in enumerate(lines)
    )


def instance_guard(prop: Property, indent: int = 2, max_width: int = 80) -> str:
    """Return the ``instanceOf`` check for one required property.

    The condition is split over two lines when the check is wider than
    ``max_width``.
    """
    key = quote_string(prop.name)
    condition = concat(
        SOFTLINE, text(f"!({key} in value) ||"), LINE, text(f"value[{key}] === undefined")
    )
    doc = group(concat(text("if ("), nest(1, condition), SOFTLINE, text(") return false;")))
    levels = indent // len(_TEMPLATE_UNIT)
    return " " * indent + render(nest(levels, doc), max_width, _TEMPLATE_UNIT, indent)


def _argument_doc(argument: str) -> Doc:
    parameters, arrow, body = argument.partition(" => ")
    if not arrow:
        return text(argument)
    return group(concat(text(f"{parameters} =>"), nest(1, concat(LINE, text(body)))))


def from_json_line(prop: Property, indent: int = 4, optional: Optional[bool] = None) -> str:
    """Return the object-literal entry reading ``prop`` from a JSON value."""
    is_optional = prop.optional if optional is None else optional
    fallback = " ?? undefined" if is_optional else ""
    prefix = " " * indent
    return f"{prefix}{quote_string(prop.name)}: json[{quote_string(prop.json_name)}]{fallback},"


def to_json_line(prop: Property, indent: int = 4) -> str:
    """Return the object-literal entry writing ``prop`` to its JSON key."""
    prefix = " " * indent
    return f"{prefix}{quote_string(prop.json_name)}: value[{quote_string(prop.name)}],"


def json_string(value: object) -> str:
    """Render ``value`` as a JSON literal for manifest templates."""
    return json.dumps(value, ensure_ascii=False)
