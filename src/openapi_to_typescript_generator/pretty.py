"""Width-aware document combinators.

A :data:`Doc` describes output with optional line breaks. :func:`render`
lays it out for a maximum width: each :class:`Group` is printed flat when
its contents fit on the rest of the current line, and broken otherwise,
turning every :class:`Line` directly inside it into a newline at the
current indentation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import EmissionError, ErrorCode


@dataclass(frozen=True)
class Text:
    """Literal text without newlines."""

    text: str


@dataclass(frozen=True)
class Line:
    """A break point: ``flat`` when the enclosing group fits, a newline otherwise."""

    flat: str = " "


@dataclass(frozen=True)
class HardLine:
    """An unconditional newline; forces every enclosing group to break."""


@dataclass(frozen=True)
class Nest:
    """Indent lines started inside ``doc`` by ``levels`` indentation units."""

    levels: int
    doc: Doc


@dataclass(frozen=True)
class Group:
    """A unit laid out flat if it fits, broken otherwise."""

    doc: Doc
    force_break: bool = False


@dataclass(frozen=True)
class Concat:
    """Documents printed one after another."""

    parts: tuple[Doc, ...]


@dataclass(frozen=True)
class IfBreak:
    """``broken`` when the enclosing group breaks, ``flat`` otherwise."""

    broken: Doc
    flat: Doc


@dataclass(frozen=True)
class Choice:
    """``first`` printed flat when it fits, otherwise ``second``."""

    first: Doc
    second: Doc


type Doc = Text | Line | HardLine | Nest | Group | Concat | IfBreak | Choice

EMPTY: Doc = Text("")
LINE: Doc = Line(" ")
SOFTLINE: Doc = Line("")
HARDLINE: Doc = HardLine()


def text(value: str) -> Doc:
    """Return a text document; embedded newlines become hard lines."""
    if "\n" not in value:
        return Text(value)
    return join(HARDLINE, [Text(part) for part in value.split("\n")])


def concat(*parts: Doc) -> Doc:
    """Concatenate documents, flattening nested concatenations."""
    flat: list[Doc] = []
    for part in parts:
        if isinstance(part, Concat):
            flat.extend(part.parts)
        elif part != EMPTY:
            flat.append(part)
    if not flat:
        return EMPTY
    if len(flat) == 1:
        return flat[0]
    return Concat(tuple(flat))


def nest(levels: int, doc: Doc) -> Doc:
    """Indent ``doc`` by ``levels`` units."""
    return Nest(levels, doc)


def group(doc: Doc, *, force_break: bool = False) -> Doc:
    """Group ``doc`` so it is laid out as a unit."""
    return Group(doc, force_break)


def if_break(broken: Doc, flat: Doc = EMPTY) -> Doc:
    """Choose text by the enclosing group's layout."""
    return IfBreak(broken, flat)


def choice(first: Doc, second: Doc) -> Doc:
    """Prefer ``first`` on one line, fall back to ``second``."""
    return Choice(first, second)


def join(separator: Doc, docs: list[Doc]) -> Doc:
    """Interleave ``separator`` between ``docs``."""
    parts: list[Doc] = []
    for index, doc in enumerate(docs):
        if index:
            parts.append(separator)
        parts.append(doc)
    return concat(*parts)


def adaptive_list(
    items: list[Doc],
    open_: str = "",
    close: str = "",
    *,
    separator: str = ",",
    trailing_separator: bool = False,
    force_break: bool = False,
) -> Doc:
    """Render ``a, b, c`` when it fits, else one item per line indented one level.

    Args:
        items (list[Doc]): Item documents.
        open_ (str): Opening delimiter, such as ``"("``.
        close (str): Closing delimiter.
        separator (str): Text between items.
        trailing_separator (bool): Whether to add ``separator`` after the last
            item when broken.
        force_break (bool): Always use the broken layout.

    Returns:
        Doc: The grouped list.
    """
    if not items:
        return text(open_ + close)
    body = join(concat(text(separator), LINE), items)
    tail = if_break(text(separator)) if trailing_separator else EMPTY
    return group(
        concat(text(open_), nest(1, concat(SOFTLINE, body)), tail, SOFTLINE, text(close)),
        force_break=force_break,
    )


class _Mode(Enum):
    FLAT = "flat"
    BREAK = "break"


type _Command = tuple[int, _Mode, Doc]


type HardLineMemo = dict[int, bool]


def has_hard_line(doc: Doc, memo: HardLineMemo | None = None) -> bool:
    """Return whether ``doc`` must break however wide the line is.

    Args:
        doc (Doc): Document to inspect.
        memo (HardLineMemo | None): Answers keyed by ``id`` of sub-documents.
            Only valid while those documents are alive, so :func:`render`
            creates one per call.

    Returns:
        bool: ``True`` for a hard line or a forced group anywhere outside
        ``IfBreak.broken``; for a ``Choice`` both alternatives must break.
    """
    if memo is None:
        memo = {}
    key = id(doc)
    if key in memo:
        return memo[key]
    if isinstance(doc, HardLine):
        result = True
    elif isinstance(doc, Group):
        result = doc.force_break or has_hard_line(doc.doc, memo)
    elif isinstance(doc, Nest):
        result = has_hard_line(doc.doc, memo)
    elif isinstance(doc, Concat):
        result = any(has_hard_line(part, memo) for part in doc.parts)
    elif isinstance(doc, IfBreak):
        result = has_hard_line(doc.flat, memo)
    elif isinstance(doc, Choice):
        result = has_hard_line(doc.first, memo) and has_hard_line(doc.second, memo)
    else:
        result = False
    memo[key] = result
    return result


def _fits(
    command: _Command, rest: list[_Command], remaining: int, memo: HardLineMemo
) -> bool:
    stack: list[_Command] = [command]
    rest_index = len(rest)
    while remaining >= 0:
        if not stack:
            if rest_index == 0:
                return True
            rest_index -= 1
            stack.append(rest[rest_index])
            continue
        indent, mode, doc = stack.pop()
        if isinstance(doc, Text):
            remaining -= len(doc.text)
        elif isinstance(doc, Concat):
            stack.extend((indent, mode, part) for part in reversed(doc.parts))
        elif isinstance(doc, Nest):
            stack.append((indent + doc.levels, mode, doc.doc))
        elif isinstance(doc, Group):
            broken = doc.force_break or has_hard_line(doc.doc, memo)
            stack.append((indent, _Mode.BREAK if broken else mode, doc.doc))
        elif isinstance(doc, Line):
            if mode is _Mode.BREAK:
                return True
            remaining -= len(doc.flat)
        elif isinstance(doc, HardLine):
            return True
        elif isinstance(doc, IfBreak):
            stack.append((indent, mode, doc.broken if mode is _Mode.BREAK else doc.flat))
        elif isinstance(doc, Choice):
            stack.append((indent, _Mode.FLAT, doc.first))
    return False


def render(doc: Doc, width: int = 80, indent_unit: str = "  ", start_column: int = 0) -> str:
    """Lay out ``doc`` for ``width`` columns.

    Args:
        doc (Doc): Document to print.
        width (int): Maximum line width.
        indent_unit (str): Text of one indentation level.
        start_column (int): Column the first line starts at.

    Returns:
        str: Rendered text without trailing whitespace on any line.

    Raises:
        EmissionError: ``PrettyPrintOverflow`` when indentation alone reaches
            the width.
    """
    out: list[str] = []
    memo: HardLineMemo = {}
    column = start_column
    stack: list[_Command] = [(0, _Mode.BREAK, doc)]
    while stack:
        indent, mode, node = stack.pop()
        if isinstance(node, Text):
            out.append(node.text)
            column += len(node.text)
        elif isinstance(node, Concat):
            stack.extend((indent, mode, part) for part in reversed(node.parts))
        elif isinstance(node, Nest):
            stack.append((indent + node.levels, mode, node.doc))
        elif isinstance(node, Group):
            if mode is _Mode.FLAT and not node.force_break:
                stack.append((indent, _Mode.FLAT, node.doc))
            elif node.force_break or has_hard_line(node.doc, memo):
                stack.append((indent, _Mode.BREAK, node.doc))
            else:
                flat = (indent, _Mode.FLAT, node.doc)
                fits = _fits(flat, stack, width - column, memo)
                stack.append(flat if fits else (indent, _Mode.BREAK, node.doc))
        elif isinstance(node, IfBreak):
            stack.append((indent, mode, node.broken if mode is _Mode.BREAK else node.flat))
        elif isinstance(node, Choice):
            first = (indent, _Mode.FLAT, node.first)
            if _fits(first, stack, width - column, memo):
                stack.append(first)
            else:
                stack.append((indent, mode, node.second))
        elif isinstance(node, Line) and mode is _Mode.FLAT:
            out.append(node.flat)
            column += len(node.flat)
        else:
            prefix = indent_unit * indent
            if len(prefix) >= width:
                raise EmissionError(
                    f"Indentation of {len(prefix)} columns leaves no room within width {width}",
                    code=ErrorCode.PRETTY_PRINT_OVERFLOW,
                )
            out.append("\n" + prefix)
            column = len(prefix)
    return "\n".join(line.rstrip() for line in "".join(out).split("\n"))
