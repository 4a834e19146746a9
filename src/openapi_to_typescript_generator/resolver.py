"""Intra-document reference resolution."""

from __future__ import annotations

import re
from typing import TypeVar

from .document import COMPONENT_SECTIONS, Document, Reference, unescape_pointer_token
from .errors import ErrorCode, ReferenceResolutionError

_T = TypeVar("_T")

_COMPONENT_POINTER_RE = re.compile(r"^#/components/(?P<section>[^/]+)/(?P<name>[^/]+)$")


def parse_pointer(pointer: str) -> tuple[str, str]:
    """Split a ``#/components/<section>/<name>`` pointer.

    Raises:
        ReferenceResolutionError: ``ExternalReference`` for pointers into other
            documents, ``InvalidReference`` for any other malformed pointer.
    """
    if not pointer.startswith("#"):
        raise ReferenceResolutionError(
            f"External references are not supported: {pointer}",
            code=ErrorCode.EXTERNAL_REFERENCE,
            pointer=pointer,
        )
    match = _COMPONENT_POINTER_RE.match(pointer)
    if match is None or match.group("section") not in COMPONENT_SECTIONS:
        raise ReferenceResolutionError(
            f"Reference must have the form #/components/<section>/<name>: {pointer}",
            code=ErrorCode.INVALID_REFERENCE,
            pointer=pointer,
        )
    return match.group("section"), unescape_pointer_token(match.group("name"))


def schema_name(pointer: str) -> str | None:
    """Return the component schema name a pointer targets, if it targets one."""
    match = _COMPONENT_POINTER_RE.match(pointer)
    if match is None or match.group("section") != "schemas":
        return None
    return unescape_pointer_token(match.group("name"))


class ReferenceResolver:
    """Resolve ``#/components/...`` pointers against one document."""

    def __init__(self, document: Document) -> None:
        self._document = document

    def lookup(self, pointer: str) -> object:
        """Return the component a pointer names, without following aliases."""
        section, name = parse_pointer(pointer)
        components = self._document.components.section(section)
        if name not in components:
            raise ReferenceResolutionError(
                f"Unresolvable reference: {pointer}",
                code=ErrorCode.INVALID_REFERENCE,
                pointer=pointer,
            )
        return components[name]

    def resolve(self, pointer: str) -> object:
        """Return the first non-reference value reachable from ``pointer``."""
        return self.lookup(self.final_pointer(pointer))

    def final_pointer(self, pointer: str) -> str:
        """Follow an alias chain and return the pointer of its last link.

        Raises:
            ReferenceResolutionError: ``CircularReference`` when a pointer is
                visited twice.
        """
        visited: list[str] = []
        current = pointer
        while True:
            if current in visited:
                raise ReferenceResolutionError(
                    f"Circular reference: {' -> '.join([*visited, current])}",
                    code=ErrorCode.CIRCULAR_REFERENCE,
                    pointer=pointer,
                    chain=(*visited, current),
                )
            visited.append(current)
            value = self.lookup(current)
            if not isinstance(value, Reference):
                return current
            current = value.pointer

    def resolve_ref_or(self, value: _T | Reference, expected: type[_T]) -> _T:
        """Return ``value`` itself or the component it references.

        Raises:
            ReferenceResolutionError: ``InvalidReference`` when the target is
                not an instance of ``expected``.
        """
        if not isinstance(value, Reference):
            return value
        resolved = self.resolve(value.pointer)
        if not isinstance(resolved, expected):
            raise ReferenceResolutionError(
                f"Reference {value.pointer} does not point to a {expected.__name__}",
                code=ErrorCode.INVALID_REFERENCE,
                pointer=value.pointer,
            )
        return resolved
