"""Schema dependency edges, cycle detection, and kind classification."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from .document import (
    ArraySchema,
    Combinator,
    CompositeSchema,
    EnumSchema,
    ObjectSchema,
    PrimitiveSchema,
    Reference,
    SchemaBase,
    SchemaOrRef,
    iter_schema_children,
)
from .resolver import schema_name


class SchemaKind(StrEnum):
    """Lowering strategy selected for a named schema."""

    PRIMITIVE = "primitive"
    ENUM = "enum"
    OBJECT = "object"
    UNION = "union"
    INTERSECTION = "intersection"
    ARRAY_ALIAS = "array-alias"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class SchemaAnalysis:
    """Read-only side tables keyed by component schema name."""

    kinds: dict[str, SchemaKind] = field(default_factory=dict)
    dependencies: dict[str, tuple[str, ...]] = field(default_factory=dict)
    cycles: tuple[tuple[str, ...], ...] = ()

    @property
    def cyclic_names(self) -> frozenset[str]:
        """Return every schema name that takes part in a recorded cycle."""
        return frozenset(name for cycle in self.cycles for name in cycle)


def direct_dependencies(schema: SchemaOrRef) -> tuple[str, ...]:
    """Return the sorted schema names ``schema`` references without crossing another.

    Inline children are followed; a reference ends the walk along its branch.
    """
    found: set[str] = set()
    pending: list[SchemaOrRef] = [schema]
    while pending:
        node = pending.pop()
        if isinstance(node, Reference):
            name = schema_name(node.pointer)
            if name is not None:
                found.add(name)
            continue
        pending.extend(iter_schema_children(node))
    return tuple(sorted(found))


def build_dependency_graph(schemas: Mapping[str, SchemaOrRef]) -> dict[str, tuple[str, ...]]:
    """Return direct dependencies for every component schema, keyed in sorted order."""
    return {name: direct_dependencies(schemas[name]) for name in sorted(schemas)}


def find_cycles(graph: Mapping[str, Iterable[str]]) -> tuple[tuple[str, ...], ...]:
    """Find strongly connected components that form cycles.

    Uses Tarjan's algorithm with an explicit work stack, visiting nodes and
    edges in sorted order, so graph depth is not bounded by the interpreter's
    recursion limit. Every component with two or more members is reported,
    plus every self-loop. Edges to names outside ``graph`` are ignored.

    Args:
        graph (Mapping[str, Iterable[str]]): Adjacency lists keyed by schema name.

    Returns:
        tuple[tuple[str, ...], ...]: Cycles, each sorted, ordered by first member.
    """
    edges = {name: sorted(dep for dep in deps if dep in graph) for name, deps in graph.items()}
    index_of: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    components: list[tuple[str, ...]] = []

    def _visit(node: str) -> None:
        index_of[node] = lowlink[node] = len(index_of)
        stack.append(node)
        on_stack.add(node)

    def _close(node: str) -> None:
        if lowlink[node] != index_of[node]:
            return
        members: list[str] = []
        while True:
            member = stack.pop()
            on_stack.discard(member)
            members.append(member)
            if member == node:
                break
        if len(members) > 1 or node in edges[node]:
            components.append(tuple(sorted(members)))

    for root in sorted(edges):
        if root in index_of:
            continue
        _visit(root)
        # Each frame holds a node and the position of its next unexplored edge.
        work: list[tuple[str, int]] = [(root, 0)]
        while work:
            node, position = work[-1]
            targets = edges[node]
            if position < len(targets):
                work[-1] = (node, position + 1)
                target = targets[position]
                if target not in index_of:
                    _visit(target)
                    work.append((target, 0))
                elif target in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[target])
                continue
            work.pop()
            _close(node)
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])
    return tuple(sorted(components))


def classify(schema: SchemaOrRef) -> SchemaKind:
    """Return the kind of a component schema."""
    if isinstance(schema, Reference):
        return SchemaKind.OPAQUE
    if isinstance(schema, EnumSchema):
        return SchemaKind.ENUM
    if isinstance(schema, PrimitiveSchema):
        return SchemaKind.PRIMITIVE
    if isinstance(schema, ArraySchema):
        return SchemaKind.ARRAY_ALIAS
    if isinstance(schema, CompositeSchema):
        if schema.combinator is Combinator.ALL_OF:
            return SchemaKind.INTERSECTION
        return SchemaKind.UNION
    if isinstance(schema, ObjectSchema) and (
        schema.properties or isinstance(schema.additional_properties, (Reference, SchemaBase))
    ):
        return SchemaKind.OBJECT
    return SchemaKind.OPAQUE


def classify_schemas(schemas: Mapping[str, SchemaOrRef]) -> dict[str, SchemaKind]:
    """Return the kind table for every component schema, keyed in sorted order."""
    return {name: classify(schemas[name]) for name in sorted(schemas)}


def analyze_schemas(schemas: Mapping[str, SchemaOrRef]) -> SchemaAnalysis:
    """Compute all three side tables in one call."""
    dependencies = build_dependency_graph(schemas)
    return SchemaAnalysis(
        kinds=classify_schemas(schemas),
        dependencies=dependencies,
        cycles=find_cycles(dependencies),
    )
