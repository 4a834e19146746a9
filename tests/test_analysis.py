"""Unit tests for schema dependency analysis and classification."""

from __future__ import annotations

from openapi_to_typescript_generator.analysis import (
    SchemaKind,
    analyze_schemas,
    build_dependency_graph,
    direct_dependencies,
    find_cycles,
)
from openapi_to_typescript_generator.document import parse_schema
from .fixture_helpers import fixture_path, load


def test_direct_dependencies_stop_at_references() -> None:
    """Inline children are followed; references end the walk."""
    schema = parse_schema(
        {
            "type": "object",
            "properties": {
                "owner": {"$ref": "#/components/schemas/User"},
                "tags": {"type": "array", "items": {"$ref": "#/components/schemas/Tag"}},
                "extra": {
                    "type": "object",
                    "additionalProperties": {"$ref": "#/components/schemas/Note"},
                },
            },
        }
    )
    assert direct_dependencies(schema) == ("Note", "Tag", "User")


def test_dependency_graph_is_sorted_by_name() -> None:
    """The graph is keyed in sorted order regardless of document order."""
    document = load(fixture_path("catalog.yaml").read_text(encoding="utf-8"))
    graph = build_dependency_graph(document.components.schemas)
    assert list(graph) == sorted(graph)
    assert graph["CatalogItem"] == ("ItemKind",)
    assert graph["Money"] == ("Amount",)
    assert graph["Identifier"] == ()


def test_find_cycles_reports_components_and_self_loops() -> None:
    """Multi-member components and self-loops are cycles; edges out of the graph are ignored."""
    graph = {
        "Node": ("Branch", "Leaf"),
        "Branch": ("Node",),
        "Leaf": (),
        "Tree": ("Tree", "External"),
    }
    assert find_cycles(graph) == (("Branch", "Node"), ("Tree",))


def test_find_cycles_of_acyclic_graph() -> None:
    """An acyclic graph has no cycles."""
    assert find_cycles({"A": ("B",), "B": ("C",), "C": ()}) == ()


def test_classification_of_each_kind() -> None:
    """Each schema shape maps to a lowering strategy."""
    schemas = {
        "Obj": parse_schema({"type": "object", "properties": {"a": {"type": "string"}}}),
        "Map": parse_schema({"type": "object", "additionalProperties": {"type": "integer"}}),
        "Free": parse_schema({"type": "object"}),
        "Str": parse_schema({"type": "string"}),
        "Color": parse_schema({"enum": ["red", "green"]}),
        "List": parse_schema({"type": "array", "items": {"type": "string"}}),
        "Either": parse_schema({"anyOf": [{"type": "string"}, {"type": "integer"}]}),
        "Both": parse_schema({"allOf": [{"$ref": "#/components/schemas/Obj"}]}),
        "Alias": parse_schema({"$ref": "#/components/schemas/Obj"}),
    }
    analysis = analyze_schemas(schemas)
    assert analysis.kinds == {
        "Alias": SchemaKind.OPAQUE,
        "Both": SchemaKind.INTERSECTION,
        "Color": SchemaKind.ENUM,
        "Either": SchemaKind.UNION,
        "Free": SchemaKind.OPAQUE,
        "List": SchemaKind.ARRAY_ALIAS,
        "Map": SchemaKind.OBJECT,
        "Obj": SchemaKind.OBJECT,
        "Str": SchemaKind.PRIMITIVE,
    }
    assert analysis.cycles == ()


def test_cyclic_names_cover_every_member() -> None:
    """``cyclic_names`` flattens the recorded cycles."""
    document = load(fixture_path("cyclic.yaml").read_text(encoding="utf-8"))
    analysis = analyze_schemas(document.components.schemas)
    assert analysis.cycles == (("Branch", "Node"),)
    assert analysis.cyclic_names == frozenset({"Branch", "Node"})
    assert analysis.kinds["Node"] is SchemaKind.UNION


def test_find_cycles_handles_deep_chains() -> None:
    """Long reference chains are analyzed without exhausting the call stack."""
    size = 5000
    chain = {f"S{index:05d}": [f"S{index + 1:05d}"] for index in range(size)}
    chain[f"S{size:05d}"] = []
    assert find_cycles(chain) == ()
    ring = {f"R{index:05d}": [f"R{(index + 1) % size:05d}"] for index in range(size)}
    cycles = find_cycles(ring)
    assert len(cycles) == 1
    assert cycles[0] == tuple(sorted(ring))


def test_find_cycles_separates_components_behind_a_chain() -> None:
    """Cycles reached through a long path keep their own members only."""
    graph: dict[str, list[str]] = {f"N{index:04d}": [f"N{index + 1:04d}"] for index in range(2000)}
    graph["N2000"] = ["Z1"]
    graph["Z1"] = ["Z2"]
    graph["Z2"] = ["Z1", "Z3"]
    graph["Z3"] = ["Z3"]
    assert find_cycles(graph) == (("Z1", "Z2"), ("Z3",))
