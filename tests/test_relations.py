from milestone_graph.core.graph.build_graph import build_graph
from milestone_graph.core.graph.relations import (
    dependencies_of,
    dependents_of,
    ready_milestones,
    transitive_dependents,
)
from milestone_graph.core.model import DependencyEdge


EDGES = [
    DependencyEdge(milestone_id="B", depends_on_id="A"),
    DependencyEdge(milestone_id="C", depends_on_id="A"),
    DependencyEdge(milestone_id="D", depends_on_id="B"),
    DependencyEdge(milestone_id="D", depends_on_id="C"),
    DependencyEdge(milestone_id="D", depends_on_id="C"),
]


def test_dependencies_of_deduplicates():
    assert dependencies_of(EDGES, "D") == ["B", "C"]
    assert dependencies_of(EDGES, "A") == []


def test_dependents_of():
    g = build_graph(EDGES)
    assert dependents_of(g, "A") == ["B", "C"]
    assert dependents_of(g, "C") == ["D"]
    assert dependents_of(g, "D") == []


def test_transitive_dependents():
    g = build_graph(EDGES)
    assert transitive_dependents(g, "A") == ["B", "C", "D"]
    assert transitive_dependents(g, "D") == []
    assert transitive_dependents(g, "NOPE") == []


def test_ready_milestones():
    g = build_graph(EDGES)
    assert ready_milestones(g, []) == ["A"]
    assert ready_milestones(g, ["A"]) == ["B", "C"]
    assert ready_milestones(g, ["A", "B"]) == ["C"]
    assert ready_milestones(g, ["A", "B", "C"]) == ["D"]
    assert ready_milestones(g, ["A", "B", "C", "D"]) == []


def test_ready_ignores_cycle_members():
    g = build_graph(
        [
            DependencyEdge(milestone_id="A", depends_on_id="B"),
            DependencyEdge(milestone_id="B", depends_on_id="A"),
        ],
        milestone_ids=["A", "B", "SOLO"],
    )
    assert ready_milestones(g, []) == ["SOLO"]
