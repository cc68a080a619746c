from milestone_graph.core.graph.build_graph import build_graph
from milestone_graph.core.model import DependencyEdge, DependencyGraph
from milestone_graph.core.validate.cycles import find_cycle, is_acyclic


def _g(*pairs: tuple[str, str]) -> DependencyGraph:
    return build_graph([DependencyEdge(milestone_id=m, depends_on_id=d) for m, d in pairs])


def test_empty_graph_is_acyclic():
    assert is_acyclic(build_graph([]))
    assert find_cycle(build_graph([])) is None


def test_chain_is_acyclic():
    assert is_acyclic(_g(("B", "A"), ("C", "B")))


def test_diamond_is_acyclic():
    # shared descendant reached twice is not a back-edge
    assert is_acyclic(_g(("B", "A"), ("C", "A"), ("D", "B"), ("D", "C")))


def test_two_node_cycle():
    g = _g(("A", "B"), ("B", "A"))
    assert not is_acyclic(g)
    cycle = find_cycle(g)
    assert cycle is not None
    assert cycle[0] == cycle[-1]
    assert set(cycle) == {"A", "B"}


def test_self_loop_is_a_cycle():
    g = _g(("A", "A"))
    assert not is_acyclic(g)
    assert find_cycle(g) == ["A", "A"]


def test_cycle_behind_acyclic_prefix():
    g = _g(("B", "A"), ("C", "B"), ("D", "C"), ("B", "D"))
    assert not is_acyclic(g)
    assert find_cycle(g) == ["B", "C", "D", "B"]


def test_long_chain_does_not_hit_recursion_limit():
    n = 20000
    pairs = [(f"M{i + 1}", f"M{i}") for i in range(n)]
    assert is_acyclic(_g(*pairs))
    pairs.append(("M0", f"M{n}"))
    assert not is_acyclic(_g(*pairs))


def test_hand_built_graph_with_keys_missing_from_nodes():
    g = DependencyGraph(dependents={"A": ["B"], "B": ["A"]}, nodes=[])
    assert not is_acyclic(g)


def test_validator_is_idempotent():
    g = _g(("A", "B"), ("B", "C"))
    assert is_acyclic(g) == is_acyclic(g)
    assert find_cycle(g) == find_cycle(g)
