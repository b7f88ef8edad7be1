#!/usr/bin/env python3
"""
Layout Engine Tests

Validates the layered layout and the re-layout decision:
1. Ranks follow edge direction, spacing constants respected
2. Cycles and disconnected graphs still get a position per node
3. Determinism (same graph, same coordinates)
4. Full / partial / none update policy
"""

import networkx as nx
import pytest

from conceptmap.config import LayoutSettings
from conceptmap.layout import (
    apply_layout,
    assign_ranks,
    break_cycles,
    count_crossings,
    greedy_fas_ordering,
    layered_positions,
    needs_full_layout,
    order_ranks,
)
from conceptmap.models import ConceptEdge, ConceptNode, Position


def chain(*ids):
    return list(zip(ids, ids[1:]))


def nodes_for(*labels):
    return [ConceptNode.for_label(label) for label in labels]


def edge(source, target):
    return ConceptEdge(id=f"edge-{source}::{target}", source=f"node-{source}", target=f"node-{target}")


class TestCycleBreaking:
    """break_cycles() always yields a DAG over the same nodes."""

    def test_dag_unchanged(self):
        g = nx.DiGraph(chain("A", "B", "C"))
        dag = break_cycles(g)
        assert set(dag.edges) == {("A", "B"), ("B", "C")}

    def test_cycle_broken(self):
        g = nx.DiGraph(chain("A", "B", "C", "A"))
        dag = break_cycles(g)
        assert nx.is_directed_acyclic_graph(dag)
        assert set(dag.nodes) == {"A", "B", "C"}
        assert dag.number_of_edges() == 3

    def test_two_cycle_collapses(self):
        g = nx.DiGraph([("A", "B"), ("B", "A")])
        dag = break_cycles(g)
        assert nx.is_directed_acyclic_graph(dag)
        assert dag.number_of_edges() == 1

    def test_ordering_is_deterministic(self):
        g = nx.DiGraph([("A", "B"), ("B", "C"), ("C", "A"), ("C", "D")])
        assert greedy_fas_ordering(g) == greedy_fas_ordering(g.copy())

    def test_empty_graph(self):
        assert break_cycles(nx.DiGraph()).number_of_nodes() == 0


class TestRanks:
    """Longest-path ranking and crossing reduction."""

    def test_chain_ranks(self):
        ranks = assign_ranks(nx.DiGraph(chain("A", "B", "C")))
        assert ranks == {"A": 0, "B": 1, "C": 2}

    def test_longest_path_wins(self):
        ranks = assign_ranks(nx.DiGraph([("A", "B"), ("B", "C"), ("A", "C")]))
        assert ranks["C"] == 2

    def test_crossings_removed(self):
        # A→D and B→C drawn in insertion order cross once
        dag = nx.DiGraph()
        dag.add_nodes_from(["A", "B", "C", "D"])
        dag.add_edges_from([("A", "D"), ("B", "C")])
        ranks = assign_ranks(dag)
        ordering = order_ranks(dag, ranks)
        assert count_crossings(ordering, dag) == 0


class TestLayeredPositions:
    """Coordinates for the LR and TB directions."""

    def test_every_node_positioned(self):
        positions = layered_positions(["A", "B", "C", "LONE"], chain("A", "B", "C"))
        assert set(positions) == {"A", "B", "C", "LONE"}

    def test_lr_ranks_along_x(self):
        s = LayoutSettings()
        positions = layered_positions(["A", "B"], [("A", "B")], s)
        assert positions["A"].x == s.margin
        assert positions["B"].x == s.margin + s.node_width + s.rank_sep
        assert positions["A"].y == positions["B"].y

    def test_lr_siblings_along_y(self):
        s = LayoutSettings()
        positions = layered_positions(["A", "B", "C"], [("A", "B"), ("A", "C")], s)
        assert positions["B"].x == positions["C"].x
        assert abs(positions["C"].y - positions["B"].y) == s.node_height + s.node_sep

    def test_single_node_rank_is_centered(self):
        s = LayoutSettings()
        positions = layered_positions(["A", "B", "C"], [("A", "B"), ("A", "C")], s)
        middle = (positions["B"].y + positions["C"].y) / 2
        assert positions["A"].y == pytest.approx(middle)

    def test_tb_swaps_axes(self):
        s = LayoutSettings(direction="TB")
        positions = layered_positions(["A", "B"], [("A", "B")], s)
        assert positions["A"].x == positions["B"].x
        assert positions["B"].y == s.margin + s.node_height + s.rank_sep

    def test_cycle_terminates(self):
        positions = layered_positions(["A", "B", "C"], chain("A", "B", "C", "A"))
        assert len(positions) == 3
        assert len({(p.x, p.y) for p in positions.values()}) == 3

    def test_deterministic(self, first_turn, second_turn):
        pairs = [tuple(line.split("::")) for line in first_turn + ["DERIVATIVES::INTEGRALS", "INTEGRALS::LIMITS"]]
        ids = list(dict.fromkeys(label for pair in pairs for label in pair))
        assert layered_positions(ids, pairs) == layered_positions(list(ids), list(pairs))

    def test_unknown_edge_endpoints_ignored(self):
        positions = layered_positions(["A"], [("A", "GHOST")])
        assert set(positions) == {"A"}

    def test_no_overlaps(self):
        ids = ["R", "A", "B", "C", "D", "E"]
        edges = [("R", "A"), ("R", "B"), ("R", "C"), ("A", "D"), ("B", "E")]
        positions = layered_positions(ids, edges)
        assert len({(p.x, p.y) for p in positions.values()}) == len(ids)


class TestUpdatePolicy:
    """needs_full_layout() and apply_layout()."""

    def test_new_node_triggers_full(self):
        assert needs_full_layout(nodes_for("A"), nodes_for("A", "B"))

    def test_renamed_node_same_count_triggers_full(self):
        assert needs_full_layout(nodes_for("A", "B"), nodes_for("A", "C"))

    def test_count_change_triggers_full(self):
        assert needs_full_layout(nodes_for("A", "B"), nodes_for("A"))

    def test_same_nodes_no_layout(self):
        assert not needs_full_layout(nodes_for("A", "B"), nodes_for("A", "B"))

    def test_full_layout_discards_dragged_positions(self):
        dragged = [n.moved_to(999.0, 999.0) for n in nodes_for("A", "B")]
        nodes = dragged + nodes_for("C")
        result = apply_layout(nodes, [edge("A", "B"), edge("B", "C")], prior_nodes=dragged)
        assert result.mode == "full"
        assert set(result.moved) == {"node-A", "node-B", "node-C"}
        assert all(n.position != Position(999.0, 999.0) for n in result.nodes)

    def test_none_mode_keeps_objects(self):
        placed = [n.moved_to(10.0, 20.0) for n in nodes_for("A", "B")]
        result = apply_layout(placed, [edge("A", "B")], prior_nodes=placed)
        assert result.mode == "none"
        assert result.moved == []
        assert all(a is b for a, b in zip(result.nodes, placed))

    def test_partial_places_only_unplaced(self):
        a, b = nodes_for("A", "B")
        a = a.moved_to(500.0, 500.0)
        result = apply_layout([a, b], [edge("A", "B")], prior_nodes=[a, b])
        assert result.mode == "partial"
        assert result.moved == ["node-B"]
        assert result.nodes[0] is a
        assert result.nodes[1].position is not None

    def test_handle_sides_follow_direction(self):
        result = apply_layout(nodes_for("A", "B"), [edge("A", "B")], LayoutSettings(direction="TB"))
        assert all(n.source_position == "bottom" and n.target_position == "top" for n in result.nodes)

    def test_input_nodes_not_mutated(self):
        nodes = nodes_for("A", "B")
        apply_layout(nodes, [edge("A", "B")])
        assert all(n.position is None for n in nodes)
