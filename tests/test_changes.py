#!/usr/bin/env python3
"""
Interaction Change Tests

Drag, select and resize events from the graph view.
"""

from conceptmap.changes import apply_edge_changes, apply_node_changes
from conceptmap.models import ConceptEdge, ConceptNode, Position


def nodes():
    return [ConceptNode.for_label("A").moved_to(0.0, 0.0), ConceptNode.for_label("B")]


class TestNodeChanges:

    def test_position_change(self):
        updated = apply_node_changes(
            [{"type": "position", "id": "node-A", "position": {"x": 5, "y": 6}, "dragging": True}],
            nodes(),
        )
        assert updated[0].position == Position(5.0, 6.0)
        assert updated[0].dragging is True

    def test_position_change_without_coordinates_ends_drag(self):
        start = nodes()
        start[0].dragging = True
        updated = apply_node_changes([{"type": "position", "id": "node-A"}], start)
        assert updated[0].position == Position(0.0, 0.0)
        assert updated[0].dragging is False

    def test_dimensions_change(self):
        updated = apply_node_changes(
            [{"type": "dimensions", "id": "node-B", "dimensions": {"width": 200, "height": 50}}],
            nodes(),
        )
        assert (updated[1].width, updated[1].height) == (200.0, 50.0)

    def test_changes_apply_in_order(self):
        updated = apply_node_changes([
            {"type": "select", "id": "node-A", "selected": True},
            {"type": "select", "id": "node-A", "selected": False},
        ], nodes())
        assert updated[0].selected is False

    def test_input_not_mutated(self):
        start = nodes()
        apply_node_changes([{"type": "select", "id": "node-A", "selected": True}], start)
        assert start[0].selected is False

    def test_unknown_id_and_type_skipped(self):
        start = nodes()
        updated = apply_node_changes([
            {"type": "select", "id": "node-Z", "selected": True},
            {"type": "add", "id": "node-A"},
        ], start)
        assert updated == start

    def test_unconvertible_values_skip_only_that_change(self):
        start = nodes()
        updated = apply_node_changes([
            {"type": "position", "id": "node-A", "position": {"x": "abc", "y": 1}},
            {"type": "position", "id": "node-A", "position": "nowhere"},
            {"type": "dimensions", "id": "node-B", "dimensions": {"height": "tall"}},
            {"type": "select", "id": ["node-A"], "selected": True},
            None,
            {"type": "select", "id": "node-B", "selected": True},
        ], start)
        assert updated[0] == start[0]
        assert updated[1].height == start[1].height
        assert updated[1].selected is True


class TestEdgeChanges:

    def test_select(self):
        edges = [ConceptEdge(id="edge-A::B", source="node-A", target="node-B")]
        updated = apply_edge_changes([{"type": "select", "id": "edge-A::B", "selected": True}], edges)
        assert updated[0].selected is True
        assert edges[0].selected is False
