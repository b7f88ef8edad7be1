"""
Interaction changes - drag and selection events coming back from the graph view.

These bypass merge and layout entirely: a dragged node keeps its new position
until the next full re-layout. Removal is not supported since the concept map
only grows.
"""

from dataclasses import replace
from typing import Iterable

from conceptmap.log import get_logger
from conceptmap.models import ConceptEdge, ConceptNode, Position

logger = get_logger("conceptmap.changes")

NODE_CHANGE_TYPES = ("position", "select", "dimensions")
EDGE_CHANGE_TYPES = ("select",)


def _apply_node_change(node: ConceptNode, change: dict) -> ConceptNode:
    kind = change["type"]
    if kind == "position":
        position = change.get("position")
        updated = replace(node, dragging=bool(change.get("dragging", False)))
        if position is not None:
            updated.position = Position.from_dict(position)
        return updated
    if kind == "select":
        return replace(node, selected=bool(change.get("selected", False)))
    # dimensions
    dimensions = change.get("dimensions") or {}
    return replace(
        node,
        width=float(dimensions.get("width", node.width)),
        height=float(dimensions.get("height", node.height)),
    )


def apply_node_changes(changes: Iterable[dict], nodes: list[ConceptNode]) -> list[ConceptNode]:
    """Apply view changes to a node list. Returns a new list; input is untouched."""
    by_id = {node.id: node for node in nodes}

    for change in changes:
        if not isinstance(change, dict):
            logger.debug(f"Ignoring non-mapping node change: {change!r}")
            continue
        kind = change.get("type")
        node_id = change.get("id")
        if kind not in NODE_CHANGE_TYPES:
            logger.debug(f"Ignoring unsupported node change: {kind}")
            continue
        if not isinstance(node_id, str) or node_id not in by_id:
            continue
        try:
            by_id[node_id] = _apply_node_change(by_id[node_id], change)
        except (AttributeError, TypeError, ValueError) as e:
            logger.debug(f"Ignoring bad {kind} change for {node_id}: {e}")

    return [by_id[node.id] for node in nodes]


def apply_edge_changes(changes: Iterable[dict], edges: list[ConceptEdge]) -> list[ConceptEdge]:
    """Apply view changes to an edge list. Returns a new list; input is untouched."""
    by_id = {edge.id: edge for edge in edges}

    for change in changes:
        if not isinstance(change, dict):
            logger.debug(f"Ignoring non-mapping edge change: {change!r}")
            continue
        kind = change.get("type")
        edge_id = change.get("id")
        if kind not in EDGE_CHANGE_TYPES:
            logger.debug(f"Ignoring unsupported edge change: {kind}")
            continue
        if not isinstance(edge_id, str) or edge_id not in by_id:
            continue
        by_id[edge_id] = replace(by_id[edge_id], selected=bool(change.get("selected", False)))

    return [by_id[edge.id] for edge in edges]
