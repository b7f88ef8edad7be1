"""
Node/Edge synthesizer - projects an adjacency model onto renderable nodes and edges.

Nodes and edges that already exist are reused object-for-object, so their
positions and UI state survive every chat turn. Nothing is ever pruned:
a concept the user has learned stays on the map.
"""

from dataclasses import dataclass, field

from conceptmap.adjacency import AdjacencyModel, EdgePolicy
from conceptmap.models import (
    ConceptEdge,
    ConceptNode,
    DEFAULT_NODE_HEIGHT,
    DEFAULT_NODE_WIDTH,
    edge_id_for,
    node_id_for,
)


@dataclass
class SynthesisResult:
    nodes: list[ConceptNode]
    edges: list[ConceptEdge]
    new_node_ids: list[str] = field(default_factory=list)
    new_edge_ids: list[str] = field(default_factory=list)


def synthesize(
    adjacency: AdjacencyModel,
    prior_nodes: list[ConceptNode],
    prior_edges: list[ConceptEdge],
    node_width: float = DEFAULT_NODE_WIDTH,
    node_height: float = DEFAULT_NODE_HEIGHT,
) -> SynthesisResult:
    """Build the node/edge collections for a merged adjacency model.

    Args:
        adjacency: The merged model
        prior_nodes: The session's nodes before this update
        prior_edges: The session's edges before this update
        node_width: Box width for newly created nodes
        node_height: Box height for newly created nodes

    Returns:
        SynthesisResult with the new collections and the ids created now.
        New nodes have no position; the layout engine assigns one.
    """
    policy = adjacency.policy
    existing_nodes = {node.id: node for node in prior_nodes}
    existing_edges = {edge.id: edge for edge in prior_edges}

    nodes: list[ConceptNode] = []
    edges: list[ConceptEdge] = []
    new_node_ids: list[str] = []
    new_edge_ids: list[str] = []
    seen_nodes: set[str] = set()
    seen_edges: set[str] = set()

    for label in adjacency:
        node_id = node_id_for(label)
        if node_id in existing_nodes:
            nodes.append(existing_nodes[node_id])
        else:
            nodes.append(ConceptNode.for_label(label, width=node_width, height=node_height))
            new_node_ids.append(node_id)
        seen_nodes.add(node_id)

        for neighbor in adjacency.neighbors(label):
            edge_id = edge_id_for(label, neighbor, policy)
            if edge_id in seen_edges:
                # Reverse half of a bidirectional pair
                continue
            seen_edges.add(edge_id)

            if edge_id in existing_edges:
                edges.append(existing_edges[edge_id])
            else:
                source, target = adjacency.oriented(label, neighbor)
                edges.append(ConceptEdge(
                    id=edge_id,
                    source=node_id_for(source),
                    target=node_id_for(target),
                ))
                new_edge_ids.append(edge_id)

    # The graph only grows: keep anything the adjacency no longer mentions
    for node in prior_nodes:
        if node.id not in seen_nodes:
            nodes.append(node)
            seen_nodes.add(node.id)

    for edge in prior_edges:
        if edge.id in seen_edges:
            continue
        if edge.source in seen_nodes and edge.target in seen_nodes:
            edges.append(edge)
            seen_edges.add(edge.id)

    return SynthesisResult(
        nodes=nodes,
        edges=edges,
        new_node_ids=new_node_ids,
        new_edge_ids=new_edge_ids,
    )


def edge_pairs(edges: list[ConceptEdge], policy: EdgePolicy = EdgePolicy.DIRECTED) -> set:
    """(source, target) node-id pairs implied by rendered edges.

    Bidirectional pairs come back as frozensets since direction is display-only.
    """
    if policy is EdgePolicy.BIDIRECTIONAL:
        return {frozenset((edge.source, edge.target)) for edge in edges}
    return {(edge.source, edge.target) for edge in edges}
