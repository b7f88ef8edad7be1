"""
Adjacency Model - the canonical graph for one session.

Each concept label maps to the concepts it points at. Backed by a NetworkX
DiGraph, which keeps insertion order for nodes and successors and can never
hold the same edge twice. The graph only grows: there is no edge removal on
the model-driven path.
"""

from enum import Enum
from typing import Iterable, Iterator, Optional

import networkx as nx


class EdgePolicy(str, Enum):
    """How declared edge direction is treated."""
    DIRECTED = "directed"            # A::B records only A→B
    BIDIRECTIONAL = "bidirectional"  # A::B records A→B and B→A


class AdjacencyModel:
    """Mapping of node id → ordered, duplicate-free neighbor ids.

    Every neighbor is also a key, so each mentioned concept becomes a node
    even when it has no outgoing edges.

    Usage:
        model = AdjacencyModel.from_pairs([("ALGEBRA", "CALCULUS")])
        model = model.merge(AdjacencyModel.from_pairs(more_pairs))
    """

    def __init__(
        self,
        graph: Optional[nx.DiGraph] = None,
        policy: EdgePolicy = EdgePolicy.DIRECTED,
    ):
        self.graph = graph if graph is not None else nx.DiGraph()
        self.policy = EdgePolicy(policy)

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[tuple[str, str]],
        policy: EdgePolicy = EdgePolicy.DIRECTED,
    ) -> "AdjacencyModel":
        """Build a model from parsed (source, target) pairs."""
        model = cls(policy=policy)
        for source, target in pairs:
            model.add_edge(source, target)
        return model

    @classmethod
    def from_dict(
        cls,
        data: dict,
        policy: EdgePolicy = EdgePolicy.DIRECTED,
    ) -> "AdjacencyModel":
        """Rebuild from {node: [neighbors]}."""
        model = cls(policy=policy)
        for node, neighbors in data.items():
            model.add_node(node)
            for neighbor in neighbors:
                model.add_edge(node, neighbor)
        return model

    def add_node(self, node: str) -> None:
        self.graph.add_node(node)

    def add_edge(self, source: str, target: str, declared: bool = True) -> None:
        """Record source→target (and target→source when bidirectional).

        `declared` marks the direction the model actually wrote; the implied
        reverse half of a bidirectional pair is stored with declared=False.
        """
        if source == target:
            return
        if self.policy is EdgePolicy.DIRECTED:
            self.graph.add_edge(source, target, declared=True)
            return

        existing = self.graph.get_edge_data(source, target)
        if existing is None:
            self.graph.add_edge(source, target, declared=declared)
        elif declared:
            existing["declared"] = True
        if not self.graph.has_edge(target, source):
            self.graph.add_edge(target, source, declared=False)

    def is_declared(self, source: str, target: str) -> bool:
        data = self.graph.get_edge_data(source, target)
        return bool(data and data.get("declared", True))

    def oriented(self, source: str, target: str) -> tuple[str, str]:
        """The pair in the direction the model declared it."""
        if not self.is_declared(source, target) and self.is_declared(target, source):
            return target, source
        return source, target

    def copy(self) -> "AdjacencyModel":
        return AdjacencyModel(self.graph.copy(), self.policy)

    def merge(self, incoming: "AdjacencyModel") -> "AdjacencyModel":
        """Return a new model holding every node and edge of both."""
        return merge(self, incoming)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def nodes(self) -> list[str]:
        return list(self.graph.nodes)

    def neighbors(self, node: str) -> list[str]:
        if node not in self.graph:
            return []
        return list(self.graph.successors(node))

    def edges(self) -> list[tuple[str, str]]:
        return list(self.graph.edges)

    def edge_set(self) -> set[tuple[str, str]]:
        return set(self.graph.edges)

    def undirected_pairs(self) -> list[tuple[str, str]]:
        """Edges with each {A, B} pair kept once.

        Pairs come in first-seen order, oriented the way they were declared.
        """
        chosen: dict[frozenset, tuple[str, str, bool]] = {}
        for source, target, declared in self.graph.edges(data="declared", default=True):
            key = frozenset((source, target))
            if key not in chosen or (declared and not chosen[key][2]):
                chosen[key] = (source, target, declared)
        return [(source, target) for source, target, _ in chosen.values()]

    def to_dict(self) -> dict[str, list[str]]:
        return {node: list(self.graph.successors(node)) for node in self.graph.nodes}

    def __contains__(self, node: object) -> bool:
        return node in self.graph

    def __iter__(self) -> Iterator[str]:
        return iter(self.graph.nodes)

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    def __eq__(self, other: object) -> bool:
        # Set semantics: insertion order is for rendering only
        if not isinstance(other, AdjacencyModel):
            return NotImplemented
        return (
            set(self.graph.nodes) == set(other.graph.nodes)
            and self.edge_set() == other.edge_set()
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"AdjacencyModel(nodes={self.graph.number_of_nodes()}, "
            f"edges={self.graph.number_of_edges()}, policy={self.policy.value})"
        )


def merge(existing: AdjacencyModel, incoming: AdjacencyModel) -> AdjacencyModel:
    """Union incoming into a copy of existing. Never removes an edge.

    The result keeps the existing model's policy, so merging a directed batch
    into a bidirectional session still records both directions.
    """
    merged = existing.copy()
    for node in incoming.graph.nodes:
        merged.add_node(node)
        for neighbor, data in incoming.graph[node].items():
            merged.add_edge(node, neighbor, declared=data.get("declared", True))
    return merged
