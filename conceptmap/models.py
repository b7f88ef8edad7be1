"""
Renderable graph types - what the graph view draws.

The adjacency model is the truth; these are its display projection. Nodes
carry a position and UI state that must survive incremental updates.
"""

from dataclasses import dataclass, field, asdict, replace
from typing import Optional

from conceptmap.adjacency import AdjacencyModel, EdgePolicy
from conceptmap.parser import DELIMITER

NODE_PREFIX = "node-"
EDGE_PREFIX = "edge-"

DEFAULT_NODE_WIDTH = 150.0
DEFAULT_NODE_HEIGHT = 40.0


def node_id_for(label: str) -> str:
    return f"{NODE_PREFIX}{label}"


def label_for(node_id: str) -> str:
    if node_id.startswith(NODE_PREFIX):
        return node_id[len(NODE_PREFIX):]
    return node_id


def edge_id_for(source: str, target: str, policy: EdgePolicy = EdgePolicy.DIRECTED) -> str:
    """Canonical edge id from two labels.

    Labels are joined with the line delimiter, which a parsed label never
    contains, so two different pairs never share an id even when labels hold
    hyphens. Directed ids keep the declared order. Bidirectional ids sort the
    labels, so A→B and B→A name the same rendered edge.
    """
    if policy is EdgePolicy.BIDIRECTIONAL:
        source, target = sorted((source, target))
    return f"{EDGE_PREFIX}{source}{DELIMITER}{target}"


@dataclass
class Position:
    """A point in layout units. The renderer scales it to the viewport."""
    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Position":
        return cls(x=float(data.get("x", 0.0)), y=float(data.get("y", 0.0)))


@dataclass
class ConceptNode:
    """One concept box in the graph view."""
    id: str
    label: str
    position: Optional[Position] = None    # None until the layout places it
    type: str = "concept"
    width: float = DEFAULT_NODE_WIDTH
    height: float = DEFAULT_NODE_HEIGHT
    source_position: str = "right"
    target_position: str = "left"
    selected: bool = False
    dragging: bool = False

    @classmethod
    def for_label(cls, label: str, width: float = DEFAULT_NODE_WIDTH,
                  height: float = DEFAULT_NODE_HEIGHT) -> "ConceptNode":
        return cls(id=node_id_for(label), label=label, width=width, height=height)

    @property
    def is_placed(self) -> bool:
        return self.position is not None

    def moved_to(self, x: float, y: float) -> "ConceptNode":
        return replace(self, position=Position(x, y))

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ConceptNode":
        data = dict(data)
        position = data.pop("position", None)
        node = cls(**data)
        if position is not None:
            node.position = Position.from_dict(position)
        return node


@dataclass
class ConceptEdge:
    """One link between two concept boxes."""
    id: str
    source: str    # node id
    target: str    # node id
    animated: bool = True
    selected: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ConceptEdge":
        return cls(**data)


@dataclass
class SessionGraph:
    """Everything one conversation knows: adjacency plus its projection."""
    adjacency: AdjacencyModel = field(default_factory=AdjacencyModel)
    nodes: list[ConceptNode] = field(default_factory=list)
    edges: list[ConceptEdge] = field(default_factory=list)

    @classmethod
    def empty(cls, policy: EdgePolicy = EdgePolicy.DIRECTED) -> "SessionGraph":
        return cls(adjacency=AdjacencyModel(policy=policy))

    @property
    def policy(self) -> EdgePolicy:
        return self.adjacency.policy

    def node(self, node_id: str) -> Optional[ConceptNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def positions(self) -> dict[str, Optional[Position]]:
        return {node.id: node.position for node in self.nodes}

    def to_view(self) -> dict:
        """Nodes and edges as plain dicts for the rendering collaborator."""
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }
