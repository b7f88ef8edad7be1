"""
Storage Layer - Where concept graphs live between runs.

The whole registry is written as one JSON file with a version envelope:

    {"version": 2, "saved_at": "...", "active_session": "chat-1",
     "sessions": {"chat-1": {"policy": "directed", "adjacency": {...},
                             "nodes": [...], "edges": [...]}}}

When the stored version doesn't match SCHEMA_VERSION the file is thrown away
and we start empty. There is no field-by-field migration.
"""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional

import networkx as nx

from conceptmap.adjacency import AdjacencyModel, EdgePolicy
from conceptmap.config import DEFAULT_DATA_DIR, LayoutSettings
from conceptmap.log import get_logger
from conceptmap.models import ConceptEdge, ConceptNode, SessionGraph
from conceptmap.registry import GraphRegistry

logger = get_logger("conceptmap.storage")

# Increment when the snapshot layout changes incompatibly
SCHEMA_VERSION = 2
SNAPSHOT_NAME = "concept_graphs.json"


def session_to_dict(graph: SessionGraph) -> dict:
    return {
        "policy": graph.policy.value,
        "adjacency": nx.node_link_data(graph.adjacency.graph, edges="links"),
        "nodes": [node.to_dict() for node in graph.nodes],
        "edges": [edge.to_dict() for edge in graph.edges],
    }


def session_from_dict(data: dict) -> SessionGraph:
    if not isinstance(data, dict):
        raise TypeError(f"session entry must be a mapping, got {type(data).__name__}")
    policy = EdgePolicy(data.get("policy", EdgePolicy.DIRECTED.value))
    adjacency_graph = nx.node_link_graph(data["adjacency"], directed=True, edges="links")
    return SessionGraph(
        adjacency=AdjacencyModel(nx.DiGraph(adjacency_graph), policy),
        nodes=[ConceptNode.from_dict(node) for node in data.get("nodes", [])],
        edges=[ConceptEdge.from_dict(edge) for edge in data.get("edges", [])],
    )


class GraphStore:
    """Loads and saves a GraphRegistry as a versioned JSON snapshot.

    Usage:
        store = GraphStore()
        registry = store.load()
        registry.set_graph_data(lines, "chat-1")
        store.save(registry)
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        edge_policy: EdgePolicy = EdgePolicy.DIRECTED,
        layout: Optional[LayoutSettings] = None,
    ):
        """Set up the store.

        Args:
            data_dir: Where to save data. Defaults to ~/.conceptmap/data/
            edge_policy: Policy for sessions created by the loaded registry
            layout: Layout settings for the loaded registry
        """
        if data_dir is None:
            data_dir = DEFAULT_DATA_DIR
        self.data_dir = Path(data_dir)
        self.snapshot_path = self.data_dir / SNAPSHOT_NAME
        self.edge_policy = edge_policy
        self.layout = layout

    def _new_registry(self) -> GraphRegistry:
        return GraphRegistry(edge_policy=self.edge_policy, layout=self.layout)

    def _discard(self, reason: str) -> None:
        logger.warning(f"Discarding graph snapshot {self.snapshot_path}: {reason}")
        try:
            self.snapshot_path.unlink()
        except FileNotFoundError:
            pass

    def load(self) -> GraphRegistry:
        """Read the snapshot, or start empty if it is missing, stale or broken."""
        registry = self._new_registry()
        if not self.snapshot_path.exists():
            return registry

        try:
            with open(self.snapshot_path) as f:
                envelope = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self._discard(f"unreadable ({e})")
            return registry

        if not isinstance(envelope, dict) or envelope.get("version") != SCHEMA_VERSION:
            found = envelope.get("version") if isinstance(envelope, dict) else None
            self._discard(f"schema version {found!r} != {SCHEMA_VERSION}")
            return registry

        raw_sessions = envelope.get("sessions", {})
        active = envelope.get("active_session")
        if not isinstance(raw_sessions, dict):
            self._discard(f"sessions must be a mapping, got {type(raw_sessions).__name__}")
            return registry
        if active is not None and not isinstance(active, str):
            self._discard(f"active session must be a string, got {type(active).__name__}")
            return registry

        try:
            sessions = {
                session_id: session_from_dict(data)
                for session_id, data in raw_sessions.items()
            }
        except (AttributeError, KeyError, TypeError, ValueError, nx.NetworkXError) as e:
            self._discard(f"malformed session data ({e})")
            return registry

        for session_id, graph in sessions.items():
            registry.restore_session(session_id, graph)

        if active in registry:
            registry.set_active_session(active)

        logger.info(f"Loaded {len(sessions)} session graph(s) from {self.snapshot_path}")
        return registry

    def save(self, registry: GraphRegistry) -> None:
        """Write the registry atomically (temp file + rename)."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        envelope = {
            "version": SCHEMA_VERSION,
            "saved_at": datetime.now().isoformat(),
            "active_session": registry.active_session_id,
            "sessions": {
                session_id: session_to_dict(registry.get_session(session_id))
                for session_id in registry.session_ids()
            },
        }

        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=".concept_graphs.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(envelope, f, indent=2)
            os.replace(tmp_path, self.snapshot_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def clear(self) -> None:
        """Delete the snapshot file if there is one."""
        if self.snapshot_path.exists():
            self.snapshot_path.unlink()
