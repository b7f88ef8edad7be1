"""
Graph Registry - one concept graph per chat session.

Each session owns its own adjacency model and renderable nodes/edges. One
session can be "active"; operations called without a session id use it.

Updates go through a fixed pipeline:
1. Parse the model's SOURCE::TARGET lines
2. Merge them into the session's adjacency model
3. Synthesize nodes/edges, reusing what already exists
4. Lay out (full, partial or not at all)

The result is swapped in only after every step succeeds. The registry never
raises into the chat flow: a missing session is a no-op and a failing
pipeline leaves the previous graph in place.
"""

from typing import Iterable, Optional, Union

from conceptmap.adjacency import AdjacencyModel, EdgePolicy, merge
from conceptmap.changes import apply_edge_changes, apply_node_changes
from conceptmap.config import GraphConfig, LayoutSettings
from conceptmap.layout import apply_layout
from conceptmap.log import get_logger
from conceptmap.models import SessionGraph
from conceptmap.parser import format_line, parse_lines
from conceptmap.synthesizer import synthesize

logger = get_logger("conceptmap.registry")


class GraphRegistry:
    """Session id → SessionGraph, plus an active-session pointer.

    Usage:
        registry = GraphRegistry()
        registry.set_active_session("chat-1")
        registry.set_graph_data(["ALGEBRA::CALCULUS"])
        context = registry.get_graph_data_string()
    """

    def __init__(
        self,
        edge_policy: EdgePolicy = EdgePolicy.DIRECTED,
        layout: Optional[LayoutSettings] = None,
    ):
        self.edge_policy = EdgePolicy(edge_policy)
        self.layout = layout or LayoutSettings()
        self._sessions: dict[str, SessionGraph] = {}
        self._active: Optional[str] = None

    @classmethod
    def from_config(cls, config: GraphConfig) -> "GraphRegistry":
        return cls(edge_policy=config.edge_policy, layout=config.layout)

    # =========================================================================
    # SESSIONS
    # =========================================================================

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def has_session(self, session_id: Optional[str]) -> bool:
        return session_id is not None and session_id in self._sessions

    def ensure_session(self, session_id: Optional[str]) -> Optional[SessionGraph]:
        """Create an empty graph for the session if it has none. Idempotent."""
        if not session_id:
            return None
        if session_id not in self._sessions:
            self._sessions[session_id] = SessionGraph.empty(self.edge_policy)
            logger.debug(f"Created graph for session {session_id}")
        return self._sessions[session_id]

    def set_active_session(self, session_id: Optional[str]) -> None:
        """Point default operations at a session. None means no active session."""
        if session_id:
            self.ensure_session(session_id)
            self._active = session_id
        else:
            self._active = None

    def get_session(self, session_id: Optional[str] = None) -> Optional[SessionGraph]:
        resolved = self._resolve(session_id)
        if resolved is None:
            return None
        return self._sessions.get(resolved)

    def get_graph(self, session_id: Optional[str] = None) -> SessionGraph:
        """The session's graph, or an empty one if the session is unknown."""
        return self.get_session(session_id) or SessionGraph.empty(self.edge_policy)

    def get_active_graph(self) -> Optional[SessionGraph]:
        return self.get_session(None)

    def restore_session(self, session_id: str, graph: SessionGraph) -> None:
        """Install a previously saved graph (used when loading from storage)."""
        self._sessions[session_id] = graph

    def delete_session(self, session_id: Optional[str]) -> bool:
        """Remove a session's graph for good.

        If it was active, the first remaining session becomes active (or none).
        """
        if not self.has_session(session_id):
            return False
        del self._sessions[session_id]
        if self._active == session_id:
            self._active = next(iter(self._sessions), None)
        logger.info(f"Deleted graph for session {session_id}")
        return True

    def reset_session(self, session_id: Optional[str] = None) -> bool:
        """Clear a session's graph but keep the session."""
        resolved = self._resolve(session_id)
        if not self.has_session(resolved):
            return False
        self._sessions[resolved] = SessionGraph.empty(self._sessions[resolved].policy)
        logger.info(f"Reset graph for session {resolved}")
        return True

    def _resolve(self, session_id: Optional[str]) -> Optional[str]:
        return session_id if session_id else self._active

    # =========================================================================
    # GRAPH UPDATES
    # =========================================================================

    def set_graph_data(
        self,
        lines: Union[str, Iterable[str]],
        session_id: Optional[str] = None,
    ) -> Optional[SessionGraph]:
        """Merge a batch of edge lines into a session's graph.

        Args:
            lines: SOURCE::TARGET lines from the model (noise is dropped)
            session_id: Target session (defaults to the active one)

        Returns:
            The session's graph after the update, or None when there is no
            session to update
        """
        resolved = self._resolve(session_id)
        if resolved is None:
            logger.debug("set_graph_data called with no active session; ignoring")
            return None
        current = self.ensure_session(resolved)

        try:
            updated = self._run_pipeline(current, lines)
        except Exception as e:
            logger.error(f"Graph update failed for session {resolved}, keeping previous graph: {e}", exc_info=True)
            return current

        if updated is not current:
            self._sessions[resolved] = updated
        return updated

    def _run_pipeline(self, current: SessionGraph, lines) -> SessionGraph:
        pairs = parse_lines(lines)
        if not pairs:
            return current

        incoming = AdjacencyModel.from_pairs(pairs, current.policy)
        merged = merge(current.adjacency, incoming)
        synthesis = synthesize(
            merged,
            current.nodes,
            current.edges,
            node_width=self.layout.node_width,
            node_height=self.layout.node_height,
        )
        result = apply_layout(synthesis.nodes, synthesis.edges, self.layout, current.nodes)

        logger.debug(
            f"Merged {len(pairs)} edge(s): {len(synthesis.new_node_ids)} new node(s), "
            f"{len(synthesis.new_edge_ids)} new edge(s), layout={result.mode}"
        )
        return SessionGraph(adjacency=merged, nodes=result.nodes, edges=synthesis.edges)

    def apply_node_changes(self, changes: Iterable[dict], session_id: Optional[str] = None) -> list:
        """Apply drag/select changes from the view. Returns the session's nodes."""
        graph = self.get_session(session_id)
        if graph is None:
            return []
        graph.nodes = apply_node_changes(changes, graph.nodes)
        return graph.nodes

    def apply_edge_changes(self, changes: Iterable[dict], session_id: Optional[str] = None) -> list:
        """Apply select changes from the view. Returns the session's edges."""
        graph = self.get_session(session_id)
        if graph is None:
            return []
        graph.edges = apply_edge_changes(changes, graph.edges)
        return graph.edges

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def get_graph_lines(self, session_id: Optional[str] = None) -> list[str]:
        """The session's adjacency as SOURCE::TARGET lines.

        Bidirectional sessions emit each pair once, in the direction the
        model wrote it.
        """
        graph = self.get_session(session_id)
        if graph is None:
            return []
        adjacency = graph.adjacency
        if adjacency.policy is EdgePolicy.BIDIRECTIONAL:
            pairs = adjacency.undirected_pairs()
        else:
            pairs = adjacency.edges()
        return [format_line(source, target) for source, target in pairs]

    def get_graph_data_string(self, session_id: Optional[str] = None) -> str:
        """Lines joined with newlines, ready for the next model request."""
        return "\n".join(self.get_graph_lines(session_id))

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
