"""
MCP Server - How the tutor talks to the concept map.

The chat side calls these tools around every model turn:

1. concept_graph_query_message - "Wrap the user's question with the current graph"
2. concept_graph_ingest_reply - "Here's the model's answer, update the map"
3. concept_graph_view - "What should the graph panel draw?"

plus session housekeeping (activate, reset, delete, list) and drag updates.
"""

import json
from typing import Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from conceptmap.config import GraphConfig, load_config
from conceptmap.log import get_logger, set_level
from conceptmap.registry import GraphRegistry
from conceptmap.reply import build_query_message, extract_reply
from conceptmap.storage import GraphStore

logger = get_logger("conceptmap.server")

# Create the MCP server
server = Server("conceptmap")

# Created lazily on first tool call
_config: Optional[GraphConfig] = None
_store: Optional[GraphStore] = None
_registry: Optional[GraphRegistry] = None


def get_config() -> GraphConfig:
    global _config
    if _config is None:
        _config = load_config()
        set_level(_config.log_level)
    return _config


def get_store() -> GraphStore:
    """Get the snapshot store, creating it if needed."""
    global _store
    if _store is None:
        config = get_config()
        _store = GraphStore(config.data_dir, edge_policy=config.edge_policy, layout=config.layout)
    return _store


def get_registry() -> GraphRegistry:
    """Get the session registry, loading the last snapshot if needed."""
    global _registry
    if _registry is None:
        _registry = get_store().load()
    return _registry


def _persist() -> None:
    try:
        get_store().save(get_registry())
    except OSError as e:
        # The in-memory graph is still good; only durability is lost
        logger.error(f"Failed to save graph snapshot: {e}", exc_info=True)


def _text(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


def _summary(session_id: Optional[str]) -> str:
    registry = get_registry()
    graph = registry.get_session(session_id)
    resolved = session_id or registry.active_session_id
    if graph is None:
        return "No active session - graph unchanged."
    return f"Session `{resolved}`: {len(graph.nodes)} concepts, {len(graph.edges)} links."


_SESSION_PROPERTY = {
    "session_id": {
        "type": "string",
        "description": "Chat session id (defaults to the active session)"
    }
}


# =============================================================================
# TOOL DEFINITIONS
# =============================================================================

@server.list_tools()
async def list_tools() -> list[Tool]:
    """Tell the client what tools are available."""
    return [
        Tool(
            name="concept_graph_update",
            description="""Merge SOURCE::TARGET edge lines into a session's concept graph.

Lines without '::', comments (// or #) and self-links are ignored.
Labels are normalized: "machine learning" becomes MACHINE_LEARNING.
Existing concepts keep their positions; the layout is recomputed only when new concepts appear.""",
            inputSchema={
                "type": "object",
                "properties": {
                    "lines": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Edge lines such as 'ALGEBRA::CALCULUS'"
                    },
                    **_SESSION_PROPERTY,
                },
                "required": ["lines"]
            }
        ),
        Tool(
            name="concept_graph_ingest_reply",
            description="""Take a raw tutor reply with <Response> and <Graph> tags.

The graph lines are merged into the session graph and the explanation text is returned.""",
            inputSchema={
                "type": "object",
                "properties": {
                    "content": {
                        "type": "string",
                        "description": "Raw model output"
                    },
                    **_SESSION_PROPERTY,
                },
                "required": ["content"]
            }
        ),
        Tool(
            name="concept_graph_lines",
            description="Return the session graph as SOURCE::TARGET lines (context for the next model call).",
            inputSchema={
                "type": "object",
                "properties": {**_SESSION_PROPERTY},
            }
        ),
        Tool(
            name="concept_graph_query_message",
            description="Build the next user message: the current graph in <Graph> tags plus the question in <Query> tags.",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "The user's question"
                    },
                    **_SESSION_PROPERTY,
                },
                "required": ["query"]
            }
        ),
        Tool(
            name="concept_graph_view",
            description="Return renderable nodes (with positions) and edges for the session as JSON.",
            inputSchema={
                "type": "object",
                "properties": {**_SESSION_PROPERTY},
            }
        ),
        Tool(
            name="concept_graph_move_node",
            description="Record that the user dragged a concept to a new position. No re-layout happens.",
            inputSchema={
                "type": "object",
                "properties": {
                    "node_id": {
                        "type": "string",
                        "description": "Node id such as 'node-CALCULUS'"
                    },
                    "x": {"type": "number"},
                    "y": {"type": "number"},
                    **_SESSION_PROPERTY,
                },
                "required": ["node_id", "x", "y"]
            }
        ),
        Tool(
            name="concept_session_activate",
            description="Make a session the active one (created if new). Pass no session_id to clear the active session.",
            inputSchema={
                "type": "object",
                "properties": {**_SESSION_PROPERTY},
            }
        ),
        Tool(
            name="concept_session_reset",
            description="Clear a session's concept graph but keep the session.",
            inputSchema={
                "type": "object",
                "properties": {**_SESSION_PROPERTY},
            }
        ),
        Tool(
            name="concept_session_delete",
            description="Delete a session's concept graph permanently.",
            inputSchema={
                "type": "object",
                "properties": {**_SESSION_PROPERTY},
                "required": ["session_id"]
            }
        ),
        Tool(
            name="concept_session_list",
            description="List sessions with their concept and link counts.",
            inputSchema={"type": "object", "properties": {}}
        ),
    ]


# =============================================================================
# TOOL HANDLERS
# =============================================================================

@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    try:
        return _dispatch(name, arguments or {})
    except Exception as e:
        logger.error(f"Error in {name}: {e}", exc_info=True)
        return _text(f"Error: {type(e).__name__}: {e}")


def _dispatch(name: str, arguments: dict) -> list[TextContent]:
    registry = get_registry()
    session_id = arguments.get("session_id") or None

    if name == "concept_graph_update":
        lines = arguments.get("lines", [])
        if isinstance(lines, str):
            lines = lines.splitlines()
        result = registry.set_graph_data(lines, session_id)
        if result is None:
            return _text("No active session - graph unchanged.")
        _persist()
        return _text(_summary(session_id))

    elif name == "concept_graph_ingest_reply":
        reply = extract_reply(arguments["content"])
        result = registry.set_graph_data(reply.graph_lines, session_id)
        if result is not None:
            _persist()
        parts = [reply.response or "(no response text)", "", "---", _summary(session_id)]
        return _text("\n".join(parts))

    elif name == "concept_graph_lines":
        lines = registry.get_graph_data_string(session_id)
        return _text(lines or "(empty graph)")

    elif name == "concept_graph_query_message":
        graph = registry.get_graph_data_string(session_id)
        return _text(build_query_message(graph, arguments["query"]))

    elif name == "concept_graph_view":
        graph = registry.get_graph(session_id)
        return _text(json.dumps(graph.to_view(), indent=2))

    elif name == "concept_graph_move_node":
        change = {
            "type": "position",
            "id": arguments["node_id"],
            "position": {"x": arguments["x"], "y": arguments["y"]},
            "dragging": False,
        }
        nodes = registry.apply_node_changes([change], session_id)
        if not any(node.id == arguments["node_id"] for node in nodes):
            return _text(f"Node not found: {arguments['node_id']}")
        _persist()
        return _text(f"Moved {arguments['node_id']} to ({arguments['x']}, {arguments['y']}).")

    elif name == "concept_session_activate":
        registry.set_active_session(session_id)
        _persist()
        if session_id is None:
            return _text("Active session cleared.")
        return _text(f"Active session: `{session_id}`")

    elif name == "concept_session_reset":
        if not registry.reset_session(session_id):
            return _text("No such session - nothing to reset.")
        _persist()
        return _text(_summary(session_id))

    elif name == "concept_session_delete":
        if not registry.delete_session(session_id):
            return _text(f"No such session: {session_id}")
        _persist()
        return _text(f"Deleted session `{session_id}`. Active session: {registry.active_session_id or 'none'}")

    elif name == "concept_session_list":
        if not len(registry):
            return _text("No sessions yet.")
        lines = ["## Concept graph sessions\n"]
        for sid in registry.session_ids():
            graph = registry.get_session(sid)
            marker = " (active)" if sid == registry.active_session_id else ""
            lines.append(f"- `{sid}`{marker}: {len(graph.nodes)} concepts, {len(graph.edges)} links")
        return _text("\n".join(lines))

    else:
        return _text(f"Unknown tool: {name}")


# =============================================================================
# SERVER STARTUP
# =============================================================================

def serve():
    """Start the MCP server over stdio."""
    import asyncio

    async def main():
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options()
            )

    asyncio.run(main())


if __name__ == "__main__":
    serve()
