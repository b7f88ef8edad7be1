"""
Concept Map - the graph side of a learning assistant.

Merges the tutor model's SOURCE::TARGET edge lines into a per-session concept
graph and keeps a stable, layered layout for the graph view.
"""

__version__ = "0.1.0"


def serve() -> None:
    """Run the concept map MCP server.

    This is called when you run: python -m conceptmap.server
    Or through the `conceptmap-mcp` console script.
    """
    from conceptmap.server import serve as _serve
    _serve()


__all__ = ["serve", "__version__"]
