"""
Reply codec - the tag contract between the tutor model and the concept map.

The model is asked to answer inside <Response> and <Graph> tags. The graph
block holds SOURCE::TARGET lines; the current graph is sent back the same
way with every new question so the model can extend it.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable

from conceptmap.parser import DELIMITER

SYSTEM_PROMPT = """You are a teaching assistant designed to help users learn by building a structured concept graph.
Track everything the user has learned and organize topics into a dynamic, evolving graph network.
This graph captures relationships such as hierarchy, taxonomy, or prerequisite links between concepts.

Your responsibilities:
- Explain topics clearly, like a good professor.
- Add newly discussed concepts as nodes in a graph.
- Show connections between concepts using directional edges (e.g., PREREQUISITE::CONCEPT).
- Update and output the graph after each user query.
- Keep all responses strictly within the required <Response> and <Graph> tags.
- Do not give empty responses or any other text outside the tags.
- Do not provide a graph if the content of response is not graph oriented.

Input Format:

<Graph> // current concept graph (nodes and edges)
NODE1::NODE2
NODE3::NODE2
</Graph>

<Query> // the user's question or learning request
Explain the concept of...
</Query>

Output Format:

<Response> // Your explanation goes here
Provide a clear, structured explanation of the concept, starting with an introduction, followed by elaboration, examples, and any important notes.
</Response>

<Graph> // Updated graph with new concepts and their links
NEW_NODE1::EXISTING_NODE
NEW_NODE2::NEW_NODE1
EXISTING_NODE::NEW_NODE2
</Graph>"""

_RESPONSE_BLOCK = re.compile(r"<Response>([\s\S]*?)</Response>")
_GRAPH_BLOCK = re.compile(r"<Graph>([\s\S]*?)</Graph>")


@dataclass
class ModelReply:
    """A model answer split into its explanation and its edge lines."""
    response: str = ""
    graph_lines: list[str] = field(default_factory=list)


def extract_graph_lines(graph_text: str) -> list[str]:
    """Keep lines that contain the delimiter and aren't // comments.

    This is a coarse pre-filter; the parser still rejects anything malformed.
    """
    return [
        line.strip()
        for line in graph_text.splitlines()
        if DELIMITER in line and not line.strip().startswith("//")
    ]


def extract_reply(content: str) -> ModelReply:
    """Split raw model output into explanation text and graph lines.

    Missing tags give empty values rather than errors.
    """
    response_match = _RESPONSE_BLOCK.search(content or "")
    graph_match = _GRAPH_BLOCK.search(content or "")

    response = response_match.group(1).strip() if response_match else ""
    graph_text = graph_match.group(1).strip() if graph_match else ""
    return ModelReply(response=response, graph_lines=extract_graph_lines(graph_text))


def build_query_message(graph: str, query: str) -> str:
    """The user turn sent to the model: current graph plus the question."""
    return f"<Graph>\n{graph}\n</Graph>\n<Query>{query}</Query>"


def wrap_history(messages: Iterable[dict]) -> list[dict]:
    """Prepare chat history for the model.

    System messages are dropped (the system prompt is sent separately) and
    assistant turns get <Response> tags if they lost them.
    """
    history = []
    for message in messages:
        role = message.get("role")
        content = message.get("content", "")
        if role == "system":
            continue
        if role == "assistant" and "<Response>" not in content:
            content = f"<Response>{content}</Response>"
        history.append({"role": role, "content": content})
    return history


def build_messages(history: Iterable[dict], graph: str, query: str) -> list[dict]:
    """Full message list for one model call."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        *wrap_history(history),
        {"role": "user", "content": build_query_message(graph, query)},
    ]
