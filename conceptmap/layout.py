"""
Layout Engine - Sugiyama-style layered layout for the concept map.

Phases:
  1. Cycle breaking   (greedy feedback-arc-set ordering)
  2. Rank assignment  (longest path over the acyclic copy)
  3. Rank ordering    (barycenter sweeps to reduce crossings)
  4. Coordinates      (ranks along one axis, siblings along the other)

Everything is deterministic: ties are broken by node insertion order, never by
set or hash order, so the same graph always lands in the same place.

On each update the engine also decides how much to move:
  - full:    a node id is new, or the node count changed. Every node is
             repositioned and dragged positions are discarded.
  - partial: nothing new, but some nodes have no position yet. Only those move.
  - none:    positions are left alone, so the map doesn't jump every chat turn.
"""

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

import networkx as nx

from conceptmap.config import LayoutSettings
from conceptmap.models import ConceptEdge, ConceptNode, Position

MAX_SWEEPS = 12

HANDLE_SIDES = {
    "LR": ("right", "left"),
    "TB": ("bottom", "top"),
}


# =============================================================================
# CYCLE BREAKING
# =============================================================================

def greedy_fas_ordering(graph: nx.DiGraph) -> list[str]:
    """Order nodes so that few edges point backwards (Eades, Lin, Smyth 1993).

    Repeatedly peels sinks to the back and sources to the front. When only
    cycles remain, the node with the largest out-in surplus goes to the front.
    """
    order = list(graph.nodes)
    active = set(order)
    out_deg = {node: graph.out_degree(node) for node in order}
    in_deg = {node: graph.in_degree(node) for node in order}

    front: list[str] = []
    back: list[str] = []

    def take(node: str) -> None:
        active.discard(node)
        for succ in graph.successors(node):
            if succ in active:
                in_deg[succ] -= 1
        for pred in graph.predecessors(node):
            if pred in active:
                out_deg[pred] -= 1

    while active:
        changed = True
        while changed:
            changed = False
            for node in order:
                if node in active and out_deg[node] == 0:
                    take(node)
                    back.append(node)
                    changed = True

        changed = True
        while changed:
            changed = False
            for node in order:
                if node in active and in_deg[node] == 0:
                    take(node)
                    front.append(node)
                    changed = True

        if active:
            # max() keeps the first maximum, so insertion order breaks ties
            best = max((n for n in order if n in active), key=lambda n: out_deg[n] - in_deg[n])
            take(best)
            front.append(best)

    back.reverse()
    return front + back


def break_cycles(graph: nx.DiGraph) -> nx.DiGraph:
    """Return an acyclic copy with back-edges reversed and self-loops dropped."""
    dag = nx.DiGraph()
    dag.add_nodes_from(graph.nodes)
    if graph.number_of_nodes() == 0:
        return dag

    position = {node: i for i, node in enumerate(greedy_fas_ordering(graph))}
    for source, target in graph.edges:
        if source == target:
            continue
        if position[source] > position[target]:
            dag.add_edge(target, source)
        else:
            dag.add_edge(source, target)
    return dag


# =============================================================================
# RANKS AND ORDERING
# =============================================================================

def assign_ranks(dag: nx.DiGraph) -> dict[str, int]:
    """Longest-path ranking: every edge goes from a lower rank to a higher one."""
    ranks = {node: 0 for node in dag.nodes}
    for node in nx.topological_sort(dag):
        for succ in dag.successors(node):
            if ranks[succ] < ranks[node] + 1:
                ranks[succ] = ranks[node] + 1
    return ranks


def count_crossings(ordering: list[list[str]], dag: nx.DiGraph) -> int:
    """Count crossings between consecutive ranks (inversion count).

    Pairwise over segments, so quadratic in the edges between two ranks.
    Chat-sized graphs stay in the tens of edges; sweeps are capped at MAX_SWEEPS.
    """
    total = 0
    for idx in range(len(ordering) - 1):
        next_pos = {node: i for i, node in enumerate(ordering[idx + 1])}
        segments = []
        for src_pos, node in enumerate(ordering[idx]):
            for succ in dag.successors(node):
                if succ in next_pos:
                    segments.append((src_pos, next_pos[succ]))
        for i in range(len(segments)):
            for j in range(i + 1, len(segments)):
                (a0, a1), (b0, b1) = segments[i], segments[j]
                if (a0 - b0) * (a1 - b1) < 0:
                    total += 1
    return total


def _barycenter(neighbors: Iterable[str], index: dict[str, int]) -> Optional[float]:
    positions = [index[n] for n in neighbors if n in index]
    if not positions:
        return None
    return sum(positions) / len(positions)


def order_ranks(dag: nx.DiGraph, ranks: dict[str, int]) -> list[list[str]]:
    """Group nodes by rank, then reorder each rank with barycenter sweeps.

    A node with no neighbors in the reference ranks keeps its current slot.
    The ordering with the fewest crossings seen is returned.
    """
    rank_count = (max(ranks.values()) + 1) if ranks else 0
    ordering: list[list[str]] = [[] for _ in range(rank_count)]
    for node in dag.nodes:
        ordering[ranks[node]].append(node)

    best = [list(layer) for layer in ordering]
    best_crossings = count_crossings(best, dag)

    for _sweep in range(MAX_SWEEPS):
        if best_crossings == 0:
            break

        # Down: look at predecessors already placed in earlier ranks
        for idx in range(1, rank_count):
            index = {n: i for layer in ordering[:idx] for i, n in enumerate(layer)}
            current = {n: i for i, n in enumerate(ordering[idx])}
            ordering[idx].sort(key=lambda n: _sort_key(_barycenter(dag.predecessors(n), index), current[n]))

        # Up: look at successors in later ranks
        for idx in range(rank_count - 2, -1, -1):
            index = {n: i for layer in ordering[idx + 1:] for i, n in enumerate(layer)}
            current = {n: i for i, n in enumerate(ordering[idx])}
            ordering[idx].sort(key=lambda n: _sort_key(_barycenter(dag.successors(n), index), current[n]))

        crossings = count_crossings(ordering, dag)
        if crossings < best_crossings:
            best = [list(layer) for layer in ordering]
            best_crossings = crossings
        else:
            break

    return best


def _sort_key(barycenter: Optional[float], current: int) -> tuple[float, int]:
    return (current if barycenter is None else barycenter, current)


# =============================================================================
# COORDINATES
# =============================================================================

def layered_positions(
    node_ids: list[str],
    edges: Iterable[tuple[str, str]],
    settings: Optional[LayoutSettings] = None,
) -> dict[str, Position]:
    """Compute a top-left position for every node.

    Args:
        node_ids: Nodes to place, in stable order
        edges: (source, target) node-id pairs; pairs naming unknown nodes are ignored
        settings: Direction and spacing (defaults: LR, 80 between siblings,
            100 between ranks)

    Returns:
        Mapping of node id → Position, one entry per node id
    """
    settings = settings or LayoutSettings()

    graph = nx.DiGraph()
    graph.add_nodes_from(node_ids)
    for source, target in edges:
        if source in graph and target in graph:
            graph.add_edge(source, target)

    dag = break_cycles(graph)
    ranks = assign_ranks(dag)
    ordering = order_ranks(dag, ranks)

    horizontal = settings.direction == "LR"
    # Rank axis steps by the box extent along it; sibling axis likewise
    if horizontal:
        rank_step = settings.node_width + settings.rank_sep
        sibling_extent = settings.node_height
    else:
        rank_step = settings.node_height + settings.rank_sep
        sibling_extent = settings.node_width
    sibling_step = sibling_extent + settings.node_sep

    def span(count: int) -> float:
        return count * sibling_extent + max(count - 1, 0) * settings.node_sep

    widest = max((span(len(layer)) for layer in ordering), default=0.0)

    positions: dict[str, Position] = {}
    for rank, layer in enumerate(ordering):
        offset = (widest - span(len(layer))) / 2
        for slot, node in enumerate(layer):
            along_rank = settings.margin + rank * rank_step
            along_siblings = settings.margin + offset + slot * sibling_step
            if horizontal:
                positions[node] = Position(x=along_rank, y=along_siblings)
            else:
                positions[node] = Position(x=along_siblings, y=along_rank)
    return positions


# =============================================================================
# UPDATE POLICY
# =============================================================================

@dataclass
class LayoutResult:
    nodes: list[ConceptNode]
    mode: str                      # "full", "partial" or "none"
    moved: list[str] = field(default_factory=list)


def needs_full_layout(prior_nodes: list[ConceptNode], nodes: list[ConceptNode]) -> bool:
    """A brand-new node id, or a different node count, calls for a full re-layout."""
    if len(prior_nodes) != len(nodes):
        return True
    prior_ids = {node.id for node in prior_nodes}
    return any(node.id not in prior_ids for node in nodes)


def apply_layout(
    nodes: list[ConceptNode],
    edges: list[ConceptEdge],
    settings: Optional[LayoutSettings] = None,
    prior_nodes: Optional[list[ConceptNode]] = None,
) -> LayoutResult:
    """Position nodes according to the update policy.

    Returns new node objects for anything that moved; untouched nodes are
    passed through as-is.
    """
    settings = settings or LayoutSettings()
    prior_nodes = prior_nodes or []

    if needs_full_layout(prior_nodes, nodes):
        mode = "full"
        targets = {node.id for node in nodes}
    else:
        targets = {node.id for node in nodes if not node.is_placed}
        mode = "partial" if targets else "none"

    if mode == "none":
        return LayoutResult(nodes=list(nodes), mode=mode)

    positions = layered_positions(
        [node.id for node in nodes],
        [(edge.source, edge.target) for edge in edges],
        settings,
    )
    source_side, target_side = HANDLE_SIDES.get(settings.direction, HANDLE_SIDES["LR"])

    laid_out = []
    moved = []
    for node in nodes:
        if node.id in targets:
            laid_out.append(replace(
                node,
                position=positions[node.id],
                source_position=source_side,
                target_position=target_side,
            ))
            moved.append(node.id)
        else:
            laid_out.append(node)

    return LayoutResult(nodes=laid_out, mode=mode, moved=moved)
