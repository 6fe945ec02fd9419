"""Read-only queries over a built VaultGraph.

Nothing here triggers a rebuild or mutates the snapshot.
"""

from __future__ import annotations

from collections import deque
from typing import Iterable, Literal

from ..config import (
    DEFAULT_MAX_NODES,
    DEFAULT_MAX_PATH_DEPTH,
    DEFAULT_NEIGHBOR_DEPTH,
    MAX_SHORTEST_PATHS,
    TOP_LINKED_LIMIT,
)
from ..errors import invalid_params
from ..models import GraphNode, GraphStats, LinkCount, VaultGraph

Direction = Literal["outgoing", "incoming", "both"]
DIRECTIONS: tuple[str, ...] = ("outgoing", "incoming", "both")


def _nodes(graph: VaultGraph, paths: Iterable[str]) -> list[GraphNode]:
    return [graph.nodes[p] for p in paths if p in graph.nodes]


def get_outgoing(graph: VaultGraph, path: str) -> list[GraphNode]:
    node = graph.nodes.get(path)
    return _nodes(graph, node.outgoing) if node else []


def get_incoming(graph: VaultGraph, path: str) -> list[GraphNode]:
    node = graph.nodes.get(path)
    return _nodes(graph, node.incoming) if node else []


def _adjacent(node: GraphNode, direction: str) -> list[str]:
    if direction == "outgoing":
        return list(node.outgoing)
    if direction == "incoming":
        return list(node.incoming)
    return list(dict.fromkeys(node.outgoing + node.incoming))


def get_neighbors(
    graph: VaultGraph,
    path: str,
    depth: int = DEFAULT_NEIGHBOR_DEPTH,
    direction: Direction = "both",
    max_nodes: int = DEFAULT_MAX_NODES,
) -> list[GraphNode]:
    """Breadth-first neighborhood of a note.

    Args:
        graph: Graph snapshot.
        path: Start note (excluded from the result).
        depth: Maximum hops from the start.
        direction: Which edges to follow: outgoing, incoming or both.
        max_nodes: Maximum number of nodes returned.

    Returns:
        Nodes in discovery order; empty if the start note is unknown.

    Raises:
        InvalidParamsError: If direction is not one of outgoing, incoming, both.
    """
    if direction not in DIRECTIONS:
        raise invalid_params(f"Invalid direction '{direction}'. Use one of: {', '.join(DIRECTIONS)}")
    if path not in graph.nodes or depth <= 0 or max_nodes <= 0:
        return []

    visited: set[str] = {path}
    found: list[GraphNode] = []
    queue: deque[tuple[str, int]] = deque([(path, 0)])

    while queue:
        current, current_depth = queue.popleft()
        if current_depth >= depth:
            continue

        for neighbor in _adjacent(graph.nodes[current], direction):
            if neighbor in visited or neighbor not in graph.nodes:
                continue
            visited.add(neighbor)
            found.append(graph.nodes[neighbor])
            if len(found) >= max_nodes:
                return found
            queue.append((neighbor, current_depth + 1))

    return found


def find_path(
    graph: VaultGraph,
    source: str,
    target: str,
    max_depth: int = DEFAULT_MAX_PATH_DEPTH,
    max_paths: int = MAX_SHORTEST_PATHS,
) -> list[list[str]]:
    """Find the shortest paths between two notes, ignoring link direction.

    A breadth-first pass records, for each note, the notes one hop closer to
    the source. It stops at the first hop count that reaches the target.
    Paths are then read off that layered structure in discovery order, at
    most ``max_paths`` of them, so hub-heavy vaults stay cheap.

    Returns:
        Lists of note paths from source to target; ``[[source]]`` when both
        are the same note; empty when either is unknown or no path of at most
        ``max_depth`` hops exists.
    """
    if source not in graph.nodes or target not in graph.nodes:
        return []
    if source == target:
        return [[source]]

    first_reached: dict[str, int] = {source: 0}
    successors: dict[str, list[str]] = {}
    predecessors: dict[str, list[str]] = {}
    frontier = [source]

    for hops in range(1, max_depth + 1):
        next_frontier: list[str] = []
        for current in frontier:
            for neighbor in _adjacent(graph.nodes[current], "both"):
                if neighbor not in graph.nodes:
                    continue
                seen_at = first_reached.get(neighbor)
                if seen_at is None:
                    first_reached[neighbor] = hops
                    next_frontier.append(neighbor)
                elif seen_at != hops:
                    continue
                successors.setdefault(current, []).append(neighbor)
                predecessors.setdefault(neighbor, []).append(current)

        if target in first_reached:
            break
        if not next_frontier:
            return []
        frontier = next_frontier
    else:
        return []

    # Notes that lie on some shortest path to the target
    on_path = {target}
    pending = [target]
    while pending:
        for previous in predecessors.get(pending.pop(), []):
            if previous not in on_path:
                on_path.add(previous)
                pending.append(previous)

    paths: list[list[str]] = []
    stack: list[list[str]] = [[source]]
    while stack and len(paths) < max_paths:
        partial = stack.pop()
        last = partial[-1]
        if last == target:
            paths.append(partial)
            continue
        steps = [n for n in successors.get(last, []) if n in on_path]
        stack.extend(partial + [n] for n in reversed(steps))
    return paths


def find_orphans(graph: VaultGraph) -> list[GraphNode]:
    """Notes with no outgoing and no incoming links."""
    return [node for node in graph.nodes.values() if not node.outgoing and not node.incoming]


def get_graph_stats(graph: VaultGraph) -> GraphStats:
    nodes = list(graph.nodes.values())
    total_nodes = len(nodes)
    total_edges = sum(len(node.outgoing) for node in nodes)
    total_incoming = sum(len(node.incoming) for node in nodes)

    # sorted() is stable, so ties keep path order
    by_incoming = sorted(nodes, key=lambda n: len(n.incoming), reverse=True)
    by_outgoing = sorted(nodes, key=lambda n: len(n.outgoing), reverse=True)

    return GraphStats(
        total_nodes=total_nodes,
        total_edges=total_edges,
        orphan_count=len(find_orphans(graph)),
        unresolved_count=len(graph.unresolved_links),
        avg_outgoing=round(total_edges / total_nodes, 2) if total_nodes else 0.0,
        avg_incoming=round(total_incoming / total_nodes, 2) if total_nodes else 0.0,
        most_linked=[
            LinkCount(path=n.path, incoming_count=len(n.incoming))
            for n in by_incoming[:TOP_LINKED_LIMIT]
        ],
        most_linking=[
            LinkCount(path=n.path, outgoing_count=len(n.outgoing))
            for n in by_outgoing[:TOP_LINKED_LIMIT]
        ],
        build_time_ms=graph.build_time_ms,
    )
