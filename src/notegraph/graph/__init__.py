"""Wikilink graph: construction and queries."""

from .builder import GraphBuilder, ResolutionIndex
from .query import (
    find_orphans,
    find_path,
    get_graph_stats,
    get_incoming,
    get_neighbors,
    get_outgoing,
)

__all__ = [
    "GraphBuilder",
    "ResolutionIndex",
    "find_orphans",
    "find_path",
    "get_graph_stats",
    "get_incoming",
    "get_neighbors",
    "get_outgoing",
]
