"""FastMCP server for notegraph.

This module provides MCP protocol wrappers around the core operations.
All actual logic lives in core.py - this file just handles MCP serialization.
"""

from typing import Any, Literal

from fastmcp import FastMCP

from . import core
from .config import (
    DEFAULT_MAX_NODES,
    DEFAULT_MAX_PATH_DEPTH,
    DEFAULT_MAX_RESULTS,
    DEFAULT_NEIGHBOR_DEPTH,
)
from .models import (
    Backlinks,
    BaseFile,
    BaseQueryResult,
    BaseSummary,
    ConversationAnalysis,
    ConversationSearchResult,
    ConversationStats,
    GraphStats,
    NeighborsResult,
    NoteContent,
    OrphansResult,
    OutgoingLinks,
    PathResult,
)


mcp = FastMCP(
    name="notegraph",
    instructions=(
        "Markdown vault explorer. Use graph tools for [[wikilink]] structure, "
        "bases tools for metadata queries over front matter, and conversation "
        "tools for AI chat exports."
    ),
)


# ─────────────────────────────────────────────────────────────────────────────
# Graph Tools
# ─────────────────────────────────────────────────────────────────────────────


@mcp.tool(name="get_note", description="Read a note with its front matter, tags, links and inline fields.")
async def get_note_tool(path: str, vault: str | None = None) -> NoteContent:
    return await core.get_note(path, vault=vault)


@mcp.tool(name="links", description="List notes that a note links to (resolved wikilinks).")
async def links_tool(path: str, vault: str | None = None) -> OutgoingLinks:
    return await core.links(path, vault=vault)


@mcp.tool(name="backlinks", description="List notes that link to a note.")
async def backlinks_tool(path: str, vault: str | None = None) -> Backlinks:
    return await core.backlinks(path, vault=vault)


@mcp.tool(
    name="neighbors",
    description="Notes within a number of link hops of a note, breadth-first.",
)
async def neighbors_tool(
    path: str,
    depth: int = DEFAULT_NEIGHBOR_DEPTH,
    direction: Literal["outgoing", "incoming", "both"] = "both",
    max_nodes: int = DEFAULT_MAX_NODES,
    vault: str | None = None,
) -> NeighborsResult:
    return await core.neighbors(path, vault=vault, depth=depth, direction=direction, max_nodes=max_nodes)


@mcp.tool(
    name="find_path",
    description="All shortest link paths between two notes, following links in either direction.",
)
async def find_path_tool(
    source: str,
    target: str,
    max_depth: int = DEFAULT_MAX_PATH_DEPTH,
    vault: str | None = None,
) -> PathResult:
    return await core.find_path_between(source, target, vault=vault, max_depth=max_depth)


@mcp.tool(name="orphans", description="Notes with no incoming or outgoing links.")
async def orphans_tool(vault: str | None = None) -> OrphansResult:
    return await core.orphans(vault=vault)


@mcp.tool(name="graph_stats", description="Link graph statistics: counts, averages, most linked notes.")
async def graph_stats_tool(vault: str | None = None) -> GraphStats:
    return await core.graph_stats(vault=vault)


# ─────────────────────────────────────────────────────────────────────────────
# Bases Tools
# ─────────────────────────────────────────────────────────────────────────────


@mcp.tool(name="list_bases", description="List .base files in the vault.")
async def list_bases_tool(vault: str | None = None) -> list[BaseSummary]:
    return await core.list_bases(vault=vault)


@mcp.tool(name="read_base", description="Read and parse a .base file.")
async def read_base_tool(path: str, vault: str | None = None) -> BaseFile:
    return await core.read_base(path, vault=vault)


@mcp.tool(
    name="create_base",
    description="Create a .base file with a default table view. `folder` limits it to one folder.",
)
async def create_base_tool(
    path: str,
    filters: str | None = None,
    columns: list[str] | None = None,
    folder: str | None = None,
    views: list[dict[str, Any]] | None = None,
    vault: str | None = None,
) -> BaseFile:
    return await core.create_base(
        path,
        vault=vault,
        filters=filters,
        columns=columns,
        folder=folder,
        views=views,
    )


@mcp.tool(
    name="query_base",
    description="Run one view of a .base file: filter, sort and limit notes by their metadata.",
)
async def query_base_tool(path: str, view_index: int = 0, vault: str | None = None) -> BaseQueryResult:
    return await core.query_base(path, vault=vault, view_index=view_index)


@mcp.tool(
    name="update_base",
    description="Replace the filters, formulas, views or properties of a .base file.",
)
async def update_base_tool(
    path: str,
    filters: Any = None,
    formulas: dict[str, str] | None = None,
    views: list[dict[str, Any]] | None = None,
    properties: dict[str, Any] | None = None,
    vault: str | None = None,
) -> BaseFile:
    return await core.update_base(
        path,
        vault=vault,
        filters=filters,
        formulas=formulas,
        views=views,
        properties=properties,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Conversation Tools
# ─────────────────────────────────────────────────────────────────────────────


@mcp.tool(
    name="search_conversations",
    description=(
        "Search AI conversation exports by assistant, text, message count, "
        "callout type, created date range and folder. Newest first."
    ),
)
async def search_conversations_tool(
    source: str | None = None,
    query: str | None = None,
    min_messages: int | None = None,
    callout_type: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    folder: str | None = None,
    max_results: int = DEFAULT_MAX_RESULTS,
    vault: str | None = None,
) -> ConversationSearchResult:
    return await core.search_conversations(
        vault=vault,
        source=source,
        query=query,
        min_messages=min_messages,
        callout_type=callout_type,
        date_from=date_from,
        date_to=date_to,
        folder=folder,
        max_results=max_results,
    )


@mcp.tool(
    name="analyze_conversation",
    description="Split a conversation note into speaker messages with word and callout counts.",
)
async def analyze_conversation_tool(path: str, vault: str | None = None) -> ConversationAnalysis:
    return await core.analyze_conversation(path, vault=vault)


@mcp.tool(name="conversation_stats", description="Count conversations by assistant and month.")
async def conversation_stats_tool(vault: str | None = None) -> ConversationStats:
    return await core.conversation_stats(vault=vault)


@mcp.tool(
    name="create_conversations_base",
    description="Create a .base file with views for browsing AI conversation exports.",
)
async def create_conversations_base_tool(
    path: str,
    source: str | None = None,
    folder: str | None = None,
    vault: str | None = None,
) -> BaseFile:
    return await core.create_conversations_base(path, vault=vault, source=source, folder=folder)


def main():
    """Run the MCP server."""
    import logging
    from ._logging import configure_logging

    configure_logging()
    log = logging.getLogger(__name__)

    vaults = core.get_vaults()
    log.info("Serving vaults: %s", ", ".join(vaults.list_vaults()))

    mcp.run()


if __name__ == "__main__":
    main()
