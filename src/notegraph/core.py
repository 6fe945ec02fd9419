"""Core operations for notegraph.

This module contains the operations shared by the CLI and the MCP server.

Design principles:
- All functions are async for consistency
- Vaults and graph builders are created lazily and kept for the process
- Operations naming a single note or base raise NotegraphError subclasses;
  operations sweeping the whole vault skip notes they cannot read
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator

from pydantic import ValidationError

from .bases.parser import create_default_base, parse_base_file, stringify_base_file
from .bases.query import BasesQueryEngine
from .config import (
    BASE_EXTENSION,
    DEFAULT_MAX_NODES,
    DEFAULT_MAX_PATH_DEPTH,
    DEFAULT_MAX_RESULTS,
    DEFAULT_NEIGHBOR_DEPTH,
    NOTE_EXTENSION,
    get_vault_configs,
)
from .errors import NotegraphError, invalid_params, not_found
from .graph.builder import GraphBuilder
from .graph.query import (
    find_orphans,
    find_path,
    get_graph_stats,
    get_incoming,
    get_neighbors,
    get_outgoing,
)
from .models import (
    Backlinks,
    BaseDefinition,
    BaseFile,
    BaseQueryResult,
    BaseSummary,
    ConversationAnalysis,
    ConversationMetadata,
    ConversationSearchResult,
    ConversationStats,
    ConversationSummary,
    GraphNode,
    GraphStats,
    GroupBySpec,
    NeighborsResult,
    NodeSummary,
    NoteContent,
    OrderSpec,
    OrphansResult,
    OutgoingLinks,
    PathResult,
    PathSteps,
    VaultGraph,
    ViewConfig,
)
from .parser.conversation import detect_conversation, parse_conversation_messages
from .paths import ensure_base_extension, ensure_md_extension, normalize_vault_path, vault_basename
from .storage import VaultBackend, VaultManager

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Module-level state (lazy initialization)
# ─────────────────────────────────────────────────────────────────────────────

_vaults: VaultManager | None = None
_builders: dict[str, GraphBuilder] = {}


def get_vaults() -> VaultManager:
    """Return the vault manager, building it from configuration on first use."""
    global _vaults
    if _vaults is None:
        _vaults = VaultManager.from_configs(get_vault_configs())
    return _vaults


def set_vaults(manager: VaultManager) -> None:
    """Use an explicitly built vault manager (embedding, tests)."""
    global _vaults
    _vaults = manager
    _builders.clear()


def reset_state() -> None:
    """Forget vaults and memoized graphs; the next call reloads configuration."""
    global _vaults
    _vaults = None
    _builders.clear()


def _backend(vault: str | None) -> VaultBackend:
    return get_vaults().get_backend(vault)


def _vault_key(vault: str | None) -> str:
    manager = get_vaults()
    manager.get_backend(vault)  # Raises for unknown vaults
    return vault or manager.default_name or ""


def get_graph_builder(vault: str | None = None) -> GraphBuilder:
    key = _vault_key(vault)
    builder = _builders.get(key)
    if builder is None:
        builder = GraphBuilder(_backend(vault))
        _builders[key] = builder
    return builder


async def get_graph(vault: str | None = None) -> VaultGraph:
    return await get_graph_builder(vault).get()


def invalidate_graph(vault: str | None = None) -> None:
    """Drop the memoized graph of a vault; the next graph query rebuilds it."""
    builder = _builders.get(_vault_key(vault))
    if builder is not None:
        builder.invalidate()


async def _write(path: str, content: str, vault: str | None) -> None:
    await _backend(vault).write_file(path, content)
    invalidate_graph(vault)


def _as_text(value: Any) -> str | None:
    """Front matter dates come back from YAML as date objects."""
    if value is None or value == "":
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


# ─────────────────────────────────────────────────────────────────────────────
# Notes
# ─────────────────────────────────────────────────────────────────────────────


async def get_note(path: str, vault: str | None = None) -> NoteContent:
    """Read a note.

    Args:
        path: Vault-relative path; ``.md`` is added when missing.
        vault: Vault name, or None for the default vault.

    Returns:
        NoteContent with front matter, body, tags, links, embeds and inline fields.

    Raises:
        NotFoundError: If the note does not exist.
    """
    return await _backend(vault).read_note(ensure_md_extension(normalize_vault_path(path)))


# ─────────────────────────────────────────────────────────────────────────────
# Graph
# ─────────────────────────────────────────────────────────────────────────────


def _summary(node: GraphNode, with_counts: bool = False) -> NodeSummary:
    summary = NodeSummary(path=node.path, title=node.title, tags=list(node.tags))
    if with_counts:
        summary.outgoing_count = len(node.outgoing)
        summary.incoming_count = len(node.incoming)
    return summary


def _graph_path(graph: VaultGraph, path: str) -> str:
    note_path = ensure_md_extension(normalize_vault_path(path))
    if note_path not in graph.nodes:
        raise not_found("Note", note_path)
    return note_path


async def links(path: str, vault: str | None = None) -> OutgoingLinks:
    """Notes this note links to (resolved)."""
    graph = await get_graph(vault)
    note_path = _graph_path(graph, path)
    outgoing = get_outgoing(graph, note_path)
    return OutgoingLinks(
        path=note_path, outgoing_count=len(outgoing), links=[_summary(n) for n in outgoing]
    )


async def backlinks(path: str, vault: str | None = None) -> Backlinks:
    """Notes that link to this note."""
    graph = await get_graph(vault)
    note_path = _graph_path(graph, path)
    incoming = get_incoming(graph, note_path)
    return Backlinks(
        path=note_path, backlink_count=len(incoming), backlinks=[_summary(n) for n in incoming]
    )


async def neighbors(
    path: str,
    vault: str | None = None,
    depth: int = DEFAULT_NEIGHBOR_DEPTH,
    direction: str = "both",
    max_nodes: int = DEFAULT_MAX_NODES,
) -> NeighborsResult:
    if depth < 1:
        raise invalid_params("depth must be at least 1")
    if max_nodes < 1:
        raise invalid_params("max_nodes must be at least 1")

    graph = await get_graph(vault)
    note_path = _graph_path(graph, path)
    nodes = get_neighbors(graph, note_path, depth=depth, direction=direction, max_nodes=max_nodes)
    return NeighborsResult(
        path=note_path,
        depth=depth,
        direction=direction,
        neighbor_count=len(nodes),
        neighbors=[_summary(n, with_counts=True) for n in nodes],
    )


async def find_path_between(
    source: str,
    target: str,
    vault: str | None = None,
    max_depth: int = DEFAULT_MAX_PATH_DEPTH,
) -> PathResult:
    """All shortest link paths between two notes, ignoring link direction."""
    if max_depth < 1:
        raise invalid_params("max_depth must be at least 1")

    graph = await get_graph(vault)
    source_path = _graph_path(graph, source)
    target_path = _graph_path(graph, target)
    paths = find_path(graph, source_path, target_path, max_depth=max_depth)
    return PathResult(
        source=source_path,
        target=target_path,
        paths_found=len(paths),
        shortest_length=len(paths[0]) if paths else None,
        paths=[PathSteps(length=len(p), steps=p) for p in paths],
    )


async def orphans(vault: str | None = None) -> OrphansResult:
    graph = await get_graph(vault)
    nodes = find_orphans(graph)
    return OrphansResult(orphan_count=len(nodes), orphans=[_summary(n) for n in nodes])


async def graph_stats(vault: str | None = None) -> GraphStats:
    return get_graph_stats(await get_graph(vault))


# ─────────────────────────────────────────────────────────────────────────────
# Bases
# ─────────────────────────────────────────────────────────────────────────────


def _base_file(path: str, definition: BaseDefinition) -> BaseFile:
    return BaseFile(
        path=path,
        definition=definition,
        view_count=len(definition.views),
        has_filters=bool(definition.filters),
        has_formulas=bool(definition.formulas),
    )


async def list_bases(vault: str | None = None) -> list[BaseSummary]:
    files = await _backend(vault).list_files()
    return [
        BaseSummary(
            path=f.path,
            name=f.name,
            size=f.stat.size,
            modified=datetime.fromtimestamp(f.stat.mtime / 1000, tz=timezone.utc).isoformat(),
        )
        for f in files
        if f.extension == BASE_EXTENSION
    ]


async def _load_base(path: str, vault: str | None) -> tuple[str, BaseDefinition]:
    base_path = ensure_base_extension(normalize_vault_path(path))
    content = await _backend(vault).read_file(base_path)
    return base_path, parse_base_file(content)


async def read_base(path: str, vault: str | None = None) -> BaseFile:
    """Read and parse a .base file.

    Raises:
        NotFoundError: If the file does not exist.
        InvalidBaseError: If it is not a YAML mapping.
    """
    base_path, definition = await _load_base(path, vault)
    return _base_file(base_path, definition)


async def create_base(
    path: str,
    vault: str | None = None,
    filters: str | None = None,
    columns: list[str] | None = None,
    folder: str | None = None,
    views: list[dict[str, Any]] | None = None,
) -> BaseFile:
    """Write a new .base file with a table view named after the file."""
    base_path = ensure_base_extension(normalize_vault_path(path))
    definition = create_default_base(
        vault_basename(base_path) or "Untitled",
        filters=filters,
        columns=columns,
        folder=folder,
    )
    if views is not None:
        try:
            definition.views = [ViewConfig.model_validate(view) for view in views]
        except ValidationError as e:
            raise invalid_params(f"Invalid views: {e}") from e

    await _write(base_path, stringify_base_file(definition), vault)
    return _base_file(base_path, definition)


async def update_base(
    path: str,
    vault: str | None = None,
    filters: Any = None,
    formulas: dict[str, str] | None = None,
    views: list[dict[str, Any]] | None = None,
    properties: dict[str, Any] | None = None,
) -> BaseFile:
    """Replace the given sections of an existing .base file; None leaves a section alone."""
    base_path, definition = await _load_base(path, vault)
    updates: dict[str, Any] = {}
    if filters is not None:
        updates["filters"] = filters
    if formulas is not None:
        updates["formulas"] = formulas
    if views is not None:
        updates["views"] = views
    if properties is not None:
        updates["properties"] = properties

    if updates:
        data = definition.model_dump(by_alias=True, exclude_none=True)
        data.update(updates)
        try:
            definition = BaseDefinition.model_validate(data)
        except ValidationError as e:
            raise invalid_params(f"Invalid base update: {e}") from e

    await _write(base_path, stringify_base_file(definition), vault)
    return _base_file(base_path, definition)


async def query_base(path: str, vault: str | None = None, view_index: int = 0) -> BaseQueryResult:
    """Run one view of a .base file against the vault."""
    _, definition = await _load_base(path, vault)
    return await BasesQueryEngine(get_vaults()).query(definition, view_index=view_index, vault=vault)


# ─────────────────────────────────────────────────────────────────────────────
# Conversations
# ─────────────────────────────────────────────────────────────────────────────


def _in_folder(path: str, folder: str) -> bool:
    prefix = normalize_vault_path(folder).rstrip("/")
    return not prefix or path.startswith(prefix + "/")


async def _conversation_notes(
    vault: str | None, folder: str | None = None
) -> AsyncIterator[tuple[NoteContent, ConversationMetadata]]:
    """Yield (note, metadata) for every readable conversation note."""
    backend = _backend(vault)
    for file in await backend.list_files():
        if file.extension != NOTE_EXTENSION:
            continue
        if folder and not _in_folder(file.path, folder):
            continue
        try:
            note = await backend.read_note(file.path)
        except (OSError, UnicodeDecodeError, NotegraphError) as e:
            log.debug("Skipping %s during conversation scan: %s", file.path, e)
            continue
        metadata = detect_conversation(note.content, note.frontmatter)
        if metadata.is_conversation:
            yield note, metadata


async def search_conversations(
    vault: str | None = None,
    source: str | None = None,
    query: str | None = None,
    min_messages: int | None = None,
    callout_type: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    folder: str | None = None,
    max_results: int = DEFAULT_MAX_RESULTS,
) -> ConversationSearchResult:
    """Find conversation notes, newest first.

    Args:
        vault: Vault name, or None for the default vault.
        source: Assistant name (case-insensitive).
        query: Text that must appear in the title or body (case-insensitive).
        min_messages: Minimum number of role markers.
        callout_type: Callout type that must occur (e.g. ``tip``).
        date_from: Earliest ``created`` value (ISO date, inclusive).
        date_to: Latest ``created`` value (ISO date, inclusive).
        folder: Only search this folder and its subfolders.
        max_results: Maximum conversations returned.

    Notes without a ``created`` value are not excluded by the date bounds.
    """
    if max_results < 1:
        raise invalid_params("max_results must be at least 1")

    results: list[ConversationSummary] = []
    async for note, metadata in _conversation_notes(vault, folder):
        if source and (metadata.source is None or metadata.source.value.lower() != source.lower()):
            continue
        if min_messages and metadata.message_count < min_messages:
            continue
        if callout_type and callout_type.upper() not in metadata.callout_types:
            continue

        created = _as_text(note.frontmatter.get("created"))
        # Bounds compare at their own precision, so a bare date covers the whole day
        if date_from and created and created[: len(date_from)] < date_from:
            continue
        if date_to and created and created[: len(date_to)] > date_to:
            continue

        title = _as_text(note.frontmatter.get("title"))
        if query:
            needle = query.lower()
            if needle not in (title or "").lower() and needle not in note.body.lower():
                continue

        results.append(
            ConversationSummary(
                path=note.path,
                title=title or vault_basename(note.path),
                source=metadata.source,
                created=created,
                updated=_as_text(note.frontmatter.get("updated")),
                message_count=metadata.message_count,
                speakers=metadata.speakers,
                tags=note.tags,
                callout_types=metadata.callout_types,
            )
        )

    results.sort(key=lambda r: r.created or "", reverse=True)
    results = results[:max_results]

    return ConversationSearchResult(
        result_count=len(results),
        filters={
            "source": source or "all",
            "query": query,
            "minMessages": min_messages,
            "calloutType": callout_type,
            "dateFrom": date_from,
            "dateTo": date_to,
            "folder": folder,
        },
        conversations=results,
    )


async def analyze_conversation(path: str, vault: str | None = None) -> ConversationAnalysis:
    """Split a conversation note into messages and compute statistics.

    Raises:
        NotFoundError: If the note does not exist.
    """
    note = await get_note(path, vault)
    metadata = detect_conversation(note.content, note.frontmatter)
    if not metadata.is_conversation:
        return ConversationAnalysis(path=note.path, is_conversation=False)

    messages = parse_conversation_messages(note.body)
    word_count = sum(len(m.content.split()) for m in messages)

    return ConversationAnalysis(
        path=note.path,
        is_conversation=True,
        source=metadata.source,
        title=_as_text(note.frontmatter.get("title")) or vault_basename(note.path),
        created=_as_text(note.frontmatter.get("created")),
        updated=_as_text(note.frontmatter.get("updated")),
        tags=note.tags,
        message_count=len(messages),
        user_messages=sum(1 for m in messages if m.role == "user"),
        assistant_messages=sum(1 for m in messages if m.role == "assistant"),
        speakers=metadata.speakers,
        word_count=word_count,
        avg_message_length=round(word_count / len(messages)) if messages else 0,
        has_callouts=metadata.has_callouts,
        callout_types=metadata.callout_types,
        callout_count=sum(len(m.callouts) for m in messages),
        messages=messages,
    )


async def conversation_stats(vault: str | None = None) -> ConversationStats:
    stats = ConversationStats()
    async for note, metadata in _conversation_notes(vault):
        stats.total_conversations += 1
        stats.total_messages += metadata.message_count

        source = metadata.source.value if metadata.source else "unknown"
        stats.by_source[source] = stats.by_source.get(source, 0) + 1

        created = _as_text(note.frontmatter.get("created"))
        if created:
            month = created[:7]  # YYYY-MM
            stats.by_month[month] = stats.by_month.get(month, 0) + 1

    if stats.total_conversations:
        stats.avg_messages_per_conversation = round(stats.total_messages / stats.total_conversations)
    return stats


def conversations_base_definition(source: str | None = None, folder: str | None = None) -> BaseDefinition:
    """Base listing conversation notes, with All / By Source / Recent views."""
    parts: list[str] = []
    if source:
        parts.append(f'source == "{source}"')
    folder = normalize_vault_path(folder or "").rstrip("/")
    if folder:
        parts.append(f'file.inFolder("{folder}")')
    parts.append('file.hasTag("conversation") || file.hasTag("research")')

    return BaseDefinition(
        filters=" && ".join(parts),
        formulas={"messageCount": "length(tags)"},
        properties={
            "title": {"displayName": "Title"},
            "source": {"displayName": "Source"},
            "created": {"displayName": "Created"},
            "updated": {"displayName": "Updated"},
        },
        views=[
            ViewConfig(
                type="table",
                name="All Conversations",
                columns=["file.name", "source", "created", "updated", "file.tags"],
                order=[OrderSpec(property="created", direction="desc")],
            ),
            ViewConfig(
                type="table",
                name="By Source",
                columns=["file.name", "source", "created", "file.tags"],
                order=[OrderSpec(property="source", direction="asc")],
                group_by=GroupBySpec(property="source", direction="asc"),
            ),
            ViewConfig(
                type="list",
                name="Recent",
                columns=["file.name", "source", "created"],
                order=[OrderSpec(property="created", direction="desc")],
                limit=20,
            ),
        ],
    )


async def create_conversations_base(
    path: str,
    vault: str | None = None,
    source: str | None = None,
    folder: str | None = None,
) -> BaseFile:
    """Write a .base file that indexes conversation notes."""
    base_path = ensure_base_extension(normalize_vault_path(path))
    definition = conversations_base_definition(source=source, folder=folder)
    await _write(base_path, stringify_base_file(definition), vault)
    return _base_file(base_path, definition)
