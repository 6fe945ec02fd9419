"""Link graph construction.

The graph is rebuilt from scratch: every note is read, its wikilinks are
resolved against a name index, and outgoing edges are inverted to produce
backlinks. Snapshots are immutable; invalidating the builder only drops the
memoized snapshot.
"""

from __future__ import annotations

import logging
import posixpath
import time
from typing import TYPE_CHECKING, Any, Iterable

from ..config import NOTE_EXTENSION
from ..errors import NotegraphError
from ..frontmatter import parse_frontmatter
from ..models import GraphNode, VaultFile, VaultGraph
from ..parser.links import extract_embeds, extract_links, extract_tags
from ..paths import normalize_vault_path, vault_basename

if TYPE_CHECKING:
    from ..storage import VaultBackend

log = logging.getLogger(__name__)


def _strip_extension(key: str) -> str:
    return key[: -len(NOTE_EXTENSION)] if key.endswith(NOTE_EXTENSION) else key


class ResolutionIndex:
    """Case-insensitive lookup from link names to note paths.

    Each note is indexed under its stem, its file name, its path without
    extension and its full path. When two notes share a key the one indexed
    last wins.
    """

    def __init__(self) -> None:
        self._paths: dict[str, str] = {}

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> ResolutionIndex:
        index = cls()
        for path in paths:
            index.add(path)
        return index

    @classmethod
    def from_files(cls, files: Iterable[VaultFile]) -> ResolutionIndex:
        return cls.from_paths(f.path for f in files)

    def add(self, path: str) -> None:
        normalized = normalize_vault_path(path)
        keys = (
            vault_basename(normalized),
            posixpath.basename(normalized),
            _strip_extension(normalized),
            normalized,
        )
        for key in keys:
            self._paths[key.lower()] = normalized

    def __len__(self) -> int:
        return len(self._paths)

    def resolve(self, target: str) -> str | None:
        """Resolve a raw wikilink target to a note path.

        Tries, in order: the target itself, the target without ``.md``, and
        the target's final path segment. A ``#heading`` anchor is ignored.

        Returns:
            The note path, or None when nothing matches.
        """
        name = target.split("#", 1)[0].strip()
        if not name:
            return None

        key = normalize_vault_path(name).lower()
        for candidate in (key, _strip_extension(key), posixpath.basename(key)):
            resolved = self._paths.get(candidate)
            if resolved:
                return resolved
        return None


def _is_anchor_only(target: str) -> bool:
    return not target.split("#", 1)[0].strip()


class GraphBuilder:
    """Builds and memoizes the link graph of one vault."""

    def __init__(self, backend: VaultBackend) -> None:
        self.backend = backend
        self._graph: VaultGraph | None = None
        self._generation = 0

    def invalidate(self) -> None:
        """Drop the memoized graph. Builds already in flight are not memoized."""
        self._generation += 1
        self._graph = None

    async def get(self) -> VaultGraph:
        if self._graph is not None:
            return self._graph
        return await self.build()

    async def build(self) -> VaultGraph:
        generation = self._generation
        start = time.perf_counter()

        files = [f for f in await self.backend.list_files() if f.extension == NOTE_EXTENSION]

        notes: list[tuple[VaultFile, str, dict[str, Any], str]] = []
        for file in files:
            try:
                content = await self.backend.read_file(file.path)
                metadata, body = parse_frontmatter(content)
            except (OSError, UnicodeDecodeError, NotegraphError) as e:
                log.debug("Skipping %s during graph build: %s", file.path, e)
                continue
            notes.append((file, content, metadata, body))

        index = ResolutionIndex.from_files(note[0] for note in notes)

        titles: dict[str, str] = {}
        tags: dict[str, list[str]] = {}
        embeds: dict[str, list[str]] = {}
        outgoing: dict[str, list[str]] = {}
        unresolved: set[str] = set()

        # Phase 1: resolve outgoing links
        for file, content, metadata, body in notes:
            title = metadata.get("title")
            titles[file.path] = title if isinstance(title, str) and title.strip() else file.name
            tags[file.path] = extract_tags(content, metadata)
            embeds[file.path] = extract_embeds(body)

            targets: list[str] = []
            for raw in extract_links(body):
                if _is_anchor_only(raw):
                    continue
                resolved = index.resolve(raw)
                if resolved is None:
                    unresolved.add(raw)
                elif resolved not in targets:
                    targets.append(resolved)
            outgoing[file.path] = targets

        # Phase 2: invert edges into backlinks
        incoming: dict[str, list[str]] = {path: [] for path in outgoing}
        for source, targets in outgoing.items():
            for target in targets:
                incoming[target].append(source)

        nodes = {
            path: GraphNode(
                path=path,
                title=titles[path],
                tags=tuple(tags[path]),
                outgoing=tuple(targets),
                incoming=tuple(incoming[path]),
                embeds=tuple(embeds[path]),
            )
            for path, targets in outgoing.items()
        }

        build_time_ms = round((time.perf_counter() - start) * 1000, 2)
        graph = VaultGraph(
            nodes=nodes,
            unresolved_links=frozenset(unresolved),
            build_time_ms=build_time_ms,
        )
        log.info(
            "Graph built for %s: %d nodes, %d unresolved links in %.1f ms",
            getattr(self.backend, "name", "vault"),
            len(nodes),
            len(unresolved),
            build_time_ms,
        )

        if generation == self._generation:
            self._graph = graph
        return graph
