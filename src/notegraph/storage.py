"""Vault storage.

A vault is a directory tree of markdown notes. Everything above this module
talks to a ``VaultBackend``; the filesystem implementation is the only one
shipped, tests substitute an in-memory backend.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Protocol

from .config import (
    LISTING_CACHE_TTL_SECONDS,
    NOTE_EXTENSION,
    SKIPPED_DIRECTORIES,
    VaultConfig,
)
from .errors import InvalidParamsError, InvalidPathError, VaultNotFoundError, not_found
from .frontmatter import parse_frontmatter
from .models import FileStat, NoteContent, VaultFile, VaultInfo
from .parser.links import extract_embeds, extract_inline_fields, extract_links, extract_tags
from .paths import normalize_vault_path

log = logging.getLogger(__name__)


class VaultBackend(Protocol):
    name: str

    async def list_files(self, directory: str | None = None) -> list[VaultFile]: ...

    async def list_directories(self, directory: str | None = None) -> list[str]: ...

    async def file_exists(self, path: str) -> bool: ...

    async def read_file(self, path: str) -> str: ...

    async def read_note(self, path: str) -> NoteContent: ...

    async def write_file(self, path: str, content: str) -> None: ...

    async def get_vault_info(self) -> VaultInfo: ...


def parse_note(path: str, content: str) -> NoteContent:
    """Build a NoteContent record from raw note text."""
    metadata, body = parse_frontmatter(content)
    return NoteContent(
        path=path,
        content=content,
        frontmatter=metadata,
        body=body,
        tags=extract_tags(content, metadata),
        links=extract_links(body),
        embeds=extract_embeds(body),
        inline_fields=extract_inline_fields(body),
    )


def _is_skipped(name: str) -> bool:
    return name.startswith(".") or name in SKIPPED_DIRECTORIES


class FilesystemBackend:
    """Vault backed by a local directory.

    File listings are cached for LISTING_CACHE_TTL_SECONDS; writes made
    through this backend clear the cache. Changes made behind its back show
    up once the cache expires.
    """

    def __init__(self, root: Path, name: str | None = None) -> None:
        self.root = Path(root).expanduser().resolve()
        self.name = name or self.root.name
        self._listing_cache: dict[str, tuple[float, list[VaultFile]]] = {}

    def _resolve(self, path: str) -> Path:
        """Map a vault path to an absolute path, refusing anything outside the root."""
        relative = normalize_vault_path(path)
        resolved = (self.root / relative).resolve()
        if resolved != self.root and not resolved.is_relative_to(self.root):
            raise InvalidPathError(
                f"Path escapes vault root: {path}",
                {"path": path, "vault": self.name},
            )
        return resolved

    def _relative(self, absolute: Path) -> str:
        return absolute.relative_to(self.root).as_posix()

    def _stat(self, absolute: Path) -> FileStat:
        st = absolute.stat()
        created = getattr(st, "st_birthtime", st.st_ctime)
        return FileStat(size=st.st_size, ctime=created * 1000, mtime=st.st_mtime * 1000)

    def _walk(self, directory: Path) -> list[VaultFile]:
        files: list[VaultFile] = []
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            log.debug("Cannot list %s: %s", directory, e)
            return files

        for entry in entries:
            if _is_skipped(entry.name):
                continue
            if entry.is_dir():
                files.extend(self._walk(entry))
            elif entry.is_file():
                try:
                    stat = self._stat(entry)
                except OSError as e:
                    log.debug("Cannot stat %s: %s", entry, e)
                    continue
                files.append(
                    VaultFile(
                        path=self._relative(entry),
                        name=entry.stem,
                        extension=entry.suffix,
                        stat=stat,
                    )
                )
        return files

    async def list_files(self, directory: str | None = None) -> list[VaultFile]:
        """List every file under ``directory`` (default: the whole vault), sorted by path."""
        key = normalize_vault_path(directory or "")
        cached = self._listing_cache.get(key)
        now = time.monotonic()
        if cached and now - cached[0] < LISTING_CACHE_TTL_SECONDS:
            return list(cached[1])

        start = self._resolve(key) if key else self.root
        if not start.is_dir():
            raise not_found("Directory", key)

        files = self._walk(start)
        files.sort(key=lambda f: f.path)
        self._listing_cache[key] = (now, files)
        return list(files)

    async def list_directories(self, directory: str | None = None) -> list[str]:
        key = normalize_vault_path(directory or "")
        start = self._resolve(key) if key else self.root
        if not start.is_dir():
            raise not_found("Directory", key)

        folders: list[str] = []
        for current, dirnames, _filenames in os.walk(start):
            dirnames[:] = sorted(d for d in dirnames if not _is_skipped(d))
            for dirname in dirnames:
                folders.append(self._relative(Path(current) / dirname))
        return sorted(folders)

    async def file_exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    async def read_file(self, path: str) -> str:
        absolute = self._resolve(path)
        if not absolute.is_file():
            raise not_found("File", normalize_vault_path(path))
        return absolute.read_text(encoding="utf-8")

    async def read_note(self, path: str) -> NoteContent:
        normalized = normalize_vault_path(path)
        content = await self.read_file(normalized)
        return parse_note(normalized, content)

    async def write_file(self, path: str, content: str) -> None:
        absolute = self._resolve(path)
        absolute.parent.mkdir(parents=True, exist_ok=True)
        absolute.write_text(content, encoding="utf-8")
        self.clear_cache()
        log.info("Wrote %s to vault %s", normalize_vault_path(path), self.name)

    async def get_vault_info(self) -> VaultInfo:
        files = await self.list_files()
        notes = [f for f in files if f.extension == NOTE_EXTENSION]
        return VaultInfo(
            name=self.name,
            path=str(self.root),
            note_count=len(notes),
            file_count=len(files),
        )

    def clear_cache(self) -> None:
        self._listing_cache.clear()


class VaultManager:
    """Named vault backends. The first vault added is the default."""

    def __init__(self) -> None:
        self._backends: dict[str, VaultBackend] = {}
        self._default: str | None = None

    @classmethod
    def from_configs(cls, configs: list[VaultConfig]) -> VaultManager:
        manager = cls()
        for config in configs:
            manager.add_vault(config.name, FilesystemBackend(config.path, name=config.name))
        return manager

    def add_vault(self, name: str, backend: VaultBackend) -> None:
        self._backends[name] = backend
        if self._default is None:
            self._default = name
        log.info("Connected vault %s", name)

    @property
    def default_name(self) -> str | None:
        return self._default

    def list_vaults(self) -> list[str]:
        return list(self._backends)

    def get_backend(self, name: str | None = None) -> VaultBackend:
        """Return the named vault, or the default one when name is None.

        Raises:
            InvalidParamsError: If no vault is registered.
            VaultNotFoundError: If the named vault does not exist.
        """
        if not self._backends:
            raise InvalidParamsError("No vaults configured")
        key = name or self._default
        backend = self._backends.get(key) if key else None
        if backend is None:
            raise VaultNotFoundError(
                f"Vault not found: {name}",
                {"vault": name, "available": self.list_vaults()},
            )
        return backend
