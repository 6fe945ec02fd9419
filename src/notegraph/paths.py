"""Vault-relative path helpers.

Vault paths are always forward-slash separated, without a leading slash.
"""

from __future__ import annotations

import posixpath

from .config import BASE_EXTENSION, NOTE_EXTENSION


def normalize_vault_path(path: str) -> str:
    normalized = path.replace("\\", "/")
    return normalized.lstrip("/")


def ensure_md_extension(path: str) -> str:
    if path.endswith(NOTE_EXTENSION):
        return path
    return f"{path}{NOTE_EXTENSION}"


def ensure_base_extension(path: str) -> str:
    if path.endswith(BASE_EXTENSION):
        return path
    return f"{path}{BASE_EXTENSION}"


def vault_dirname(path: str) -> str:
    """Parent folder of a vault path ("" for notes at the vault root)."""
    parent = posixpath.dirname(normalize_vault_path(path))
    return "" if parent == "." else parent


def vault_basename(path: str) -> str:
    """File name without its extension."""
    name = posixpath.basename(normalize_vault_path(path))
    stem, _ext = posixpath.splitext(name)
    return stem
