"""Configuration management for notegraph.

This module contains all configurable constants. Magic numbers are documented
here rather than scattered throughout the codebase.
"""

import os
from pathlib import Path
from typing import NamedTuple

from .errors import ErrorCode, NotegraphError


class ConfigurationError(NotegraphError):
    """Raised when required configuration is missing."""

    code = ErrorCode.CONFIGURATION


class VaultConfig(NamedTuple):
    """A named vault root."""

    name: str
    path: Path


CONFIG_FILENAME = ".notegraph.yaml"


def get_vault_configs(start_dir: Path | None = None) -> list[VaultConfig]:
    """Get all configured vaults.

    Discovery order:
    1. NOTEGRAPH_VAULT_ROOT environment variable (single vault, named after its directory)
    2. Walk up from cwd looking for .notegraph.yaml with a `vaults` list
    3. Error with helpful message

    The first returned vault is the default one.

    Raises:
        ConfigurationError: If no vault can be found.
    """
    root = os.environ.get("NOTEGRAPH_VAULT_ROOT")
    if root:
        path = Path(root).expanduser().resolve()
        return [VaultConfig(name=path.name, path=path)]

    discovered = _discover_config_file(start_dir)
    if discovered:
        return discovered

    raise ConfigurationError(
        "No vault configured. Options:\n"
        "  1. Set NOTEGRAPH_VAULT_ROOT to a vault directory\n"
        f"  2. Create {CONFIG_FILENAME} with a `vaults:` list of {{name, path}} entries"
    )


def _discover_config_file(start_dir: Path | None = None) -> list[VaultConfig] | None:
    """Walk up from start_dir looking for a config file that declares vaults.

    Vault paths are resolved relative to the directory holding the config file.
    Entries whose path is not an existing directory are ignored.
    """
    import yaml

    current = Path(start_dir or os.getcwd()).resolve()

    for _ in range(MAX_CONFIG_SEARCH_DEPTH):
        config_file = current / CONFIG_FILENAME
        if config_file.exists():
            try:
                data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            except (OSError, yaml.YAMLError):
                data = {}

            vaults: list[VaultConfig] = []
            for entry in data.get("vaults", []) if isinstance(data, dict) else []:
                if not isinstance(entry, dict) or "path" not in entry:
                    continue
                vault_path = (current / str(entry["path"])).resolve()
                if not vault_path.is_dir():
                    continue
                name = str(entry.get("name") or vault_path.name)
                vaults.append(VaultConfig(name=name, path=vault_path))
            if vaults:
                return vaults

        parent = current.parent
        if parent == current:  # Reached filesystem root
            break
        current = parent

    return None


# =============================================================================
# Files
# =============================================================================

# Extension of notes that take part in graphs, bases and conversation scans
NOTE_EXTENSION = ".md"

# Extension of Obsidian Bases definition files (YAML)
BASE_EXTENSION = ".base"

# Directory names skipped while walking a vault, in addition to hidden entries
SKIPPED_DIRECTORIES = frozenset({"node_modules"})

# File listings are reused for this long before the vault is walked again.
# Writes made through the backend clear the listing immediately.
LISTING_CACHE_TTL_SECONDS = 30.0

# Maximum parent directories searched for the config file
MAX_CONFIG_SEARCH_DEPTH = 10


# =============================================================================
# Graph Queries
# =============================================================================

# Default hop limit for neighbor expansion
DEFAULT_NEIGHBOR_DEPTH = 2

# Default cap on nodes returned by neighbor expansion
DEFAULT_MAX_NODES = 50

# Default hop limit for shortest path search
DEFAULT_MAX_PATH_DEPTH = 10

# Cap on shortest paths returned by one path search. Layered graphs with
# hub notes have exponentially many equal-length paths.
MAX_SHORTEST_PATHS = 100

# Number of entries in the most-linked / most-linking statistics
TOP_LINKED_LIMIT = 10


# =============================================================================
# Sweeps
# =============================================================================

# Default cap on results for conversation search
DEFAULT_MAX_RESULTS = 50
