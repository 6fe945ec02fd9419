"""Shared test fixtures for the notegraph test suite.

Design:
- tmp_vault: isolated vault in a temp directory, selected via NOTEGRAPH_VAULT_ROOT
- write_note: helper that writes a note (with optional front matter) into tmp_vault
- runner / cli_invoke: CliRunner with proper isolation
- Async tests use pytest-asyncio (`@pytest.mark.asyncio`) with function scope
"""

from pathlib import Path
from typing import Any, Callable, Generator

import pytest
import yaml
from click.testing import CliRunner

from notegraph import core
from notegraph.cli import cli


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions (for test code, not fixtures)
# ─────────────────────────────────────────────────────────────────────────────


def note_text(body: str = "", **frontmatter: Any) -> str:
    """Render a note with optional YAML front matter."""
    if not frontmatter:
        return body
    header = yaml.safe_dump(frontmatter, sort_keys=False).strip()
    return f"---\n{header}\n---\n\n{body}"


def create_note(root: Path, path: str, body: str = "", **frontmatter: Any) -> Path:
    note_path = root / path
    note_path.parent.mkdir(parents=True, exist_ok=True)
    note_path.write_text(note_text(body, **frontmatter), encoding="utf-8")
    return note_path


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def tmp_vault(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Create an empty vault and make it the configured default.

    Resets the core module's vault manager and graph builders before and
    after the test so nothing leaks between tests.
    """
    vault_root = tmp_path / "vault"
    vault_root.mkdir()
    monkeypatch.setenv("NOTEGRAPH_VAULT_ROOT", str(vault_root))
    core.reset_state()

    yield vault_root

    core.reset_state()


@pytest.fixture
def write_note(tmp_vault: Path) -> Callable[..., Path]:
    """Write a note into tmp_vault.

    Usage:
        def test_something(write_note):
            write_note("projects/alpha.md", "See [[beta]]", title="Alpha", tags=["project"])
    """

    def _write(path: str, body: str = "", **frontmatter: Any) -> Path:
        return create_note(tmp_vault, path, body, **frontmatter)

    return _write


@pytest.fixture
def cli_invoke(runner: CliRunner, tmp_vault: Path):
    """Helper for invoking the CLI against tmp_vault.

    Usage:
        def test_stats(cli_invoke):
            result = cli_invoke(["stats"])
            assert result.exit_code == 0
    """

    def _invoke(args: list[str], catch_exceptions: bool = False):
        core.reset_state()
        return runner.invoke(
            cli,
            args,
            catch_exceptions=catch_exceptions,
            env={"NOTEGRAPH_VAULT_ROOT": str(tmp_vault)},
        )

    return _invoke
