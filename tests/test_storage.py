"""Tests for the filesystem vault backend and the vault manager."""

from pathlib import Path

import pytest

from notegraph.errors import InvalidParamsError, InvalidPathError, NotFoundError, VaultNotFoundError
from notegraph.storage import FilesystemBackend, VaultManager, parse_note

from tests.fakes import FakeBackend


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    root = tmp_path / "notes"
    (root / "projects").mkdir(parents=True)
    (root / ".obsidian").mkdir()
    (root / "node_modules").mkdir()
    (root / "projects" / "alpha.md").write_text("---\ntitle: Alpha\n---\nSee [[beta]] #idea")
    (root / "beta.md").write_text("Beta")
    (root / "board.base").write_text("views: []")
    (root / ".obsidian" / "workspace.md").write_text("hidden")
    (root / "node_modules" / "pkg.md").write_text("skipped")
    return root


class TestParseNote:
    def test_fields(self):
        note = parse_note(
            "a.md",
            "---\ntitle: A\ntags: [x]\n---\n[[b|Bee]] ![[pic.png]] #y\nstatus:: open",
        )

        assert note.frontmatter == {"title": "A", "tags": ["x"]}
        assert note.tags == ["x", "y"]
        assert note.links == ["b"]
        assert note.embeds == ["pic.png"]
        assert [(f.key, f.value) for f in note.inline_fields] == [("status", "open")]


class TestFilesystemBackend:
    @pytest.mark.asyncio
    async def test_list_files_sorted_and_filtered(self, vault_dir):
        backend = FilesystemBackend(vault_dir)
        files = await backend.list_files()

        assert [f.path for f in files] == ["beta.md", "board.base", "projects/alpha.md"]
        assert files[2].name == "alpha"
        assert files[2].extension == ".md"
        assert files[2].stat.size > 0
        assert files[2].stat.mtime > 0

    @pytest.mark.asyncio
    async def test_list_subdirectory(self, vault_dir):
        files = await FilesystemBackend(vault_dir).list_files("projects")
        assert [f.path for f in files] == ["projects/alpha.md"]

    @pytest.mark.asyncio
    async def test_list_missing_directory(self, vault_dir):
        with pytest.raises(NotFoundError):
            await FilesystemBackend(vault_dir).list_files("nope")

    @pytest.mark.asyncio
    async def test_list_directories(self, vault_dir):
        (vault_dir / "projects" / "2024").mkdir()
        assert await FilesystemBackend(vault_dir).list_directories() == ["projects", "projects/2024"]

    @pytest.mark.asyncio
    async def test_read_note(self, vault_dir):
        note = await FilesystemBackend(vault_dir).read_note("projects/alpha.md")

        assert note.path == "projects/alpha.md"
        assert note.frontmatter["title"] == "Alpha"
        assert note.links == ["beta"]
        assert note.tags == ["idea"]

    @pytest.mark.asyncio
    async def test_read_missing_file(self, vault_dir):
        backend = FilesystemBackend(vault_dir)
        assert await backend.file_exists("ghost.md") is False
        with pytest.raises(NotFoundError, match="ghost.md"):
            await backend.read_file("ghost.md")

    @pytest.mark.asyncio
    async def test_paths_outside_root_are_refused(self, vault_dir):
        backend = FilesystemBackend(vault_dir)
        with pytest.raises(InvalidPathError):
            await backend.read_file("../outside.md")
        with pytest.raises(InvalidPathError):
            await backend.write_file("projects/../../escape.md", "x")

    @pytest.mark.asyncio
    async def test_leading_slash_is_vault_relative(self, vault_dir):
        assert await FilesystemBackend(vault_dir).read_file("/beta.md") == "Beta"

    @pytest.mark.asyncio
    async def test_write_creates_folders_and_refreshes_listing(self, vault_dir):
        backend = FilesystemBackend(vault_dir)
        await backend.list_files()

        await backend.write_file("new/deep/note.md", "hello")

        assert (vault_dir / "new" / "deep" / "note.md").read_text() == "hello"
        assert "new/deep/note.md" in [f.path for f in await backend.list_files()]

    @pytest.mark.asyncio
    async def test_listing_is_cached(self, vault_dir):
        backend = FilesystemBackend(vault_dir)
        await backend.list_files()

        (vault_dir / "sneaky.md").write_text("added behind the backend's back")
        assert "sneaky.md" not in [f.path for f in await backend.list_files()]

        backend.clear_cache()
        assert "sneaky.md" in [f.path for f in await backend.list_files()]

    @pytest.mark.asyncio
    async def test_vault_info(self, vault_dir):
        info = await FilesystemBackend(vault_dir, name="work").get_vault_info()

        assert info.name == "work"
        assert info.note_count == 2
        assert info.file_count == 3


class TestVaultManager:
    def test_first_vault_is_default(self):
        manager = VaultManager()
        first, second = FakeBackend(name="one"), FakeBackend(name="two")
        manager.add_vault("one", first)
        manager.add_vault("two", second)

        assert manager.default_name == "one"
        assert manager.get_backend() is first
        assert manager.get_backend("two") is second
        assert manager.list_vaults() == ["one", "two"]

    def test_unknown_vault(self):
        manager = VaultManager()
        manager.add_vault("one", FakeBackend())

        with pytest.raises(VaultNotFoundError) as exc_info:
            manager.get_backend("nope")
        assert exc_info.value.details["available"] == ["one"]

    def test_no_vaults(self):
        with pytest.raises(InvalidParamsError):
            VaultManager().get_backend()
