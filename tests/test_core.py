"""Tests for core operations against a real on-disk vault.

Core functions are what the CLI and the MCP server call, so these tests cover
path normalization, error reporting and graph invalidation on writes.
"""

from datetime import datetime
from pathlib import Path

import pytest
import yaml

from notegraph import core
from notegraph.errors import InvalidBaseError, InvalidParamsError, NotFoundError, VaultNotFoundError
from notegraph.models import AISource
from notegraph.storage import FilesystemBackend, VaultManager

CONVERSATION = """**User**: {question}

---

**{assistant}**: {answer}

> [!TIP] Hint
> {hint}

---

**User**: thanks
"""


@pytest.fixture
def linked_vault(write_note):
    write_note("alpha.md", "Start here. See [[beta]] and [[missing]].", title="Alpha", tags=["hub"])
    write_note("beta.md", "Then [[projects/gamma|Gamma]].")
    write_note("projects/gamma.md", "End of the chain.")
    write_note("lonely.md", "Nobody links here.")


@pytest.fixture
def conversation_vault(write_note):
    write_note(
        "chats/claude-retry.md",
        CONVERSATION.format(question="How to retry?", assistant="Claude", answer="Use backoff.", hint="jitter"),
        title="Retry strategies",
        source="Claude",
        created="2024-03-02",
        tags=["conversation"],
    )
    write_note(
        "chats/gpt-sql.md",
        CONVERSATION.format(question="Index tips?", assistant="ChatGPT", answer="Use EXPLAIN.", hint="vacuum"),
        title="SQL indexes",
        source="ChatGPT",
        created="2024-05-10",
        tags=["conversation"],
    )
    write_note(
        "archive/old-chat.md",
        "**User**: hi\n\n---\n\n**Claude**: hello",
        created="2023-11-20",
    )
    write_note("notes/plain.md", "Nothing to see", title="Plain")


class TestNotes:
    @pytest.mark.asyncio
    async def test_get_note_adds_extension(self, linked_vault):
        note = await core.get_note("alpha")

        assert note.path == "alpha.md"
        assert note.frontmatter["title"] == "Alpha"
        assert note.links == ["beta", "missing"]

    @pytest.mark.asyncio
    async def test_get_missing_note(self, tmp_vault):
        with pytest.raises(NotFoundError):
            await core.get_note("nothing")

    @pytest.mark.asyncio
    async def test_unknown_vault(self, tmp_vault):
        with pytest.raises(VaultNotFoundError):
            await core.get_note("alpha", vault="elsewhere")


class TestGraphOperations:
    @pytest.mark.asyncio
    async def test_links_and_backlinks(self, linked_vault):
        links = await core.links("alpha.md")
        backlinks = await core.backlinks("projects/gamma")

        assert links.outgoing_count == 1
        assert [(n.path, n.title) for n in links.links] == [("beta.md", "beta")]
        assert backlinks.backlink_count == 1
        assert [n.path for n in backlinks.backlinks] == ["beta.md"]

    @pytest.mark.asyncio
    async def test_unknown_note(self, linked_vault):
        with pytest.raises(NotFoundError):
            await core.links("ghost")

    @pytest.mark.asyncio
    async def test_neighbors(self, linked_vault):
        result = await core.neighbors("beta", depth=1)

        assert result.path == "beta.md"
        assert [n.path for n in result.neighbors] == ["projects/gamma.md", "alpha.md"]
        assert result.neighbors[0].incoming_count == 1
        assert result.neighbors[0].outgoing_count == 0

    @pytest.mark.asyncio
    async def test_neighbors_rejects_bad_bounds(self, linked_vault):
        with pytest.raises(InvalidParamsError):
            await core.neighbors("beta", depth=0)
        with pytest.raises(InvalidParamsError):
            await core.neighbors("beta", max_nodes=0)
        with pytest.raises(InvalidParamsError):
            await core.neighbors("beta", direction="up")

    @pytest.mark.asyncio
    async def test_find_path(self, linked_vault):
        result = await core.find_path_between("alpha", "projects/gamma.md")

        assert result.paths_found == 1
        assert result.shortest_length == 3
        assert result.paths[0].steps == ["alpha.md", "beta.md", "projects/gamma.md"]
        assert result.model_dump(by_alias=True)["from"] == "alpha.md"

    @pytest.mark.asyncio
    async def test_no_path(self, linked_vault):
        result = await core.find_path_between("alpha", "lonely")

        assert result.paths_found == 0
        assert result.shortest_length is None

    @pytest.mark.asyncio
    async def test_orphans_and_stats(self, linked_vault):
        orphans = await core.orphans()
        stats = await core.graph_stats()

        assert [n.path for n in orphans.orphans] == ["lonely.md"]
        assert stats.total_nodes == 4
        assert stats.total_edges == 2
        assert stats.unresolved_count == 1

    @pytest.mark.asyncio
    async def test_graph_is_memoized_per_vault(self, linked_vault):
        assert await core.get_graph() is await core.get_graph()

    @pytest.mark.asyncio
    async def test_writes_invalidate_graph(self, linked_vault, tmp_vault):
        before = await core.get_graph()
        await core.create_base("views/all.base")
        after = await core.get_graph()

        assert after is not before


class TestMultipleVaults:
    @pytest.mark.asyncio
    async def test_vaults_are_independent(self, tmp_path: Path):
        for name, body in (("work", "[[b]]"), ("home", "no links")):
            root = tmp_path / name
            root.mkdir()
            (root / "a.md").write_text(body)
            (root / "b.md").write_text("")

        manager = VaultManager()
        manager.add_vault("work", FilesystemBackend(tmp_path / "work"))
        manager.add_vault("home", FilesystemBackend(tmp_path / "home"))
        core.set_vaults(manager)
        try:
            assert (await core.links("a")).outgoing_count == 1
            assert (await core.links("a", vault="home")).outgoing_count == 0
        finally:
            core.reset_state()


class TestBases:
    @pytest.mark.asyncio
    async def test_create_read_and_query(self, write_note, tmp_vault):
        write_note("books/dune.md", "", rating=5, author="Herbert")
        write_note("books/emma.md", "", rating=3, author="Austen")
        write_note("films/alien.md", "", rating=4)

        created = await core.create_base("Books", folder="books", columns=["file.name", "rating"])
        assert created.path == "Books.base"
        assert (tmp_vault / "Books.base").exists()

        base = await core.read_base("Books.base")
        assert base.definition.filters == 'file.folder == "books"'
        assert base.view_count == 1
        assert base.has_filters is True

        result = await core.query_base("Books")
        assert sorted(doc.name for doc in result.documents) == ["dune", "emma"]
        assert result.documents[0].properties.keys() == {"file.name", "rating"}

    @pytest.mark.asyncio
    async def test_update_base(self, write_note, tmp_vault):
        write_note("a.md", "", rating=5)
        write_note("b.md", "", rating=2)
        await core.create_base("ratings", filters="rating > 0")

        updated = await core.update_base(
            "ratings",
            filters="rating > 3",
            formulas={"stars": "rating"},
            views=[{"type": "table", "name": "Good", "order": [{"property": "rating", "direction": "desc"}]}],
        )

        assert updated.has_formulas is True
        assert updated.definition.views[0].name == "Good"
        on_disk = yaml.safe_load((tmp_vault / "ratings.base").read_text())
        assert on_disk["filters"] == "rating > 3"
        assert on_disk["formulas"] == {"stars": "rating"}

        result = await core.query_base("ratings")
        assert [doc.name for doc in result.documents] == ["a"]
        assert result.documents[0].properties["formula.stars"] == 5

    @pytest.mark.asyncio
    async def test_update_leaves_other_sections(self, tmp_vault):
        await core.create_base("keep", filters='status == "x"')
        updated = await core.update_base("keep", formulas={"f": "status"})
        assert updated.definition.filters == 'status == "x"'

    @pytest.mark.asyncio
    async def test_invalid_views_are_rejected(self, tmp_vault):
        with pytest.raises(InvalidParamsError):
            await core.create_base("bad", views=[{"name": "Table", "limit": "lots"}])
        assert not (tmp_vault / "bad.base").exists()

        await core.create_base("good")
        with pytest.raises(InvalidParamsError):
            await core.update_base("good", views=[{"order": "newest"}])

    @pytest.mark.asyncio
    async def test_list_bases(self, tmp_vault):
        await core.create_base("one")
        await core.create_base("nested/two.base")

        bases = await core.list_bases()
        assert [b.path for b in bases] == ["nested/two.base", "one.base"]
        assert bases[0].name == "two"

    @pytest.mark.asyncio
    async def test_missing_and_invalid_bases(self, tmp_vault):
        (tmp_vault / "broken.base").write_text("- a\n- b\n")

        with pytest.raises(NotFoundError):
            await core.read_base("nothing")
        with pytest.raises(InvalidBaseError):
            await core.query_base("broken")


class TestConversations:
    @pytest.mark.asyncio
    async def test_search_all_newest_first(self, conversation_vault):
        result = await core.search_conversations()

        assert [c.path for c in result.conversations] == [
            "chats/gpt-sql.md",
            "chats/claude-retry.md",
            "archive/old-chat.md",
        ]
        assert result.result_count == 3
        assert result.filters["source"] == "all"

    @pytest.mark.asyncio
    async def test_search_filters(self, conversation_vault):
        by_source = await core.search_conversations(source="claude")
        assert {c.path for c in by_source.conversations} == {"chats/claude-retry.md", "archive/old-chat.md"}

        by_query = await core.search_conversations(query="EXPLAIN")
        assert [c.title for c in by_query.conversations] == ["SQL indexes"]

        by_callout = await core.search_conversations(callout_type="tip")
        assert len(by_callout.conversations) == 2

        by_messages = await core.search_conversations(min_messages=3)
        assert len(by_messages.conversations) == 2

        by_folder = await core.search_conversations(folder="archive")
        assert [c.path for c in by_folder.conversations] == ["archive/old-chat.md"]

    @pytest.mark.asyncio
    async def test_search_date_range(self, conversation_vault):
        result = await core.search_conversations(date_from="2024-01-01", date_to="2024-04-01")

        assert [c.path for c in result.conversations] == ["chats/claude-retry.md"]
        assert result.conversations[0].created == "2024-03-02"

    @pytest.mark.asyncio
    async def test_search_date_to_includes_whole_day(self, write_note, conversation_vault):
        write_note(
            "chats/evening.md",
            "**User**: late question\n\n---\n\n**Claude**: late answer",
            created=datetime(2024, 3, 2, 21, 30),
        )

        result = await core.search_conversations(date_from="2024-03-02", date_to="2024-03-02")

        assert [c.path for c in result.conversations] == ["chats/evening.md", "chats/claude-retry.md"]
        assert result.conversations[0].created == "2024-03-02T21:30:00"

    @pytest.mark.asyncio
    async def test_search_limit_applies_after_sorting(self, conversation_vault):
        result = await core.search_conversations(max_results=1)
        assert [c.path for c in result.conversations] == ["chats/gpt-sql.md"]

    @pytest.mark.asyncio
    async def test_search_rejects_bad_limit(self, conversation_vault):
        with pytest.raises(InvalidParamsError):
            await core.search_conversations(max_results=0)

    @pytest.mark.asyncio
    async def test_analyze(self, conversation_vault):
        result = await core.analyze_conversation("chats/claude-retry")

        assert result.is_conversation is True
        assert result.source == AISource.CLAUDE
        assert result.title == "Retry strategies"
        assert result.message_count == 3
        assert result.user_messages == 2
        assert result.assistant_messages == 1
        assert result.callout_types == ["TIP"]
        assert result.callout_count == 1
        assert result.messages[1].speaker == "Claude"
        assert result.word_count == sum(len(m.content.split()) for m in result.messages)

    @pytest.mark.asyncio
    async def test_analyze_plain_note(self, conversation_vault):
        result = await core.analyze_conversation("notes/plain.md")

        assert result.is_conversation is False
        assert result.messages == []

    @pytest.mark.asyncio
    async def test_stats(self, conversation_vault):
        stats = await core.conversation_stats()

        assert stats.total_conversations == 3
        assert stats.total_messages == 8
        assert stats.by_source == {"Claude": 2, "ChatGPT": 1}
        assert stats.by_month == {"2023-11": 1, "2024-03": 1, "2024-05": 1}

    @pytest.mark.asyncio
    async def test_create_conversations_base(self, conversation_vault, tmp_vault):
        created = await core.create_conversations_base("Chats", source="Claude")

        assert created.view_count == 3
        assert [v.name for v in created.definition.views] == ["All Conversations", "By Source", "Recent"]

        result = await core.query_base("Chats")
        assert [doc.path for doc in result.documents] == ["chats/claude-retry.md"]
