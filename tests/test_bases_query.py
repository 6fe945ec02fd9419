"""Tests for running base views against a vault."""

import pytest

from notegraph.bases.parser import parse_base_file
from notegraph.bases.query import (
    BasesQueryEngine,
    build_note_context,
    evaluate_formula,
    get_property_value,
    select_view,
)
from notegraph.models import BaseDefinition, FileStat, VaultFile, ViewConfig
from notegraph.storage import VaultManager, parse_note

from tests.fakes import FakeBackend

NOTES = {
    "projects/alpha.md": "---\nstatus: active\npriority: 2\nowner: sam\ntags: [project]\n---\nAlpha",
    "projects/beta.md": "---\nstatus: active\npriority: 1\nowner: Kim\ntags: [project, urgent]\n---\nBeta",
    "projects/gamma.md": "---\nstatus: archived\npriority: 3\n---\nGamma",
    "projects/2024/delta.md": "---\nstatus: active\n---\nDelta, no priority",
    "inbox/idea.md": "An idea #draft",
    "projects/board.base": "views: []",
}


def make_engine(files: dict[str, str] | None = None, failing: set[str] | None = None) -> BasesQueryEngine:
    manager = VaultManager()
    manager.add_vault("main", FakeBackend(files if files is not None else NOTES, name="main", failing=failing))
    return BasesQueryEngine(manager)


def names(result) -> list[str]:
    return [doc.name for doc in result.documents]


def context_for(path: str, content: str):
    stem = path.rsplit("/", 1)[-1][:-3]
    file = VaultFile(path=path, name=stem, extension=".md", stat=FileStat(size=len(content)))
    return build_note_context(file, parse_note(path, content))


class TestHelpers:
    def test_note_context(self):
        ctx = context_for("projects/alpha.md", NOTES["projects/alpha.md"])

        assert ctx.folder == "projects"
        assert ctx.extension == ".md"
        assert ctx.tags == ("project",)
        assert ctx.properties["priority"] == 2

    def test_root_note_has_empty_folder(self):
        assert context_for("top.md", "x").folder == ""

    def test_property_lookup(self):
        ctx = context_for("projects/alpha.md", NOTES["projects/alpha.md"])
        formulas = {"label": "alpha!"}

        assert get_property_value(ctx, "file.name") == "alpha"
        assert get_property_value(ctx, "status") == "active"
        assert get_property_value(ctx, "formula.label", formulas) == "alpha!"
        assert get_property_value(ctx, "_formula_label", formulas) == "alpha!"
        assert get_property_value(ctx, "file.unknown") is None

    def test_formulas(self):
        ctx = context_for("projects/beta.md", NOTES["projects/beta.md"])

        assert evaluate_formula("status", ctx) == "active"
        assert evaluate_formula('concat(file.name, " (", owner, ")")', ctx) == "beta (Kim)"
        assert evaluate_formula("length(tags)", ctx) == 2
        assert evaluate_formula("length(missing)", ctx) == 0
        assert evaluate_formula("priority * 2 + 1", ctx) == "priority * 2 + 1"

    def test_select_view_falls_back_to_first(self):
        definition = BaseDefinition(views=[ViewConfig(name="One"), ViewConfig(name="Two")])

        assert select_view(definition, 1).name == "Two"
        assert select_view(definition, 7).name == "One"
        assert select_view(BaseDefinition(), 0).name == "Default"


class TestQuery:
    @pytest.mark.asyncio
    async def test_base_and_view_filters(self):
        definition = parse_base_file(
            """
filters: file.inFolder("projects")
views:
  - name: Active
    filters: 'status == "active"'
"""
        )
        result = await make_engine().query(definition)

        assert names(result) == ["alpha", "beta", "delta"]
        assert result.total == 3
        assert result.view.name == "Active"

    @pytest.mark.asyncio
    async def test_order_and_limit(self):
        definition = parse_base_file(
            """
filters: 'status == "active"'
views:
  - name: Top
    order:
      - property: priority
        direction: desc
    limit: 2
"""
        )
        result = await make_engine().query(definition)

        assert names(result) == ["alpha", "beta"]
        assert result.total == 3

    @pytest.mark.asyncio
    async def test_missing_values_sort_first(self):
        definition = parse_base_file(
            """
filters: 'status == "active"'
views:
  - name: Asc
    order: [priority]
"""
        )
        result = await make_engine().query(definition)
        assert names(result) == ["delta", "beta", "alpha"]

    @pytest.mark.asyncio
    async def test_ties_keep_vault_order(self):
        definition = parse_base_file("views:\n  - name: Status\n    order: [status]\n")
        result = await make_engine().query(definition)

        assert names(result) == ["idea", "alpha", "beta", "delta", "gamma"]

    @pytest.mark.asyncio
    async def test_columns_and_formulas(self):
        definition = parse_base_file(
            """
filters: file.hasTag("project")
formulas:
  label: concat(file.name, ":", owner)
views:
  - name: Labels
    columns: [file.name, formula.label, priority]
    order: [formula.label]
"""
        )
        result = await make_engine().query(definition)

        assert [doc.properties for doc in result.documents] == [
            {"file.name": "alpha", "formula.label": "alpha:sam", "priority": 2},
            {"file.name": "beta", "formula.label": "beta:Kim", "priority": 1},
        ]

    @pytest.mark.asyncio
    async def test_default_projection(self):
        definition = parse_base_file(
            'filters: file.name == "gamma"\nformulas:\n  loud: concat(status, "!")\n'
        )
        result = await make_engine().query(definition)
        properties = result.documents[0].properties

        assert properties["status"] == "archived"
        assert properties["file.folder"] == "projects"
        assert properties["formula.loud"] == "archived!"

    @pytest.mark.asyncio
    async def test_view_index(self):
        definition = parse_base_file(
            """
views:
  - name: Archived
    filters: 'status == "archived"'
  - name: Inbox
    filters: file.inFolder("inbox")
"""
        )
        engine = make_engine()

        assert names(await engine.query(definition, view_index=1)) == ["idea"]
        assert names(await engine.query(definition, view_index=9)) == ["gamma"]

    @pytest.mark.asyncio
    async def test_only_markdown_notes(self):
        result = await make_engine().query(parse_base_file("views: []"))

        assert result.total == 5
        assert all(doc.path.endswith(".md") for doc in result.documents)

    @pytest.mark.asyncio
    async def test_unreadable_notes_are_skipped(self):
        result = await make_engine(failing={"projects/alpha.md"}).query(
            parse_base_file('filters: file.hasTag("project")')
        )
        assert names(result) == ["beta"]

    @pytest.mark.asyncio
    async def test_malformed_filter_matches_nothing(self):
        result = await make_engine().query(parse_base_file("filters: 'status == (active'"))
        assert result.documents == []
        assert result.total == 0

    @pytest.mark.asyncio
    async def test_non_string_frontmatter_keys(self):
        files = {"year.md": "---\n2024: recap\n---\nYear", "plain.md": "Plain"}
        result = await make_engine(files).query(parse_base_file("views: []"))

        assert names(result) == ["year", "plain"]
        ctx = context_for("year.md", files["year.md"])
        assert get_property_value(ctx, "2024") == "recap"
