"""Tests for reading and writing .base files."""

import pytest
import yaml

from notegraph.bases.parser import create_default_base, parse_base_file, stringify_base_file
from notegraph.errors import InvalidBaseError

PROJECTS_BASE = """
filters:
  and:
    - file.inFolder("projects")
    - 'status != "archived"'
formulas:
  label: concat(file.name, " - ", status)
  score: 3
properties:
  status:
    displayName: Status
views:
  - type: table
    name: Active
    order: [priority, file.name]
    limit: 5
    columns: [file.name, status, formula.label]
  - type: cards
    name: By owner
    groupBy:
      property: owner
      direction: desc
"""


class TestParseBaseFile:
    def test_full_definition(self):
        definition = parse_base_file(PROJECTS_BASE)

        assert definition.filters == {"and": ['file.inFolder("projects")', 'status != "archived"']}
        assert definition.formulas == {"label": 'concat(file.name, " - ", status)', "score": "3"}
        assert definition.properties == {"status": {"displayName": "Status"}}
        assert len(definition.views) == 2

        active = definition.views[0]
        assert active.name == "Active"
        assert [(o.property, o.direction) for o in active.order] == [
            ("priority", "asc"),
            ("file.name", "asc"),
        ]
        assert active.limit == 5
        assert active.columns == ["file.name", "status", "formula.label"]

        cards = definition.views[1]
        assert cards.type == "cards"
        assert cards.group_by.property == "owner"
        assert cards.group_by.direction == "desc"

    def test_missing_views_get_default(self):
        definition = parse_base_file('filters: status == "open"')

        assert len(definition.views) == 1
        assert definition.views[0].type == "table"
        assert definition.views[0].name == "Default"

    def test_unknown_keys_are_kept(self):
        definition = parse_base_file("summaries:\n  total: count\nviews: []")
        assert definition.model_extra == {"summaries": {"total": "count"}}

    @pytest.mark.parametrize("content", ["- just\n- a list", "plain text", "", "key: [unclosed"])
    def test_invalid_content(self, content):
        with pytest.raises(InvalidBaseError):
            parse_base_file(content)


class TestStringifyBaseFile:
    def test_round_trip(self):
        definition = parse_base_file(PROJECTS_BASE)
        reparsed = parse_base_file(stringify_base_file(definition))

        assert reparsed == definition

    def test_camel_case_keys_and_no_nulls(self):
        definition = parse_base_file(PROJECTS_BASE)
        data = yaml.safe_load(stringify_base_file(definition))

        assert "groupBy" in data["views"][1]
        assert "group_by" not in data["views"][1]
        assert "limit" not in data["views"][1]


class TestCreateDefaultBase:
    def test_plain(self):
        definition = create_default_base("Reading", columns=["file.name", "author"])

        assert definition.filters is None
        assert definition.views[0].name == "Reading"
        assert definition.views[0].columns == ["file.name", "author"]

    def test_filters(self):
        definition = create_default_base("Open", filters='status == "open"')
        assert definition.filters == 'status == "open"'

    def test_folder_overrides_filters(self):
        definition = create_default_base("Books", filters="rating > 3", folder="/library/books/")
        assert definition.filters == 'file.folder == "library/books"'
