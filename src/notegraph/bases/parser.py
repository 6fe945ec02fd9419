"""Reading and writing .base files (YAML)."""

from __future__ import annotations

from typing import Any

import yaml
from pydantic import ValidationError

from ..errors import InvalidBaseError
from ..models import BaseDefinition, ViewConfig

DEFAULT_VIEW: dict[str, Any] = {"type": "table", "name": "Default"}


def parse_base_file(content: str) -> BaseDefinition:
    """Parse .base file content.

    A file without views gets a single default table view.

    Raises:
        InvalidBaseError: If the content is not a YAML mapping or does not
            describe a base.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise InvalidBaseError(f"Invalid .base file: {e}") from e

    if not isinstance(data, dict):
        raise InvalidBaseError("Invalid .base file: not a YAML object")

    if not isinstance(data.get("views"), list) or not data["views"]:
        data["views"] = [dict(DEFAULT_VIEW)]

    try:
        return BaseDefinition.model_validate(data)
    except ValidationError as e:
        raise InvalidBaseError(f"Invalid .base file: {e}") from e


def stringify_base_file(definition: BaseDefinition) -> str:
    data = definition.model_dump(by_alias=True, exclude_none=True)
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, width=1_000_000)


def create_default_base(
    name: str,
    filters: str | None = None,
    columns: list[str] | None = None,
    folder: str | None = None,
) -> BaseDefinition:
    """Build a base with one table view named ``name``.

    ``folder`` restricts the base to notes directly in that folder and takes
    precedence over ``filters``.
    """
    definition = BaseDefinition(views=[ViewConfig(type="table", name=name, columns=columns)])
    if filters:
        definition.filters = filters
    if folder:
        definition.filters = f'file.folder == "{folder.strip("/")}"'
    return definition
