"""Query engine for bases.

A query runs one view of a base against every note in a vault:
filter, compute formulas, sort, count, limit, project.
"""

from __future__ import annotations

import logging
import re
from functools import cmp_to_key
from typing import TYPE_CHECKING, Any

from ..config import NOTE_EXTENSION
from ..errors import NotegraphError
from ..models import (
    BaseDefinition,
    BaseQueryResult,
    NoteContent,
    NoteContext,
    NoteRow,
    OrderSpec,
    VaultFile,
    ViewConfig,
)
from ..paths import vault_dirname
from .expression import (
    ExpressionEvaluator,
    ExpressionSyntaxError,
    get_file_property,
    get_note_property,
    parse_filter,
    split_top_level,
)
from .values import coerce_str, compare_for_sort

if TYPE_CHECKING:
    from ..storage import VaultBackend, VaultManager

log = logging.getLogger(__name__)

FORMULA_PREFIX = "formula."
LEGACY_FORMULA_PREFIX = "_formula_"

# Columns returned when a view does not list its own
DEFAULT_FILE_COLUMNS = ("file.name", "file.path", "file.folder", "file.tags", "file.mtime")

_CONCAT = re.compile(r"^concat\((.+)\)$", re.DOTALL)
_LENGTH = re.compile(r"^length\((.+)\)$", re.DOTALL)


def build_note_context(file: VaultFile, note: NoteContent) -> NoteContext:
    return NoteContext(
        path=file.path,
        name=file.name,
        folder=vault_dirname(file.path),
        extension=file.extension,
        size=file.stat.size,
        ctime=file.stat.ctime,
        mtime=file.stat.mtime,
        tags=tuple(note.tags),
        links=tuple(note.links),
        properties=dict(note.frontmatter),
    )


def get_property_value(
    context: NoteContext,
    key: str,
    formulas: dict[str, Any] | None = None,
) -> Any:
    """Look up ``file.*``, ``formula.*`` or a front matter property."""
    if key.startswith("file."):
        return get_file_property(context, key[len("file.") :])
    if formulas is not None:
        if key.startswith(FORMULA_PREFIX):
            return formulas.get(key[len(FORMULA_PREFIX) :])
        if key.startswith(LEGACY_FORMULA_PREFIX):
            return formulas.get(key[len(LEGACY_FORMULA_PREFIX) :])
    return get_note_property(context, key)


def _is_quoted(text: str) -> bool:
    return len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'"


def evaluate_formula(formula: str, context: NoteContext) -> Any:
    """Compute a formula for one note.

    Supported forms:
    - ``property``: the property's value
    - ``concat(a, "text", b)``: quoted arguments are literal text, bare
      arguments are property values
    - ``length(property)``: length of a list or string value, else 0

    Any other formula is returned as written.
    """
    text = formula.strip()

    if not any(ch in text for ch in "(+-"):
        return get_property_value(context, text)

    match = _CONCAT.match(text)
    if match:
        try:
            args = split_top_level(match.group(1), ",")
        except ExpressionSyntaxError:
            return formula
        pieces = []
        for arg in args:
            if _is_quoted(arg):
                pieces.append(arg[1:-1])
            else:
                pieces.append(coerce_str(get_property_value(context, arg)))
        return "".join(pieces)

    match = _LENGTH.match(text)
    if match:
        value = get_property_value(context, match.group(1).strip())
        if isinstance(value, (list, tuple, str)):
            return len(value)
        return 0

    return formula


def select_view(definition: BaseDefinition, view_index: int = 0) -> ViewConfig:
    """The view at view_index, falling back to the first (or a default table view)."""
    if not definition.views:
        return ViewConfig()
    if 0 <= view_index < len(definition.views):
        return definition.views[view_index]
    return definition.views[0]


def _sort_rows(
    rows: list[tuple[NoteContext, dict[str, Any]]],
    order: list[OrderSpec],
) -> list[tuple[NoteContext, dict[str, Any]]]:
    def compare(
        left: tuple[NoteContext, dict[str, Any]],
        right: tuple[NoteContext, dict[str, Any]],
    ) -> int:
        for spec in order:
            result = compare_for_sort(
                get_property_value(left[0], spec.property, left[1]),
                get_property_value(right[0], spec.property, right[1]),
            )
            if result:
                return -result if spec.direction == "desc" else result
        return 0

    # sorted() is stable: rows equal on every key keep vault order
    return sorted(rows, key=cmp_to_key(compare))


def _project(context: NoteContext, formulas: dict[str, Any], view: ViewConfig) -> NoteRow:
    if view.columns:
        properties = {
            column: get_property_value(context, column, formulas) for column in view.columns
        }
    else:
        properties = dict(context.properties)
        for column in DEFAULT_FILE_COLUMNS:
            properties[column] = get_property_value(context, column)
        for name, value in formulas.items():
            properties[f"{FORMULA_PREFIX}{name}"] = value
    return NoteRow(path=context.path, name=context.name, properties=properties)


class BasesQueryEngine:
    """Runs base views against the notes of a vault."""

    def __init__(self, vaults: VaultManager) -> None:
        self.vaults = vaults
        self.evaluator = ExpressionEvaluator()

    async def load_contexts(self, backend: VaultBackend) -> list[NoteContext]:
        """Build a NoteContext for every readable note, in vault order."""
        contexts: list[NoteContext] = []
        for file in await backend.list_files():
            if file.extension != NOTE_EXTENSION:
                continue
            try:
                note = await backend.read_note(file.path)
            except (OSError, UnicodeDecodeError, NotegraphError) as e:
                log.debug("Skipping %s during base query: %s", file.path, e)
                continue
            contexts.append(build_note_context(file, note))
        return contexts

    async def query(
        self,
        definition: BaseDefinition,
        view_index: int = 0,
        vault: str | None = None,
    ) -> BaseQueryResult:
        """Run one view of a base.

        Args:
            definition: Parsed base.
            view_index: Index into definition.views; out of range means view 0.
            vault: Vault name, or None for the default vault.

        Returns:
            Matching rows after sorting and the view limit; ``total`` counts
            matches before the limit.
        """
        view = select_view(definition, view_index)
        backend = self.vaults.get_backend(vault)
        contexts = await self.load_contexts(backend)

        base_filter = parse_filter(definition.filters)
        view_filter = parse_filter(view.filters)
        matched = [
            context
            for context in contexts
            if self.evaluator.evaluate(base_filter, context)
            and self.evaluator.evaluate(view_filter, context)
        ]

        formulas = definition.formulas or {}
        rows = [
            (context, {name: evaluate_formula(formula, context) for name, formula in formulas.items()})
            for context in matched
        ]

        if view.order:
            rows = _sort_rows(rows, view.order)

        total = len(rows)
        if view.limit and view.limit > 0:
            rows = rows[: view.limit]

        return BaseQueryResult(
            documents=[_project(context, computed, view) for context, computed in rows],
            total=total,
            view=view,
        )
