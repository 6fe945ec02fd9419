"""Filter expressions for bases.

A base filter is either a string in a small expression language or a nested
``{and|or|not: [...]}`` mapping of such strings. Strings are tokenized and
parsed by a recursive-descent parser; nothing is ever passed to ``eval``.

The string grammar has no conventional operator precedence. A string is
tried against these forms in order, and the first that applies wins:

1. top-level ``&&``: every part must hold
2. top-level ``||``: some part must hold
3. leading ``!``: negation of the rest
4. ``( ... )``: grouping
5. ``name(args)``: built-in function call
6. ``left OP right`` with OP in ``== != > < >= <=``
7. a bare value, tested for truthiness

So ``a || b && c`` reads as ``(a || b) && c``.

Malformed strings evaluate to False rather than raising.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, NamedTuple, Union

from ..models import NoteContext
from ..parser.links import normalize_tag
from .values import coerce_number, coerce_str, is_truthy

log = logging.getLogger(__name__)


class ExpressionSyntaxError(ValueError):
    """A filter string that cannot be parsed. Never escapes evaluate()."""


# ─────────────────────────────────────────────────────────────────────────────
# Filter structure (as written in .base files)
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class And:
    items: tuple[FilterExpression, ...] = ()


@dataclass(frozen=True)
class Or:
    items: tuple[FilterExpression, ...] = ()


@dataclass(frozen=True)
class Not:
    """True when none of the items hold: ``Not([a, b])`` is ``!(a || b)``."""

    items: tuple[FilterExpression, ...] = ()


FilterExpression = Union[Literal, And, Or, Not]


def parse_filter(raw: Any) -> FilterExpression | None:
    """Convert a filter as loaded from YAML into a FilterExpression.

    Mappings are checked for ``and``, then ``or``, then ``not``. A mapping
    with none of those keys always matches. Returns None for no filter
    (including a blank string).
    """
    if raw is None:
        return None
    if isinstance(raw, (Literal, And, Or, Not)):
        return raw
    if isinstance(raw, str):
        return Literal(raw) if raw.strip() else None
    if isinstance(raw, (bool, int, float)):
        return Literal(coerce_str(raw))
    if isinstance(raw, list):
        return And(_parse_items(raw))
    if isinstance(raw, dict):
        if "and" in raw:
            return And(_parse_items(raw["and"]))
        if "or" in raw:
            return Or(_parse_items(raw["or"]))
        if "not" in raw:
            return Not(_parse_items(raw["not"]))
    log.debug("Unrecognized filter shape treated as match-all: %r", raw)
    return And(())


def _parse_items(raw: Any) -> tuple[FilterExpression, ...]:
    items = raw if isinstance(raw, list) else [raw]
    parsed = (parse_filter(item) for item in items)
    return tuple(item for item in parsed if item is not None)


def filter_to_raw(expression: FilterExpression | None) -> Any:
    """Inverse of parse_filter, for writing .base files."""
    if expression is None:
        return None
    if isinstance(expression, Literal):
        return expression.text
    key = {And: "and", Or: "or", Not: "not"}[type(expression)]
    return {key: [filter_to_raw(item) for item in expression.items]}


# ─────────────────────────────────────────────────────────────────────────────
# Tokenizer
# ─────────────────────────────────────────────────────────────────────────────


class Token(NamedTuple):
    kind: str
    text: str
    start: int
    end: int


_TOKEN_SPEC = (
    ("SPACE", r"\s+"),
    ("AND", r"&&"),
    ("OR", r"\|\|"),
    ("OP", r"==|!=|>=|<=|>|<"),
    ("NOT", r"!"),
    ("LPAREN", r"\("),
    ("RPAREN", r"\)"),
    ("COMMA", r","),
    ("STRING", r'"(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\''),
    ("WORD", r"[^\s()!,&|=<>\"']+"),
)
_TOKEN_PATTERN = re.compile("|".join(f"(?P<{kind}>{pattern})" for kind, pattern in _TOKEN_SPEC))
_ESCAPE = re.compile(r"\\(.)")
_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")


def tokenize(text: str) -> list[Token]:
    """Split an expression string into tokens.

    Quoted strings are single tokens, so operators, commas and parentheses
    inside them never affect parsing.

    Raises:
        ExpressionSyntaxError: On an unterminated string or a stray ``&``, ``|`` or ``=``.
    """
    tokens: list[Token] = []
    position = 0
    while position < len(text):
        match = _TOKEN_PATTERN.match(text, position)
        if match is None:
            raise ExpressionSyntaxError(f"Unexpected character {text[position]!r} at {position}")
        kind = match.lastgroup or ""
        if kind != "SPACE":
            tokens.append(Token(kind, match.group(), match.start(), match.end()))
        position = match.end()
    return tokens


def _check_balanced(tokens: list[Token]) -> None:
    depth = 0
    for token in tokens:
        if token.kind == "LPAREN":
            depth += 1
        elif token.kind == "RPAREN":
            depth -= 1
            if depth < 0:
                raise ExpressionSyntaxError(f"Unmatched ')' at {token.start}")
    if depth:
        raise ExpressionSyntaxError("Unclosed '('")


def _split_tokens(tokens: list[Token], kind: str) -> list[list[Token]]:
    """Split on separator tokens that are not nested in parentheses."""
    parts: list[list[Token]] = [[]]
    depth = 0
    for token in tokens:
        if token.kind == "LPAREN":
            depth += 1
        elif token.kind == "RPAREN":
            depth -= 1
        elif token.kind == kind and depth == 0:
            parts.append([])
            continue
        parts[-1].append(token)
    return parts


def split_top_level(expression: str, operator: str) -> list[str]:
    """Split an expression string on a top-level ``&&``, ``||`` or ``,``.

    >>> split_top_level('a && contains(x, "a && b") && c', "&&")
    ['a', 'contains(x, "a && b")', 'c']
    """
    kind = {"&&": "AND", "||": "OR", ",": "COMMA"}[operator]
    parts: list[str] = []
    start = 0
    depth = 0
    for token in tokenize(expression):
        if token.kind == "LPAREN":
            depth += 1
        elif token.kind == "RPAREN":
            depth -= 1
        elif token.kind == kind and depth == 0:
            parts.append(expression[start : token.start].strip())
            start = token.end
    parts.append(expression[start:].strip())
    return parts


def _matching_paren(tokens: list[Token], open_index: int) -> int:
    depth = 0
    for index in range(open_index, len(tokens)):
        if tokens[index].kind == "LPAREN":
            depth += 1
        elif tokens[index].kind == "RPAREN":
            depth -= 1
            if depth == 0:
                return index
    return -1


# ─────────────────────────────────────────────────────────────────────────────
# Expression tree
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Constant:
    value: Any
    text: str


@dataclass(frozen=True)
class FileProperty:
    """``file.name``, ``file.tags``, ... (see FILE_PROPERTIES)."""

    name: str
    text: str


@dataclass(frozen=True)
class PropertyRef:
    """A front matter property, optionally written with a ``note.`` prefix."""

    name: str
    text: str


ValueNode = Union[Constant, FileProperty, PropertyRef]


@dataclass(frozen=True)
class AllOf:
    parts: tuple[Node, ...]


@dataclass(frozen=True)
class AnyOf:
    parts: tuple[Node, ...]


@dataclass(frozen=True)
class Negate:
    operand: Node


@dataclass(frozen=True)
class Call:
    name: str
    args: tuple[ValueNode, ...]


@dataclass(frozen=True)
class Compare:
    left: ValueNode
    op: str
    right: ValueNode


@dataclass(frozen=True)
class Truthy:
    value: ValueNode


Node = Union[AllOf, AnyOf, Negate, Call, Compare, Truthy]


def _unquote(text: str) -> str:
    return _ESCAPE.sub(r"\1", text[1:-1])


def _parse_value(tokens: list[Token]) -> ValueNode:
    if len(tokens) != 1:
        joined = " ".join(t.text for t in tokens)
        raise ExpressionSyntaxError(f"Expected a single value, got {joined!r}")

    token = tokens[0]
    if token.kind == "STRING":
        return Constant(_unquote(token.text), token.text)
    if token.kind != "WORD":
        raise ExpressionSyntaxError(f"Expected a value, got {token.text!r}")

    word = token.text
    if _NUMBER.match(word):
        number = float(word)
        return Constant(int(number) if number.is_integer() and "." not in word else number, word)
    if word == "true":
        return Constant(True, word)
    if word == "false":
        return Constant(False, word)
    if word == "null":
        return Constant(None, word)
    if word.startswith("file."):
        return FileProperty(word[len("file.") :], word)
    return PropertyRef(word, word)


def _parse(tokens: list[Token]) -> Node:
    if not tokens:
        raise ExpressionSyntaxError("Empty expression")

    for kind, combine in (("AND", AllOf), ("OR", AnyOf)):
        parts = _split_tokens(tokens, kind)
        if len(parts) > 1:
            return combine(tuple(_parse(part) for part in parts))

    first = tokens[0]
    if first.kind == "NOT":
        return Negate(_parse(tokens[1:]))

    if first.kind == "LPAREN" and _matching_paren(tokens, 0) == len(tokens) - 1:
        return _parse(tokens[1:-1])

    if (
        first.kind == "WORD"
        and len(tokens) >= 3
        and tokens[1].kind == "LPAREN"
        and _matching_paren(tokens, 1) == len(tokens) - 1
    ):
        inner = tokens[2:-1]
        args = tuple(_parse_value(arg) for arg in _split_tokens(inner, "COMMA")) if inner else ()
        return Call(first.text, args)

    depth = 0
    for index, token in enumerate(tokens):
        if token.kind == "LPAREN":
            depth += 1
        elif token.kind == "RPAREN":
            depth -= 1
        elif token.kind == "OP" and depth == 0:
            return Compare(
                _parse_value(tokens[:index]),
                token.text,
                _parse_value(tokens[index + 1 :]),
            )

    return Truthy(_parse_value(tokens))


@lru_cache(maxsize=512)
def parse_expression(text: str) -> Node:
    """Parse a filter string into an expression tree.

    Raises:
        ExpressionSyntaxError: If the string is malformed.
    """
    tokens = tokenize(text)
    _check_balanced(tokens)
    return _parse(tokens)


# ─────────────────────────────────────────────────────────────────────────────
# Evaluation
# ─────────────────────────────────────────────────────────────────────────────


FILE_PROPERTIES: dict[str, Callable[[NoteContext], Any]] = {
    "name": lambda ctx: ctx.name,
    "path": lambda ctx: ctx.path,
    "folder": lambda ctx: ctx.folder,
    "ext": lambda ctx: ctx.extension,
    "size": lambda ctx: ctx.size,
    "ctime": lambda ctx: ctx.ctime,
    "mtime": lambda ctx: ctx.mtime,
    "tags": lambda ctx: list(ctx.tags),
    "links": lambda ctx: list(ctx.links),
}


def get_file_property(context: NoteContext, name: str) -> Any:
    getter = FILE_PROPERTIES.get(name)
    return getter(context) if getter else None


def get_note_property(context: NoteContext, name: str) -> Any:
    if name in context.properties:
        return context.properties[name]
    if name.startswith("note."):
        return context.properties.get(name[len("note.") :])
    return None


def _arg_text(node: ValueNode) -> str:
    """Literal text of a function argument; bare words are taken as written."""
    if isinstance(node, Constant):
        return coerce_str(node.value)
    return node.text


class ExpressionEvaluator:
    """Evaluates filter expressions against a NoteContext.

    Stateless: the same expression and context always give the same result,
    and the context is never modified.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Callable[[tuple[ValueNode, ...], NoteContext], bool]] = {
            "file.hasTag": self._has_tag,
            "file.inFolder": self._in_folder,
            "file.hasLink": self._has_link,
            "contains": self._contains,
            "startsWith": self._starts_with,
            "endsWith": self._ends_with,
        }

    def evaluate(self, expression: FilterExpression | str | dict | None, context: NoteContext) -> bool:
        if expression is None:
            return True
        if not isinstance(expression, (Literal, And, Or, Not)):
            expression = parse_filter(expression)
            if expression is None:
                return True

        if isinstance(expression, Literal):
            return self.evaluate_string(expression.text, context)
        if isinstance(expression, And):
            return all(self.evaluate(item, context) for item in expression.items)
        if isinstance(expression, Or):
            return any(self.evaluate(item, context) for item in expression.items)
        if isinstance(expression, Not):
            return not any(self.evaluate(item, context) for item in expression.items)
        return True

    def evaluate_string(self, text: str, context: NoteContext) -> bool:
        try:
            node = parse_expression(text.strip())
        except ExpressionSyntaxError as e:
            log.debug("Malformed filter %r evaluates to false: %s", text, e)
            return False
        return self.evaluate_node(node, context)

    def evaluate_node(self, node: Node, context: NoteContext) -> bool:
        if isinstance(node, AllOf):
            return all(self.evaluate_node(part, context) for part in node.parts)
        if isinstance(node, AnyOf):
            return any(self.evaluate_node(part, context) for part in node.parts)
        if isinstance(node, Negate):
            return not self.evaluate_node(node.operand, context)
        if isinstance(node, Call):
            function = self._functions.get(node.name)
            if function is None:
                log.debug("Unknown filter function %s evaluates to false", node.name)
                return False
            return function(node.args, context)
        if isinstance(node, Compare):
            return self._compare(
                self.resolve(node.left, context),
                node.op,
                self.resolve(node.right, context),
            )
        if isinstance(node, Truthy):
            return is_truthy(self.resolve(node.value, context))
        return False

    def resolve(self, node: ValueNode, context: NoteContext) -> Any:
        if isinstance(node, Constant):
            return node.value
        if isinstance(node, FileProperty):
            return get_file_property(context, node.name)
        return get_note_property(context, node.name)

    @staticmethod
    def _compare(left: Any, op: str, right: Any) -> bool:
        if op == "==":
            return coerce_str(left) == coerce_str(right)
        if op == "!=":
            return coerce_str(left) != coerce_str(right)

        lnum, rnum = coerce_number(left), coerce_number(right)
        if op == ">":
            return lnum > rnum
        if op == "<":
            return lnum < rnum
        if op == ">=":
            return lnum >= rnum
        if op == "<=":
            return lnum <= rnum
        return False

    # Built-in functions. Membership functions accept several arguments and
    # match if any of them does.

    def _has_tag(self, args: tuple[ValueNode, ...], context: NoteContext) -> bool:
        return any(normalize_tag(_arg_text(arg)) in context.tags for arg in args)

    def _has_link(self, args: tuple[ValueNode, ...], context: NoteContext) -> bool:
        return any(_arg_text(arg) in context.links for arg in args)

    def _in_folder(self, args: tuple[ValueNode, ...], context: NoteContext) -> bool:
        if not args:
            return False
        folder = _arg_text(args[0]).strip("/")
        return context.folder == folder or context.folder.startswith(folder + "/")

    def _string_args(self, args: tuple[ValueNode, ...], context: NoteContext) -> tuple[str, str] | None:
        if len(args) < 2:
            return None
        return coerce_str(self.resolve(args[0], context)), _arg_text(args[1])

    def _contains(self, args: tuple[ValueNode, ...], context: NoteContext) -> bool:
        pair = self._string_args(args, context)
        return pair is not None and pair[1].lower() in pair[0].lower()

    def _starts_with(self, args: tuple[ValueNode, ...], context: NoteContext) -> bool:
        pair = self._string_args(args, context)
        return pair is not None and pair[0].startswith(pair[1])

    def _ends_with(self, args: tuple[ValueNode, ...], context: NoteContext) -> bool:
        pair = self._string_args(args, context)
        return pair is not None and pair[0].endswith(pair[1])
