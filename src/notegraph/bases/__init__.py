"""Bases: YAML-defined queries over note metadata."""

from .expression import (
    And,
    ExpressionEvaluator,
    ExpressionSyntaxError,
    FilterExpression,
    Literal,
    Not,
    Or,
    parse_expression,
    parse_filter,
    split_top_level,
)
from .parser import create_default_base, parse_base_file, stringify_base_file
from .query import BasesQueryEngine, evaluate_formula, get_property_value

__all__ = [
    "And",
    "ExpressionEvaluator",
    "ExpressionSyntaxError",
    "FilterExpression",
    "Literal",
    "Not",
    "Or",
    "parse_expression",
    "parse_filter",
    "split_top_level",
    "create_default_base",
    "parse_base_file",
    "stringify_base_file",
    "BasesQueryEngine",
    "evaluate_formula",
    "get_property_value",
]
