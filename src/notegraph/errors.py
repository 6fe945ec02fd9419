"""Structured errors for notegraph.

Single-target operations (read this note, query this base) raise these so the
CLI and the MCP server can report a clear message. Corpus-wide sweeps never
raise them for individual notes; they skip the note instead.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    NOTE_NOT_FOUND = "NOTE_NOT_FOUND"
    VAULT_NOT_FOUND = "VAULT_NOT_FOUND"
    INVALID_PARAMS = "INVALID_PARAMS"
    INVALID_PATH = "INVALID_PATH"
    INVALID_BASE = "INVALID_BASE"
    CONFIGURATION = "CONFIGURATION"
    INTERNAL = "INTERNAL"


def format_error_json(code: ErrorCode | str, message: str, details: dict | None = None) -> str:
    """Format an error as a single JSON object."""
    payload: dict[str, Any] = {
        "error": True,
        "code": code.value if isinstance(code, ErrorCode) else code,
        "message": message,
    }
    if details:
        payload["details"] = details
    return json.dumps(payload)


class NotegraphError(Exception):
    """Base error carrying a machine-readable code."""

    code = ErrorCode.INTERNAL

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data

    def to_json(self) -> str:
        return format_error_json(self.code, self.message, self.details)


class NotFoundError(NotegraphError):
    """A note, base, or vault explicitly named by the caller does not exist."""

    code = ErrorCode.NOTE_NOT_FOUND


class VaultNotFoundError(NotFoundError):
    code = ErrorCode.VAULT_NOT_FOUND


class InvalidParamsError(NotegraphError):
    code = ErrorCode.INVALID_PARAMS


class InvalidPathError(NotegraphError):
    """A path escapes the vault root."""

    code = ErrorCode.INVALID_PATH


class InvalidBaseError(NotegraphError):
    """A .base file is not a YAML mapping."""

    code = ErrorCode.INVALID_BASE


def not_found(resource: str, detail: str | None = None) -> NotFoundError:
    message = f"{resource} not found: {detail}" if detail else f"{resource} not found"
    return NotFoundError(message, {"resource": resource})


def invalid_params(message: str) -> InvalidParamsError:
    return InvalidParamsError(message)
