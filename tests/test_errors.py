"""Tests for structured errors and logging setup."""

import json
import logging

from notegraph._logging import configure_logging
from notegraph.errors import ErrorCode, InvalidPathError, VaultNotFoundError, format_error_json, not_found


class TestErrors:
    def test_not_found_message(self):
        assert not_found("Note", "a.md").message == "Note not found: a.md"
        assert not_found("Directory").message == "Directory not found"

    def test_to_json(self):
        error = InvalidPathError("Path escapes vault root: ../x", {"path": "../x"})
        data = json.loads(error.to_json())

        assert data == {
            "error": True,
            "code": "INVALID_PATH",
            "message": "Path escapes vault root: ../x",
            "details": {"path": "../x"},
        }

    def test_vault_not_found_is_a_not_found(self):
        error = VaultNotFoundError("Vault not found: x")
        assert error.to_dict()["code"] == ErrorCode.VAULT_NOT_FOUND.value

    def test_format_error_json_with_plain_code(self):
        assert json.loads(format_error_json("USAGE_ERROR", "bad")) == {
            "error": True,
            "code": "USAGE_ERROR",
            "message": "bad",
        }


class TestConfigureLogging:
    def test_level_from_env_and_idempotent(self, monkeypatch):
        logger = logging.getLogger("notegraph")
        saved = (list(logger.handlers), logger.level, logger.propagate)
        logger.handlers.clear()
        monkeypatch.setenv("NOTEGRAPH_LOG_LEVEL", "debug")
        try:
            configure_logging()
            configure_logging()

            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 1
            assert logger.propagate is False
        finally:
            logger.handlers[:] = saved[0]
            logger.setLevel(saved[1])
            logger.propagate = saved[2]
