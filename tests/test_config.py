"""Tests for vault discovery."""

from pathlib import Path

import pytest

from notegraph.config import CONFIG_FILENAME, ConfigurationError, get_vault_configs


@pytest.fixture(autouse=True)
def no_env_vault(monkeypatch):
    monkeypatch.delenv("NOTEGRAPH_VAULT_ROOT", raising=False)


class TestGetVaultConfigs:
    def test_env_var(self, tmp_path, monkeypatch):
        vault = tmp_path / "Personal"
        vault.mkdir()
        monkeypatch.setenv("NOTEGRAPH_VAULT_ROOT", str(vault))

        configs = get_vault_configs()

        assert len(configs) == 1
        assert configs[0].name == "Personal"
        assert configs[0].path == vault.resolve()

    def test_config_file_in_parent(self, tmp_path):
        (tmp_path / "work").mkdir()
        (tmp_path / "home").mkdir()
        (tmp_path / CONFIG_FILENAME).write_text(
            "vaults:\n"
            "  - name: Work\n"
            "    path: work\n"
            "  - path: home\n"
            "  - name: Gone\n"
            "    path: missing\n"
        )
        nested = tmp_path / "work" / "sub"
        nested.mkdir()

        configs = get_vault_configs(start_dir=nested)

        assert [(c.name, c.path) for c in configs] == [
            ("Work", (tmp_path / "work").resolve()),
            ("home", (tmp_path / "home").resolve()),
        ]

    def test_env_var_wins_over_config_file(self, tmp_path, monkeypatch):
        (tmp_path / "work").mkdir()
        (tmp_path / CONFIG_FILENAME).write_text("vaults:\n  - path: work\n")
        env_vault = tmp_path / "env"
        env_vault.mkdir()
        monkeypatch.setenv("NOTEGRAPH_VAULT_ROOT", str(env_vault))

        configs = get_vault_configs(start_dir=tmp_path)
        assert [c.name for c in configs] == ["env"]

    def test_nothing_configured(self, tmp_path):
        with pytest.raises(ConfigurationError, match="NOTEGRAPH_VAULT_ROOT"):
            get_vault_configs(start_dir=tmp_path)

    def test_broken_config_file_is_ignored(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("vaults: [unclosed")
        with pytest.raises(ConfigurationError):
            get_vault_configs(start_dir=tmp_path)
