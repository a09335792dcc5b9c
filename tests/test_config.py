"""Tests for configuration loading."""

import sys
from pathlib import Path

import pytest

from quicknote.config import (
    VaultConfig,
    get_config_path,
    get_db_path,
    get_portable_home,
    get_vault_home,
    load_config,
    load_vault_config,
)


class TestPaths:
    """Tests for path resolution."""

    def test_vault_home_from_env(self, tmp_path: Path):
        assert get_vault_home() == tmp_path / "home"
        assert get_db_path() == tmp_path / "home" / "vault.db"

    def test_config_path_from_xdg(self, tmp_path: Path):
        assert get_config_path() == tmp_path / "config" / "quicknote" / "config.toml"

    def test_default_home(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.delenv("QUICKNOTE_HOME")
        monkeypatch.setattr(sys, "argv", [str(tmp_path / "bin" / "quicknote")])
        assert get_portable_home() is None
        assert get_vault_home() == Path.home() / "quicknote"

    def test_portable_data_dir(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.delenv("QUICKNOTE_HOME")
        data = tmp_path / "stick" / "data"
        data.mkdir(parents=True)
        monkeypatch.setattr(sys, "argv", [str(tmp_path / "stick" / "quicknote")])

        assert get_vault_home() == data.resolve()
        assert get_db_path() == data.resolve() / "vault.db"

    def test_env_home_beats_portable(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        (tmp_path / "stick" / "data").mkdir(parents=True)
        monkeypatch.setattr(sys, "argv", [str(tmp_path / "stick" / "quicknote")])
        assert get_vault_home() == tmp_path / "home"


class TestLoadConfig:
    """Tests for config.toml handling."""

    def test_defaults_without_file(self, tmp_path: Path):
        config = load_vault_config()
        assert config.home == tmp_path / "home"
        assert config.auto_enroll is True
        assert config.title_max_length == 100
        assert config.busy_timeout == 5.0
        assert config.db_path == tmp_path / "home" / "vault.db"

    def test_reads_toml(self):
        path = get_config_path()
        path.parent.mkdir(parents=True)
        path.write_text(
            "[vault]\nauto_enroll = false\ntitle_max_length = 40\n\n[storage]\nbusy_timeout = 1.5\n"
        )

        raw = load_config()
        config = load_vault_config(raw)

        assert raw["vault"]["auto_enroll"] is False
        assert config.auto_enroll is False
        assert config.title_max_length == 40
        assert config.busy_timeout == 1.5

    def test_env_home_wins(self, tmp_path: Path):
        config = load_vault_config({"vault": {"home": "/somewhere/else"}})
        assert config.home == tmp_path / "home"

    def test_home_from_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.delenv("QUICKNOTE_HOME")
        monkeypatch.setattr(sys, "argv", [str(tmp_path / "bin" / "quicknote")])
        config = load_vault_config({"vault": {"home": str(tmp_path / "vault")}})
        assert config.home == tmp_path / "vault"

    def test_portable_beats_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.delenv("QUICKNOTE_HOME")
        data = tmp_path / "stick" / "data"
        data.mkdir(parents=True)
        monkeypatch.setattr(sys, "argv", [str(tmp_path / "stick" / "quicknote")])

        config = load_vault_config({"vault": {"home": str(tmp_path / "vault")}})
        assert config.db_path == data.resolve() / "vault.db"

    def test_rejects_bad_values(self):
        with pytest.raises(ValueError):
            VaultConfig(title_max_length=0)
