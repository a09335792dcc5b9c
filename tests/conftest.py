"""Shared fixtures for QuickNote tests."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from quicknote.config import VaultConfig
from quicknote.db import Database
from quicknote.vault import Vault

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep tests away from the real ~/quicknote and ~/.config."""
    monkeypatch.setenv("QUICKNOTE_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("NO_COLOR", "1")


@pytest.fixture
def db(tmp_path: Path) -> Database:
    """A Database in a temporary directory."""
    return Database(tmp_path / "db" / "vault.db")


@pytest.fixture
def vault(tmp_path: Path) -> Vault:
    """A Vault that enrolls every new note for review."""
    return Vault(VaultConfig(home=tmp_path / "vault"))


@pytest.fixture
def plain_vault(tmp_path: Path) -> Vault:
    """A Vault that does not enroll notes automatically."""
    return Vault(VaultConfig(home=tmp_path / "plain", auto_enroll=False))
