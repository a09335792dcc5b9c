"""
Configuration management for QuickNote.

Uses XDG base directories:
- Config: ~/.config/quicknote/config.toml
- Data: ~/quicknote/ (the vault itself)

Portable mode: a `data/` folder next to the program is used as the vault,
so the program and its notes can travel together on a USB stick.
"""

from pathlib import Path
from typing import Any
import os
import sys

from pydantic import BaseModel, Field

# XDG defaults
DEFAULT_CONFIG_HOME = Path.home() / ".config"
DEFAULT_DATA_HOME = Path.home() / "quicknote"

DB_FILENAME = "vault.db"
PORTABLE_DIRNAME = "data"


class VaultConfig(BaseModel):
    """Settings for a single vault."""

    home: Path = Field(default_factory=lambda: get_vault_home())
    auto_enroll: bool = Field(
        default=True, description="Seed a review card, due immediately, for every new note"
    )
    title_max_length: int = Field(default=100, ge=1)
    busy_timeout: float = Field(default=5.0, ge=0, description="Seconds to wait for the write lock")
    encryption_enabled: bool = Field(default=False, description="Reserved, has no effect yet")

    @property
    def db_path(self) -> Path:
        return self.home / DB_FILENAME


def get_config_dir() -> Path:
    """Get the config directory (XDG_CONFIG_HOME/quicknote)."""
    base = Path(os.environ.get("XDG_CONFIG_HOME", DEFAULT_CONFIG_HOME))
    return base / "quicknote"


def get_portable_home() -> Path | None:
    """Return the `data/` folder beside the running program, if there is one."""
    if not sys.argv or not sys.argv[0]:
        return None
    candidate = Path(sys.argv[0]).resolve().parent / PORTABLE_DIRNAME
    return candidate if candidate.is_dir() else None


def get_vault_home() -> Path:
    """Get the vault directory (QUICKNOTE_HOME, portable data/, or ~/quicknote)."""
    if env_home := os.environ.get("QUICKNOTE_HOME"):
        return Path(env_home)
    if portable := get_portable_home():
        return portable
    return DEFAULT_DATA_HOME


def get_config_path() -> Path:
    """Get the path to config.toml."""
    return get_config_dir() / "config.toml"


def get_db_path() -> Path:
    """Get the path to vault.db."""
    return get_vault_home() / DB_FILENAME


def load_config() -> dict[str, Any]:
    """
    Load configuration from config.toml.

    Returns default config if file doesn't exist.
    """
    config_path = get_config_path()

    if not config_path.exists():
        return get_default_config()

    # Lazy import tomli only when needed
    import tomli

    with open(config_path, "rb") as f:
        return tomli.load(f)


def get_default_config() -> dict[str, Any]:
    """Return default configuration."""
    return {
        "vault": {
            "home": str(get_vault_home()),
            "auto_enroll": True,
            "title_max_length": 100,
        },
        "storage": {
            "busy_timeout": 5.0,
        },
    }


def load_vault_config(config: dict[str, Any] | None = None) -> VaultConfig:
    """
    Build a VaultConfig from the raw config tables.

    QUICKNOTE_HOME, then a portable `data/` folder, win over the `home`
    key in config.toml.
    """
    config = config if config is not None else load_config()
    vault = dict(config.get("vault", {}))
    storage = config.get("storage", {})

    if "busy_timeout" in storage:
        vault["busy_timeout"] = storage["busy_timeout"]
    if "encryption_enabled" in storage:
        vault["encryption_enabled"] = storage["encryption_enabled"]
    if os.environ.get("QUICKNOTE_HOME") or get_portable_home() or "home" not in vault:
        vault["home"] = get_vault_home()
    else:
        vault["home"] = Path(vault["home"]).expanduser()

    return VaultConfig(**vault)
