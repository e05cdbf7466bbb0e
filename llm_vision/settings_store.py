"""Persistence helpers for user configuration."""

from __future__ import annotations

import os
from pathlib import Path

from .config import AppConfig
from .credentials import FileCredentialStore


class SettingsStore:
    """Load and save analysis settings and credentials from well-known paths."""

    def __init__(self, path: Path | None = None, credentials_path: Path | None = None) -> None:
        self._path = path or default_settings_path()
        self._credentials_path = credentials_path or self._path.with_name("credentials.yaml")

    @property
    def path(self) -> Path:
        return self._path

    @property
    def credentials_path(self) -> Path:
        return self._credentials_path

    def load(self) -> AppConfig:
        if not self._path.exists():
            return AppConfig()
        return AppConfig.load(self._path)

    def save(self, config: AppConfig) -> None:
        config.save(self._path)

    def credential_store(self) -> FileCredentialStore:
        return FileCredentialStore(self._credentials_path)


def default_config_dir() -> Path:
    if os.name == "nt":
        base = Path(os.getenv("APPDATA", Path.home() / "AppData" / "Roaming"))
    else:
        base = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base.expanduser() / "llm_vision"


def default_settings_path() -> Path:
    return default_config_dir() / "settings.yaml"
