"""Runtime configuration and config-file loading.

``RuntimeConfig`` carries every environment-driven toggle explicitly;
``RuntimeConfig.from_env`` is the only function that reads process state.
Config files are YAML or JSON under ``<home>/config/``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from capcat.errors import ConfigError
from capcat.registry.models import ProviderConfig, Registry, dict_to_provider, dict_to_registry

logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}
CONFIG_SUFFIXES = (".yaml", ".yml", ".json")


@dataclass
class RuntimeConfig:
    """Explicit runtime toggles for sync, resolution and installation."""

    home: Path = field(default_factory=Path.cwd)
    offline: bool = False
    dry_run: bool = False
    today: str = ""  # YYYY-MM-DD override for lastSeenAt
    stale_after_hours: int = 48
    install_timeout: int = 600
    env: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, home: str | Path | None = None
    ) -> "RuntimeConfig":
        environ = dict(os.environ if environ is None else environ)
        return cls(
            home=Path(home or environ.get("CAPCAT_HOME") or Path.cwd()),
            offline=environ.get("CAPCAT_OFFLINE", "").lower() in TRUTHY,
            dry_run=environ.get("CAPCAT_INSTALL_DRY_RUN", "").lower() in TRUTHY,
            today=environ.get("CAPCAT_SYNC_TODAY", ""),
            env=environ,
        )

    @property
    def config_dir(self) -> Path:
        return Path(self.home) / "config"

    @property
    def data_dir(self) -> Path:
        return Path(self.home) / "data"

    def effective_today(self) -> str:
        return self.today or datetime.now(timezone.utc).strftime("%Y-%m-%d")

    def token_for(self, env_name: str) -> str:
        return (self.env.get(env_name) or "").strip() if env_name else ""


def read_config_file(config_dir: Path, stem: str) -> Any:
    """Load ``<stem>.yaml|.yml|.json`` from ``config_dir``; None if absent."""
    for suffix in CONFIG_SUFFIXES:
        path = Path(config_dir) / f"{stem}{suffix}"
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    return yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Could not parse {path}: {e}") from e
    return None


def load_registries(config: RuntimeConfig) -> list[Registry]:
    """Load enabled registries from ``registries.yaml``."""
    data = read_config_file(config.config_dir, "registries")
    if data is None:
        raise ConfigError(
            f"No registries config found in {config.config_dir}",
            hint="create config/registries.yaml with a 'registries' list",
        )
    if not isinstance(data, dict) or not isinstance(data.get("registries"), list):
        raise ConfigError("registries config must contain a 'registries' list")

    registries = [dict_to_registry(entry) for entry in data["registries"]]
    ids = [r.id for r in registries]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate registry ids: {', '.join(duplicates)}")
    return [r for r in registries if r.enabled]


def configured_registry_ids(config: RuntimeConfig) -> list[str]:
    """Ids of enabled registries; empty when no registries config exists."""
    if read_config_file(config.config_dir, "registries") is None:
        return []
    return [r.id for r in load_registries(config)]


def load_providers(config: RuntimeConfig) -> dict[str, ProviderConfig]:
    """Load enabled provider policies; no file means no provider policy."""
    data = read_config_file(config.config_dir, "providers")
    if data is None:
        return {}
    if not isinstance(data, dict) or not isinstance(data.get("providers"), list):
        raise ConfigError("providers config must contain a 'providers' list")
    providers = [dict_to_provider(entry) for entry in data["providers"]]
    return {p.id: p for p in providers if p.enabled}
