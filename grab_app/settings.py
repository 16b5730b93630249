"""Resolver settings and the YAML settings files they can come from.

Manages three-scope settings system:
- User global (~/.grab/settings.yaml)
- Project (.grab/settings.yaml)
- Local (.grab/settings.local.yaml)

Recognized layout::

    grab:
      enabled: true
      autoDownload: true
      disableChecksums: false
      root: ~/.grab
    repositories:
      - name: internal
        root: https://repo.example.com/maven
        m2Compatible: true
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

logger = logging.getLogger(__name__)

ENABLE_ENV = "GRAB_ENABLE"
AUTO_DOWNLOAD_ENV = "GRAB_AUTO_DOWNLOAD"
DISABLE_CHECKSUMS_ENV = "GRAB_DISABLE_CHECKSUMS"
ROOT_ENV = "GRAB_ROOT"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    logger.warning(f"Ignoring unrecognized value {raw!r} for {name}, using {default}")
    return default


class ResolverSettings(BaseModel):
    """Process-wide grab flags.

    Read on every operation to fill request defaults. Concurrent writers are
    last-write-wins.
    """

    model_config = ConfigDict(validate_assignment=True)

    grab_enabled: bool = Field(default=True, description="Kill-switch for every grab operation")
    auto_download: bool = Field(default=True, description="Download artifacts missing from the local cache")
    disable_checksums: bool = Field(default=False, description="Skip checksum verification of downloads")

    @classmethod
    def from_environment(
        cls,
        env: Mapping[str, str] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> "ResolverSettings":
        """Build settings from environment variables, then YAML overrides.

        Args:
            env: Environment mapping (default: os.environ)
            overrides: The ``grab:`` section of merged YAML settings

        Returns:
            ResolverSettings instance
        """
        env = os.environ if env is None else env
        settings = cls(
            grab_enabled=_env_flag(env, ENABLE_ENV, True),
            auto_download=_env_flag(env, AUTO_DOWNLOAD_ENV, True),
            disable_checksums=_env_flag(env, DISABLE_CHECKSUMS_ENV, False),
        )

        if overrides:
            if "enabled" in overrides:
                settings.grab_enabled = overrides["enabled"]
            if "autoDownload" in overrides:
                settings.auto_download = overrides["autoDownload"]
            if "disableChecksums" in overrides:
                settings.disable_checksums = overrides["disableChecksums"]

        return settings


class SettingsManager:
    """Manages grab settings across user/project/local scopes."""

    def __init__(self, grab_dir: Path | None = None, user_dir: Path | None = None):
        """Initialize settings manager with standard paths.

        Args:
            grab_dir: Base directory for project/local settings (for testing).
                      If None, uses .grab in current directory.
            user_dir: Base directory for user settings (default: ~/.grab)
        """
        if grab_dir is None:
            grab_dir = Path(".grab")
        if user_dir is None:
            user_dir = Path.home() / ".grab"

        self.user_settings_file = user_dir / "settings.yaml"
        self.project_settings_file = grab_dir / "settings.yaml"
        self.local_settings_file = grab_dir / "settings.local.yaml"

    def scope_file(self, scope: str) -> Path:
        file_map = {
            "user": self.user_settings_file,
            "project": self.project_settings_file,
            "local": self.local_settings_file,
        }
        return file_map.get(scope, self.project_settings_file)

    def get_grab_section(self) -> dict[str, Any]:
        """Get the merged ``grab:`` section."""
        section = self.get_merged_settings().get("grab")
        return section if isinstance(section, dict) else {}

    def load_resolver_settings(self, env: Mapping[str, str] | None = None) -> ResolverSettings:
        """Environment defaults overridden by the merged YAML ``grab:`` section."""
        return ResolverSettings.from_environment(env, self.get_grab_section())

    def get_root(self, env: Mapping[str, str] | None = None) -> Path:
        """Get the engine root directory.

        Resolution order:
        1. GRAB_ROOT environment variable
        2. grab.root from merged settings
        3. ~/.grab
        """
        env = os.environ if env is None else env
        if env_root := env.get(ROOT_ENV):
            return Path(env_root).expanduser()
        if configured := self.get_grab_section().get("root"):
            return Path(str(configured)).expanduser()
        return Path.home() / ".grab"

    def get_repositories(self) -> list[dict[str, Any]]:
        """Get configured repositories from all scopes.

        Repositories accumulate across scopes (user first); a later scope
        replaces an entry with the same name.
        """
        by_name: dict[str, dict[str, Any]] = {}

        for path in (self.user_settings_file, self.project_settings_file, self.local_settings_file):
            settings = self._read_settings(path)
            if not settings:
                continue
            for entry in settings.get("repositories") or []:
                if not isinstance(entry, dict) or not entry.get("root"):
                    logger.warning(f"Skipping malformed repository entry in {path}: {entry!r}")
                    continue
                name = entry.get("name") or entry["root"]
                by_name[name] = {**entry, "name": name}

        return list(by_name.values())

    def add_repository(self, name: str, root: str, scope: str = "project", m2_compatible: bool = True) -> Path:
        """Add (or replace) a repository at scope.

        Returns:
            Path of the settings file written
        """
        target_file = self.scope_file(scope)
        settings = self._read_settings(target_file) or {}
        repositories = [r for r in settings.get("repositories") or [] if isinstance(r, dict) and r.get("name") != name]
        repositories.append({"name": name, "root": root, "m2Compatible": m2_compatible})
        settings["repositories"] = repositories
        self._write_settings(target_file, settings)
        logger.info(f"Added {scope} repository {name}: {root}")
        return target_file

    def remove_repository(self, name: str, scope: str = "project") -> bool:
        """Remove repository from scope.

        Returns:
            True if removed, False if not found
        """
        target_file = self.scope_file(scope)
        settings = self._read_settings(target_file)
        if not settings or not settings.get("repositories"):
            return False

        remaining = [r for r in settings["repositories"] if not (isinstance(r, dict) and r.get("name") == name)]
        if len(remaining) == len(settings["repositories"]):
            return False

        if remaining:
            settings["repositories"] = remaining
        else:
            del settings["repositories"]

        self._write_settings(target_file, settings)
        logger.info(f"Removed {scope} repository {name}")
        return True

    def set_flag(self, key: str, value: Any, scope: str = "local") -> None:
        """Persist one ``grab:`` key at scope."""
        self._update_settings(self.scope_file(scope), {"grab": {key: value}})
        logger.info(f"Set grab.{key}={value!r} at {scope} scope")

    def get_merged_settings(self) -> dict[str, Any]:
        """Get merged settings from all scopes.

        Merge order (later overrides earlier):
        1. User settings
        2. Project settings
        3. Local settings
        """
        merged: dict[str, Any] = {}

        for path in (self.user_settings_file, self.project_settings_file, self.local_settings_file):
            settings = self._read_settings(path)
            if settings:
                merged = self._deep_merge(merged, settings)

        return merged

    def _read_settings(self, path: Path) -> dict[str, Any] | None:
        """Read settings from YAML file.

        Returns:
            Settings dict or None if file doesn't exist or cannot be parsed
        """
        if not path.exists():
            return None

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
                return data if isinstance(data, dict) else {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to read settings from {path}: {e}")
            return None

    def _write_settings(self, path: Path, settings: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(path, "w", encoding="utf-8") as f:
                yaml.dump(settings, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            logger.error(f"Failed to write settings to {path}: {e}")
            raise

    def _update_settings(self, path: Path, updates: dict[str, Any]) -> None:
        existing = self._read_settings(path) or {}
        self._write_settings(path, self._deep_merge(existing, updates))

    def _deep_merge(self, base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
        result = base.copy()

        for key, value in overlay.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
