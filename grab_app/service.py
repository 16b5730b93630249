"""Grab service: the public facade for acquiring dependencies at runtime.

Every operation is a no-op (or returns an empty result) while grabbing is
disabled. Request defaults come from the service's ``ResolverSettings`` and
only fill keys the caller left out.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .adapter import ResolverAdapter
from .adapter import create_default_engine
from .isolation import IsolationContext
from .isolation import system_context
from .settings import ResolverSettings
from .settings import SettingsManager
from .spec import AUTO_DOWNLOAD_SETTING
from .spec import CONTEXT_SETTING
from .spec import DISABLE_CHECKSUMS_SETTING
from .spec import POLICY_KEYS
from .spec import REF_OBJECT_SETTING

logger = logging.getLogger(__name__)


class GrabService:
    """Acquire dependencies at runtime on behalf of a host application."""

    def __init__(
        self,
        settings: ResolverSettings | None = None,
        adapter: ResolverAdapter | None = None,
        context: IsolationContext | None = None,
    ):
        """Initialize grab service.

        Args:
            settings: Grab flags (default: from environment)
            adapter: Engine adapter (default: lazily built default engine)
            context: Host execution context used when a request names none
                     (default: the sys.path context)
        """
        self.settings = settings or ResolverSettings.from_environment()
        self.adapter = adapter or ResolverAdapter()
        self.context = context or system_context()

    # -- Feature flags --

    def is_grab_enabled(self) -> bool:
        """Kill-switch for every operation. Enabled by default."""
        return self.settings.grab_enabled

    def set_grab_enabled(self, grab_enabled: bool) -> None:
        self.settings.grab_enabled = grab_enabled

    def get_enable_auto_download(self) -> bool:
        """Whether missing artifacts are downloaded.

        Applied to grab and resolve requests that do not set ``autoDownload``
        themselves. When false, only previously downloaded artifacts are used,
        which may make a grab fail. Enabled by default.
        """
        return self.settings.auto_download

    def set_enable_auto_download(self, enable_auto_download: bool) -> None:
        self.settings.auto_download = enable_auto_download

    def get_disable_checksums(self) -> bool:
        """Global flag to ignore checksums. False by default."""
        return self.settings.disable_checksums

    def set_disable_checksums(self, disable_checksums: bool) -> None:
        self.settings.disable_checksums = disable_checksums

    # -- Operations --

    def grab(self, dependency: str | Mapping[str, Any], *dependencies: Mapping[str, Any]) -> None:
        """Resolve dependencies and make them loadable.

        Forms:
            ``grab("name")``: an endorsed module by name
            ``grab(spec)``: a single dependency mapping
            ``grab(options, dep1, dep2, ...)``: shared options plus dependencies

        Raises:
            ConfigurationError: A dependency spec is invalid
            IsolationError: No plain context can receive the artifacts
            ResolutionError: The engine failed to resolve or fetch
        """
        if not self.settings.grab_enabled:
            logger.debug(f"Grab disabled, skipping {dependency!r}")
            return

        if isinstance(dependency, str):
            self.adapter.grab_endorsed(dependency, self._with_defaults({}, with_context=True))
            return

        options = self._with_defaults(dependency, with_context=True)
        if dependencies:
            self.adapter.grab(options, _merge_options(options, dependencies))
        else:
            self.adapter.grab(options, [options])

    def resolve(
        self,
        options: Mapping[str, Any],
        *dependencies: Mapping[str, Any],
        deps_info: list[dict[str, Any]] | None = None,
    ) -> list[str]:
        """Resolve dependencies to artifact URIs without loading them.

        Args:
            options: Shared options (``autoDownload``, ``disableChecksums``)
            dependencies: Dependency mappings
            deps_info: If given, receives one ``{group, module, revision}``
                       dict per resolved artifact

        Returns:
            Artifact URIs, empty when grabbing is disabled
        """
        if not self.settings.grab_enabled or not dependencies:
            return []
        options = self._with_defaults(options)
        return self.adapter.resolve(options, _merge_options(options, dependencies), deps_info)

    def list_dependencies(self, context: IsolationContext) -> list[dict[str, Any]]:
        """Dependencies grabbed into context."""
        if not self.settings.grab_enabled:
            return []
        return self.adapter.list_dependencies(context)

    def dependencies(self) -> dict[str, dict[str, list[str]]]:
        """Everything grabbed so far as ``{group: {module: [versions]}}``."""
        if not self.settings.grab_enabled:
            return {}
        return self.adapter.dependencies()

    def add_resolver(self, spec: Mapping[str, Any]) -> None:
        """Register an additional repository (``name``, ``root``/``url``, ``m2Compatible``)."""
        if not self.settings.grab_enabled:
            return
        self.adapter.add_resolver(spec)

    def _with_defaults(self, request: Mapping[str, Any], with_context: bool = False) -> dict[str, Any]:
        """Copy request, filling policy keys the caller left out."""
        result = dict(request)
        result.setdefault(AUTO_DOWNLOAD_SETTING, self.settings.auto_download)
        result.setdefault(DISABLE_CHECKSUMS_SETTING, self.settings.disable_checksums)
        if with_context and result.get(CONTEXT_SETTING) is None and result.get(REF_OBJECT_SETTING) is None:
            result[CONTEXT_SETTING] = self.context
        return result

    def __repr__(self) -> str:
        return f"GrabService(enabled={self.settings.grab_enabled}, context={self.context.name})"


def _merge_options(options: Mapping[str, Any], dependencies: tuple[Mapping[str, Any], ...]) -> list[dict[str, Any]]:
    """Fill each dependency's absent policy keys from the shared options."""
    shared = {key: value for key, value in options.items() if key in POLICY_KEYS}
    return [{**shared, **dependency} for dependency in dependencies]


def create_grab_service(
    settings_manager: SettingsManager | None = None,
    context: IsolationContext | None = None,
) -> GrabService:
    """Create a grab service configured from environment and YAML settings."""
    manager = settings_manager or SettingsManager()
    adapter = ResolverAdapter(lambda: create_default_engine(manager))
    return GrabService(settings=manager.load_resolver_settings(), adapter=adapter, context=context)
