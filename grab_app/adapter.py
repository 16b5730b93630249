"""Uniform request/response layer over the artifact engine.

The engine is built lazily on first use and shared by every caller. If it
cannot be built, every operation returns an empty result instead of raising.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any

from .engine import EngineConfig
from .engine import GrabEngine
from .engine import get_local_config
from .errors import GrabError
from .isolation import ContextSelector
from .isolation import IsolationContext
from .isolation import system_context
from .settings import SettingsManager
from .spec import CONTEXT_SETTING
from .spec import REF_OBJECT_SETTING
from .spec import DependencySpec

logger = logging.getLogger(__name__)

EngineFactory = Callable[[], GrabEngine]


def create_default_engine(settings_manager: SettingsManager | None = None) -> GrabEngine:
    """Build the engine from the bundled config and the YAML settings.

    Repositories from settings are consulted before the bundled defaults, in
    the order they are listed.
    """
    manager = settings_manager or SettingsManager()
    root = manager.get_root()
    root.mkdir(parents=True, exist_ok=True)

    engine = GrabEngine(root, EngineConfig.load(get_local_config()))
    for repository in reversed(manager.get_repositories()):
        engine.add_resolver(repository)

    logger.debug(f"Initialized {engine!r}")
    return engine


class ResolverAdapter:
    """Validate requests, pick isolation contexts and call the engine."""

    def __init__(
        self,
        engine_factory: EngineFactory | None = None,
        selector: ContextSelector | None = None,
    ):
        """Initialize adapter.

        Args:
            engine_factory: Builds the engine on first use (default: create_default_engine)
            selector: Context selector (default: falls back to the sys.path context)
        """
        self._engine_factory = engine_factory or create_default_engine
        self._engine: GrabEngine | None = None
        self._initialized = False
        self._lock = threading.Lock()
        self.selector = selector or ContextSelector(system_context())

    @property
    def engine(self) -> GrabEngine | None:
        """The shared engine, or None if it could not be built.

        Built at most once; concurrent first callers wait for the single build.
        """
        if self._initialized:
            return self._engine

        with self._lock:
            if not self._initialized:
                try:
                    self._engine = self._engine_factory()
                except (GrabError, OSError) as e:
                    logger.error(f"Grab engine unavailable, grabs will be skipped: {e}")
                    self._engine = None
                self._initialized = True
        return self._engine

    def grab(self, options: Mapping[str, Any], dependencies: Sequence[Mapping[str, Any]]) -> None:
        """Resolve dependencies and inject them into the selected context.

        Raises:
            ConfigurationError: A dependency spec is invalid
            IsolationError: No plain context is available
            ResolutionError: The engine failed
        """
        engine = self.engine
        if engine is None:
            return

        specs = [DependencySpec.from_mapping(d) for d in dependencies]
        context = self.selector.select(options.get(CONTEXT_SETTING), options.get(REF_OBJECT_SETTING))
        logger.debug(f"Grabbing {', '.join(str(s) for s in specs)} into {context.name}")
        engine.grab(options, specs, context)

    def grab_endorsed(self, name: str, options: Mapping[str, Any]) -> None:
        """Grab a module by name using the engine's endorsed coordinates."""
        engine = self.engine
        if engine is None:
            return

        dependency = {
            "group": engine.config.endorsed_group,
            "module": name,
            "version": engine.config.endorsed_version,
        }
        self.grab(options, [dependency])

    def resolve(
        self,
        options: Mapping[str, Any],
        dependencies: Sequence[Mapping[str, Any]],
        deps_info: list[dict[str, Any]] | None = None,
    ) -> list[str]:
        """Resolve dependencies to artifact URIs without loading them."""
        engine = self.engine
        if engine is None:
            return []

        specs = [DependencySpec.from_mapping(d) for d in dependencies]
        return [path.as_uri() for path in engine.resolve(options, specs, deps_info)]

    def list_dependencies(self, context: IsolationContext) -> list[dict[str, Any]]:
        engine = self.engine
        if engine is None:
            return []
        return engine.list_dependencies(context)

    def dependencies(self) -> dict[str, dict[str, list[str]]]:
        engine = self.engine
        if engine is None:
            return {}
        return engine.enumerate()

    def add_resolver(self, spec: Mapping[str, Any]) -> None:
        engine = self.engine
        if engine is None:
            return
        engine.add_resolver(spec)
