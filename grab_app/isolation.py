"""Isolation contexts: the loading boundaries grabbed artifacts are injected into.

Contexts are created and owned by the host. They form a chain through their
``parent`` links; the root has none. A context is *plain* when arbitrary code
may be injected into it without disturbing host invariants. The selector only
chooses among existing contexts, it never creates one.
"""

from __future__ import annotations

import logging
import sys
from abc import ABC
from abc import abstractmethod
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from .errors import IsolationError

logger = logging.getLogger(__name__)


class IsolationContext(ABC):
    """A loading boundary with a parent link."""

    def __init__(self, name: str, parent: IsolationContext | None = None):
        self.name = name
        self.parent = parent

    @abstractmethod
    def is_plain(self) -> bool:
        """True when this boundary is safe to augment with arbitrary artifacts."""

    @abstractmethod
    def inject(self, artifact: Path) -> None:
        """Make an artifact loadable from this context."""

    @property
    @abstractmethod
    def search_path(self) -> list[str]:
        """Locations searched by this context, own entries first."""

    def ancestry(self) -> Iterator[IsolationContext]:
        """Yield this context and then each parent up to the root."""
        current: IsolationContext | None = self
        while current is not None:
            yield current
            current = current.parent

    def __repr__(self) -> str:
        kind = "plain" if self.is_plain() else "specialized"
        return f"{type(self).__name__}({self.name!r}, {kind})"


class PathContext(IsolationContext):
    """A context holding its own list of artifact paths.

    ``specialized`` marks a boundary the host has already augmented; such a
    context is never chosen as an injection target.
    """

    def __init__(self, name: str, parent: IsolationContext | None = None, specialized: bool = False):
        super().__init__(name, parent)
        self.specialized = specialized
        self.paths: list[str] = []

    def is_plain(self) -> bool:
        return not self.specialized

    def inject(self, artifact: Path) -> None:
        entry = str(artifact)
        if entry not in self.paths:
            self.paths.append(entry)
            logger.debug(f"Injected {entry} into context {self.name}")

    @property
    def search_path(self) -> list[str]:
        inherited = self.parent.search_path if self.parent else []
        return self.paths + [p for p in inherited if p not in self.paths]


class SysPathContext(IsolationContext):
    """The interpreter's default import boundary (``sys.path``)."""

    def __init__(self, path: list[str] | None = None):
        super().__init__("sys.path")
        self._path = sys.path if path is None else path

    def is_plain(self) -> bool:
        return True

    def inject(self, artifact: Path) -> None:
        entry = str(artifact)
        if entry not in self._path:
            self._path.append(entry)
            logger.debug(f"Appended {entry} to sys.path")

    @property
    def search_path(self) -> list[str]:
        return list(self._path)


_system_context: SysPathContext | None = None


def system_context() -> SysPathContext:
    """Get the shared context wrapping ``sys.path``."""
    global _system_context
    if _system_context is None:
        _system_context = SysPathContext()
    return _system_context


def context_of(ref_object: Any) -> IsolationContext | None:
    """Return the context a host object declares via ``__isolation_context__``."""
    context = getattr(ref_object, "__isolation_context__", None)
    return context if isinstance(context, IsolationContext) else None


class ContextSelector:
    """Choose the context a grab injects into.

    The caller's context is never discovered by inspecting the call stack;
    the host passes it explicitly as ``default_context``.
    """

    def __init__(self, default_context: IsolationContext | None = None):
        self.default_context = default_context

    def select(
        self,
        requested: IsolationContext | None = None,
        ref_object: Any = None,
    ) -> IsolationContext:
        """Find the nearest plain context.

        Args:
            requested: Context named by the request, if any
            ref_object: Host object whose declared context stands in for
                        an absent ``requested``

        Returns:
            The first plain context walking up from the starting point

        Raises:
            IsolationError: No starting context, or no plain context up to the root
        """
        start = requested
        if start is None and ref_object is not None:
            start = context_of(ref_object)
        if start is None:
            start = self.default_context
        if start is None:
            raise IsolationError("No isolation context supplied and no default context configured")

        for candidate in start.ancestry():
            if candidate.is_plain():
                if candidate is not start:
                    logger.debug(f"Skipped specialized context {start.name}, using ancestor {candidate.name}")
                return candidate

        raise IsolationError(f"No suitable isolation context found for grab (started at {start.name})")
