"""Script processor for ``#@dependency`` and ``#@repository`` directives.

Directive lines are collected during preprocessing and removed from the
script body. One deferred callback then registers every repository and grabs
every dependency, in declaration order, before the body runs.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from re import Pattern
from typing import Any

from ..engine.repositories import parse_repository
from ..errors import DirectiveStateError
from ..errors import GrabError
from ..errors import ScriptPreparationError
from ..service import GrabService
from ..spec import COORDINATES_KEY
from ..spec import DependencySpec
from .info import ScriptInfo
from .info import ScriptModule
from .parse import parse_directive_args

logger = logging.getLogger(__name__)

DIRECTIVE_PATTERN: Pattern = re.compile(r"^#@ *(dependency|repository)\(", re.IGNORECASE)

ArgumentParser = Callable[[str], dict[str, Any]]


class ProcessorState(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    FINALIZED = "finalized"


@dataclass
class DirectiveBatch:
    """Raw argument strings collected from one script, in declaration order."""

    dependencies: list[str] = field(default_factory=list)
    repositories: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.dependencies and not self.repositories


class DirectiveCallback:
    """Registers repositories, then grabs dependencies. Runs at most once."""

    def __init__(self, batch: DirectiveBatch, grab_service: GrabService, parser: ArgumentParser):
        self.batch = batch
        self.grab_service = grab_service
        self.parser = parser
        self.executed = False

    def invoke(self, module: ScriptModule) -> None:
        """Run the collected directives.

        Every argument is parsed and validated before any repository is
        added or dependency grabbed.

        Raises:
            DirectiveStateError: Already invoked
            ScriptPreparationError: A directive failed to parse, validate or resolve
        """
        if self.executed:
            raise DirectiveStateError(f"Directives for script '{module.info.name}' already executed")
        self.executed = True

        try:
            repositories = [_repository_spec(self.parser(arg)) for arg in self.batch.repositories]
            dependencies = [self.parser(arg) for arg in self.batch.dependencies]
            for repository in repositories:
                parse_repository(repository)
            for dependency in dependencies:
                DependencySpec.from_mapping(dependency)

            for repository in repositories:
                self.grab_service.add_resolver(repository)
            for dependency in dependencies:
                self.grab_service.grab(dependency)
        except GrabError as e:
            raise ScriptPreparationError(module.info.name, e) from e


def _repository_spec(arguments: dict[str, Any]) -> dict[str, Any]:
    """Treat a lone positional string as the repository URL."""
    if COORDINATES_KEY in arguments and "url" not in arguments and "root" not in arguments:
        arguments = dict(arguments)
        arguments["url"] = arguments.pop(COORDINATES_KEY)
    return arguments


class GrabScriptProcessor:
    """Collect dependency directives during a preprocessing pass.

    States: idle -> collecting (``begin``) -> finalized (``end``).
    """

    def __init__(self, grab_service: GrabService, parser: ArgumentParser = parse_directive_args):
        self.grab_service = grab_service
        self.parser = parser
        self.state = ProcessorState.IDLE
        self.info: ScriptInfo | None = None
        self.batch = DirectiveBatch()

    def begin(self, info: ScriptInfo) -> None:
        self.info = info
        self.batch = DirectiveBatch()
        self.state = ProcessorState.COLLECTING

    def process(self, line: str) -> str:
        """Collect a directive line, or pass any other line through.

        Returns:
            ``""`` for a directive line, otherwise the line unchanged
        """
        if self.state is not ProcessorState.COLLECTING:
            raise DirectiveStateError(f"process() called while {self.state.value}; call begin() first")

        match = DIRECTIVE_PATTERN.match(line)
        if match is None:
            return line

        kind = match.group(1).lower()
        arg = line[match.end() - 1 :].rstrip("\r\n")
        if kind == "dependency":
            self.batch.dependencies.append(arg)
        else:
            self.batch.repositories.append(arg)

        logger.debug(f"Collected {kind} directive {arg}")
        return ""

    def end(self) -> None:
        """Finish the pass, registering one callback if anything was collected."""
        if self.state is not ProcessorState.COLLECTING or self.info is None:
            raise DirectiveStateError(f"end() called while {self.state.value}; call begin() first")
        self.state = ProcessorState.FINALIZED

        if self.batch.is_empty():
            return

        self.info.callbacks.append(DirectiveCallback(self.batch, self.grab_service, self.parser))
        logger.debug(
            f"Registered directives for {self.info.name}: "
            f"{len(self.batch.repositories)} repositories, {len(self.batch.dependencies)} dependencies"
        )
