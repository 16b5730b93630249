"""Script handles.

Running a script has two phases. In the prepare phase, processors read the
source line by line and may register callbacks on the ``ScriptInfo``. In the
execute phase, ``ScriptModule.run()`` invokes those callbacks exactly once and
then executes the processed body.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any
from typing import Protocol

from ..errors import DirectiveStateError
from ..errors import GrabError
from ..errors import ScriptPreparationError

logger = logging.getLogger(__name__)


class ScriptCallback(Protocol):
    """Action deferred until just before a script body runs."""

    def invoke(self, module: ScriptModule) -> None: ...


@dataclass
class ScriptInfo:
    """A script being prepared: identity plus registered callbacks."""

    name: str
    path: Path | None = None
    callbacks: list[ScriptCallback] = field(default_factory=list)

    @classmethod
    def from_path(cls, path: Path) -> ScriptInfo:
        return cls(name=path.name, path=path)


class ScriptModule:
    """Execution handle for one prepared script."""

    def __init__(self, info: ScriptInfo, source: str):
        self.info = info
        self.source = source
        self.callbacks_run = False

    def run_callbacks(self) -> None:
        """Invoke every registered callback in registration order.

        Raises:
            DirectiveStateError: Callbacks already ran for this module
            ScriptPreparationError: A callback failed
        """
        if self.callbacks_run:
            raise DirectiveStateError(f"Callbacks for script '{self.info.name}' already ran")
        self.callbacks_run = True

        for callback in self.info.callbacks:
            try:
                callback.invoke(self)
            except ScriptPreparationError:
                raise
            except GrabError as e:
                raise ScriptPreparationError(self.info.name, e) from e

    def run(self, namespace: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run callbacks, then execute the script body.

        Returns:
            The namespace the body executed in
        """
        self.run_callbacks()

        filename = str(self.info.path) if self.info.path else f"<{self.info.name}>"
        if namespace is None:
            namespace = {"__name__": "__main__"}
        namespace.setdefault("__file__", filename)

        logger.debug(f"Executing script body of {self.info.name}")
        code = compile(self.source, filename, "exec")
        exec(code, namespace)
        return namespace
