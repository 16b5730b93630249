"""Prepare and run Python scripts that declare their own dependencies."""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from ..service import GrabService
from .info import ScriptInfo
from .info import ScriptModule
from .process import GrabScriptProcessor

logger = logging.getLogger(__name__)


def prepare_script(source: str, info: ScriptInfo, grab_service: GrabService) -> ScriptModule:
    """Run the directive preprocessing pass over source.

    Directive lines become blank lines, so line numbers in tracebacks still
    match the original file.
    """
    processor = GrabScriptProcessor(grab_service)
    processor.begin(info)

    lines = []
    for line in source.splitlines(keepends=True):
        content = line.rstrip("\r\n")
        ending = line[len(content) :]
        lines.append(processor.process(content) + ending)

    processor.end()
    return ScriptModule(info, "".join(lines))


def run_script(path: Path, grab_service: GrabService, argv: Sequence[str] = ()) -> dict[str, Any]:
    """Prepare a script file, grab its dependencies and execute it as ``__main__``.

    Returns:
        The namespace the script executed in
    """
    info = ScriptInfo.from_path(path)
    module = prepare_script(path.read_text(encoding="utf-8"), info, grab_service)
    logger.info(f"Running {path} ({len(info.callbacks)} deferred actions)")

    saved_argv = sys.argv
    sys.argv = [str(path), *argv]
    try:
        return module.run()
    finally:
        sys.argv = saved_argv
