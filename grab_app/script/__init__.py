"""Script directive support: ``#@dependency(...)`` and ``#@repository(...)``."""

from .info import ScriptCallback
from .info import ScriptInfo
from .info import ScriptModule
from .parse import parse_directive_args
from .process import DirectiveBatch
from .process import GrabScriptProcessor
from .process import ProcessorState
from .runner import prepare_script
from .runner import run_script

__all__ = [
    "DirectiveBatch",
    "GrabScriptProcessor",
    "ProcessorState",
    "ScriptCallback",
    "ScriptInfo",
    "ScriptModule",
    "parse_directive_args",
    "prepare_script",
    "run_script",
]
