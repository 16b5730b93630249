"""Default artifact engine.

Fetches artifacts from Maven-layout repositories into a local cache and
records which isolation context each grab was injected into.
"""

from .config import EngineConfig
from .config import get_local_config
from .engine import GrabEngine
from .repositories import FileRepository
from .repositories import HttpRepository
from .repositories import Repository
from .repositories import parse_repository

__all__ = [
    "EngineConfig",
    "FileRepository",
    "GrabEngine",
    "HttpRepository",
    "Repository",
    "get_local_config",
    "parse_repository",
]
