"""Engine configuration loading.

The engine reads its default repositories from a file path, so the bundled
resource is first copied to a temporary file.
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

import yaml

from ..data import CONFIG_RESOURCE
from ..data import read_config_resource

logger = logging.getLogger(__name__)

DEFAULT_ENDORSED_GROUP = "org.scijava.endorsed"


@dataclass
class EngineConfig:
    """Default repositories and endorsed-module coordinates."""

    repositories: list[dict[str, Any]] = field(default_factory=list)
    endorsed_group: str = DEFAULT_ENDORSED_GROUP
    endorsed_version: str = "*"

    @classmethod
    def load(cls, path: Path | None) -> "EngineConfig":
        """Load config from a YAML file.

        A missing or unreadable file yields an empty config (no default
        repositories); explicitly added repositories still work.
        """
        if path is None:
            return cls()

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to read engine config {path}: {e}")
            return cls()

        if not isinstance(data, dict):
            logger.error(f"Engine config {path} is not a mapping, ignoring it")
            return cls()

        repositories = [r for r in data.get("repositories") or [] if isinstance(r, dict) and r.get("root")]
        endorsed = data.get("endorsed") or {}
        return cls(
            repositories=repositories,
            endorsed_group=str(endorsed.get("group", DEFAULT_ENDORSED_GROUP)),
            endorsed_version=str(endorsed.get("version", "*")),
        )


def get_local_config(resource: str = CONFIG_RESOURCE) -> Path | None:
    """Copy the bundled config resource to a temporary file.

    The temp file is left behind; there is one per process.

    Returns:
        Path to the copy, or None when the resource is missing or cannot be copied
    """
    try:
        content = read_config_resource(resource)
    except (FileNotFoundError, OSError) as e:
        logger.error(f"Config resource {resource} unavailable, no default repositories configured: {e}")
        return None

    stem, suffix = os.path.splitext(resource)
    try:
        fd, name = tempfile.mkstemp(prefix=stem, suffix=suffix)
        with os.fdopen(fd, "wb") as f:
            f.write(content)
    except OSError as e:
        logger.error(f"Failed to copy config resource {resource} to a temp file: {e}")
        return None

    logger.debug(f"Copied config resource {resource} to {name}")
    return Path(name)
