"""Artifact repositories.

Concrete repository types the engine fetches from:
- HttpRepository: Remote Maven-layout repository over HTTP(S)
- FileRepository: Local directory with the same layout
"""

from __future__ import annotations

import logging
from abc import ABC
from abc import abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx

from ..errors import ConfigurationError
from ..errors import ResolutionError
from ..spec import DependencySpec

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class Repository(ABC):
    """A named artifact root."""

    def __init__(self, name: str, root: str, m2_compatible: bool = True):
        self.name = name
        self.root = root.rstrip("/")
        self.m2_compatible = m2_compatible

    def module_path(self, spec: DependencySpec) -> str:
        group = spec.group.replace(".", "/") if self.m2_compatible else spec.group
        return f"{group}/{spec.module}"

    def artifact_path(self, spec: DependencySpec) -> str:
        return f"{self.module_path(spec)}/{spec.version}/{spec.file_name}"

    def metadata_path(self, spec: DependencySpec) -> str:
        return f"{self.module_path(spec)}/maven-metadata.xml"

    def url_for(self, relative: str) -> str:
        return f"{self.root}/{relative}"

    @abstractmethod
    def fetch(self, relative: str) -> bytes | None:
        """Fetch a file below the root.

        Returns:
            File content, or None if the repository does not have it

        Raises:
            ResolutionError: The repository could not be reached
        """

    def close(self) -> None:
        """Release any held connections."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name}: {self.root})"


class HttpRepository(Repository):
    """Remote repository fetched with httpx."""

    def __init__(
        self,
        name: str,
        root: str,
        m2_compatible: bool = True,
        client: httpx.Client | None = None,
    ):
        super().__init__(name, root, m2_compatible)
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=DEFAULT_TIMEOUT, follow_redirects=True)
        return self._client

    def fetch(self, relative: str) -> bytes | None:
        url = self.url_for(relative)
        try:
            response = self.client.get(url)
        except httpx.HTTPError as e:
            raise ResolutionError(f"Failed to reach repository {self.name} at {url}: {e}") from e

        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ResolutionError(f"Repository {self.name} returned {response.status_code} for {url}") from e
        return response.content

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None


class FileRepository(Repository):
    """Repository on the local filesystem."""

    def __init__(self, name: str, root: str | Path, m2_compatible: bool = True):
        if isinstance(root, str) and root.startswith("file://"):
            root = root[7:]
        self.path = Path(root).expanduser().resolve()
        super().__init__(name, self.path.as_uri(), m2_compatible)

    def fetch(self, relative: str) -> bytes | None:
        target = self.path / relative
        if not target.is_file():
            return None
        try:
            return target.read_bytes()
        except OSError as e:
            raise ResolutionError(f"Failed to read {target} from repository {self.name}: {e}") from e


def parse_repository(spec: Mapping[str, Any], client: httpx.Client | None = None) -> Repository:
    """Build a repository from a resolver spec mapping.

    Accepted keys: ``name``, ``root`` (or ``url``), ``m2Compatible``.

    Raises:
        ConfigurationError: Missing or unsupported root
    """
    root = spec.get("root") or spec.get("url")
    if not root:
        raise ConfigurationError(f"Repository spec needs a 'root' or 'url': {dict(spec)!r}")
    if spec.get("root") and spec.get("url") and spec["root"] != spec["url"]:
        raise ConfigurationError(f"Conflicting values for 'root': {spec['root']!r} and url={spec['url']!r}")

    root = str(root)
    name = str(spec.get("name") or root)
    m2_compatible = bool(spec.get("m2Compatible", True))

    if root.startswith(("http://", "https://")):
        return HttpRepository(name, root, m2_compatible, client=client)
    if root.startswith(("file://", "/", ".", "~")):
        return FileRepository(name, root, m2_compatible)
    raise ConfigurationError(f"Unsupported repository root '{root}' for {name}")
