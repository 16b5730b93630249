"""The artifact engine: repository chain plus local cache.

Cache layout: ``<root>/grapes/<group>/<module>/<version>/<file>``.

The engine resolves exact versions and the ``latest`` aliases published in
``maven-metadata.xml``. It does no range or conflict solving and does not
follow transitive dependencies.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import threading
import weakref
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import httpx

from ..errors import ArtifactNotFoundError
from ..errors import ChecksumMismatchError
from ..errors import ConfigurationError
from ..errors import ResolutionError
from ..isolation import IsolationContext
from ..spec import AUTO_DOWNLOAD_SETTING
from ..spec import DISABLE_CHECKSUMS_SETTING
from ..spec import DependencySpec
from .config import EngineConfig
from .repositories import Repository
from .repositories import parse_repository

logger = logging.getLogger(__name__)

ENGINE_NAME = "grab"


class GrabEngine:
    """Fetch artifacts from a chain of repositories into a local cache."""

    name = ENGINE_NAME

    def __init__(
        self,
        root: Path,
        config: EngineConfig | None = None,
        client: httpx.Client | None = None,
    ):
        """Initialize engine.

        Args:
            root: Engine root directory (artifacts go to ``root/grapes``)
            config: Default repositories and endorsed coordinates
            client: Shared httpx client for remote repositories (for testing)
        """
        self.root = root
        self.grapes_dir = root / "grapes"
        self.config = config or EngineConfig()
        self._client = client
        self._lock = threading.RLock()
        self._added: list[Repository] = []
        self._defaults: list[Repository] = []
        self._loaded: weakref.WeakKeyDictionary[IsolationContext, list[dict[str, Any]]] = weakref.WeakKeyDictionary()

        for entry in self.config.repositories:
            try:
                self._defaults.append(parse_repository(entry, client))
            except ConfigurationError as e:
                logger.warning(f"Skipping default repository: {e}")

    @property
    def repositories(self) -> list[Repository]:
        """Repositories in lookup order: added ones (newest first), then defaults."""
        with self._lock:
            return [*self._added, *self._defaults]

    def add_resolver(self, spec: Mapping[str, Any]) -> Repository:
        """Register a repository ahead of the existing chain.

        Re-adding a name replaces the earlier registration.
        """
        repository = parse_repository(spec, self._client)
        with self._lock:
            self._added = [r for r in self._added if r.name != repository.name]
            self._added.insert(0, repository)
        logger.debug(f"Added resolver {repository!r}")
        return repository

    def resolve(
        self,
        options: Mapping[str, Any],
        specs: Sequence[DependencySpec],
        deps_info: list[dict[str, Any]] | None = None,
    ) -> list[Path]:
        """Resolve specs to local artifact paths, downloading as allowed.

        Args:
            options: Shared policy (``autoDownload``, ``disableChecksums``),
                     used where a spec does not set its own
            specs: Validated dependency specs
            deps_info: Receives one ``{group, module, revision}`` dict per artifact

        Returns:
            Local paths in spec order

        Raises:
            ResolutionError: Any spec could not be resolved
        """
        default_auto_download = bool(options.get(AUTO_DOWNLOAD_SETTING, True))
        default_disable_checksums = bool(options.get(DISABLE_CHECKSUMS_SETTING, False))

        paths = []
        for spec in specs:
            auto_download = default_auto_download if spec.auto_download is None else spec.auto_download
            disable_checksums = (
                default_disable_checksums if spec.disable_checksums is None else spec.disable_checksums
            )
            concrete = self._resolve_version(spec, auto_download)
            paths.append(self._fetch_artifact(concrete, auto_download, disable_checksums))
            if deps_info is not None:
                deps_info.append({"group": concrete.group, "module": concrete.module, "revision": concrete.version})
        return paths

    def grab(
        self,
        options: Mapping[str, Any],
        specs: Sequence[DependencySpec],
        context: IsolationContext,
    ) -> list[Path]:
        """Resolve specs and inject the artifacts into context."""
        deps_info: list[dict[str, Any]] = []
        paths = self.resolve(options, specs, deps_info)

        for path in paths:
            context.inject(path)

        with self._lock:
            records = self._loaded.setdefault(context, [])
            for info in deps_info:
                record = {"group": info["group"], "module": info["module"], "version": info["revision"]}
                if record not in records:
                    records.append(record)
        return paths

    def list_dependencies(self, context: IsolationContext) -> list[dict[str, Any]]:
        """Dependencies grabbed into context as ``{group, module, version}``, in grab order."""
        with self._lock:
            return [dict(info) for info in self._loaded.get(context, [])]

    def enumerate(self) -> dict[str, dict[str, list[str]]]:
        """Everything in the local cache as ``{group: {module: [versions]}}``."""
        grapes: dict[str, dict[str, list[str]]] = {}
        if not self.grapes_dir.is_dir():
            return grapes

        for group_dir in sorted(self.grapes_dir.iterdir()):
            if not group_dir.is_dir():
                continue
            for module_dir in sorted(group_dir.iterdir()):
                if not module_dir.is_dir():
                    continue
                versions = sorted(
                    v.name for v in module_dir.iterdir() if v.is_dir() and any(f.is_file() for f in v.iterdir())
                )
                if versions:
                    grapes.setdefault(group_dir.name, {})[module_dir.name] = versions
        return grapes

    def close(self) -> None:
        for repository in self.repositories:
            repository.close()

    def _cache_path(self, spec: DependencySpec) -> Path:
        return self.grapes_dir / spec.group / spec.module / spec.version / spec.file_name

    def _resolve_version(self, spec: DependencySpec, auto_download: bool) -> DependencySpec:
        """Replace a ``latest`` alias with a concrete version."""
        if not spec.wants_latest:
            return spec

        if auto_download:
            for repository in self.repositories:
                try:
                    content = repository.fetch(repository.metadata_path(spec))
                except ResolutionError as e:
                    logger.warning(str(e))
                    continue
                if content is None:
                    continue
                version = _latest_from_metadata(content, integration=spec.version == "latest.integration")
                if version:
                    logger.debug(f"Resolved {spec.key}:{spec.version} to {version} via {repository.name}")
                    return spec.with_version(version)

        cached = self._cached_versions(spec)
        if cached:
            return spec.with_version(cached[-1])

        raise ArtifactNotFoundError(f"No version of {spec.key} found for '{spec.version}'")

    def _cached_versions(self, spec: DependencySpec) -> list[str]:
        """Cached versions holding spec's file, oldest first by modification time."""
        module_dir = self.grapes_dir / spec.group / spec.module
        if not module_dir.is_dir():
            return []
        candidates = [v for v in module_dir.iterdir() if (v / spec.with_version(v.name).file_name).is_file()]
        return [v.name for v in sorted(candidates, key=lambda v: v.stat().st_mtime)]

    def _fetch_artifact(self, spec: DependencySpec, auto_download: bool, disable_checksums: bool) -> Path:
        target = self._cache_path(spec)
        if target.is_file():
            logger.debug(f"Using cached artifact {target}")
            return target

        if not auto_download:
            raise ArtifactNotFoundError(f"{spec} is not in the local cache and autoDownload is disabled")

        failures = []
        for repository in self.repositories:
            relative = repository.artifact_path(spec)
            try:
                content = repository.fetch(relative)
            except ResolutionError as e:
                logger.warning(str(e))
                failures.append(str(e))
                continue
            if content is None:
                continue

            if not disable_checksums:
                self._verify_checksum(repository, relative, content)

            logger.info(f"Downloaded {spec} from {repository.name}")
            _write_atomic(target, content)
            return target

        names = ", ".join(r.name for r in self.repositories) or "none configured"
        if failures:
            raise ResolutionError(f"Could not download {spec} (repositories: {names}): " + "; ".join(failures))
        raise ArtifactNotFoundError(f"Could not find {spec} in any repository (repositories: {names})")

    def _verify_checksum(self, repository: Repository, relative: str, content: bytes) -> None:
        published = repository.fetch(f"{relative}.sha1")
        if published is None:
            logger.debug(f"No checksum published for {repository.url_for(relative)}")
            return

        text = published.decode("ascii", errors="replace").split()
        expected = text[0].lower() if text else ""
        actual = hashlib.sha1(content).hexdigest()
        if expected != actual:
            raise ChecksumMismatchError(repository.url_for(relative), expected, actual)

    def __repr__(self) -> str:
        return f"GrabEngine({self.root}, {len(self.repositories)} repositories)"


def _latest_from_metadata(content: bytes, integration: bool = False) -> str | None:
    """Read the latest version from maven-metadata.xml content."""
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        logger.warning(f"Ignoring unparseable maven-metadata.xml: {e}")
        return None

    versioning = root.find("versioning")
    if versioning is None:
        return None

    tags = ("latest", "release") if integration else ("release", "latest")
    for tag in tags:
        text = versioning.findtext(tag)
        if text and text.strip():
            return text.strip()

    versions = [v.text.strip() for v in versioning.findall("versions/version") if v.text and v.text.strip()]
    return versions[-1] if versions else None


def _write_atomic(target: Path, content: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(tmp_name, target)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise
