"""Pytest configuration for grab tests."""

import hashlib
from pathlib import Path

import pytest

from grab_app.adapter import ResolverAdapter
from grab_app.engine import EngineConfig
from grab_app.engine import GrabEngine
from grab_app.isolation import ContextSelector
from grab_app.isolation import PathContext
from grab_app.service import GrabService
from grab_app.settings import ResolverSettings


def publish(
    repo_root: Path,
    group: str,
    module: str,
    version: str,
    content: bytes = b"artifact",
    ext: str = "jar",
    checksum: str | None = None,
) -> Path:
    """Place an artifact (and its .sha1) in a Maven-layout directory."""
    version_dir = repo_root / group.replace(".", "/") / module / version
    version_dir.mkdir(parents=True, exist_ok=True)
    artifact = version_dir / f"{module}-{version}.{ext}"
    artifact.write_bytes(content)
    digest = checksum if checksum is not None else hashlib.sha1(content).hexdigest()
    (version_dir / f"{artifact.name}.sha1").write_text(f"{digest}  {artifact.name}\n")
    return artifact


def publish_metadata(repo_root: Path, group: str, module: str, release: str, versions: list[str]) -> None:
    module_dir = repo_root / group.replace(".", "/") / module
    module_dir.mkdir(parents=True, exist_ok=True)
    listed = "".join(f"<version>{v}</version>" for v in versions)
    (module_dir / "maven-metadata.xml").write_text(
        f"<metadata><groupId>{group}</groupId><artifactId>{module}</artifactId>"
        f"<versioning><latest>{versions[-1]}</latest><release>{release}</release>"
        f"<versions>{listed}</versions></versioning></metadata>"
    )


@pytest.fixture
def repo_root(tmp_path):
    """An empty file repository."""
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def engine(tmp_path, repo_root):
    """Engine with a single default file repository."""
    config = EngineConfig(repositories=[{"name": "local-repo", "root": str(repo_root)}])
    return GrabEngine(tmp_path / "grab-root", config)


@pytest.fixture
def host_context():
    """The plain context the host grabs into by default."""
    return PathContext("host")


@pytest.fixture
def adapter(engine, host_context):
    return ResolverAdapter(lambda: engine, ContextSelector(host_context))


@pytest.fixture
def service(adapter, host_context):
    return GrabService(settings=ResolverSettings(), adapter=adapter, context=host_context)
