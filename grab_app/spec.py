"""Dependency spec normalization.

A dependency request arrives as a plain mapping. Several logical fields accept
more than one key name (``groupId`` and ``org`` both mean ``group``), so each
request is validated once against the synonym table and folded into a
``DependencySpec`` with canonical field names.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from typing import Any

from .errors import ConfigurationError

AUTO_DOWNLOAD_SETTING = "autoDownload"
DISABLE_CHECKSUMS_SETTING = "disableChecksums"
CONTEXT_SETTING = "context"
REF_OBJECT_SETTING = "refObject"
COORDINATES_KEY = "coordinates"

LATEST_VERSIONS = frozenset({"*", "latest.release", "latest.integration"})

# canonical field -> every key accepted for it
SYNONYM_GROUPS: dict[str, frozenset[str]] = {
    "group": frozenset({"group", "groupId", "organisation", "organization", "org"}),
    "module": frozenset({"module", "artifactId", "artifact"}),
    "version": frozenset({"version", "revision", "rev"}),
    "conf": frozenset({"conf", "scope", "configuration"}),
}

CANONICAL_KEYS: dict[str, str] = {key: canonical for canonical, keys in SYNONYM_GROUPS.items() for key in keys}

POLICY_KEYS = frozenset({AUTO_DOWNLOAD_SETTING, DISABLE_CHECKSUMS_SETTING, CONTEXT_SETTING, REF_OBJECT_SETTING})


def canonicalize(mapping: Mapping[str, Any]) -> dict[str, Any]:
    """Fold synonym keys into their canonical names.

    Two synonyms for the same field are accepted only when they agree.

    Raises:
        ConfigurationError: Two keys of one synonym group carry different values
    """
    result: dict[str, Any] = {}
    seen: dict[str, str] = {}

    for key, value in mapping.items():
        canonical = CANONICAL_KEYS.get(key)
        if canonical is None:
            result[key] = value
            continue

        if canonical in seen:
            if result[canonical] != value:
                raise ConfigurationError(
                    f"Conflicting values for '{canonical}': "
                    f"{seen[canonical]}={result[canonical]!r} and {key}={value!r}"
                )
            continue

        seen[canonical] = key
        result[canonical] = value

    return result


def parse_coordinates(coordinates: str) -> dict[str, str]:
    """Expand ``group:module:version[:classifier][@ext]`` into spec fields.

    Examples:
        >>> parse_coordinates("org.foo:bar:1.0")
        {'group': 'org.foo', 'module': 'bar', 'version': '1.0'}
        >>> parse_coordinates("org.foo:bar:1.0:natives@zip")
        {'group': 'org.foo', 'module': 'bar', 'version': '1.0', 'classifier': 'natives', 'ext': 'zip'}
    """
    text = coordinates.strip()
    ext = None
    if "@" in text:
        text, ext = text.rsplit("@", 1)

    parts = text.split(":")
    if len(parts) < 2 or len(parts) > 4 or not all(parts):
        raise ConfigurationError(f"Invalid coordinates '{coordinates}' (expected group:module[:version[:classifier]])")

    result = {"group": parts[0], "module": parts[1]}
    if len(parts) > 2:
        result["version"] = parts[2]
    if len(parts) > 3:
        result["classifier"] = parts[3]
    if ext:
        result["ext"] = ext
    return result


def _check_segment(name: str, value: str) -> None:
    """Coordinates become cache directory names, so each must be one plain segment."""
    if value in {".", ".."} or "/" in value or "\\" in value:
        raise ConfigurationError(f"Invalid {name} '{value}': must not contain path separators or be '.' or '..'")


@dataclass(frozen=True)
class DependencySpec:
    """One artifact request with canonical field names."""

    group: str
    module: str
    version: str = "*"
    conf: str | None = None
    classifier: str | None = None
    ext: str = "jar"
    extras: dict[str, Any] = field(default_factory=dict, compare=False)
    auto_download: bool | None = field(default=None, compare=False)
    disable_checksums: bool | None = field(default=None, compare=False)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> DependencySpec:
        """Validate a raw request mapping.

        ``autoDownload`` and ``disableChecksums`` are kept as per-dependency
        policy; ``context`` and ``refObject`` are ignored here.

        Raises:
            ConfigurationError: Synonym conflict, missing module, bad coordinates or a
                coordinate that is not a single path segment
        """
        data = canonicalize(mapping)

        if COORDINATES_KEY in data:
            expanded = parse_coordinates(str(data.pop(COORDINATES_KEY)))
            for key, value in expanded.items():
                if key in data and data[key] != value:
                    raise ConfigurationError(f"Coordinates disagree with explicit '{key}': {data[key]!r} != {value!r}")
                data.setdefault(key, value)

        module = data.pop("module", None)
        if not module:
            raise ConfigurationError(f"Dependency is missing a module name: {dict(mapping)!r}")

        group = data.pop("group", None)
        if not group:
            raise ConfigurationError(f"Dependency '{module}' is missing a group")

        version = data.pop("version", None) or "*"
        artifact_type = data.pop("type", None)
        ext = data.pop("ext", None) or artifact_type or "jar"
        conf = data.pop("conf", None)
        classifier = data.pop("classifier", None)
        auto_download = data.pop(AUTO_DOWNLOAD_SETTING, None)
        disable_checksums = data.pop(DISABLE_CHECKSUMS_SETTING, None)
        extras = {k: v for k, v in data.items() if k not in POLICY_KEYS}

        coordinates = {"group": group, "module": module, "version": version, "classifier": classifier, "ext": ext}
        for name, value in coordinates.items():
            if value is not None:
                _check_segment(name, str(value))

        return cls(
            group=str(group),
            module=str(module),
            version=str(version),
            conf=conf,
            classifier=classifier,
            ext=str(ext),
            extras=extras,
            auto_download=None if auto_download is None else bool(auto_download),
            disable_checksums=None if disable_checksums is None else bool(disable_checksums),
        )

    @property
    def key(self) -> str:
        return f"{self.group}:{self.module}"

    @property
    def wants_latest(self) -> bool:
        return self.version in LATEST_VERSIONS

    @property
    def file_name(self) -> str:
        classifier = f"-{self.classifier}" if self.classifier else ""
        return f"{self.module}-{self.version}{classifier}.{self.ext}"

    def with_version(self, version: str) -> DependencySpec:
        return DependencySpec(
            group=self.group,
            module=self.module,
            version=version,
            conf=self.conf,
            classifier=self.classifier,
            ext=self.ext,
            extras=dict(self.extras),
            auto_download=self.auto_download,
            disable_checksums=self.disable_checksums,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dependency mapping with canonical keys."""
        result: dict[str, Any] = {"group": self.group, "module": self.module, "version": self.version}
        if self.conf:
            result["conf"] = self.conf
        if self.classifier:
            result["classifier"] = self.classifier
        if self.ext != "jar":
            result["ext"] = self.ext
        return result

    def __str__(self) -> str:
        return f"{self.group}:{self.module}:{self.version}"
