"""Exception hierarchy for dependency grabbing.

Disabled grabbing and unreadable configuration resources never raise; every
other failure surfaces as one of these.
"""


class GrabError(Exception):
    """Base class for all grab failures."""


class ConfigurationError(GrabError, ValueError):
    """Raised when a dependency spec or directive is malformed."""


class DirectiveSyntaxError(ConfigurationError):
    """Raised when a directive's argument text cannot be parsed."""

    def __init__(self, message: str, directive: str):
        super().__init__(f"{message}: {directive}")
        self.directive = directive


class IsolationError(GrabError):
    """Raised when no plain isolation context can receive grabbed artifacts."""


class ResolutionError(GrabError):
    """Raised when the engine cannot resolve or fetch an artifact."""


class ArtifactNotFoundError(ResolutionError):
    """Raised when no repository (or the local cache) holds the artifact."""


class ChecksumMismatchError(ResolutionError):
    """Raised when a downloaded artifact does not match its published checksum."""

    def __init__(self, url: str, expected: str, actual: str):
        super().__init__(f"Checksum mismatch for {url}: expected {expected}, got {actual}")
        self.url = url
        self.expected = expected
        self.actual = actual


class DirectiveStateError(GrabError):
    """Raised when the directive protocol is driven out of order."""


class ScriptPreparationError(GrabError):
    """Raised when a script's directives fail before its body runs."""

    def __init__(self, script: str, cause: Exception):
        super().__init__(f"Failed to prepare script '{script}': {cause}")
        self.script = script
        self.cause = cause
