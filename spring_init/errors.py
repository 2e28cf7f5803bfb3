"""Error taxonomy for spring-init.

Every fatal condition the tool can hit is a subclass of ``SpringInitError``.
The CLI reports ``error.kind`` (the class name) on stderr and exits non-zero;
``NothingToReset`` is the one kind it treats as a clean exit.
"""

from __future__ import annotations


class SpringInitError(Exception):
    """Base class for all spring-init failures."""

    fatal: bool = True

    @property
    def kind(self) -> str:
        return type(self).__name__


class ConfigError(SpringInitError):
    """Raised when the configuration file is missing or invalid."""


class CatalogUnavailable(SpringInitError):
    """Raised when the dependency catalog cannot be loaded at startup."""


class SuggestionServiceError(SpringInitError):
    """Raised when the AI suggestion call fails or returns nothing usable."""


class UnknownDependency(SpringInitError):
    """Raised when a user-supplied dependency id is not in the catalog."""

    def __init__(self, dependency_id: str) -> None:
        self.dependency_id = dependency_id
        super().__init__(f"Unknown dependency: {dependency_id!r}")


class GenerationError(SpringInitError):
    """Raised when the project generator service cannot produce an archive."""


class ExtractionError(SpringInitError):
    """Raised when the downloaded archive cannot be unpacked safely."""


class PathConflict(SpringInitError):
    """Raised when the target project directory is occupied or locked."""

    def __init__(self, path: object, reason: str) -> None:
        self.path = path
        super().__init__(f"{path}: {reason}")


class DescriptorParseError(SpringInitError):
    """Raised when ``pom.xml`` is missing or cannot be parsed."""


class StateNotFound(SpringInitError):
    """Raised when a command needs recorded project state and there is none."""


class NothingToReset(SpringInitError):
    """Raised by ``reset`` when no recorded state exists at the target path."""

    fatal = False


class BuildCommandError(SpringInitError):
    """Raised when ``mvn`` or ``java`` exits with a non-zero status."""

    def __init__(self, command: str, returncode: int, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr[:500]}" if stderr else ""
        super().__init__(f"`{command}` exited with status {returncode}{detail}")


class InputError(SpringInitError):
    """Raised when a file named on the command line (e.g. the PRD) cannot be read."""


class StateWriteError(SpringInitError):
    """Raised when the project state record cannot be written."""
