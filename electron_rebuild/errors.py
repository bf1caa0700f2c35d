"""Exception hierarchy for the rebuild orchestrator.

Every fatal condition raised by the package derives from ``RebuildError`` so
callers (and the CLI) can catch a single type.
"""

from __future__ import annotations

from pathlib import Path


class RebuildError(Exception):
    """Base class for all rebuild failures."""


class ConfigurationError(RebuildError):
    """Raised when the run configuration is unusable (e.g. a relative build path)."""


class MissingBackendError(RebuildError):
    """Raised when a required build backend executable cannot be located."""

    def __init__(self, backend: str, searched_from: str | Path | None = None):
        self.backend = backend
        self.searched_from = str(searched_from) if searched_from else ""
        message = f"Could not locate {backend}"
        if self.searched_from:
            message += f" (searched upwards from {self.searched_from} and PATH)"
        super().__init__(message)


class ManifestError(RebuildError):
    """Raised when a package.json is absent or cannot be parsed."""

    def __init__(self, message: str, path: str | Path | None = None):
        self.path = str(path) if path else ""
        super().__init__(message)


class BackendInvocationError(RebuildError):
    """Raised when a build backend fails to spawn or exits non-zero."""

    def __init__(
        self,
        message: str,
        module: str = "",
        command: str = "",
        exit_code: int | None = None,
        stderr: str = "",
    ):
        self.module = module
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message)
