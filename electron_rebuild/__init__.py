"""electron_rebuild -- rebuild native Node addons against an Electron ABI.

Walks a project's installed ``node_modules`` tree, finds the production
dependencies that ship a native addon, and rebuilds each of them with
node-gyp / node-pre-gyp for the target runtime version and architecture.

Key objects:
    rebuild          - Entry point returning an awaitable ``RebuildJob``
    RebuildConfig    - Typed run configuration
    Lifecycle        - Event stream (start, module-found, module-done, module-skip)
"""

from .config import DependencyKind, RebuildConfig, RebuildMode
from .errors import (
    BackendInvocationError,
    ConfigurationError,
    ManifestError,
    MissingBackendError,
    RebuildError,
)
from .lifecycle import Lifecycle, LifecycleEvent
from .rebuilder import RebuildJob, Rebuilder, rebuild

__version__ = "1.0.0"

__all__ = [
    # Entry point
    "rebuild",
    "RebuildJob",
    "Rebuilder",
    # Configuration
    "RebuildConfig",
    "RebuildMode",
    "DependencyKind",
    # Events
    "Lifecycle",
    "LifecycleEvent",
    # Errors
    "RebuildError",
    "ConfigurationError",
    "ManifestError",
    "MissingBackendError",
    "BackendInvocationError",
]
