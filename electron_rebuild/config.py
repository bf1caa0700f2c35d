"""Rebuild configuration.

Centralised, typed configuration for a rebuild run. Host platform and CPU
architecture are resolved once here and then threaded through every component,
so the walk/classify/rebuild pipeline never reads ambient process globals and
can be exercised for any simulated platform/arch.
"""

from __future__ import annotations

import os
import platform as _platform
import sys
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_HEADER_URL = "https://atom.io/download/electron"
DEFAULT_RUNTIME = "electron"

# Python's machine names -> Node's ``process.arch`` names.
_ARCH_ALIASES: dict[str, str] = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "i386": "ia32",
    "i686": "ia32",
    "x86": "ia32",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armv6l": "arm",
}


class DependencyKind(str, Enum):
    """Sections of package.json that seed the production dependency set."""

    PROD = "prod"
    OPTIONAL = "optional"
    DEV = "dev"


class RebuildMode(str, Enum):
    """How collected rebuild tasks are executed."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


def host_arch() -> str:
    """Return the running machine's architecture using Node's naming."""
    machine = _platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


def host_platform() -> str:
    """Return the running OS using Node's ``process.platform`` naming."""
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def default_mode(platform: str) -> RebuildMode:
    """node-gyp on Windows cannot safely run concurrently."""
    return RebuildMode.SEQUENTIAL if platform == "win32" else RebuildMode.PARALLEL


class RebuildConfig(BaseModel):
    """Everything a rebuild run needs to know.

    Instances are created once by :func:`electron_rebuild.rebuild` or by the
    CLI and handed to the classifier, walker and module rebuilder.
    """

    build_path: Path
    electron_version: str = Field(min_length=1)
    arch: str = Field(default_factory=host_arch)
    platform: str = Field(default_factory=host_platform)
    extra_modules: list[str] = Field(default_factory=list)
    force: bool = False
    header_url: str = DEFAULT_HEADER_URL
    types: set[DependencyKind] = Field(
        default_factory=lambda: {DependencyKind.PROD, DependencyKind.OPTIONAL}
    )
    mode: RebuildMode | None = None
    runtime: str = DEFAULT_RUNTIME
    gyp_home: Path = Field(default_factory=lambda: Path.home() / ".electron-gyp")

    # Explicit backend executables; located on disk when unset.
    node_gyp_path: Path | None = None
    node_pre_gyp_path: Path | None = None

    # ABI override; resolved from the runtime version when unset.
    abi: str | None = None
    abi_registry_url: str | None = None

    @field_validator("types")
    @classmethod
    def check_types_not_empty(cls, value: set[DependencyKind]) -> set[DependencyKind]:
        if not value:
            raise ValueError("at least one dependency kind must be selected")
        return value

    @model_validator(mode="after")
    def fill_default_mode(self) -> "RebuildConfig":
        if self.mode is None:
            self.mode = default_mode(self.platform)
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def node_modules_path(self) -> Path:
        """The root project's dependency folder."""
        return self.build_path / "node_modules"

    def backend_env(self, build_from_source: bool) -> dict[str, str]:
        """Environment overlay handed to node-gyp / node-pre-gyp."""
        home = str(self.gyp_home)
        return {
            "HOME": home,
            "USERPROFILE": home,
            "npm_config_disturl": self.header_url,
            "npm_config_runtime": self.runtime,
            "npm_config_arch": self.arch,
            "npm_config_target_arch": self.arch,
            "npm_config_build_from_source": "true" if build_from_source else "false",
        }

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls, **overrides: Any) -> "RebuildConfig":
        """Build a config from ``ELECTRON_REBUILD_*`` environment variables.

        Recognised variables (all optional):
            ELECTRON_REBUILD_ARCH, ELECTRON_REBUILD_PLATFORM,
            ELECTRON_REBUILD_HEADER_URL, ELECTRON_REBUILD_MODE,
            ELECTRON_REBUILD_TYPES, ELECTRON_REBUILD_FORCE,
            ELECTRON_REBUILD_GYP_HOME, ELECTRON_REBUILD_ABI,
            ELECTRON_REBUILD_ABI_REGISTRY_URL.

        Keyword *overrides* win over the environment.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("ELECTRON_REBUILD_ARCH"):
            kwargs["arch"] = os.environ["ELECTRON_REBUILD_ARCH"]
        if os.environ.get("ELECTRON_REBUILD_PLATFORM"):
            kwargs["platform"] = os.environ["ELECTRON_REBUILD_PLATFORM"]
        if os.environ.get("ELECTRON_REBUILD_HEADER_URL"):
            kwargs["header_url"] = os.environ["ELECTRON_REBUILD_HEADER_URL"]
        if os.environ.get("ELECTRON_REBUILD_MODE"):
            kwargs["mode"] = os.environ["ELECTRON_REBUILD_MODE"]
        if os.environ.get("ELECTRON_REBUILD_TYPES"):
            kwargs["types"] = parse_types(os.environ["ELECTRON_REBUILD_TYPES"])
        if os.environ.get("ELECTRON_REBUILD_FORCE"):
            kwargs["force"] = os.environ["ELECTRON_REBUILD_FORCE"].lower() in ("1", "true", "yes")
        if os.environ.get("ELECTRON_REBUILD_GYP_HOME"):
            kwargs["gyp_home"] = Path(os.environ["ELECTRON_REBUILD_GYP_HOME"])
        if os.environ.get("ELECTRON_REBUILD_ABI"):
            kwargs["abi"] = os.environ["ELECTRON_REBUILD_ABI"]
        if os.environ.get("ELECTRON_REBUILD_ABI_REGISTRY_URL"):
            kwargs["abi_registry_url"] = os.environ["ELECTRON_REBUILD_ABI_REGISTRY_URL"]

        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)


def parse_types(value: str) -> set[DependencyKind]:
    """Parse ``"prod,optional"`` into a set of :class:`DependencyKind`."""
    return {DependencyKind(part.strip()) for part in value.split(",") if part.strip()}
