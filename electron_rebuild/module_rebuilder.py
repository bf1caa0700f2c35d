"""Rebuild (or skip) the native addon of a single package.

For one package directory the rebuilder decides whether a build is needed,
drives node-gyp or node-pre-gyp against the target runtime, records a
fingerprint so the next run can skip it, and copies the produced binary into
a per-(platform, arch, ABI) cache folder inside the package.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .abi import node_abi_tag
from .backends import NODE_GYP, NODE_PRE_GYP, BackendLocator, BuildInvocationSpec, invoke_backend
from .config import RebuildConfig
from .lifecycle import Lifecycle, LifecycleEvent
from .manifest import PackageManifest, read_package_json

logger = logging.getLogger(__name__)

BUILD_DESCRIPTOR = "binding.gyp"
RELEASE_CONFIGURATION = "Release"
META_FILENAME = ".forge-meta"
NATIVE_EXTENSION = ".node"


@dataclass(frozen=True)
class Fingerprint:
    """The ``(arch, abi)`` pair a module was last built for."""

    arch: str
    abi: str

    @property
    def token(self) -> str:
        return f"{self.arch}--{self.abi}"

    @classmethod
    def parse(cls, token: str) -> "Fingerprint | None":
        arch, sep, abi = token.partition("--")
        if not sep or not arch or not abi:
            return None
        return cls(arch, abi)

    @staticmethod
    def meta_path(module_path: Path) -> Path:
        return module_path / "build" / RELEASE_CONFIGURATION / META_FILENAME

    @classmethod
    def read_token(cls, module_path: Path) -> str | None:
        """Return the persisted token, or ``None`` when the module was never fingerprinted."""
        path = cls.meta_path(module_path)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def matches(self, module_path: Path) -> bool:
        return self.read_token(module_path) == self.token

    async def write(self, module_path: Path) -> Path:
        """Persist the token, creating ``build/Release`` if needed."""
        path = self.meta_path(module_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, path.write_text, self.token, "utf-8")
        return path


def resolve_binary_fields(
    binary: dict[str, Any],
    *,
    runtime: str,
    runtime_version: str,
    platform: str,
    arch: str,
    module_version: str,
    module_name: str,
) -> dict[str, str]:
    """Expand the ``{placeholder}`` tokens in a manifest's ``binary`` section.

    Known tokens (``{configuration}``, ``{node_abi}``, ``{platform}``,
    ``{arch}``, ``{version}``, ``{name}``) are substituted first; afterwards a
    ``{key}`` naming another field of the same section is replaced by that
    field's expanded value, in declaration order. Non-string fields are
    dropped since they cannot be passed as ``--key=value`` arguments.
    Unknown tokens (e.g. ``{toolset}``) are left for the backend.
    """
    replacements = {
        "{configuration}": RELEASE_CONFIGURATION,
        "{node_abi}": node_abi_tag(runtime, runtime_version),
        "{platform}": platform,
        "{arch}": arch,
        "{version}": module_version,
        "{name}": module_name,
    }

    expanded: dict[str, str] = {}
    for key, value in binary.items():
        if not isinstance(value, str):
            continue
        for token, replacement in replacements.items():
            value = value.replace(token, replacement)
        expanded[key] = value

    resolved: dict[str, str] = {}
    for key, value in expanded.items():
        for ref_key, ref_value in expanded.items():
            value = value.replace(f"{{{ref_key}}}", ref_value)
        resolved[key] = value
    return resolved


def find_native_artifact(directory: Path, preferred_names: Iterable[str] = ()) -> Path | None:
    """Pick the built ``.node`` file in *directory*.

    A file named exactly ``.node`` is ignored. With several candidates the one
    whose stem matches a *preferred_names* entry wins; if that is still
    ambiguous nothing is picked and a warning is logged.
    """
    if not directory.is_dir():
        return None

    candidates = sorted(
        path
        for path in directory.iterdir()
        if path.is_file() and path.name.endswith(NATIVE_EXTENSION) and path.name != NATIVE_EXTENSION
    )
    if len(candidates) <= 1:
        return candidates[0] if candidates else None

    for name in preferred_names:
        matches = [path for path in candidates if path.stem == name]
        if len(matches) == 1:
            return matches[0]

    logger.warning(
        "Found %d native binaries in %s (%s); not copying any",
        len(candidates),
        directory,
        ", ".join(path.name for path in candidates),
    )
    return None


class ModuleRebuilder:
    """Rebuilds individual package directories for one run's target."""

    def __init__(
        self,
        config: RebuildConfig,
        abi: str,
        lifecycle: Lifecycle,
        backends: BackendLocator | None = None,
    ) -> None:
        self.config = config
        self.abi = abi
        self.lifecycle = lifecycle
        self.backends = backends or BackendLocator(config)
        self.fingerprint = Fingerprint(config.arch, abi)

    # ------------------------------------------------------------------
    # Conventional paths
    # ------------------------------------------------------------------

    def prebuilt_path(self, module_path: Path) -> Path:
        """Where ``prebuildify``-style packages ship a ready binary."""
        return (
            module_path
            / "prebuilds"
            / f"{self.config.platform}-{self.config.arch}"
            / f"{self.config.runtime}-{self.abi}{NATIVE_EXTENSION}"
        )

    def abi_cache_dir(self, module_path: Path) -> Path:
        return module_path / "bin" / f"{self.config.platform}-{self.config.arch}-{self.abi}"

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def build_invocation(
        self, module_path: Path, manifest: PackageManifest
    ) -> tuple[BuildInvocationSpec, Path]:
        """Resolve the backend command for *module_path*.

        Returns:
            The invocation and the directory the backend will write its
            binary to (``binary.module_path`` when declared, else
            ``build/Release``).

        Raises:
            MissingBackendError: If the chosen backend is not installed.
        """
        pre_gyp_ready = manifest.binary is not None
        executable = self.backends.path_for(NODE_PRE_GYP if pre_gyp_ready else NODE_GYP)
        binary_dir = module_path / "build" / RELEASE_CONFIGURATION

        args = [
            "reinstall" if pre_gyp_ready else "rebuild",
            f"--target={self.config.electron_version}",
            f"--arch={self.config.arch}",
            f"--dist-url={self.config.header_url}",
            "--fallback-to-build" if pre_gyp_ready else "--build-from-source",
        ]

        fields = resolve_binary_fields(
            manifest.binary or {},
            runtime=self.config.runtime,
            runtime_version=self.config.electron_version,
            platform=self.config.platform,
            arch=self.config.arch,
            module_version=manifest.version,
            module_name=manifest.name,
        )
        for key, value in fields.items():
            if key == "module_path":
                binary_dir = (module_path / value).resolve()
                value = str(binary_dir)
            args.append(f"--{key}={value}")

        spec = BuildInvocationSpec(
            executable=executable,
            args=args,
            cwd=module_path,
            env=self.config.backend_env(build_from_source=not pre_gyp_ready),
        )
        return spec, binary_dir

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def rebuild_module_at(self, module_path: Path) -> None:
        """Rebuild *module_path* if it has a native addon that is out of date.

        Raises:
            MissingBackendError: If the needed backend is not installed.
            BackendInvocationError: If the backend fails.
            ManifestError: If the module's package.json is unreadable.
        """
        module_path = Path(module_path)
        if not (module_path / BUILD_DESCRIPTOR).exists():
            return

        module_name = module_path.name
        self.lifecycle.emit(LifecycleEvent.MODULE_FOUND, module_name)

        if not self.config.force and self.fingerprint.matches(module_path):
            logger.debug("skipping: %s as it is already built", module_name)
            self.lifecycle.emit(LifecycleEvent.MODULE_DONE)
            self.lifecycle.emit(LifecycleEvent.MODULE_SKIP)
            return

        # Prebuilt binaries are authoritative: no events, fingerprint untouched.
        if self.prebuilt_path(module_path).exists():
            logger.debug("skipping: %s as it was prebuilt", module_name)
            return

        logger.debug("rebuilding: %s", module_name)
        manifest = read_package_json(module_path)
        spec, binary_dir = self.build_invocation(module_path, manifest)

        await invoke_backend(spec, module=module_name)
        logger.debug("built: %s", module_name)

        await self.fingerprint.write(module_path)

        preferred = [module_name, manifest.name]
        if manifest.binary and isinstance(manifest.binary.get("module_name"), str):
            preferred.insert(0, manifest.binary["module_name"])
        artifact = find_native_artifact(binary_dir, preferred)
        if artifact is not None:
            target_dir = self.abi_cache_dir(module_path)
            target_dir.mkdir(parents=True, exist_ok=True)
            target = target_dir / f"{module_name}{NATIVE_EXTENSION}"
            logger.debug("copying %s to %s", artifact, target)
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, shutil.copyfile, artifact, target)
        else:
            logger.debug("no native binary found in %s", binary_dir)

        self.lifecycle.emit(LifecycleEvent.MODULE_DONE)
