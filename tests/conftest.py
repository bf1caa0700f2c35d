"""Shared pytest fixtures for the electron_rebuild test suite.

Provides reusable fixtures for:
- Writing package.json files into a temporary node_modules tree
- A root project directory with its own manifest
- Fake backend executables and a ready-made RebuildConfig factory
- A mocked backend invocation that "builds" a .node file
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, patch

import pytest

from electron_rebuild.backends import BuildInvocationSpec
from electron_rebuild.config import RebuildConfig


# ---------------------------------------------------------------------------
# Manifest helpers
# ---------------------------------------------------------------------------


def write_package(
    directory: Path,
    name: str | None = None,
    version: str = "1.0.0",
    dependencies: dict[str, str] | None = None,
    optional: dict[str, str] | None = None,
    dev: dict[str, str] | None = None,
    binary: dict[str, Any] | None = None,
    native: bool = False,
) -> Path:
    """Create *directory* with a package.json (and a binding.gyp when *native*)."""
    directory.mkdir(parents=True, exist_ok=True)
    manifest: dict[str, Any] = {"name": name or directory.name, "version": version}
    if dependencies is not None:
        manifest["dependencies"] = dependencies
    if optional is not None:
        manifest["optionalDependencies"] = optional
    if dev is not None:
        manifest["devDependencies"] = dev
    if binary is not None:
        manifest["binary"] = binary
    (directory / "package.json").write_text(json.dumps(manifest), encoding="utf-8")
    if native:
        (directory / "binding.gyp").write_text("{}", encoding="utf-8")
    return directory


@pytest.fixture
def make_package() -> Callable[..., Path]:
    """The :func:`write_package` helper as a fixture."""
    return write_package


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """An empty root project with a package.json and a node_modules folder."""
    root = write_package(tmp_path / "app", name="app")
    (root / "node_modules").mkdir()
    return root


# ---------------------------------------------------------------------------
# Backends & config
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_backends(tmp_path: Path) -> dict[str, Path]:
    """Two placeholder executables standing in for node-gyp / node-pre-gyp."""
    bin_dir = tmp_path / "tools" / "node_modules" / ".bin"
    bin_dir.mkdir(parents=True)
    paths = {}
    for name in ("node-gyp", "node-pre-gyp"):
        path = bin_dir / name
        path.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
        path.chmod(0o755)
        paths[name] = path
    return paths


@pytest.fixture
def make_config(tmp_path: Path, fake_backends: dict[str, Path]) -> Callable[..., RebuildConfig]:
    """Factory for a deterministic linux/x64 config targeting Electron 10.1.2 (ABI 82)."""

    def factory(build_path: Path, **overrides: Any) -> RebuildConfig:
        values: dict[str, Any] = {
            "build_path": build_path,
            "electron_version": "10.1.2",
            "arch": "x64",
            "platform": "linux",
            "gyp_home": tmp_path / "gyp-home",
            "node_gyp_path": fake_backends["node-gyp"],
            "node_pre_gyp_path": fake_backends["node-pre-gyp"],
        }
        values.update(overrides)
        return RebuildConfig(**values)

    return factory


# ---------------------------------------------------------------------------
# Mock backend invocation
# ---------------------------------------------------------------------------


async def _fake_build(spec: BuildInvocationSpec, module: str = "") -> None:
    """Pretend to compile: drop ``<module>.node`` where node-gyp would put it."""
    out_dir = spec.cwd / "build" / "Release"
    for arg in spec.args:
        if arg.startswith("--module_path="):
            out_dir = Path(arg.split("=", 1)[1])
    out_dir.mkdir(parents=True, exist_ok=True)
    (out_dir / f"{module}.node").write_bytes(b"\x7fELF fake addon")


@pytest.fixture
def mock_invoke():
    """Patch backend invocation with an AsyncMock that writes a fake binary.

    Usage:
        def test_something(mock_invoke):
            ...
            assert mock_invoke.await_count == 1
    """
    mock = AsyncMock(side_effect=_fake_build)
    with patch("electron_rebuild.module_rebuilder.invoke_backend", mock):
        yield mock
