"""Unit tests for RebuildConfig and helpers (electron_rebuild.config).

Tests cover:
- Defaults (kinds, header URL, runtime, mode by platform)
- Validation of dependency kinds and modes
- host_arch / host_platform translation to Node naming
- backend_env overlay
- from_env parsing and override precedence
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from electron_rebuild.config import (
    DEFAULT_HEADER_URL,
    DependencyKind,
    RebuildConfig,
    RebuildMode,
    default_mode,
    host_arch,
    host_platform,
    parse_types,
)


class TestDefaults:
    @pytest.mark.unit
    def test_default_kinds_are_prod_and_optional(self):
        config = RebuildConfig(build_path=Path("/app"), electron_version="10.1.2")
        assert config.types == {DependencyKind.PROD, DependencyKind.OPTIONAL}

    @pytest.mark.unit
    def test_default_header_url_and_runtime(self):
        config = RebuildConfig(build_path=Path("/app"), electron_version="10.1.2")
        assert config.header_url == DEFAULT_HEADER_URL
        assert config.runtime == "electron"
        assert config.force is False
        assert config.extra_modules == []

    @pytest.mark.unit
    def test_mode_defaults_to_sequential_on_windows(self):
        config = RebuildConfig(
            build_path=Path("/app"), electron_version="10.1.2", platform="win32"
        )
        assert config.mode is RebuildMode.SEQUENTIAL

    @pytest.mark.unit
    def test_mode_defaults_to_parallel_elsewhere(self):
        config = RebuildConfig(
            build_path=Path("/app"), electron_version="10.1.2", platform="darwin"
        )
        assert config.mode is RebuildMode.PARALLEL

    @pytest.mark.unit
    def test_explicit_mode_wins(self):
        config = RebuildConfig(
            build_path=Path("/app"),
            electron_version="10.1.2",
            platform="linux",
            mode="sequential",
        )
        assert config.mode is RebuildMode.SEQUENTIAL

    @pytest.mark.unit
    def test_default_mode_helper(self):
        assert default_mode("win32") is RebuildMode.SEQUENTIAL
        assert default_mode("linux") is RebuildMode.PARALLEL


class TestValidation:
    @pytest.mark.unit
    def test_empty_types_rejected(self):
        with pytest.raises(ValidationError):
            RebuildConfig(build_path=Path("/app"), electron_version="10.1.2", types=set())

    @pytest.mark.unit
    def test_unknown_mode_rejected(self):
        with pytest.raises(ValidationError):
            RebuildConfig(build_path=Path("/app"), electron_version="10.1.2", mode="eventually")

    @pytest.mark.unit
    def test_empty_version_rejected(self):
        with pytest.raises(ValidationError):
            RebuildConfig(build_path=Path("/app"), electron_version="")

    @pytest.mark.unit
    def test_types_accept_strings(self):
        config = RebuildConfig(
            build_path=Path("/app"), electron_version="10.1.2", types={"dev"}
        )
        assert config.types == {DependencyKind.DEV}


class TestHostDetection:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "machine, expected",
        [("x86_64", "x64"), ("AMD64", "x64"), ("aarch64", "arm64"), ("i686", "ia32"), ("armv7l", "arm")],
    )
    def test_host_arch_uses_node_names(self, machine, expected):
        with patch("electron_rebuild.config._platform.machine", return_value=machine):
            assert host_arch() == expected

    @pytest.mark.unit
    def test_host_platform_normalises_linux(self):
        with patch("electron_rebuild.config.sys.platform", "linux2"):
            assert host_platform() == "linux"

    @pytest.mark.unit
    def test_host_platform_passes_through_others(self):
        with patch("electron_rebuild.config.sys.platform", "darwin"):
            assert host_platform() == "darwin"


class TestDerived:
    @pytest.mark.unit
    def test_node_modules_path(self):
        config = RebuildConfig(build_path=Path("/app"), electron_version="10.1.2")
        assert config.node_modules_path == Path("/app/node_modules")

    @pytest.mark.unit
    def test_backend_env_from_source(self):
        config = RebuildConfig(
            build_path=Path("/app"),
            electron_version="10.1.2",
            arch="arm64",
            gyp_home=Path("/home/me/.electron-gyp"),
        )
        env = config.backend_env(build_from_source=True)
        assert env["HOME"] == "/home/me/.electron-gyp"
        assert env["USERPROFILE"] == "/home/me/.electron-gyp"
        assert env["npm_config_runtime"] == "electron"
        assert env["npm_config_arch"] == "arm64"
        assert env["npm_config_target_arch"] == "arm64"
        assert env["npm_config_disturl"] == DEFAULT_HEADER_URL
        assert env["npm_config_build_from_source"] == "true"

    @pytest.mark.unit
    def test_backend_env_with_fallback(self):
        config = RebuildConfig(build_path=Path("/app"), electron_version="10.1.2")
        assert config.backend_env(build_from_source=False)["npm_config_build_from_source"] == "false"


class TestParseTypes:
    @pytest.mark.unit
    def test_comma_separated(self):
        assert parse_types("prod, dev") == {DependencyKind.PROD, DependencyKind.DEV}

    @pytest.mark.unit
    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError):
            parse_types("prod,peer")


class TestFromEnv:
    @pytest.mark.unit
    def test_reads_environment(self):
        env = {
            "ELECTRON_REBUILD_ARCH": "ia32",
            "ELECTRON_REBUILD_PLATFORM": "win32",
            "ELECTRON_REBUILD_TYPES": "prod",
            "ELECTRON_REBUILD_FORCE": "true",
            "ELECTRON_REBUILD_ABI": "99",
        }
        with patch.dict("os.environ", env, clear=False):
            config = RebuildConfig.from_env(build_path=Path("/app"), electron_version="16.0.0")
        assert config.arch == "ia32"
        assert config.platform == "win32"
        assert config.mode is RebuildMode.SEQUENTIAL
        assert config.types == {DependencyKind.PROD}
        assert config.force is True
        assert config.abi == "99"

    @pytest.mark.unit
    def test_overrides_beat_environment(self):
        with patch.dict("os.environ", {"ELECTRON_REBUILD_ARCH": "ia32"}, clear=False):
            config = RebuildConfig.from_env(
                build_path=Path("/app"), electron_version="16.0.0", arch="arm64"
            )
        assert config.arch == "arm64"

    @pytest.mark.unit
    def test_none_overrides_are_ignored(self):
        with patch.dict("os.environ", {"ELECTRON_REBUILD_ARCH": "ia32"}, clear=False):
            config = RebuildConfig.from_env(
                build_path=Path("/app"), electron_version="16.0.0", arch=None
            )
        assert config.arch == "ia32"
