"""Unit tests for the package.json reader (electron_rebuild.manifest)."""

from __future__ import annotations

from pathlib import Path

import pytest

from electron_rebuild.config import DependencyKind
from electron_rebuild.errors import ManifestError
from electron_rebuild.manifest import PackageManifest, read_package_json


class TestReadPackageJson:
    @pytest.mark.unit
    def test_reads_all_sections(self, tmp_path: Path, make_package):
        make_package(
            tmp_path / "pkg",
            name="pkg",
            version="2.3.4",
            dependencies={"a": "^1.0.0"},
            optional={"b": "*"},
            dev={"c": "*"},
            binary={"module_name": "pkg"},
        )
        manifest = read_package_json(tmp_path / "pkg")
        assert manifest.name == "pkg"
        assert manifest.version == "2.3.4"
        assert list(manifest.dependencies) == ["a"]
        assert list(manifest.optional_dependencies) == ["b"]
        assert list(manifest.dev_dependencies) == ["c"]
        assert manifest.binary == {"module_name": "pkg"}

    @pytest.mark.unit
    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(ManifestError) as exc_info:
            read_package_json(tmp_path)
        assert exc_info.value.path.endswith("package.json")

    @pytest.mark.unit
    def test_invalid_json_raises(self, tmp_path: Path):
        (tmp_path / "package.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(ManifestError):
            read_package_json(tmp_path)

    @pytest.mark.unit
    def test_non_object_raises(self, tmp_path: Path):
        (tmp_path / "package.json").write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ManifestError):
            read_package_json(tmp_path)

    @pytest.mark.unit
    def test_unknown_keys_ignored_and_null_sections_empty(self, tmp_path: Path):
        (tmp_path / "package.json").write_text(
            '{"name": "x", "scripts": {"test": "jest"}, "dependencies": null}',
            encoding="utf-8",
        )
        manifest = read_package_json(tmp_path)
        assert manifest.dependencies == {}
        assert manifest.binary is None


class TestDependencyNames:
    @pytest.mark.unit
    def test_selected_kinds_only(self):
        manifest = PackageManifest(
            dependencies={"a": "1"},
            optionalDependencies={"b": "1"},
            devDependencies={"c": "1"},
        )
        assert manifest.dependency_names([DependencyKind.PROD]) == ["a"]
        assert manifest.dependency_names([DependencyKind.PROD, DependencyKind.OPTIONAL]) == ["a", "b"]
        assert manifest.dependency_names(list(DependencyKind)) == ["a", "b", "c"]
