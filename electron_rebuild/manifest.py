"""Typed package.json reader."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import DependencyKind
from .errors import ManifestError


class PackageManifest(BaseModel):
    """The subset of package.json the rebuilder cares about. Unknown keys are dropped."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = ""
    version: str = ""
    dependencies: dict[str, Any] = Field(default_factory=dict)
    optional_dependencies: dict[str, Any] = Field(
        default_factory=dict, alias="optionalDependencies"
    )
    dev_dependencies: dict[str, Any] = Field(default_factory=dict, alias="devDependencies")
    binary: dict[str, Any] | None = None

    @field_validator("dependencies", "optional_dependencies", "dev_dependencies", mode="before")
    @classmethod
    def null_section_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def dependency_names(self, kinds: Iterable[DependencyKind]) -> list[str]:
        """Declared dependency names for the selected *kinds*, in section order."""
        selected = set(kinds)
        names: list[str] = []
        if DependencyKind.PROD in selected:
            names.extend(self.dependencies)
        if DependencyKind.OPTIONAL in selected:
            names.extend(self.optional_dependencies)
        if DependencyKind.DEV in selected:
            names.extend(self.dev_dependencies)
        return names


def read_package_json(directory: str | Path) -> PackageManifest:
    """Read and validate ``<directory>/package.json``.

    Raises:
        ManifestError: If the file is missing, unreadable or not a JSON object.
    """
    path = Path(directory) / "package.json"
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"Could not read {path}: {exc.strerror or exc}", path=path) from exc

    try:
        return PackageManifest.model_validate_json(raw)
    except ValidationError as exc:
        raise ManifestError(f"Malformed package.json at {path}: {exc}", path=path) from exc
