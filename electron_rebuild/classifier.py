"""Production dependency classification.

Computes the transitive set of package names that count as production
dependencies for a rebuild, starting from the root manifest's selected
dependency sections and recursing through each dependency's own
``dependencies`` and ``optionalDependencies``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path

from .config import DependencyKind
from .errors import ManifestError
from .manifest import read_package_json

logger = logging.getLogger(__name__)

_TRANSITIVE_KINDS = (DependencyKind.PROD, DependencyKind.OPTIONAL)


class DependencyClassifier:
    """Builds the production dependency set for one run.

    The set only ever grows. Every membership check and insert happens
    without an intervening ``await``, so sibling branches running under
    ``asyncio.gather`` never race on it.
    """

    def __init__(
        self,
        build_path: Path,
        kinds: Iterable[DependencyKind],
        extra_modules: Iterable[str] = (),
    ) -> None:
        self.build_path = Path(build_path)
        self.kinds = set(kinds)
        self.prod_deps: set[str] = set(extra_modules)

    async def classify(self) -> set[str]:
        """Populate and return the production dependency set.

        Raises:
            ManifestError: If the root project's package.json is missing or malformed.
        """
        root_manifest = read_package_json(self.build_path)
        node_modules = self.build_path / "node_modules"

        waiters: list[Awaitable[None]] = []
        for name in root_manifest.dependency_names(self.kinds):
            self.prod_deps.add(name)
            waiters.append(self.mark_children_as_prod_deps(node_modules / name))

        await asyncio.gather(*waiters)
        logger.debug("identified prod deps: %s", sorted(self.prod_deps))
        return self.prod_deps

    async def mark_children_as_prod_deps(self, module_path: Path) -> None:
        """Add *module_path*'s declared dependencies to the set and fan out into them.

        A directory or manifest that is not there means the package is not
        installed (optional or platform-specific); it is skipped silently.
        """
        if not module_path.is_dir():
            return

        try:
            manifest = read_package_json(module_path)
        except ManifestError:
            logger.debug("no readable manifest in %s, treating as not installed", module_path)
            return

        logger.debug("exploring %s", module_path)
        waiters: list[Awaitable[None]] = []
        for name in manifest.dependency_names(_TRANSITIVE_KINDS):
            if name in self.prod_deps:
                continue
            self.prod_deps.add(name)
            waiters.append(self.find_module(name, module_path, self.mark_children_as_prod_deps))

        await asyncio.gather(*waiters)

    async def find_module(
        self,
        module_name: str,
        from_dir: Path,
        found: Callable[[Path], Awaitable[None]],
    ) -> None:
        """Call *found* for every ``node_modules/<module_name>`` from *from_dir* up to the root.

        Mirrors Node's resolution order for nested installs; a name may be
        installed at several levels at once and every copy is explored.
        """
        stop = self.build_path.parent
        target = Path(from_dir)
        waiters: list[Awaitable[None]] = []

        while target != stop:
            candidate = target / "node_modules" / module_name
            if candidate.exists():
                waiters.append(found(candidate))
            if target.parent == target:
                break
            target = target.parent

        await asyncio.gather(*waiters)
