"""Rebuild orchestration and the public ``rebuild()`` entry point.

Flow of a run::

    start -> classify production deps -> walk node_modules -> append root task
          -> schedule (sequential | parallel)
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path
from typing import Any

from .abi import resolve_abi
from .backends import BackendLocator
from .classifier import DependencyClassifier
from .config import RebuildConfig
from .errors import ConfigurationError
from .lifecycle import Lifecycle, LifecycleEvent
from .module_rebuilder import ModuleRebuilder
from .scheduler import run_rebuilds
from .walker import ModuleWalker, RebuildTask

logger = logging.getLogger(__name__)


class Rebuilder:
    """Owns all per-run state: the production set, visited paths and task list."""

    def __init__(self, config: RebuildConfig, lifecycle: Lifecycle | None = None) -> None:
        self.config = config
        self.lifecycle = lifecycle or Lifecycle()
        self.prod_deps: set[str] = set()
        self.rebuilds: list[RebuildTask] = []
        self.abi: str | None = None

    async def rebuild(self) -> None:
        """Run the whole rebuild.

        Raises:
            ConfigurationError: If ``build_path`` is not absolute or the ABI is unknown.
            ManifestError: If the root package.json is missing or malformed.
            MissingBackendError: If a module needs a backend that is not installed.
            BackendInvocationError: If any module fails to build.
        """
        build_path = self.config.build_path
        if not build_path.is_absolute():
            raise ConfigurationError(f"Expected build_path to be an absolute path, got {build_path}")

        self.abi = await resolve_abi(
            self.config.electron_version,
            runtime=self.config.runtime,
            override=self.config.abi,
            registry_url=self.config.abi_registry_url,
        )
        logger.debug(
            "rebuilding %s for %s %s (abi %s, arch %s, mode %s)",
            build_path,
            self.config.runtime,
            self.config.electron_version,
            self.abi,
            self.config.arch,
            self.config.mode.value if self.config.mode else None,
        )

        self.lifecycle.emit(LifecycleEvent.START)

        classifier = DependencyClassifier(build_path, self.config.types, self.config.extra_modules)
        self.prod_deps = await classifier.classify()

        module_rebuilder = ModuleRebuilder(
            self.config, self.abi, self.lifecycle, BackendLocator(self.config)
        )

        def make_task(module_path: Path) -> RebuildTask:
            return lambda: module_rebuilder.rebuild_module_at(module_path)

        walker = ModuleWalker(self.prod_deps, make_task)
        await walker.walk(self.config.node_modules_path)
        self.rebuilds = walker.tasks
        self.rebuilds.append(make_task(build_path))

        await run_rebuilds(self.rebuilds, self.config.mode)


class RebuildJob:
    """Handle returned by :func:`rebuild`.

    ``lifecycle`` is available immediately so listeners can subscribe before
    the run starts; awaiting the job runs the rebuild to completion.
    """

    def __init__(self, rebuilder: Rebuilder) -> None:
        self.rebuilder = rebuilder
        self.lifecycle = rebuilder.lifecycle

    @property
    def config(self) -> RebuildConfig:
        return self.rebuilder.config

    def __await__(self) -> Generator[Any, None, None]:
        return self.rebuilder.rebuild().__await__()


def rebuild(config: RebuildConfig | None = None, **options: Any) -> RebuildJob:
    """Prepare a rebuild of the native modules under a project.

    Either pass a ready :class:`RebuildConfig` or its fields as keyword
    arguments::

        job = rebuild(build_path=Path("/app").resolve(), electron_version="10.1.2")
        job.lifecycle.on("module-found", print)
        await job
    """
    if config is None:
        config = RebuildConfig(**options)
    elif options:
        config = RebuildConfig.model_validate({**config.model_dump(), **options})
    return RebuildJob(Rebuilder(config))
