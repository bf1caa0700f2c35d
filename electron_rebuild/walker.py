"""Single-pass traversal of a ``node_modules`` tree."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

logger = logging.getLogger(__name__)

RebuildTask = Callable[[], Awaitable[None]]
TaskFactory = Callable[[Path], RebuildTask]

SCOPE_MARKER = "@"


class ModuleWalker:
    """Collects one rebuild task per production package, per physical directory.

    Package managers that install through symlinks (pnpm, workspaces, ``npm
    link``) make the same directory reachable under many names. Every path is
    canonicalised before it is checked, so each physical ``node_modules``
    folder is scanned once and each physical package yields at most one task.
    Entries of a folder are visited in sorted name order, so task order is
    the same on every filesystem.
    """

    def __init__(self, prod_deps: set[str], make_task: TaskFactory) -> None:
        self.prod_deps = prod_deps
        self.make_task = make_task
        self.tasks: list[RebuildTask] = []
        self.real_node_modules_paths: set[Path] = set()
        self.real_module_paths: set[Path] = set()

    async def walk(self, node_modules_path: Path, prefix: str = "") -> list[RebuildTask]:
        """Scan *node_modules_path*, appending tasks to ``self.tasks``.

        Args:
            node_modules_path: A ``node_modules`` folder or an ``@scope`` folder.
            prefix: ``"@scope/"`` while inside a scope folder, otherwise empty.

        Returns:
            The task list accumulated so far.
        """
        if not node_modules_path.is_dir():
            return self.tasks

        real_node_modules_path = node_modules_path.resolve()
        if real_node_modules_path in self.real_node_modules_paths:
            return self.tasks
        self.real_node_modules_paths.add(real_node_modules_path)

        logger.debug("scanning: %s", real_node_modules_path)

        for entry in sorted(child.name for child in real_node_modules_path.iterdir()):
            entry_path = node_modules_path / entry
            real_path = entry_path.resolve()

            if real_path in self.real_module_paths:
                continue
            self.real_module_paths.add(real_path)

            if entry.startswith(SCOPE_MARKER):
                # A scope folder only groups packages; it is never built itself.
                await self.walk(real_path, f"{entry}/")
            elif f"{prefix}{entry}" in self.prod_deps:
                self.tasks.append(self.make_task(real_path))

            nested = real_path / "node_modules"
            if nested.is_dir():
                await self.walk(nested)

        return self.tasks
