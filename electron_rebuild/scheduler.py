"""Execution of collected rebuild tasks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from .config import RebuildMode

logger = logging.getLogger(__name__)


async def run_rebuilds(
    tasks: Sequence[Callable[[], Awaitable[None]]],
    mode: RebuildMode | str,
) -> None:
    """Run every task to completion under *mode*.

    ``sequential`` awaits each task in list order and stops at the first
    failure. ``parallel`` launches all tasks at once with no concurrency
    bound; siblings are not cancelled when one fails, and the first failure
    in task order is raised after everything has settled.
    """
    mode = RebuildMode(mode)
    logger.debug("running %d rebuild task(s) in %s mode", len(tasks), mode.value)

    if mode is RebuildMode.SEQUENTIAL:
        for task in tasks:
            await task()
        return

    results = await asyncio.gather(*(task() for task in tasks), return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
