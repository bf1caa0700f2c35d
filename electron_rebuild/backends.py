"""Native build backends: locating node-gyp / node-pre-gyp and invoking them."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from .config import RebuildConfig
from .errors import BackendInvocationError, MissingBackendError
from .utils import run_command

logger = logging.getLogger(__name__)

NODE_GYP = "node-gyp"
NODE_PRE_GYP = "node-pre-gyp"

MAX_ANCESTOR_DEPTH = 20


@dataclass
class BuildInvocationSpec:
    """A fully resolved backend invocation for one module. Never persisted."""

    executable: Path
    args: list[str]
    cwd: Path
    env: dict[str, str] = field(default_factory=dict)

    @property
    def command(self) -> list[str]:
        return [str(self.executable), *self.args]

    def describe(self) -> str:
        return " ".join(self.command)


def locate_backend(name: str, start: str | Path, platform: str) -> Path | None:
    """Find an installed backend executable.

    Looks for ``node_modules/.bin/<name>`` (``.cmd`` on win32) in *start* and
    up to ``MAX_ANCESTOR_DEPTH`` of its ancestors, then falls back to ``PATH``.
    """
    suffix = ".cmd" if platform == "win32" else ""
    current = Path(start).resolve()
    for _ in range(MAX_ANCESTOR_DEPTH + 1):
        candidate = current / "node_modules" / ".bin" / f"{name}{suffix}"
        if candidate.exists():
            return candidate
        if current.parent == current:
            break
        current = current.parent

    found = shutil.which(name)
    return Path(found) if found else None


class BackendLocator:
    """Resolves each backend at most once per run; explicit config paths win."""

    def __init__(self, config: RebuildConfig) -> None:
        self.config = config
        self._cache: dict[str, Path | None] = {
            NODE_GYP: config.node_gyp_path,
            NODE_PRE_GYP: config.node_pre_gyp_path,
        }

    def path_for(self, name: str) -> Path:
        """Return the executable for backend *name*.

        Raises:
            MissingBackendError: If the backend is not installed anywhere searched.
        """
        path = self._cache.get(name)
        if path is None:
            path = locate_backend(name, self.config.build_path, self.config.platform)
            self._cache[name] = path
            logger.debug("located %s: %s", name, path)
        if path is None:
            raise MissingBackendError(name, searched_from=self.config.build_path)
        return path


async def invoke_backend(spec: BuildInvocationSpec, module: str = "") -> None:
    """Run a backend to completion.

    Raises:
        BackendInvocationError: If the process cannot be spawned or exits non-zero.
    """
    logger.debug("running %s in %s", spec.describe(), spec.cwd)
    try:
        returncode, _stdout, stderr = await run_command(spec.command, cwd=spec.cwd, env=spec.env)
    except OSError as exc:
        raise BackendInvocationError(
            f"Failed to start {spec.executable} for {module or spec.cwd}: {exc}",
            module=module,
            command=spec.describe(),
        ) from exc

    if returncode != 0:
        tail = "\n".join(stderr.splitlines()[-20:])
        raise BackendInvocationError(
            f"Rebuilding {module or spec.cwd} failed (exit {returncode}): "
            f"{spec.describe()}\n{tail}",
            module=module,
            command=spec.describe(),
            exit_code=returncode,
            stderr=stderr,
        )
