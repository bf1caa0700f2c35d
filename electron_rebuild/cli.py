"""Command-line entry point.

Usage::

    electron-rebuild --version 10.1.2
    electron-rebuild -m ./app -a arm64 -w sqlite3,leveldown --force
    python -m electron_rebuild --sequential --types prod,optional,dev
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from .config import RebuildConfig, RebuildMode, parse_types
from .errors import ManifestError, RebuildError
from .lifecycle import LifecycleEvent
from .manifest import read_package_json
from .rebuilder import rebuild
from .utils import console, create_progress, print_error, print_success, print_summary_table, setup_logging

ELECTRON_PACKAGES = ("electron", "electron-prebuilt", "electron-prebuilt-compile")


def detect_electron_version(build_path: Path) -> str | None:
    """Return the version of the Electron package installed under *build_path*, if any."""
    for package in ELECTRON_PACKAGES:
        try:
            manifest = read_package_json(build_path / "node_modules" / package)
        except ManifestError:
            continue
        if manifest.version:
            return manifest.version
    return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="electron-rebuild",
        description="Rebuild native node modules against the installed Electron version",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  electron-rebuild\n"
            "  electron-rebuild -v 10.1.2 -a arm64\n"
            "  electron-rebuild -m ./app -w sqlite3 --force\n"
        ),
    )
    parser.add_argument(
        "--version", "-v",
        dest="electron_version",
        default=None,
        help="Target Electron version (default: the installed electron package)",
    )
    parser.add_argument(
        "--module-dir", "-m",
        default=".",
        help="Project directory containing package.json and node_modules (default: .)",
    )
    parser.add_argument("--arch", "-a", default=None, help="Target architecture (default: host)")
    parser.add_argument(
        "--which-module", "-w",
        default="",
        help="Comma-separated extra modules to treat as production dependencies",
    )
    parser.add_argument("--force", "-f", action="store_true", help="Rebuild even if up to date")
    parser.add_argument("--dist-url", "-d", default=None, help="Header download URL")
    parser.add_argument(
        "--types", "-t",
        default=None,
        help="Dependency kinds to rebuild: prod, optional, dev (default: prod,optional)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--parallel", "-p",
        dest="mode", action="store_const", const=RebuildMode.PARALLEL,
        help="Rebuild all modules at once",
    )
    mode.add_argument(
        "--sequential", "-s",
        dest="mode", action="store_const", const=RebuildMode.SEQUENTIAL,
        help="Rebuild modules one at a time",
    )
    parser.add_argument("--abi-registry", default=None, help="URL of a JSON ABI registry")
    parser.add_argument("--debug", action="store_true", help="Show the rebuild trace")
    return parser


async def run_with_progress(config: RebuildConfig) -> dict[str, int]:
    """Run a rebuild behind a Rich spinner and return found/built/skipped counts."""
    counts = {"found": 0, "done": 0, "skipped": 0}
    job = rebuild(config)

    with create_progress() as progress:
        task_id = progress.add_task("Searching dependency tree", total=None)

        def _describe(current: str) -> str:
            return (
                f"Building module: [bold]{current}[/bold], "
                f"Completed: {counts['done']}"
            )

        def on_found(name: str) -> None:
            counts["found"] += 1
            progress.update(task_id, description=_describe(name))

        def on_done() -> None:
            counts["done"] += 1
            progress.update(task_id, description=f"Completed: {counts['done']}")

        def on_skip() -> None:
            counts["skipped"] += 1

        job.lifecycle.on(LifecycleEvent.MODULE_FOUND, on_found)
        job.lifecycle.on(LifecycleEvent.MODULE_DONE, on_done)
        job.lifecycle.on(LifecycleEvent.MODULE_SKIP, on_skip)

        await job

    return counts


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``electron-rebuild``."""
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug)

    build_path = Path(args.module_dir).resolve()
    if not (build_path / "package.json").exists():
        print_error(f"Error: no package.json found in {build_path}")
        sys.exit(1)

    electron_version = args.electron_version or detect_electron_version(build_path)
    if not electron_version:
        print_error(
            "Error: unable to find the electron version, install electron or pass --version"
        )
        sys.exit(1)

    try:
        config = RebuildConfig.from_env(
            build_path=build_path,
            electron_version=electron_version,
            arch=args.arch,
            extra_modules=[m.strip() for m in args.which_module.split(",") if m.strip()],
            force=args.force or None,
            header_url=args.dist_url,
            types=parse_types(args.types) if args.types else None,
            mode=args.mode,
            abi_registry_url=args.abi_registry,
        )
    except ValueError as exc:
        print_error(f"Error: invalid options: {exc}")
        sys.exit(1)

    console.print(
        f"[cyan]Rebuilding native modules[/cyan] in [bold]{build_path}[/bold] "
        f"for {config.runtime} {config.electron_version} ({config.arch})"
    )

    try:
        counts = asyncio.run(run_with_progress(config))
    except RebuildError as exc:
        print_error(f"Rebuild failed: {exc}")
        sys.exit(1)

    print_summary_table(
        {
            "Modules found": str(counts["found"]),
            "Rebuilt": str(counts["done"] - counts["skipped"]),
            "Already up to date": str(counts["skipped"]),
        },
        title="Rebuild Summary",
    )
    print_success("Rebuild complete")


if __name__ == "__main__":
    main()
