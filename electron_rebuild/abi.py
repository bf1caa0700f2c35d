"""Runtime version -> native ABI (``NODE_MODULE_VERSION``) resolution.

A built-in registry covers released Electron and Node majors. A remote
registry (a JSON list of ``{"runtime", "target", "abi"}`` objects, the format
published by the ``node-abi`` project) can be merged in ahead of it so new
runtime releases resolve without upgrading this package.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:-([0-9A-Za-z.-]+))?")


@dataclass(frozen=True)
class AbiEntry:
    """First runtime release (``target``) that shipped a given ``abi``."""

    runtime: str
    target: str
    abi: str


def _entries(runtime: str, table: dict[str, str]) -> list[AbiEntry]:
    return [AbiEntry(runtime, target, abi) for target, abi in table.items()]


BUILTIN_REGISTRY: list[AbiEntry] = _entries(
    "node",
    {
        "4.0.0": "46",
        "5.0.0": "47",
        "6.0.0": "48",
        "7.0.0": "51",
        "8.0.0": "57",
        "9.0.0": "59",
        "10.0.0": "64",
        "11.0.0": "67",
        "12.0.0": "72",
        "13.0.0": "79",
        "14.0.0": "83",
        "15.0.0": "88",
        "16.0.0": "93",
        "17.0.0": "102",
        "18.0.0": "108",
        "19.0.0": "111",
        "20.0.0": "115",
        "21.0.0": "120",
        "22.0.0": "127",
        "23.0.0": "131",
    },
) + _entries(
    "electron",
    {
        "0.36.0": "47",
        "1.1.0": "48",
        "1.3.0": "49",
        "1.4.0": "50",
        "1.5.0": "51",
        "1.6.0": "53",
        "1.7.0": "54",
        "1.8.0": "57",
        "2.0.0": "57",
        "3.0.0": "64",
        "4.0.0": "69",
        "5.0.0": "70",
        "6.0.0": "73",
        "7.0.0": "75",
        "8.0.0": "76",
        "9.0.0": "80",
        "10.0.0": "82",
        "11.0.0": "85",
        "12.0.0": "87",
        "13.0.0": "89",
        "14.0.0": "97",
        "15.0.0": "98",
        "16.0.0": "99",
        "17.0.0": "101",
        "18.0.0": "103",
        "19.0.0": "106",
        "20.0.0": "107",
        "21.0.0": "109",
        "22.0.0": "110",
        "23.0.0": "113",
        "24.0.0": "114",
        "25.0.0": "116",
        "27.0.0": "118",
        "28.0.0": "119",
        "29.0.0": "121",
        "30.0.0": "123",
        "31.0.0": "125",
        "32.0.0": "128",
        "33.0.0": "130",
    },
)


def parse_version(version: str) -> tuple[int, int, int, int, str]:
    """Return a sortable key for a semver-ish string.

    Pre-releases sort before the matching release: ``13.0.0-beta.2`` <
    ``13.0.0``.

    Raises:
        ConfigurationError: If *version* does not start with a number.
    """
    match = _VERSION_RE.match(version.strip())
    if not match:
        raise ConfigurationError(f"Unrecognised runtime version: {version!r}")
    major, minor, patch, pre = match.groups()
    return (int(major), int(minor or 0), int(patch or 0), 0 if pre else 1, pre or "")


def node_abi_tag(runtime: str, version: str) -> str:
    """``("electron", "10.1.2")`` -> ``"electron-v10.1"`` (the ``{node_abi}`` placeholder)."""
    major_minor = ".".join(version.split(".")[:2])
    return f"{runtime}-v{major_minor}"


class AbiRegistry:
    """Ordered set of ABI entries with newest-at-or-below lookup."""

    def __init__(self, entries: list[AbiEntry] | None = None) -> None:
        self._entries: list[AbiEntry] = list(BUILTIN_REGISTRY if entries is None else entries)

    def __len__(self) -> int:
        return len(self._entries)

    def merge(self, entries: list[AbiEntry]) -> None:
        """Add *entries*; on a ``(runtime, target)`` clash the new entry wins."""
        incoming = {(e.runtime, e.target) for e in entries}
        kept = [e for e in self._entries if (e.runtime, e.target) not in incoming]
        self._entries = list(entries) + kept

    def get_abi(self, version: str, runtime: str = "electron") -> str:
        """Return the ABI for *runtime* at *version*.

        Picks the entry with the highest ``target`` that is not newer than
        *version*. A major release newer than every known entry is rejected.

        Raises:
            ConfigurationError: If no entry covers *version*.
        """
        wanted = parse_version(version)
        best: tuple[tuple[int, int, int, int, str], AbiEntry] | None = None
        newest_major: int | None = None
        for entry in self._entries:
            if entry.runtime != runtime:
                continue
            key = parse_version(entry.target)
            if newest_major is None or key[0] > newest_major:
                newest_major = key[0]
            if key > wanted:
                continue
            if best is None or key > best[0]:
                best = (key, entry)
        if newest_major is not None and wanted[0] > newest_major:
            raise ConfigurationError(
                f"Could not detect the ABI for {runtime} version {version}: newest known "
                f"release is {newest_major}.x. Pass abi or abi_registry_url to supply it."
            )
        if best is None:
            raise ConfigurationError(
                f"Could not detect the ABI for {runtime} version {version}"
            )
        return best[1].abi


def _coerce_entries(payload: Any) -> list[AbiEntry]:
    if not isinstance(payload, list):
        raise ValueError("ABI registry must be a JSON list")
    entries: list[AbiEntry] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        runtime, target, abi = item.get("runtime"), item.get("target"), item.get("abi")
        if runtime and target and abi:
            entries.append(AbiEntry(str(runtime), str(target), str(abi)))
    return entries


async def fetch_abi_registry(url: str, timeout: float = 10.0) -> list[AbiEntry]:
    """Download and parse a remote ABI registry.

    Raises:
        httpx.HTTPError: On transport failures or non-2xx responses.
        ValueError: If the payload is not a JSON list.
    """
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=5.0)) as client:
        response = await client.get(url)
        response.raise_for_status()
        return _coerce_entries(response.json())


async def resolve_abi(
    version: str,
    runtime: str = "electron",
    override: str | None = None,
    registry_url: str | None = None,
) -> str:
    """Resolve the ABI for a run, honouring an explicit *override*.

    A registry download failure falls back to the built-in table with a
    warning; only an unresolvable version is fatal.
    """
    if override:
        return override

    registry = AbiRegistry()
    if registry_url:
        try:
            registry.merge(await fetch_abi_registry(registry_url))
            logger.debug("merged remote ABI registry from %s", registry_url)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Could not load ABI registry from %s: %s", registry_url, exc)

    return registry.get_abi(version, runtime)
