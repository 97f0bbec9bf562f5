from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Tuple

from semantic_version import Version

from .logger import setup_logger

_logger = setup_logger()


class Manager(Enum):
    """Supported package managers, in detection priority order."""

    YARN = "yarn"
    PNPM = "pnpm"
    NPM = "npm"

    @classmethod
    def has_value(cls, value: Optional[str]) -> bool:
        return bool(value) and value.lower() in (item.value for item in cls)


@dataclass(frozen=True)
class Dialect:
    """Command-line vocabulary for one package manager binary."""

    binary: str
    install: Tuple[str, ...]
    add: Tuple[str, ...]
    upgrade: Tuple[str, ...]
    remove: Tuple[str, ...]
    # `yarn info --json` wraps the document in {"type": ..., "data": ...}
    envelope: bool = False
    supported: bool = True

    def args(self, operation: str) -> list:
        return list(getattr(self, operation))


NPM_DIALECT = Dialect(
    binary="npm",
    install=("install", "--loglevel", "error"),
    add=("install", "--loglevel", "error"),
    upgrade=("update", "--loglevel", "error"),
    remove=("uninstall", "--loglevel", "error"),
)

PNPM4_DIALECT = Dialect(
    binary="pnpm",
    install=("install", "--reporter", "silent", "--shamefully-hoist"),
    add=("install", "--reporter", "silent", "--shamefully-hoist"),
    upgrade=("update", "--reporter", "silent"),
    remove=("uninstall", "--reporter", "silent"),
)

PNPM3_DIALECT = Dialect(
    binary="pnpm",
    install=("install", "--loglevel", "error", "--shamefully-flatten"),
    add=("install", "--loglevel", "error", "--shamefully-flatten"),
    upgrade=("update", "--loglevel", "error"),
    remove=("uninstall", "--loglevel", "error"),
)

YARN_DIALECT = Dialect(
    binary="yarn",
    install=(),
    add=("add",),
    upgrade=("upgrade",),
    remove=("remove",),
    envelope=True,
)

PNPM_HOIST_THRESHOLD = "4.0.0"

# Returns the installed version string of a binary, or None when unavailable.
VersionProbe = Callable[[str], Optional[str]]


def version_at_least(installed: Optional[str], threshold: str) -> bool:
    if not installed:
        return False
    try:
        return Version.coerce(installed.strip()) >= Version(threshold)
    except ValueError:
        _logger.debug("Unparsable version '%s'", installed)
        return False


def dialect_for(manager: Manager, probe: Optional[VersionProbe] = None) -> Dialect:
    """
    Build the dialect of a supported manager. pnpm is probed once here
    to choose between the >= 4 and the legacy flag sets.
    """
    if manager is Manager.YARN:
        return YARN_DIALECT
    if manager is Manager.PNPM:
        installed = probe("pnpm") if probe else None
        if version_at_least(installed, PNPM_HOIST_THRESHOLD):
            return PNPM4_DIALECT
        return PNPM3_DIALECT
    return NPM_DIALECT


def fallback_dialect(binary: str) -> Dialect:
    """Treat an unsupported binary like npm."""
    return replace(NPM_DIALECT, binary=binary, supported=False)
