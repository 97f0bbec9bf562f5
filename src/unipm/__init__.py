"""
unipm - one API over the yarn, pnpm and npm package managers.

Modules:
- cli: Command-line interface entry point.
- manager: PackageManager facade (detection, install/add/upgrade/remove).
- dialects: Per-manager command vocabularies.
- registry: Registry resolution.
- metadata: Cached registry metadata and version lookups.
- mirrors: Binary mirror environment for native downloads.
- cache: Bounded, expiring metadata cache.
- config: Configuration management.
"""

from .cli import main
from .errors import CommandFailed, InvalidSpecifier, UnipmError
from .manager import PackageManager
from .names import strip_version

__all__ = [
    "main",
    "PackageManager",
    "strip_version",
    "UnipmError",
    "InvalidSpecifier",
    "CommandFailed",
]
