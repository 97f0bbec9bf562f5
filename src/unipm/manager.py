from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .cache import MetadataCache, metadata_cache
from .config import Config
from .dialects import Dialect, Manager, dialect_for, fallback_dialect
from .executor import CommandRunner
from .logger import Colors, setup_logger
from .metadata import MetadataService
from .mirrors import MirrorConfigurator, MirrorResult
from .names import strip_version
from .registry import RegistryResolver
from .registry_client import RegistryClient

_logger = setup_logger()

LOCKFILES = {
    Manager.YARN: "yarn.lock",
    Manager.PNPM: "pnpm-lock.yaml",
}

# Repo checkout that holds first-party packages side by side.
DEFAULT_LINK_ROOT = Path(__file__).resolve().parents[2] / "packages"


def detect_manager(context: Union[str, Path], which: Optional[Callable[[str], Optional[str]]] = None) -> Manager:
    """yarn > pnpm > npm: a lockfile counts only if its binary is on PATH."""
    which = which or shutil.which
    root = Path(context)
    for manager in (Manager.YARN, Manager.PNPM):
        if (root / LOCKFILES[manager]).exists() and which(manager.value):
            return manager
    return Manager.NPM


def is_test_or_debug(environ=None) -> bool:
    environ = os.environ if environ is None else environ
    return bool(environ.get("UNIPM_TEST") or environ.get("UNIPM_DEBUG"))


class PackageManager:
    """
    One API over yarn, pnpm and npm for a single project directory.

    The manager binary is chosen at construction and never changes.
    Install-class operations (install, add, upgrade) first compute binary
    mirror variables; remove talks to the binary directly.
    """

    def __init__(
        self,
        context: Union[str, Path] = ".",
        bin: Optional[str] = None,
        config: Optional[Config] = None,
        runner: Optional[CommandRunner] = None,
        cache: Optional[MetadataCache] = None,
        argv: Optional[Sequence[str]] = None,
        platform: Optional[str] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> None:
        self.context = Path(context).resolve()
        self.config = config if config is not None else Config()
        self.runner = runner if runner is not None else CommandRunner()
        self.environ = environ if environ is not None else os.environ

        self.dialect = self._select_dialect(bin or self.config.package_manager)
        self.bin = self.dialect.binary

        # Overlay handed to child processes; os.environ itself is never touched.
        self.env: Dict[str, str] = {}

        if cache is None:
            cache = metadata_cache
            cache.configure(self.config.cache_max_size, self.config.cache_ttl)

        self.resolver = RegistryResolver(self.config.default_registry, argv=argv)
        client = RegistryClient(self.config) if self.config.metadata_backend == "http" else None
        self.metadata = MetadataService(
            self.dialect,
            self.resolver,
            self.runner,
            self.context,
            cache=cache,
            client=client,
            env=self.env,
        )
        self.mirrors = MirrorConfigurator(
            self.metadata,
            region=self.config.mirror_region,
            platform=platform,
            environ=self.environ,
        )
        self._mirror_result: Optional[MirrorResult] = None

    def _select_dialect(self, forced: Optional[str]) -> Dialect:
        if not forced:
            manager = detect_manager(self.context)
        elif Manager.has_value(forced):
            manager = Manager(forced.lower())
        else:
            _logger.warning(
                f"The package manager {Colors.RED}{forced}{Colors.RESET} is not officially supported.\n"
                f"It will be treated like {Colors.CYAN}npm{Colors.RESET}, but compatibility issues may occur.\n"
                f"See if you can use {Colors.CYAN}--registry{Colors.RESET} instead."
            )
            return fallback_dialect(forced)
        _logger.debug("Using %s in %s", manager.value, self.context)
        return dialect_for(manager, probe=self.runner.probe_version)

    # --------------------------------------------------------
    # Registry / metadata
    # --------------------------------------------------------

    def get_registry(self) -> str:
        return self.resolver.get_registry()

    def add_registry_to_args(self, args: Sequence[str]) -> List[str]:
        return self.resolver.add_registry_to_args(args)

    async def get_metadata(self, package_name: str, field: str = "") -> Any:
        return await self.metadata.get_metadata(package_name, field=field)

    async def get_remote_version(self, package_name: str, version_range: str = "latest") -> Optional[str]:
        return await self.metadata.get_remote_version(package_name, version_range)

    def get_installed_version(self, package_name: str) -> str:
        return self.metadata.get_installed_version(package_name)

    async def set_binary_mirrors(self) -> MirrorResult:
        """Compute the mirror overlay once per instance and merge it into self.env."""
        if self._mirror_result is None:
            self._mirror_result = await self.mirrors.configure()
            self.env.update(self._mirror_result.env)
            _logger.debug("Binary mirrors: %s", self._mirror_result.status.value)
        return self._mirror_result

    # --------------------------------------------------------
    # Operations
    # --------------------------------------------------------

    async def _run(self, args: Sequence[str]) -> int:
        return await asyncio.to_thread(self.runner.execute, self.bin, list(args), self.context, self.env)

    async def install(self) -> int:
        await self.set_binary_mirrors()
        args = self.add_registry_to_args(self.dialect.args("install"))
        return await self._run(args)

    async def add(self, package_name: str, is_dev: bool = True) -> int:
        await self.set_binary_mirrors()
        args = self.add_registry_to_args([
            *self.dialect.args("add"),
            package_name,
            *(["-D"] if is_dev else []),
        ])
        return await self._run(args)

    def is_first_party(self, package_name: str) -> bool:
        if package_name in self.config.first_party_packages:
            return True
        return any(package_name.startswith(prefix) for prefix in self.config.first_party_prefixes)

    async def upgrade(self, package_name: str) -> Optional[int]:
        realname = strip_version(package_name)
        if is_test_or_debug(self.environ) and self.is_first_party(realname):
            self._link_local_package(realname)
            return None

        await self.set_binary_mirrors()
        # "add" verbs, so a new version range in package_name is honoured
        args = self.add_registry_to_args([*self.dialect.args("add"), package_name])
        return await self._run(args)

    async def remove(self, package_name: str) -> int:
        args = [*self.dialect.args("remove"), package_name]
        return await self._run(args)

    def _link_local_package(self, name: str) -> None:
        """Swap node_modules/<name> for a symlink into the local checkout."""
        link_root = self.config.link_root or DEFAULT_LINK_ROOT
        src = (Path(link_root) / name).resolve()
        dest = self.context / "node_modules" / name

        if dest.is_symlink() or dest.is_file():
            dest.unlink()
        elif dest.exists():
            shutil.rmtree(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(src, dest, target_is_directory=True)
        _logger.info("Linked %s -> %s", dest, src)
