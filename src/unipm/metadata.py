from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from semantic_version import NpmSpec, Version

from .cache import MetadataCache, metadata_cache
from .dialects import Dialect
from .executor import CommandRunner
from .logger import setup_logger
from .registry import RegistryResolver
from .registry_client import RegistryClient

_logger = setup_logger()

NOT_AVAILABLE = "N/A"


def max_satisfying(versions, version_range: str) -> Optional[str]:
    """
    Highest version matching an npm range; unparsable versions are ignored.
    A range that is not valid npm syntax (e.g. an unknown dist-tag) matches nothing.
    """
    try:
        spec = NpmSpec(version_range)
    except ValueError as e:
        _logger.debug("Not a version range %r: %s", version_range, e)
        return None

    parsed = {}
    for v in versions:
        try:
            parsed[Version(v)] = v
        except ValueError:
            continue
    best = spec.select(parsed)
    return parsed[best] if best is not None else None


class MetadataService:
    """
    Registry metadata lookups behind the shared MetadataCache.

    Documents are keyed by (binary, registry, package). A miss runs
    `<bin> info <pkg> --json` (or an HTTP GET when a RegistryClient is
    given); failures propagate to the caller and are not retried.
    """

    def __init__(
        self,
        dialect: Dialect,
        resolver: RegistryResolver,
        runner: CommandRunner,
        context: Union[str, Path],
        cache: Optional[MetadataCache] = None,
        client: Optional[RegistryClient] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> None:
        self.dialect = dialect
        self.resolver = resolver
        self.runner = runner
        self.context = Path(context)
        self.cache = cache if cache is not None else metadata_cache
        self.client = client
        self.env = env if env is not None else {}

    def cache_key(self, package_name: str, field: str = ""):
        key = (self.dialect.binary, self.resolver.get_registry(), package_name)
        return key + (field,) if field else key

    async def get_metadata(self, package_name: str, field: str = "") -> Any:
        key = self.cache_key(package_name, field)
        metadata = self.cache.get(key)
        if metadata is not None:
            return metadata

        if self.client is not None:
            metadata = await asyncio.to_thread(
                self.client.fetch, self.resolver.get_registry(), package_name, field
            )
        else:
            metadata = await self._query_cli(package_name, field)

        self.cache.set(key, metadata)
        return metadata

    async def _query_cli(self, package_name: str, field: str) -> Any:
        info_args = ["info", package_name, *([field] if field else []), "--json"]
        args = self.resolver.add_registry_to_args(info_args)
        stdout = await asyncio.to_thread(
            self.runner.capture, self.dialect.binary, args, self.context, self.env
        )
        metadata = json.loads(stdout)
        if self.dialect.envelope:
            metadata = metadata["data"]
        return metadata

    async def get_remote_version(self, package_name: str, version_range: str = "latest") -> Optional[str]:
        """
        Resolve a dist-tag or npm range to a concrete published version.
        Returns None when nothing satisfies the range.
        """
        metadata = await self.get_metadata(package_name)
        dist_tags = metadata.get("dist-tags") or {}
        if version_range in dist_tags:
            return dist_tags[version_range]

        versions = metadata.get("versions") or []
        # npm returns a list of strings, registries a mapping keyed by version
        if isinstance(versions, dict):
            versions = list(versions)
        return max_satisfying(versions, version_range)

    def get_installed_version(self, package_name: str) -> str:
        # first level deps: reading package.json is far faster than `npm ls`
        manifest = self.context / "node_modules" / package_name / "package.json"
        try:
            with manifest.open(encoding="utf-8") as fh:
                return json.load(fh)["version"]
        except (OSError, ValueError, KeyError, TypeError) as e:
            _logger.debug("No installed version for %s: %s", package_name, e)
            return NOT_AVAILABLE
