from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .logger import setup_logger
from .metadata import MetadataService
from .registry import MIRROR_PROVIDER

_logger = setup_logger()

MIRROR_CONFIG_PACKAGE = "binary-mirror-config"

# cypress downloads a native binary at install time and only learns the
# mirror location through CYPRESS_INSTALL_BINARY.
CYPRESS_PACKAGE = "cypress"
CYPRESS_RANGE = "^3"
CYPRESS_ENV = "CYPRESS_INSTALL_BINARY"
CYPRESS_FILENAME = "cypress.zip"

DEFAULT_PLATFORMS = {
    "darwin": "osx64",
    "linux": "linux64",
    "win32": "win64",
}


def host_platform() -> str:
    # sys.platform is "linux" on every modern interpreter; older ones said "linux2"
    return "linux" if sys.platform.startswith("linux") else sys.platform


class MirrorStatus(Enum):
    CONFIGURED = "configured"
    SKIPPED_NOT_APPLICABLE = "skipped-not-applicable"
    SKIPPED_ON_ERROR = "skipped-on-error"


@dataclass
class MirrorResult:
    status: MirrorStatus
    env: Dict[str, str] = field(default_factory=dict)
    reason: Optional[str] = None


class MirrorConfigurator:
    """
    Computes environment variables that point native-binary downloads at
    the mirror host. Only applies when the resolved registry is the mirror
    provider. Never raises: if the mirror config cannot be read the result
    is SKIPPED_ON_ERROR; if only the cypress lookup fails the generic ENVS
    are still returned.
    """

    def __init__(
        self,
        metadata: MetadataService,
        region: str = "china",
        platform: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.metadata = metadata
        self.region = region
        self.platform = platform or host_platform()
        self.environ = environ if environ is not None else os.environ

    async def configure(self) -> MirrorResult:
        registry = self.metadata.resolver.get_registry()
        if registry.rstrip("/") != MIRROR_PROVIDER:
            return MirrorResult(MirrorStatus.SKIPPED_NOT_APPLICABLE, reason=f"registry is {registry}")

        try:
            mirrors = await self._region_mirrors()
            env = {key: str(value) for key, value in mirrors["ENVS"].items()}
        except Exception as e:
            _logger.debug("Binary mirror configuration skipped: %s", e)
            return MirrorResult(MirrorStatus.SKIPPED_ON_ERROR, reason=f"{type(e).__name__}: {e}")

        # generic variables stay applied even when the cypress lookup fails
        try:
            cypress_url = await self._cypress_binary_url(mirrors, env)
        except Exception as e:
            _logger.debug("Cypress binary mirror skipped: %s", e)
            return MirrorResult(MirrorStatus.CONFIGURED, env=env, reason=f"cypress: {type(e).__name__}: {e}")

        if cypress_url:
            env[CYPRESS_ENV] = cypress_url
        return MirrorResult(MirrorStatus.CONFIGURED, env=env)

    async def _region_mirrors(self) -> Dict[str, Any]:
        config = await self.metadata.get_metadata(MIRROR_CONFIG_PACKAGE)
        return config["mirrors"][self.region]

    async def _cypress_binary_url(self, mirrors: Dict[str, Any], env: Dict[str, str]) -> Optional[str]:
        cypress = mirrors[CYPRESS_PACKAGE]
        platforms = cypress.get("newPlatforms") or DEFAULT_PLATFORMS
        target = platforms.get(self.platform)
        if not target or CYPRESS_ENV in self.environ or CYPRESS_ENV in env:
            return None

        version = await self.metadata.get_remote_version(CYPRESS_PACKAGE, CYPRESS_RANGE)
        if version is None:
            raise LookupError(f"no {CYPRESS_PACKAGE} release matches {CYPRESS_RANGE}")
        return f"{cypress['host']}/{version}/{target}/{CYPRESS_FILENAME}"
