from __future__ import annotations

import argparse
import sys
from typing import List, Optional, Sequence

from .logger import setup_logger

_logger = setup_logger()

REGISTRIES = {
    "npm": "https://registry.npmjs.org",
    "yarn": "https://registry.yarnpkg.com",
    "npmmirror": "https://registry.npmmirror.com",
    "taobao": "https://registry.npmmirror.com",
}

# Registry whose operators also publish "binary-mirror-config".
MIRROR_PROVIDER = REGISTRIES["npmmirror"]


def _registry_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False, exit_on_error=False)
    parser.add_argument("--registry", "-r", default=None)
    return parser


def parse_registry_arg(argv: Sequence[str]) -> Optional[str]:
    """Pull an explicit --registry / -r value out of arbitrary argv."""
    try:
        args, _ = _registry_arg_parser().parse_known_args(list(argv))
    except argparse.ArgumentError as e:
        _logger.warning("Ignoring malformed registry argument: %s", e)
        return None
    return args.registry or None


class RegistryResolver:
    """
    Decides which registry a PackageManager talks to.

    An explicit --registry/-r in argv wins, otherwise the configured
    default (a name from REGISTRIES or a URL). The decision is made once;
    later changes to argv are not observed.
    """

    def __init__(self, default: str = "npmmirror", argv: Optional[Sequence[str]] = None) -> None:
        self.default = default
        self._argv = argv
        self._registry: Optional[str] = None

    def get_registry(self) -> str:
        if self._registry:
            return self._registry

        argv = self._argv if self._argv is not None else sys.argv[1:]
        explicit = parse_registry_arg(argv)
        if explicit:
            self._registry = explicit
        else:
            self._registry = REGISTRIES.get(self.default, self.default)
        _logger.debug("Using registry %s", self._registry)
        return self._registry

    def add_registry_to_args(self, args: Sequence[str]) -> List[str]:
        return [*args, f"--registry={self.get_registry()}"]
