from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Union

from .errors import CommandFailed
from .logger import setup_logger

_logger = setup_logger()

PathLike = Union[str, Path]


def resolve_binary(binary: str) -> str:
    """Full path of a binary; finds the .cmd shims npm, yarn and pnpm install on Windows."""
    return shutil.which(binary) or binary


def child_env(overlay: Optional[Mapping[str, str]]) -> Optional[Dict[str, str]]:
    """Materialize an env overlay on top of the current process environment."""
    if not overlay:
        return None
    env = dict(os.environ)
    env.update(overlay)
    return env


class CommandRunner:
    """Runs package-manager binaries. Non-zero exits raise CommandFailed."""

    def execute(
        self,
        binary: str,
        args: Sequence[str],
        cwd: Optional[PathLike] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> int:
        """Run with output streamed straight to the terminal."""
        cmd = [binary, *args]
        _logger.debug("$ %s", " ".join(cmd))
        try:
            proc = subprocess.run([resolve_binary(binary), *args], cwd=cwd, env=child_env(env))
        except FileNotFoundError:
            raise CommandFailed(cmd, None)
        if proc.returncode != 0:
            raise CommandFailed(cmd, proc.returncode)
        return proc.returncode

    def capture(
        self,
        binary: str,
        args: Sequence[str],
        cwd: Optional[PathLike] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Run quietly and return stdout."""
        cmd = [binary, *args]
        _logger.debug("$ %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                [resolve_binary(binary), *args], cwd=cwd, env=child_env(env), capture_output=True, text=True
            )
        except FileNotFoundError:
            raise CommandFailed(cmd, None)
        if proc.returncode != 0:
            raise CommandFailed(cmd, proc.returncode, proc.stderr or "")
        return proc.stdout

    def probe_version(self, binary: str) -> Optional[str]:
        """`<binary> --version`, or None when the binary is missing or broken."""
        try:
            return self.capture(binary, ["--version"]).strip() or None
        except CommandFailed as e:
            _logger.debug("Version probe failed: %s", e)
            return None
