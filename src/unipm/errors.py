from typing import Optional, Sequence


class UnipmError(Exception):
    """Base class for errors raised by unipm."""


class InvalidSpecifier(UnipmError, ValueError):
    """A package specifier or version range could not be parsed."""


class CommandFailed(UnipmError):
    """An external package-manager process could not run or exited non-zero."""

    def __init__(self, command: Sequence[str], returncode: Optional[int], stderr: str = "") -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        if returncode is None:
            msg = f"Command not found: {self.command[0]}"
        else:
            msg = f"Command failed ({returncode}): {' '.join(self.command)}"
        if stderr:
            msg += f"\n{stderr.strip()}"
        super().__init__(msg)
