# cli.py
import argparse
import asyncio
import json
import sys

import requests

from .config import Config
from .errors import UnipmError
from .logger import set_verbose, setup_logger
from .manager import PackageManager
from .names import split_specifier

_logger = setup_logger()


# ------------------------
# Command handlers
# ------------------------

async def cmd_install(pm: PackageManager) -> None:
    await pm.install()


async def cmd_add(pm: PackageManager, name: str, prod: bool) -> None:
    await pm.add(name, is_dev=not prod)


async def cmd_upgrade(pm: PackageManager, name: str) -> None:
    await pm.upgrade(name)


async def cmd_remove(pm: PackageManager, name: str) -> None:
    await pm.remove(name)


async def cmd_info(pm: PackageManager, name: str, field: str) -> None:
    metadata = await pm.get_metadata(name, field=field or "")
    print(json.dumps(metadata, indent=2, ensure_ascii=False))


async def cmd_version(pm: PackageManager, spec: str, version_range: str) -> None:
    name, pinned = split_specifier(spec)
    version = await pm.get_remote_version(name, version_range or pinned or "latest")
    if version is None:
        _logger.error(f"No version of {name} matches {version_range or pinned}")
        sys.exit(1)
    print(version)


async def cmd_installed(pm: PackageManager, name: str) -> None:
    print(pm.get_installed_version(name))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="unipm", description="One CLI for yarn, pnpm and npm projects")
    parser.add_argument("--registry", "-r", help="Registry URL (default: configured registry)")
    parser.add_argument("--cwd", "-C", default=".", help="Project directory")
    parser.add_argument("--bin", help="Force a package manager binary instead of detecting one")
    parser.add_argument("--verbose", "-v", action="store_true")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # install / i
    p_install = subparsers.add_parser("install", aliases=["i"], help="Install project dependencies")
    p_install.set_defaults(func=cmd_install)

    # add / a
    p_add = subparsers.add_parser("add", aliases=["a"], help="Add a dependency (dev by default)")
    p_add.add_argument("name")
    p_add.add_argument("--prod", "-P", action="store_true", help="Add as a regular dependency")
    p_add.set_defaults(func=cmd_add)

    # upgrade / up
    p_upgrade = subparsers.add_parser("upgrade", aliases=["up"], help="Upgrade a dependency")
    p_upgrade.add_argument("name")
    p_upgrade.set_defaults(func=cmd_upgrade)

    # remove / rm
    p_remove = subparsers.add_parser("remove", aliases=["rm"], help="Remove a dependency")
    p_remove.add_argument("name")
    p_remove.set_defaults(func=cmd_remove)

    # info
    p_info = subparsers.add_parser("info", help="Show registry metadata as JSON")
    p_info.add_argument("name")
    p_info.add_argument("field", nargs="?", default="")
    p_info.set_defaults(func=cmd_info)

    # version / v
    p_version = subparsers.add_parser("version", aliases=["v"], help="Resolve the newest matching remote version")
    p_version.add_argument("spec", help="name or name@range")
    p_version.add_argument("version_range", nargs="?", default=None, help="dist-tag or semver range")
    p_version.set_defaults(func=cmd_version)

    # installed
    p_installed = subparsers.add_parser("installed", help="Show the locally installed version")
    p_installed.add_argument("name")
    p_installed.set_defaults(func=cmd_installed)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        sys.exit(1)

    if args.verbose:
        set_verbose(True)

    arg_dict = vars(args)
    for key in ("func", "command", "verbose"):
        arg_dict.pop(key, None)
    cwd = arg_dict.pop("cwd")
    bin_name = arg_dict.pop("bin")
    registry = arg_dict.pop("registry")

    try:
        pm = PackageManager(
            cwd,
            bin=bin_name,
            config=Config(),
            argv=["--registry", registry] if registry else [],
        )
        asyncio.run(func(pm, **arg_dict))
    except (UnipmError, ValueError, requests.RequestException) as e:
        # ValueError covers unparsable `info --json` output
        _logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
