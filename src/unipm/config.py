import configparser
import os
from pathlib import Path
from typing import List, Optional, Union

from .logger import setup_logger

_logger = setup_logger()


def _split_list(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


class Config:
    def __init__(self, config_dir: Optional[Union[str, Path]] = None) -> None:
        if config_dir is None:
            env_dir = os.environ.get("UNIPM_CONFIG_DIR")
            config_dir = Path(env_dir) if env_dir else Path.home() / ".config" / "unipm"
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_path = self.config_dir / "unipm.conf"

        # Default values
        self.package_manager: Optional[str] = None
        self.default_registry: str = "npmmirror"
        self.metadata_backend: str = "cli"
        self.mirror_region: str = "china"
        self.link_root: Optional[Path] = None
        self.first_party_packages: List[str] = ["@unipm/cli-service"]
        self.first_party_prefixes: List[str] = ["@unipm/cli-plugin-"]

        # Cache Defaults
        self.cache_max_size: int = 200
        self.cache_ttl: int = 60 * 30

        # Network Defaults
        self.timeout_connect: int = 10
        self.timeout_read: int = 60
        self.retries: int = 3
        self.verify_ssl: bool = True
        self.proxy_url: Optional[str] = None
        self.ca_bundle: Optional[str] = None

        self.load()

    def load(self) -> None:
        parser = configparser.ConfigParser()
        if not self.config_path.exists():
            _logger.debug(f"Config file {self.config_path} not found. Creating default config.")
            self._write_default_config()

        parser.read(self.config_path)

        # [general]
        pm = parser.get("general", "package_manager", fallback="")
        self.package_manager = pm or None
        self.default_registry = parser.get("general", "default_registry", fallback=self.default_registry)
        self.metadata_backend = parser.get("general", "metadata_backend", fallback=self.metadata_backend).lower()
        self.mirror_region = parser.get("general", "mirror_region", fallback=self.mirror_region)

        lr = parser.get("general", "link_root", fallback="")
        self.link_root = Path(lr) if lr else None

        if parser.has_option("general", "first_party_packages"):
            self.first_party_packages = _split_list(parser.get("general", "first_party_packages"))
        if parser.has_option("general", "first_party_prefixes"):
            self.first_party_prefixes = _split_list(parser.get("general", "first_party_prefixes"))

        # [cache]
        if parser.has_section("cache"):
            self.cache_max_size = parser.getint("cache", "max_size", fallback=self.cache_max_size)
            self.cache_ttl = parser.getint("cache", "ttl", fallback=self.cache_ttl)

        # [network]
        if parser.has_section("network"):
            self.timeout_connect = parser.getint("network", "timeout_connect", fallback=10)
            self.timeout_read = parser.getint("network", "timeout_read", fallback=60)
            self.retries = parser.getint("network", "retries", fallback=3)
            self.verify_ssl = parser.getboolean("network", "verify_ssl", fallback=True)

            # Empty strings map to None
            self.ca_bundle = parser.get("network", "ca_bundle", fallback=None) or None
            self.proxy_url = parser.get("network", "proxy_url", fallback=None) or None

        if self.metadata_backend not in ("cli", "http"):
            _logger.warning(f"Unknown metadata_backend '{self.metadata_backend}', using 'cli'.")
            self.metadata_backend = "cli"

    def _write_default_config(self) -> None:
        parser = configparser.ConfigParser()
        parser["general"] = {
            "package_manager": self.package_manager or "",
            "default_registry": self.default_registry,
            "metadata_backend": self.metadata_backend,
            "mirror_region": self.mirror_region,
            "link_root": str(self.link_root) if self.link_root else "",
            "first_party_packages": ", ".join(self.first_party_packages),
            "first_party_prefixes": ", ".join(self.first_party_prefixes),
        }
        parser["cache"] = {
            "max_size": str(self.cache_max_size),
            "ttl": str(self.cache_ttl),
        }
        parser["network"] = {
            "timeout_connect": str(self.timeout_connect),
            "timeout_read": str(self.timeout_read),
            "retries": str(self.retries),
            "verify_ssl": str(self.verify_ssl).lower(),
            "ca_bundle": self.ca_bundle or "",
            "proxy_url": self.proxy_url or "",
        }
        with self.config_path.open("w") as f:
            parser.write(f)
        _logger.debug(f"Default config written to {self.config_path}")
