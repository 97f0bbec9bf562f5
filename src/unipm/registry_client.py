from __future__ import annotations

import atexit
from typing import Any, Optional
from urllib.parse import quote

import requests
import urllib3
from requests.adapters import HTTPAdapter, Retry

from .config import Config
from .logger import setup_logger

_logger = setup_logger()


class RegistryClient:
    """
    Direct HTTP access to an npm-compatible registry.

    Used when metadata_backend = http, so metadata queries skip spawning
    the package-manager binary.
    """

    def __init__(self, config: Config) -> None:
        self.config = config

        self.proxy_url = getattr(self.config, "proxy_url", None)
        self.verify_ssl = getattr(self.config, "verify_ssl", True)
        self.ca_bundle = getattr(self.config, "ca_bundle", None)
        self.retries = getattr(self.config, "retries", 3)

        # Timeouts (Connect, Read)
        self.timeout = (
            getattr(self.config, "timeout_connect", 10),
            getattr(self.config, "timeout_read", 60),
        )

        self.session: Optional[requests.Session] = None
        self._close_registered = False

    def _init_session(self) -> None:
        if self.session:
            self.session.close()

        self.session = requests.Session()
        if not self._close_registered:
            atexit.register(self.close)
            self._close_registered = True

        if self.proxy_url:
            self.session.proxies.update({
                "http": self.proxy_url,
                "https": self.proxy_url,
            })

        retry_strategy = Retry(
            total=self.retries,
            backoff_factor=0.3,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
        )
        adapter = HTTPAdapter(pool_connections=10, pool_maxsize=10, max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        if not self.verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            self.session.verify = False
            _logger.warning("SSL verification disabled (Insecure).")
        else:
            self.session.verify = self.ca_bundle if self.ca_bundle else True

    def close(self) -> None:
        if self.session:
            self.session.close()
            self.session = None

    @staticmethod
    def package_url(registry: str, package_name: str) -> str:
        # scoped names keep the leading "@" but escape the slash
        return f"{registry.rstrip('/')}/{quote(package_name, safe='@')}"

    def fetch(self, registry: str, package_name: str, field: str = "") -> Any:
        """GET the packument; with `field`, return only that top-level key."""
        if not self.session:
            self._init_session()

        url = self.package_url(registry, package_name)
        _logger.debug("GET %s", url)
        with self.session.get(url, timeout=self.timeout, headers={"Accept": "application/json"}) as resp:
            resp.raise_for_status()
            document = resp.json()

        if field:
            return document.get(field)
        return document
