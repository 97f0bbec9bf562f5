import json

import pytest

from unipm.cache import MetadataCache
from unipm.config import Config


class FakeRunner:
    """Records calls instead of spawning package managers."""

    def __init__(self, outputs=None, version="8.15.0"):
        self.outputs = dict(outputs or {})
        self.version = version
        self.executed = []
        self.captured = []

    def execute(self, binary, args, cwd=None, env=None):
        self.executed.append((binary, list(args), cwd, dict(env or {})))
        return 0

    def capture(self, binary, args, cwd=None, env=None):
        self.captured.append((binary, list(args)))
        package = args[1]
        out = self.outputs[package]
        if isinstance(out, Exception):
            raise out
        return out if isinstance(out, str) else json.dumps(out)

    def probe_version(self, binary):
        return self.version


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    monkeypatch.delenv("UNIPM_TEST", raising=False)
    monkeypatch.delenv("UNIPM_DEBUG", raising=False)
    monkeypatch.delenv("CYPRESS_INSTALL_BINARY", raising=False)
    monkeypatch.setenv("UNIPM_CONFIG_DIR", str(tmp_path / "config"))


@pytest.fixture
def config(tmp_path):
    return Config(tmp_path / "config")


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    (root / "package.json").write_text('{"name": "demo", "version": "1.0.0"}')
    return root


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return MetadataCache(max_size=200, ttl=60 * 30, clock=clock)


@pytest.fixture
def make_runner():
    return FakeRunner
