import logging
import os

import pytest

from unipm.dialects import Manager
from unipm.manager import PackageManager, detect_manager, is_test_or_debug
from unipm.mirrors import CYPRESS_ENV, MirrorStatus
from unipm.registry import MIRROR_PROVIDER, REGISTRIES

NPM_REG = f"--registry={REGISTRIES['npm']}"

MIRROR_CONFIG = {
    "mirrors": {
        "china": {
            "ENVS": {"SASS_BINARY_SITE": "https://npmmirror.com/mirrors/node-sass"},
            "cypress": {"host": "https://cdn.npmmirror.com/binaries/cypress"},
        }
    }
}
CYPRESS = {"dist-tags": {"latest": "13.6.0"}, "versions": ["3.8.3", "13.6.0"]}


def make_pm(project, config, runner, cache, registry=REGISTRIES["npm"], **kwargs):
    argv = ["--registry", registry] if registry else []
    kwargs.setdefault("environ", {})
    return PackageManager(project, config=config, runner=runner, cache=cache, argv=argv, **kwargs)


# --------------------------------------------------------
# Detection
# --------------------------------------------------------

def test_detect_priority(tmp_path):
    everything = lambda name: f"/usr/bin/{name}"
    assert detect_manager(tmp_path, which=everything) is Manager.NPM

    (tmp_path / "pnpm-lock.yaml").write_text("")
    assert detect_manager(tmp_path, which=everything) is Manager.PNPM

    (tmp_path / "yarn.lock").write_text("")
    assert detect_manager(tmp_path, which=everything) is Manager.YARN


def test_detect_requires_binary(tmp_path):
    (tmp_path / "yarn.lock").write_text("")
    (tmp_path / "pnpm-lock.yaml").write_text("")
    only_pnpm = lambda name: "/usr/bin/pnpm" if name == "pnpm" else None
    assert detect_manager(tmp_path, which=only_pnpm) is Manager.PNPM
    assert detect_manager(tmp_path, which=lambda name: None) is Manager.NPM


def test_detection_in_constructor(project, config, runner, cache, monkeypatch):
    (project / "yarn.lock").write_text("")
    monkeypatch.setattr("unipm.manager.shutil.which", lambda name: f"/usr/bin/{name}")
    pm = make_pm(project, config, runner, cache)
    assert pm.bin == "yarn"
    assert pm.dialect.envelope


def test_configured_manager_overrides_detection(project, config, runner, cache):
    config.package_manager = "pnpm"
    pm = make_pm(project, config, runner, cache)
    assert pm.bin == "pnpm"
    assert "--shamefully-hoist" in pm.dialect.install


def test_unsupported_manager_warns_and_falls_back(project, config, runner, cache, caplog):
    with caplog.at_level(logging.WARNING, logger="unipm"):
        pm = make_pm(project, config, runner, cache, bin="cnpm")
    assert pm.bin == "cnpm"
    assert not pm.dialect.supported
    assert pm.dialect.install == ("install", "--loglevel", "error")
    assert "not officially supported" in caplog.text


# --------------------------------------------------------
# Operations
# --------------------------------------------------------

@pytest.mark.asyncio
async def test_install(project, config, runner, cache):
    pm = make_pm(project, config, runner, cache, bin="npm")
    await pm.install()
    binary, args, cwd, env = runner.executed[0]
    assert binary == "npm"
    assert args == ["install", "--loglevel", "error", NPM_REG]
    assert cwd == project.resolve()
    assert env == {}


@pytest.mark.asyncio
async def test_yarn_install_has_only_registry(project, config, runner, cache):
    pm = make_pm(project, config, runner, cache, bin="yarn")
    await pm.install()
    assert runner.executed[0][1] == [NPM_REG]


@pytest.mark.asyncio
async def test_add_dev_and_prod(project, config, runner, cache):
    pm = make_pm(project, config, runner, cache, bin="yarn")
    await pm.add("vue")
    await pm.add("vue-router@4", is_dev=False)
    assert runner.executed[0][1] == ["add", "vue", "-D", NPM_REG]
    assert runner.executed[1][1] == ["add", "vue-router@4", NPM_REG]


@pytest.mark.asyncio
async def test_upgrade_uses_add_verbs(project, config, runner, cache):
    pm = make_pm(project, config, runner, cache, bin="yarn")
    await pm.upgrade("vue@^3")
    assert runner.executed[0][1] == ["add", "vue@^3", NPM_REG]


@pytest.mark.asyncio
async def test_remove_skips_registry_and_mirrors(project, config, runner, cache):
    pm = make_pm(project, config, runner, cache, registry=None, bin="npm")
    await pm.remove("vue")
    assert runner.executed[0][1] == ["uninstall", "--loglevel", "error", "vue"]
    assert runner.captured == []


@pytest.mark.asyncio
async def test_command_failure_propagates(project, config, cache, make_runner):
    from unipm.errors import CommandFailed

    class FailingRunner(make_runner):
        def execute(self, binary, args, cwd=None, env=None):
            raise CommandFailed([binary, *args], 1)

    pm = make_pm(project, config, FailingRunner(), cache, bin="npm")
    with pytest.raises(CommandFailed):
        await pm.add("vue")


# --------------------------------------------------------
# Mirrors
# --------------------------------------------------------

@pytest.mark.asyncio
async def test_mirror_overlay_reaches_child_process(project, config, cache, make_runner):
    runner = make_runner({"binary-mirror-config": MIRROR_CONFIG, "cypress": CYPRESS})
    before = dict(os.environ)
    pm = make_pm(project, config, runner, cache, registry=None, bin="npm", platform="win32")

    await pm.install()

    binary, args, cwd, env = runner.executed[0]
    assert args[-1] == f"--registry={MIRROR_PROVIDER}"
    assert env["SASS_BINARY_SITE"] == "https://npmmirror.com/mirrors/node-sass"
    assert env[CYPRESS_ENV] == "https://cdn.npmmirror.com/binaries/cypress/3.8.3/win64/cypress.zip"
    assert dict(os.environ) == before


@pytest.mark.asyncio
async def test_mirrors_configured_once_per_instance(project, config, cache, make_runner):
    runner = make_runner({"binary-mirror-config": MIRROR_CONFIG, "cypress": CYPRESS})
    pm = make_pm(project, config, runner, cache, registry=None, bin="npm")

    first = await pm.set_binary_mirrors()
    await pm.add("a")
    await pm.upgrade("b")
    assert await pm.set_binary_mirrors() is first
    assert first.status is MirrorStatus.CONFIGURED


@pytest.mark.asyncio
async def test_mirror_failure_does_not_block_install(project, config, cache, make_runner):
    from unipm.errors import CommandFailed

    runner = make_runner({"binary-mirror-config": CommandFailed(["npm"], 1)})
    pm = make_pm(project, config, runner, cache, registry=None, bin="npm")

    await pm.install()
    assert pm._mirror_result.status is MirrorStatus.SKIPPED_ON_ERROR
    assert runner.executed[0][3] == {}


@pytest.mark.asyncio
async def test_no_mirror_for_other_registry(project, config, runner, cache):
    pm = make_pm(project, config, runner, cache, bin="npm")
    await pm.install()
    assert pm._mirror_result.status is MirrorStatus.SKIPPED_NOT_APPLICABLE
    assert pm.env == {}
    assert runner.captured == []


# --------------------------------------------------------
# Test/debug link bypass
# --------------------------------------------------------

def test_is_test_or_debug():
    assert is_test_or_debug({"UNIPM_TEST": "1"})
    assert is_test_or_debug({"UNIPM_DEBUG": "true"})
    assert not is_test_or_debug({})


@pytest.mark.asyncio
async def test_upgrade_links_first_party_package_in_test_mode(project, config, runner, cache, tmp_path):
    checkout = tmp_path / "checkout"
    (checkout / "@unipm" / "cli-plugin-foo").mkdir(parents=True)
    config.link_root = checkout
    existing = project / "node_modules" / "@unipm" / "cli-plugin-foo"
    existing.mkdir(parents=True)
    (existing / "package.json").write_text('{"version": "0.0.1"}')

    pm = make_pm(project, config, runner, cache, registry=None, environ={"UNIPM_TEST": "1"})
    await pm.upgrade("@unipm/cli-plugin-foo@^1.0.0")

    assert existing.is_symlink()
    assert existing.resolve() == (checkout / "@unipm" / "cli-plugin-foo").resolve()
    assert runner.executed == []
    assert runner.captured == []


@pytest.mark.asyncio
async def test_upgrade_replaces_existing_symlink(project, config, runner, cache, tmp_path):
    checkout = tmp_path / "checkout"
    (checkout / "@unipm" / "cli-service").mkdir(parents=True)
    config.link_root = checkout
    dest = project / "node_modules" / "@unipm" / "cli-service"
    dest.parent.mkdir(parents=True)
    os.symlink(tmp_path, dest, target_is_directory=True)

    pm = make_pm(project, config, runner, cache, environ={"UNIPM_DEBUG": "1"})
    await pm.upgrade("@unipm/cli-service")

    assert dest.resolve() == (checkout / "@unipm" / "cli-service").resolve()
    assert runner.executed == []


@pytest.mark.asyncio
async def test_upgrade_third_party_in_test_mode_runs_manager(project, config, runner, cache):
    pm = make_pm(project, config, runner, cache, bin="npm", environ={"UNIPM_TEST": "1"})
    await pm.upgrade("vue")
    assert runner.executed[0][1] == ["install", "--loglevel", "error", "vue", NPM_REG]


# --------------------------------------------------------
# Queries
# --------------------------------------------------------

@pytest.mark.asyncio
async def test_remote_and_installed_version(project, config, cache, make_runner):
    runner = make_runner({"vue": {"dist-tags": {"latest": "3.4.0"}, "versions": ["3.3.0", "3.4.0"]}})
    pm = make_pm(project, config, runner, cache, bin="npm")

    assert await pm.get_remote_version("vue") == "3.4.0"
    assert pm.get_installed_version("vue") == "N/A"

    vue = project / "node_modules" / "vue"
    vue.mkdir(parents=True)
    (vue / "package.json").write_text('{"version": "3.3.0"}')
    assert pm.get_installed_version("vue") == "3.3.0"


def test_registry_is_stable_per_instance(project, config, runner, cache):
    argv = ["--registry", "https://one.example"]
    pm = PackageManager(project, bin="npm", config=config, runner=runner, cache=cache, argv=argv)
    first = pm.get_registry()
    argv[1] = "https://two.example"
    assert pm.get_registry() == first
