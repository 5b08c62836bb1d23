"""CLI 命令单元测试（CliRunner + 假拉取器）"""

from __future__ import annotations

import shutil

import pytest
from click.testing import CliRunner

import ven.cli as cli
from ven import __version__
from ven.cli import main
from ven.core.config import Config
from ven.core.exceptions import OperationCancelled
from ven.core.manifest import Manifest
from ven.services.vendor_service import VendorService
from ven.utils.logger import reset_logging

LIB = "github.com/a/lib"


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()


@pytest.fixture()
def runner(fake_fetcher, in_tmp, monkeypatch) -> CliRunner:
    fake_fetcher.add(LIB, {"lib.go": "package lib\n"}, tag="v1.0.0")
    monkeypatch.delenv("VEN_CONFIG", raising=False)
    monkeypatch.setattr(
        cli, "_svc",
        lambda cancel: VendorService(
            Config(gopath=str(in_tmp / "gopath")), fetcher=fake_fetcher, cancel=cancel,
        ),
    )
    return CliRunner()


class TestMain:
    def test_version(self, runner) -> None:
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner) -> None:
        result = runner.invoke(main, ["--help"])
        for name in ("init", "fetch", "get", "install", "list"):
            assert name in result.output

    def test_invalid_config_file(self, runner, in_tmp) -> None:
        (in_tmp / ".ven.yml").write_text("default_exclude_dirs: x\n", encoding="utf-8")
        result = runner.invoke(main, ["list"])
        assert result.exit_code == 1
        assert "必须是列表" in result.output


class TestInit:
    def test_creates_manifest(self, runner, in_tmp) -> None:
        result = runner.invoke(main, ["init", "--exclude-builds", "windows,386", "--exclude-builds", "js"])
        assert result.exit_code == 0, result.output
        assert "386, js, windows" in result.output
        assert Manifest.load(in_tmp / "Manifest.yml").exclude_build == {"windows", "386", "js"}

    def test_second_init_fails(self, runner) -> None:
        assert runner.invoke(main, ["init"]).exit_code == 0
        result = runner.invoke(main, ["init"])
        assert result.exit_code == 1
        assert "清单已存在" in result.output


class TestVendorCommands:
    def test_get_then_list(self, runner) -> None:
        result = runner.invoke(main, ["get", LIB])
        assert result.exit_code == 0, result.output
        assert f"+ {LIB}" in result.output

        listed = runner.invoke(main, ["list"])
        assert LIB in listed.output
        assert "v1.0.0" in listed.output

    def test_list_empty(self, runner) -> None:
        result = runner.invoke(main, ["list"])
        assert result.exit_code == 0
        assert "清单中没有包" in result.output

    def test_get_requires_packages(self, runner) -> None:
        assert runner.invoke(main, ["get"]).exit_code == 2

    def test_get_failure_exit_code(self, runner, fake_fetcher) -> None:
        fake_fetcher.fail(LIB)
        result = runner.invoke(main, ["get", LIB])
        assert result.exit_code == 1
        assert "git clone 失败" in result.output

    def test_cancel_exit_code(self, runner, fake_fetcher) -> None:
        fake_fetcher.fail(LIB, OperationCancelled())
        result = runner.invoke(main, ["get", "-v", LIB])
        assert result.exit_code == 130
        assert "已取消" in result.output

    def test_install_after_get(self, runner, in_tmp) -> None:
        runner.invoke(main, ["get", LIB])
        shutil.rmtree(in_tmp / "vendor")
        result = runner.invoke(main, ["install"])
        assert result.exit_code == 0, result.output
        assert "完成: 1 个包" in result.output

    def test_fetch_with_existing_vendor(self, runner, in_tmp) -> None:
        (in_tmp / "vendor").mkdir()
        result = runner.invoke(main, ["fetch"])
        assert result.exit_code == 1
        assert "vendor 目录已存在" in result.output
