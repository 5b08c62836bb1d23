"""测试共享 fixture — 假拉取器 + 源码树构造

整体结构:

  fake_fetcher.add(root, files, version=..., commit=..., tag=...)
        │
        ▼
  Resolver / VendorService ──fetch()──> 把 files 写入 ./vendor/<root>

所有用例在 tmp_path 下执行（chdir），清单与 vendor 使用相对路径，
无需网络与 git。
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from ven.core.exceptions import VcsError, VendorFsError
from ven.vcs.provider import FetchResult

TESTDATA = Path(__file__).parent / "testdata"


def _write_tree(base: Path, files: dict[str, str]) -> Path:
    for rel, content in files.items():
        path = base / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return base


class FakeFetcher:
    """按预置内容"拉取"仓库，记录每次调用"""

    def __init__(self, vendor_path: str = "vendor") -> None:
        self.vendor_path = Path(vendor_path)
        # root -> version -> (commit, tag, files)；version 为空表示默认分支
        self.repos: dict[str, dict[str, tuple[str, str, dict[str, str]]]] = {}
        # root -> {相对路径: 链接目标}，拉取后创建为符号链接
        self.links: dict[str, dict[str, str]] = {}
        self.calls: list[tuple[str, str, bool, bool]] = []
        self.failing: dict[str, BaseException] = {}

    def add(
        self,
        root: str,
        files: dict[str, str],
        *,
        version: str = "",
        commit: str = "",
        tag: str = "",
    ) -> None:
        commit = commit or f"{root.rsplit('/', 1)[-1]}-{version or 'head'}"
        self.repos.setdefault(root, {})[version] = (commit, tag, files)

    def link(self, root: str, rel: str, target: str) -> None:
        self.links.setdefault(root, {})[rel] = target

    def fail(self, root: str, error: BaseException | None = None) -> None:
        self.failing[root] = error or VcsError(f"git clone 失败: {root}")

    def fetched_roots(self) -> list[str]:
        return [c[0] for c in self.calls]

    def _select(self, root: str, version: str, required: bool) -> tuple[str, str, dict[str, str]]:
        versions = self.repos.get(root)
        if versions is None:
            raise VcsError(f"未知仓库: {root}")
        if version in versions:
            return versions[version]
        for entry in versions.values():
            if version and entry[0] == version:
                return entry
        if version and required:
            raise VcsError(f"git checkout {version} 失败")
        return versions[""]

    def fetch(self, root: str, version: str, local: bool, required: bool) -> FetchResult:
        self.calls.append((root, version, local, required))
        if root in self.failing:
            raise self.failing[root]
        commit, tag, files = self._select(root, version, required)
        dest = self.vendor_path / root
        if dest.exists():
            raise VendorFsError(f"目标目录已存在: {dest}")
        dest.mkdir(parents=True)
        _write_tree(dest, files)
        for rel, target in self.links.get(root, {}).items():
            link = dest / rel
            link.parent.mkdir(parents=True, exist_ok=True)
            os.symlink(target, link)
        return FetchResult(root=root, commit=commit, tag=tag)


@pytest.fixture()
def in_tmp(tmp_path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def fake_fetcher(in_tmp) -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture()
def write_tree():
    return _write_tree


@pytest.fixture()
def testdata() -> Path:
    return TESTDATA
