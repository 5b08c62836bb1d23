"""import 图遍历

职责:
- 按目录遍历 Go 源文件，收集外部 import 与本包内引用的子包
- 目录排除（隐藏目录 / vendor / 测试夹具目录 / 清单配置的排除目录）
- 入口文件 (package main) 与构建约束过滤
- 定向扫描: 从指定子包出发做广度优先不动点，直到不再发现新的本地子包
- 按根包归并外部 import
- 拉取后的过滤清理 (prune)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from ven.core.buildtags import filename_excluded, source_excluded
from ven.core.exceptions import VendorFsError, WalkError
from ven.core.goparse import GoSyntaxError, parse_imports
from ven.core.manifest import Manifest, longest_prefix, package_root
from ven.utils.files import remove_tree

logger = logging.getLogger(__name__)

# 固定排除的测试夹具目录名
FIXTURE_DIRS = ("testdata", "_testdata")

# cgo / 汇编相关文件在过滤时保留
KEEP_EXTENSIONS = (".s", ".S", ".asm", ".h", ".o", ".c", ".cc")


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def classify_import(pkg: str, imp: str) -> str:
    """import 分类: std / relative / local / external

    - 不含 "/" 或首段不像域名: 标准库
    - ./ ../ 开头: 相对路径，忽略
    - 位于当前包（或当前包三段式根）之下: local
    - 其余: external
    """
    if "/" not in imp:
        return "std"
    if imp.startswith("./") or imp.startswith("../"):
        return "relative"
    if "." not in imp.split("/", 1)[0]:
        return "std"
    if pkg:
        if _under(imp, pkg):
            return "local"
        parts = pkg.split("/")
        # 从项目子目录（如 ./cmd）解析时，同一项目的其他目录仍算本地
        if len(parts) > 3 and _under(imp, "/".join(parts[:3])):
            return "local"
    return "external"


@dataclass
class CollectResult:
    """一次 import 收集的结果"""

    imports: list[str] = field(default_factory=list)
    locals: list[str] = field(default_factory=list)
    grouped: dict[str, list[str]] = field(default_factory=dict)


class ImportWalker:
    """import 图遍历器，排除规则来自清单"""

    def __init__(self, manifest: Manifest) -> None:
        self.manifest = manifest

    # ------------------------------------------------------------------
    # 目录排除
    # ------------------------------------------------------------------

    def dir_is_excluded(self, rel_path: str) -> bool:
        """rel_path 为相对遍历根（包根 / 项目目录）的路径"""
        rel = rel_path.replace(os.sep, "/").strip("/")
        if rel in ("", "."):
            return False
        name = rel.rsplit("/", 1)[-1]
        if name == "vendor" or name.startswith(".") or name.startswith("_"):
            return True
        wrapped = f"/{rel}/"
        for excl in (*FIXTURE_DIRS, *sorted(self.manifest.exclude_dir)):
            excl = excl.strip("/")
            if excl and f"/{excl}/" in wrapped:
                return True
        return False

    def subpackage_excluded(self, root: str, subpkg: str) -> bool:
        """子包 import 路径相对根包判断是否排除"""
        if subpkg == root:
            return False
        if _under(subpkg, root):
            return self.dir_is_excluded(subpkg[len(root) + 1:])
        return self.dir_is_excluded(subpkg)

    # ------------------------------------------------------------------
    # 单目录遍历
    # ------------------------------------------------------------------

    def walk_dir(
        self,
        pkg: str,
        directory: Path,
        rel: str,
        *,
        scan_all: bool,
        imports: set[str],
        include_main: bool = False,
    ) -> list[str]:
        """扫描目录内的 .go 文件，外部 import 写入 imports，返回本地引用

        scan_all=True 时深度优先递归所有未排除的子目录。
        """
        if not directory.is_dir():
            raise WalkError(
                f"目录 {directory} 不存在，包 ({pkg}) 的版本可能与代码不兼容"
            )
        locals_: list[str] = []
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            raise WalkError(f"无法读取目录 {directory}: {e}") from e

        for entry in entries:
            child_rel = f"{rel}/{entry.name}" if rel else entry.name
            if entry.is_dir(follow_symlinks=False):
                if self.dir_is_excluded(child_rel):
                    continue
                if scan_all:
                    locals_.extend(self.walk_dir(
                        pkg, Path(entry.path), child_rel,
                        scan_all=True, imports=imports, include_main=include_main,
                    ))
                continue
            if not entry.name.endswith(".go"):
                continue
            self._scan_file(pkg, Path(entry.path), imports, locals_, include_main)
        return locals_

    def _scan_file(
        self,
        pkg: str,
        path: Path,
        imports: set[str],
        locals_: list[str],
        include_main: bool,
    ) -> None:
        try:
            source = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise WalkError(f"无法读取文件 {path}: {e}") from e
        try:
            parsed = parse_imports(source)
        except GoSyntaxError as e:
            logger.debug("解析 import 失败 (%s): %s", path, e)
            return

        if not parsed.imports:
            return
        if parsed.is_main and not include_main:
            return
        excluded = self.manifest.exclude_build
        if excluded:
            tag = filename_excluded(path.name, excluded)
            if tag:
                logger.debug("文件 (%s) 带构建标签 (%s)，已排除", path.name, tag)
                return
            if source_excluded(source, excluded):
                logger.debug("文件 (%s) 的构建约束全部被排除", path)
                return

        for imp in parsed.imports:
            kind = classify_import(pkg, imp)
            if kind == "local":
                locals_.append(imp)
            elif kind == "external":
                imports.add(imp)

    # ------------------------------------------------------------------
    # 收集 + 归并
    # ------------------------------------------------------------------

    def collect(
        self,
        pkg: str,
        *,
        base_dir: Path | None = None,
        subpackages: list[str] | None = None,
        is_new: bool = True,
        fetch_all: bool = False,
        include_main: bool = False,
    ) -> CollectResult:
        """收集包的外部 import

        fetch_all=True: 从 base_dir（默认 vendor/<pkg>）递归扫描全部目录；
        否则只扫描 subpackages（新包额外包含根目录），并沿本地引用
        广度优先扩展，直到不再出现新的子包。
        """
        imports: set[str] = set()
        if fetch_all:
            directory = base_dir if base_dir is not None else self.manifest.vendor_dir(pkg)
            found = self.walk_dir(
                pkg, directory, "", scan_all=True,
                imports=imports, include_main=include_main,
            )
            locals_ = sorted(set(found))
        else:
            locals_ = self._walk_targeted(pkg, subpackages or [], is_new, imports, include_main)

        ordered = sorted(imports)
        return CollectResult(
            imports=ordered,
            locals=locals_,
            grouped=self.group_by_root(ordered),
        )

    def _walk_targeted(
        self,
        pkg: str,
        subpackages: list[str],
        is_new: bool,
        imports: set[str],
        include_main: bool,
    ) -> list[str]:
        pending: list[str] = []
        includes_main = False
        for d in subpackages:
            if d == pkg:
                if not includes_main:
                    includes_main = True
                    pending.append(d)
            elif not self.subpackage_excluded(pkg, d):
                pending.append(d)
        if not includes_main and is_new:
            pending.append(pkg)

        walked: set[str] = set()
        while pending:
            next_round: list[str] = []
            for d in pending:
                key = os.path.normpath(d)
                if key in walked:
                    continue
                walked.add(key)
                rel = d[len(pkg) + 1:] if _under(d, pkg) and d != pkg else ""
                found = self.walk_dir(
                    pkg, self.manifest.vendor_dir(d), rel, scan_all=False,
                    imports=imports, include_main=include_main,
                )
                for local in found:
                    if os.path.normpath(local) not in walked and not self.subpackage_excluded(pkg, local):
                        next_round.append(local)
            pending = next_round
        return sorted(walked)

    def group_by_root(self, imports: list[str]) -> dict[str, list[str]]:
        """按根包归并 import；已登记的根包优先，较长路径并入已出现的前缀"""
        grouped: dict[str, list[str]] = {}
        for imp in sorted(imports):
            root = package_root(imp)
            existing = self.manifest.find_package(root)
            if existing.found:
                root = existing.prefix
            hit = longest_prefix(grouped, root)
            if hit.found:
                grouped[hit.prefix].append(imp)
            else:
                grouped[root] = [imp]
        return grouped

    # ------------------------------------------------------------------
    # 子包枚举与拉取后过滤
    # ------------------------------------------------------------------

    def list_subpackages(self, root: str) -> set[str]:
        """枚举 vendor/<root> 下所有目录对应的 import 路径（含根本身）"""
        vendor = self.manifest.vendor_dir()
        base = self.manifest.vendor_dir(root)
        result: set[str] = set()
        if not base.is_dir():
            return result
        for dirpath, _dirnames, _filenames in os.walk(base):
            rel = os.path.relpath(dirpath, vendor)
            result.add(rel.replace(os.sep, "/"))
        return result

    def prune(self, root_dir: Path) -> None:
        """删除排除目录、目录符号链接、非 Go 文件与 _test.go，最后自底向上清理空目录"""
        try:
            for dirpath, dirnames, filenames in os.walk(root_dir):
                rel = os.path.relpath(dirpath, root_dir)
                rel = "" if rel == "." else rel.replace(os.sep, "/")
                for d in list(dirnames):
                    child = os.path.join(dirpath, d)
                    child_rel = f"{rel}/{d}" if rel else d
                    if os.path.islink(child):
                        os.unlink(child)
                        dirnames.remove(d)
                        continue
                    if self.dir_is_excluded(child_rel):
                        remove_tree(child)
                        dirnames.remove(d)
                for name in filenames:
                    if name.endswith(".go") and not name.endswith("_test.go"):
                        continue
                    if name.endswith(KEEP_EXTENSIONS):
                        continue
                    os.unlink(os.path.join(dirpath, name))

            for dirpath, _dirnames, _filenames in os.walk(root_dir, topdown=False):
                if os.path.samefile(dirpath, root_dir):
                    continue
                if not os.listdir(dirpath):
                    os.rmdir(dirpath)
        except OSError as e:
            raise VendorFsError(f"过滤 {root_dir} 失败: {e}") from e
