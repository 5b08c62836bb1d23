"""vendor 服务 — init / fetch / get / install / list 顶层操作

每个顶层操作:
  1. 加载清单（或新建）
  2. 创建新的解析运行期缓存
  3. 调用解析器 / 拉取器
  4. 成功后原子保存清单

失败与取消时的清理:
  - fetch / install: 删除整个 vendor 目录
  - get: 由 VendorTransaction 恢复备份或删除新拉取的包
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ven.core.cancel import CancelToken
from ven.core.config import Config, get_config
from ven.core.exceptions import ManifestError, VendorFsError, VenError
from ven.core.manifest import Manifest, Package, package_root
from ven.core.resolver import ImportOptions, Resolver
from ven.core.transaction import VendorTransaction
from ven.core.walker import ImportWalker
from ven.foreign import ForeignSource
from ven.utils.files import path_exists, remove_tree
from ven.vcs.discovery import RepoDiscovery
from ven.vcs.provider import Fetcher, VendorFetcher

logger = logging.getLogger(__name__)

LOCAL_PREFIX = "file://"


def parse_package_arg(arg: str) -> tuple[str, str, bool]:
    """解析命令行包参数，返回 (包路径, 版本, 是否本地)

    >>> parse_package_arg("file://github.com/me/lib@v1.0")
    ('github.com/me/lib', 'v1.0', True)
    >>> parse_package_arg("github.com/pkg/errors@")
    ('github.com/pkg/errors@', '', False)
    """
    local = arg.startswith(LOCAL_PREFIX)
    if local:
        arg = arg[len(LOCAL_PREFIX):]
    version = ""
    i = arg.find("@")
    if i != -1 and i != len(arg) - 1:
        arg, version = arg[:i], arg[i + 1:]
    return arg, version, local


class VendorService:
    """vendor 目录与清单的顶层操作"""

    def __init__(
        self,
        config: Config | None = None,
        *,
        manifest_path: str = "",
        fetcher: Fetcher | None = None,
        sources: list[ForeignSource] | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        self.config = config or get_config()
        self.manifest_path = Path(manifest_path or self.config.manifest_file)
        self.cancel = cancel or CancelToken()
        self.sources = sources
        self._fetcher = fetcher

    # ---- 内部构造 ----

    def load_manifest(self) -> Manifest:
        return Manifest.load(self.manifest_path)

    def _fetcher_for(self, manifest: Manifest) -> Fetcher:
        if self._fetcher is not None:
            return self._fetcher
        return VendorFetcher(
            manifest.vendor_path,
            self.config.gopath_src(),
            discovery=RepoDiscovery(timeout=self.config.http_timeout),
            cancel=self.cancel,
        )

    def _resolver(self, manifest: Manifest) -> Resolver:
        return Resolver(
            manifest,
            self._fetcher_for(manifest),
            walker=ImportWalker(manifest),
            sources=self.sources,
            cancel=self.cancel,
        )

    @staticmethod
    def _ensure_no_vendor(manifest: Manifest) -> None:
        vendor = manifest.vendor_dir()
        if path_exists(vendor):
            raise VendorFsError(f"vendor 目录已存在: {vendor}")

    def project_import_path(self, directory: str | Path | None = None) -> str:
        """当前目录相对 $GOPATH/src 的 import 路径；不在 GOPATH 内返回空串"""
        cwd = Path(directory or os.getcwd()).resolve()
        src = Path(self.config.gopath_src()).resolve()
        try:
            rel = cwd.relative_to(src)
        except ValueError:
            logger.warning("当前目录 %s 不在 %s 下，项目内 import 将按外部包处理", cwd, src)
            return ""
        return rel.as_posix()

    # ---- init ----

    def init(
        self,
        exclude_builds: list[str] | None = None,
        exclude_dirs: list[str] | None = None,
    ) -> Manifest:
        """为当前项目创建清单；清单已存在时报错"""
        if path_exists(self.manifest_path):
            raise ManifestError(f"清单已存在: {self.manifest_path}")
        builds = self.config.default_exclude_builds if exclude_builds is None else exclude_builds
        dirs = self.config.default_exclude_dirs if exclude_dirs is None else exclude_dirs
        manifest = Manifest(
            exclude_build={b for b in builds if b},
            exclude_dir={d for d in dirs if d},
        )
        manifest.save(self.manifest_path)
        logger.info("清单已创建: %s", self.manifest_path)
        return manifest

    # ---- fetch ----

    def fetch(self, update: bool = False, directory: str | Path | None = None) -> Manifest:
        """扫描当前项目并拉取全部依赖；失败或取消时删除 vendor 目录"""
        manifest = self.load_manifest()
        self._ensure_no_vendor(manifest)
        project_dir = Path(directory) if directory is not None else Path(".")
        project = self.project_import_path(project_dir)
        resolver = self._resolver(manifest)
        resolver.new_run()

        try:
            resolver.seed_constraints(project or str(project_dir), project_dir)
            result = resolver.walker.collect(
                project,
                base_dir=project_dir,
                fetch_all=True,
                include_main=True,
            )
            logger.debug("项目 (%s) 外部 import: %d 个", project, len(result.imports))
            resolver.resolve_all(
                result.grouped,
                ImportOptions(update=update, update_deps=update),
            )
            manifest.save(self.manifest_path)
        except BaseException:
            self._discard_vendor(manifest)
            raise
        return manifest

    # ---- get ----

    def get(
        self,
        packages: list[str],
        *,
        update: bool = False,
        update_deps: bool = False,
        constraint: bool = False,
    ) -> list[str]:
        """拉取指定包及其依赖，返回本次新增的根包"""
        manifest = self.load_manifest()
        resolver = self._resolver(manifest)
        run = resolver.new_run()

        with VendorTransaction(
            manifest.vendor_path,
            is_update=update or update_deps,
            run=run,
        ):
            for arg in packages:
                pkg, version, local = parse_package_arg(arg)
                if constraint and version:
                    manifest.constraints[pkg] = version
                resolver.resolve(pkg, ImportOptions(
                    version=version,
                    local=local,
                    fetch_all=pkg == package_root(pkg),
                    update=update,
                    update_deps=update_deps,
                ))
            manifest.save(self.manifest_path)
        return list(run.new_packages)

    # ---- install ----

    def install(self) -> Manifest:
        """按清单中的 commit 重新拉取全部包；失败或取消时删除 vendor 目录"""
        manifest = self.load_manifest()
        self._ensure_no_vendor(manifest)
        fetcher = self._fetcher_for(manifest)
        walker = ImportWalker(manifest)

        try:
            for name in sorted(manifest.packages):
                self.cancel.check()
                pkg = manifest.packages[name]
                local = manifest.is_local(name).found
                result = fetcher.fetch(name, pkg.commit_hash, local, True)
                walker.prune(manifest.vendor_dir(result.root))
                logger.info("%s: %s", name, pkg.describe())
        except BaseException:
            self._discard_vendor(manifest)
            raise
        return manifest

    # ---- list ----

    def list_packages(self) -> list[Package]:
        manifest = self.load_manifest()
        return [manifest.packages[name] for name in sorted(manifest.packages)]

    def _discard_vendor(self, manifest: Manifest) -> None:
        vendor = manifest.vendor_dir()
        try:
            remove_tree(vendor)
        except VenError as e:
            logger.warning("删除 vendor 目录失败 %s: %s", vendor, e)
