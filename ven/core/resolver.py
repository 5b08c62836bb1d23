"""依赖解析编排

对每个 (包, ImportOptions) 任务:
1. 推导根包；命中排除前缀直接跳过
2. 命中本地包前缀则按本地包处理
3. 确定版本: 硬约束优先（与显式版本冲突即报错），否则使用本次运行缓存的软约束
4. 与清单中已有记录比对，决定 拉取 / 仅重新扫描 / 跳过
5. 拉取，读取第三方锁文件作为软约束，过滤非 Go 文件
6. 更新已有包时检测被移除的子包是否仍被其他包依赖
7. 扫描 import，按根包归并
8. 写回清单
9. 将归并出的外部根包压入工作栈

工作栈为显式 LIFO，子任务按排序逆序入栈，访问顺序与排序后的深度优先一致。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ven.core.cancel import CancelToken
from ven.core.exceptions import ConflictError, ForeignSourceError
from ven.core.manifest import Manifest, Package, longest_prefix, package_root
from ven.core.walker import ImportWalker
from ven.foreign import ForeignSource, default_sources, find_source
from ven.utils.files import remove_tree
from ven.vcs.provider import Fetcher

logger = logging.getLogger(__name__)


@dataclass
class ImportOptions:
    """单次导入请求的选项"""

    version: str = ""
    local: bool = False
    # 触发本次导入的子包 import 路径
    subpackages: list[str] = field(default_factory=list)
    # True: 扫描全部子包；False: 只扫描用到的子包
    fetch_all: bool = False
    update: bool = False
    update_deps: bool = False

    def for_dependency(self, subpackages: list[str]) -> ImportOptions:
        """依赖包只继承 update_deps"""
        return ImportOptions(
            update=self.update_deps,
            update_deps=self.update_deps,
            subpackages=list(subpackages),
        )


@dataclass
class ResolutionRun:
    """一次顶层操作的运行期缓存"""

    processed: set[str] = field(default_factory=set)
    cached_constraints: dict[str, str] = field(default_factory=dict)
    cached_excluded: set[str] = field(default_factory=set)
    new_packages: list[str] = field(default_factory=list)


class Resolver:
    """依赖解析器"""

    def __init__(
        self,
        manifest: Manifest,
        fetcher: Fetcher,
        *,
        walker: ImportWalker | None = None,
        sources: list[ForeignSource] | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        self.manifest = manifest
        self.fetcher = fetcher
        self.walker = walker or ImportWalker(manifest)
        self.sources = sources if sources is not None else default_sources()
        self.cancel = cancel or CancelToken()
        self.run = ResolutionRun()

    def new_run(self) -> ResolutionRun:
        self.run = ResolutionRun()
        return self.run

    # ------------------------------------------------------------------
    # 工作栈
    # ------------------------------------------------------------------

    def resolve(self, pkg: str, opts: ImportOptions) -> None:
        """解析 pkg 及其传递依赖，结果写入清单（不保存）"""
        stack: list[tuple[str, ImportOptions]] = [(pkg, opts)]
        while stack:
            self.cancel.check()
            current, current_opts = stack.pop()
            grouped = self._resolve_one(current, current_opts)
            for root in sorted(grouped, reverse=True):
                stack.append((root, current_opts.for_dependency(grouped[root])))

    def resolve_all(self, grouped: dict[str, list[str]], opts: ImportOptions) -> None:
        """按根包排序依次解析一组已归并的依赖"""
        for root in sorted(grouped):
            self.resolve(root, opts.for_dependency(grouped[root]))

    # ------------------------------------------------------------------
    # 单个任务
    # ------------------------------------------------------------------

    def _resolve_one(self, pkg: str, opts: ImportOptions) -> dict[str, list[str]]:
        root = package_root(pkg)
        run = self.run

        excluded = self.manifest.is_excluded(root)
        if excluded.found:
            if excluded.prefix not in run.cached_excluded:
                logger.debug("包 (%s) 已被排除", excluded.prefix)
                run.cached_excluded.add(excluded.prefix)
            return {}

        local = opts.local or self.manifest.is_local(root).found
        version, required = self._effective_version(root, opts.version)

        new_subpkgs = list(opts.subpackages)
        is_new = True
        perform_fetch = True
        info: Package | None = None

        existing_lookup = self.manifest.find_package(root)
        if existing_lookup.found:
            root = existing_lookup.prefix
            existing: Package = existing_lookup.value
            if pkg != root:
                new_subpkgs.append(pkg)
            new_subpkgs = [
                s for s in dict.fromkeys(new_subpkgs)
                if s != root
                and s not in existing.subpackages
                and not self.walker.subpackage_excluded(root, s)
            ]
            imports_update = bool(new_subpkgs)

            if root in run.processed and not imports_update:
                return {}

            is_new = False
            if not opts.update:
                if not imports_update:
                    logger.debug("包 (%s) 已在清单中: %s", root, existing.describe())
                    return {}
                perform_fetch = False
            if version and version == existing.version:
                if not imports_update:
                    logger.debug("包 (%s) 已是最新", root)
                    return {}
                perform_fetch = False
            if root in run.processed:
                perform_fetch = False

            if perform_fetch:
                remove_tree(self.manifest.vendor_dir(root))
            info = existing.clone()

        scan = list(new_subpkgs)
        if perform_fetch:
            self.cancel.check()
            fetched = self._fetch(root, version, local, required, previous=info)
            if info is not None:
                scan = [fetched.name, *sorted(fetched.subpackages), *new_subpkgs]
            root = fetched.name
            info = fetched
            if is_new:
                if pkg != root and pkg not in scan:
                    scan.append(pkg)
            logger.info("%s: %s", root, info.describe())

        self.cancel.check()
        result = self.walker.collect(
            root,
            subpackages=scan,
            is_new=is_new,
            fetch_all=opts.fetch_all,
        )
        info.deps.update(result.imports)
        info.subpackages.update(s for s in result.locals if s != root)

        self.manifest.packages[root] = info
        run.processed.add(root)
        if local and not self.manifest.is_local(root).found:
            self.manifest.local_packages.add(root)
        return result.grouped

    def _effective_version(self, root: str, requested: str) -> tuple[str, bool]:
        """返回 (版本, 是否为硬约束)"""
        constraint = self.manifest.constraint_for(root)
        if constraint.found and constraint.value:
            if requested and requested != constraint.value:
                raise ConflictError(
                    f"包 ({root}) 存在版本约束 ({constraint.value})，无法导入版本 ({requested})"
                )
            return constraint.value, True
        if not requested:
            cached = longest_prefix(self.run.cached_constraints, root)
            if cached.found:
                return cached.value, False
        return requested, False

    # ------------------------------------------------------------------
    # 拉取
    # ------------------------------------------------------------------

    def _fetch(
        self,
        root: str,
        version: str,
        local: bool,
        required: bool,
        previous: Package | None,
    ) -> Package:
        result = self.fetcher.fetch(root, version, local, required)
        if previous is None:
            self.run.new_packages.append(result.root)
        vendor_dir = self.manifest.vendor_dir(result.root)
        self.seed_constraints(result.root, vendor_dir)
        self.walker.prune(vendor_dir)

        info = Package(
            name=result.root,
            version=version or result.tag,
            commit_hash=result.commit,
        )
        if previous is not None:
            info.subpackages = self._drop_deprecated(result.root, previous, info)
        return info

    def _drop_deprecated(self, root: str, previous: Package, fetched: Package) -> set[str]:
        on_disk = self.walker.list_subpackages(root)
        deprecated = sorted(s for s in previous.subpackages if s not in on_disk)
        if not deprecated:
            return set(previous.subpackages)

        messages: list[str] = []
        for name in sorted(self.manifest.packages):
            deps = self.manifest.packages[name].deps
            for sub in deprecated:
                if sub in deps:
                    messages.append(
                        f"包 ({name}) 依赖子包 ({sub})，该子包在版本 ({fetched.describe()}) 中已移除"
                    )
        if messages:
            raise ConflictError("; ".join(messages) + "。请先更新这些包以解决依赖冲突")
        logger.debug("包 (%s) 移除已废弃子包: %s", root, ", ".join(deprecated))
        return set(previous.subpackages) - set(deprecated)

    def seed_constraints(self, pkg: str, directory: Path) -> list[str]:
        """从 directory 中的第三方锁文件读取软约束，返回 name@revision 列表

        已缓存的约束不覆盖；读取失败只记录日志。
        """
        source = find_source(directory, self.sources)
        if source is None:
            return []
        try:
            packages = source.extract(directory)
        except ForeignSourceError as e:
            logger.debug("包 (%s): 读取 %s 锁文件失败: %s", pkg, source.name, e)
            return []
        logger.debug("包 (%s): 检测到 %s 依赖管理", pkg, source.name)
        for fp in packages:
            self.run.cached_constraints.setdefault(fp.name, fp.revision)
        return [f"{fp.name}@{fp.revision}" for fp in packages]
