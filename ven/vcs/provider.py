"""vendor 拉取器

把一个根包放进 vendor 目录并返回 (根路径, commit, 最近 tag):
- 本地包: 从 $GOPATH/src 原样拷贝，再按版本 checkout
- 远程包: 发现仓库地址后 git clone，再按版本 checkout

checkout 失败只有在版本为硬约束 (required) 时才是错误。
拉取失败时删除本次创建的目标目录。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ven.core.cancel import CancelToken
from ven.core.exceptions import OperationCancelled, VcsError, VenError
from ven.utils.files import copy_dir, path_exists, remove_tree
from ven.vcs.discovery import RepoDiscovery, local_repo_root
from ven.vcs.git import GitClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResult:
    """拉取结果；tag 不存在时为空串"""

    root: str
    commit: str
    tag: str = ""


class Fetcher(Protocol):
    """拉取器协议，解析器只依赖此接口"""

    def fetch(self, root: str, version: str, local: bool, required: bool) -> FetchResult:
        ...


class VendorFetcher:
    """基于 git 的默认拉取器"""

    def __init__(
        self,
        vendor_path: str | Path,
        gopath_src: str | Path,
        *,
        git: GitClient | None = None,
        discovery: RepoDiscovery | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        self.vendor_path = Path(vendor_path)
        self.gopath_src = Path(gopath_src)
        self.git = git or GitClient()
        self.discovery = discovery or RepoDiscovery()
        self.cancel = cancel or CancelToken()

    def fetch(self, root: str, version: str, local: bool, required: bool) -> FetchResult:
        if local:
            repo = local_repo_root(self.gopath_src, root)
            logger.debug("包 (%s) 为本地包，从 %s 拷贝", repo.root, repo.repo)
        else:
            repo = self.discovery.repo_root(root)
            logger.debug("包 (%s) 仓库地址: %s", repo.root, repo.repo)

        dest = self.vendor_path / repo.root
        existed = path_exists(dest)
        try:
            if local:
                copy_dir(repo.repo, dest, self.cancel)
            else:
                self.cancel.check()
                dest.parent.mkdir(parents=True, exist_ok=True)
                self.git.clone(repo.repo, str(dest))
            return self._resolve(repo.root, str(dest), version, required or local)
        except (VenError, OperationCancelled, OSError) as e:
            if not existed:
                self._discard(dest)
            if isinstance(e, OSError):
                raise VcsError(f"包 ({repo.root}) 拉取失败: {e}") from e
            raise

    def _resolve(self, root: str, repo_dir: str, version: str, required: bool) -> FetchResult:
        if version:
            try:
                self.git.checkout(repo_dir, version)
            except VcsError as e:
                if required:
                    raise
                logger.debug("包 (%s) checkout %s 失败，保留默认分支: %s", root, version, e)
        commit = self.git.current_commit(repo_dir)
        tag = self.git.nearest_tag(repo_dir)
        return FetchResult(root=root, commit=commit, tag=tag)

    def _discard(self, dest: Path) -> None:
        try:
            remove_tree(dest)
        except VenError as e:
            logger.warning("清理未完成的拉取目录失败 %s: %s", dest, e)
