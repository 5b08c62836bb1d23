"""vendor 目录事务

    with VendorTransaction(manifest.vendor_path, is_update=True, run=resolver.run):
        resolver.resolve(...)

- 更新已有 vendor 目录: 进入时拷贝到 <vendor>.orig；成功删除备份，
  失败（含取消）删除 vendor 并把备份改名回来
- 其他情况失败时只删除本次运行新拉取的包目录，尽力而为
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from types import TracebackType

from ven.core.exceptions import VendorFsError, VenError
from ven.core.resolver import ResolutionRun
from ven.utils.files import copy_dir, path_exists, remove_tree

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".orig"


class VendorTransaction:
    """包裹一次 get 操作的回滚边界"""

    def __init__(
        self,
        vendor_path: str | Path,
        *,
        is_update: bool,
        run: ResolutionRun,
    ) -> None:
        self.vendor_path = Path(str(vendor_path).rstrip("/") or ".")
        self.backup_path = Path(f"{self.vendor_path}{BACKUP_SUFFIX}")
        self.run = run
        self.is_update = is_update and self.vendor_path.is_dir()
        self._backed_up = False

    def __enter__(self) -> VendorTransaction:
        if self.is_update:
            if path_exists(self.backup_path):
                raise VendorFsError(f"备份目录已存在，请先处理: {self.backup_path}")
            copy_dir(self.vendor_path, self.backup_path)
            self._backed_up = True
            logger.debug("已备份 vendor: %s -> %s", self.vendor_path, self.backup_path)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    def commit(self) -> None:
        if self._backed_up:
            remove_tree(self.backup_path)
            self._backed_up = False

    def rollback(self) -> None:
        if self._backed_up:
            logger.info("正在恢复 vendor 目录: %s", self.vendor_path)
            remove_tree(self.vendor_path)
            try:
                os.replace(self.backup_path, self.vendor_path)
            except OSError as e:
                raise VendorFsError(
                    f"恢复 vendor 失败，备份保留在 {self.backup_path}: {e}"
                ) from e
            self._backed_up = False
            return

        for root in reversed(self.run.new_packages):
            target = self.vendor_path / root
            try:
                remove_tree(target)
            except VenError as e:
                logger.warning("清理新拉取的包失败 %s: %s", target, e)
            else:
                logger.debug("已清理新拉取的包: %s", target)
