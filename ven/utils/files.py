"""目录拷贝 / 删除工具"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from ven.core.exceptions import VendorFsError

if TYPE_CHECKING:
    from ven.core.cancel import CancelToken

logger = logging.getLogger(__name__)


def copy_dir(src: str | Path, dest: str | Path, cancel: CancelToken | None = None) -> None:
    """递归拷贝目录，保留文件权限

    源目录不存在或不是目录、目标已存在时抛 VendorFsError；
    每个条目拷贝前检查取消标志。
    """
    src, dest = Path(src), Path(dest)
    if cancel is not None:
        cancel.check()
    if not src.exists():
        raise VendorFsError(f"源目录不存在: {src}")
    if not src.is_dir():
        raise VendorFsError(f"源路径不是目录: {src}")
    if dest.exists():
        raise VendorFsError(f"目标目录已存在: {dest}")

    def _copy(s: str, d: str) -> str:
        if cancel is not None:
            cancel.check()
        return shutil.copy2(s, d)

    try:
        shutil.copytree(src, dest, symlinks=True, copy_function=_copy)
    except shutil.Error as e:
        raise VendorFsError(f"拷贝目录失败 {src} -> {dest}: {e}") from e
    except OSError as e:
        raise VendorFsError(f"拷贝目录失败 {src} -> {dest}: {e}") from e


def remove_tree(path: str | Path) -> None:
    """删除目录树，不存在时静默返回"""
    p = Path(path)
    if not p.exists() and not p.is_symlink():
        return
    try:
        if p.is_dir() and not p.is_symlink():
            shutil.rmtree(p)
        else:
            p.unlink()
    except OSError as e:
        raise VendorFsError(f"删除失败 {p}: {e}") from e


def path_exists(path: str | Path) -> bool:
    """路径存在（含悬空符号链接）"""
    return os.path.lexists(str(path))
