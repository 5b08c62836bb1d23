"""git 命令封装

所有命令经 CommandExecutor 执行，测试时注入假执行器即可。
"""

from __future__ import annotations

import logging
import re

from ven.core.exceptions import VcsError
from ven.utils.shell import CommandExecutor, CommandResult, LocalExecutor

logger = logging.getLogger(__name__)

_SAFE_REF_RE = re.compile(r"^[a-zA-Z0-9_./@+][a-zA-Z0-9_./@+\-]*$")


class GitClient:
    """git clone / checkout / rev-parse / describe"""

    def __init__(self, executor: CommandExecutor | None = None) -> None:
        self.executor = executor or LocalExecutor()

    def _git(self, repo_dir: str, *args: str) -> CommandResult:
        return self.executor.execute(["git", "-C", repo_dir, *args])

    def clone(self, url: str, dest: str) -> None:
        r = self.executor.execute(["git", "clone", url, dest])
        if not r.success:
            raise VcsError(f"git clone 失败 (rc={r.returncode}): {url}", r.output)
        logger.debug("已 clone %s -> %s", url, dest)

    def checkout(self, repo_dir: str, ref: str) -> None:
        if not _SAFE_REF_RE.match(ref):
            raise VcsError(f"ref 包含非法字符: {ref}")
        r = self._git(repo_dir, "checkout", ref)
        if not r.success:
            raise VcsError(f"git checkout {ref} 失败 (rc={r.returncode})", r.output)

    def current_commit(self, repo_dir: str) -> str:
        r = self._git(repo_dir, "rev-parse", "HEAD")
        if not r.success:
            raise VcsError(f"git rev-parse 失败 (rc={r.returncode}): {repo_dir}", r.output)
        return r.stdout.strip()

    def nearest_tag(self, repo_dir: str) -> str:
        """最近的 tag；没有 tag 时返回空串"""
        r = self._git(repo_dir, "describe", "--tags", "--abbrev=0")
        if not r.success:
            return ""
        return r.stdout.strip()
