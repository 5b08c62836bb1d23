"""仓库根发现: import 路径 -> (根路径, vcs, 仓库地址)

顺序:
1. 静态托管域名表（github.com / bitbucket.org / gitlab.com / golang.org/x / gopkg.in）
2. 路径中显式的 VCS 后缀，如 example.org/repo.git/sub
3. go-get 协议: 请求 https://<path>?go-get=1，解析 <meta name="go-import">

只支持 git，其余 VCS 抛 UnsupportedVcsError。
"""

from __future__ import annotations

import logging
import os
import re
import urllib.error
import urllib.request
from dataclasses import dataclass
from html.parser import HTMLParser
from pathlib import Path
from typing import Callable

from ven.core.exceptions import UnsupportedVcsError, VcsError

logger = logging.getLogger(__name__)

VCS_MARKERS = (("git", ".git"), ("hg", ".hg"), ("svn", ".svn"), ("bzr", ".bzr"), ("fossil", ".fslckout"))

_VCS_SUFFIX_RE = re.compile(
    r"^(?P<root>(?P<repo>([a-z0-9.\-]+\.)+[a-z0-9.\-]+(:[0-9]+)?(/~?[A-Za-z0-9_.\-]+)+?)"
    r"\.(?P<vcs>bzr|fossil|git|hg|svn))(/~?[A-Za-z0-9_.\-]+)*$"
)


@dataclass(frozen=True)
class RepoRoot:
    """仓库根信息"""

    root: str
    vcs: str
    repo: str


def _require_git(root: RepoRoot, path: str) -> RepoRoot:
    if root.vcs != "git":
        raise UnsupportedVcsError(f"包 ({path}): 仅支持 git 仓库，检测到 {root.vcs}")
    return root


# =========================================================================
# 静态托管域名
# =========================================================================

def _static_root(path: str) -> RepoRoot | None:
    parts = path.split("/")
    host = parts[0]
    if host in ("github.com", "bitbucket.org", "gitlab.com") and len(parts) >= 3:
        root = "/".join(parts[:3])
        return RepoRoot(root, "git", f"https://{root}")
    if host == "golang.org" and len(parts) >= 3 and parts[1] == "x":
        root = "/".join(parts[:3])
        return RepoRoot(root, "git", f"https://go.googlesource.com/{parts[2]}")
    if host == "gopkg.in" and len(parts) >= 2:
        # gopkg.in/pkg.v1 或 gopkg.in/user/pkg.v1
        if re.search(r"\.v\d+$", parts[1]):
            root = "/".join(parts[:2])
        elif len(parts) >= 3:
            root = "/".join(parts[:3])
        else:
            return None
        return RepoRoot(root, "git", f"https://{root}")
    return None


# =========================================================================
# go-get meta
# =========================================================================

class _GoImportParser(HTMLParser):
    """收集 <meta name="go-import" content="prefix vcs repo">，遇到 <body> 停止"""

    def __init__(self) -> None:
        super().__init__()
        self.imports: list[tuple[str, str, str]] = []
        self._done = False

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if self._done:
            return
        if tag == "body":
            self._done = True
            return
        if tag != "meta":
            return
        values = dict(attrs)
        if values.get("name") != "go-import":
            return
        fields = (values.get("content") or "").split()
        if len(fields) == 3:
            self.imports.append((fields[0], fields[1], fields[2]))


def parse_go_import_meta(html: str, path: str) -> RepoRoot | None:
    """从 go-get 响应中选出前缀匹配 path 的 go-import 声明"""
    parser = _GoImportParser()
    parser.feed(html)
    match: RepoRoot | None = None
    for prefix, vcs, repo in parser.imports:
        if path != prefix and not path.startswith(prefix + "/"):
            continue
        if vcs == "mod":
            continue
        if match is not None and match.root != prefix:
            raise VcsError(f"包 ({path}): go-import 声明存在多个匹配: {match.root}, {prefix}")
        match = RepoRoot(prefix, vcs, repo)
    return match


def _http_get(url: str, timeout: float) -> str:
    req = urllib.request.Request(url, headers={"User-Agent": "ven"})
    with urllib.request.urlopen(req, timeout=timeout) as resp:  # nosec B310
        return resp.read().decode("utf-8", errors="replace")


class RepoDiscovery:
    """import 路径 -> 仓库根"""

    def __init__(
        self,
        timeout: float = 30.0,
        http_get: Callable[[str, float], str] | None = None,
    ) -> None:
        self.timeout = timeout
        self._http_get = http_get or _http_get

    def repo_root(self, path: str) -> RepoRoot:
        static = _static_root(path)
        if static is not None:
            return _require_git(static, path)

        m = _VCS_SUFFIX_RE.match(path)
        if m is not None:
            repo = m.group("repo")
            vcs = m.group("vcs")
            return _require_git(RepoRoot(m.group("root"), vcs, f"https://{repo}.{vcs}"), path)

        url = f"https://{path}?go-get=1"
        logger.debug("go-get 发现: %s", url)
        try:
            html = self._http_get(url, self.timeout)
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise VcsError(f"包 ({path}): 无法探测仓库地址: {e}") from e
        found = parse_go_import_meta(html, path)
        if found is None:
            raise VcsError(f"包 ({path}): 未找到 go-import meta 声明")
        return _require_git(found, path)


# =========================================================================
# 本地包
# =========================================================================

def local_repo_root(gopath_src: str | Path, path: str) -> RepoRoot:
    """在 $GOPATH/src/<path> 及其上级目录中查找 VCS 标记，返回仓库根

    异常:
        VcsError: 目录不存在或找不到任何 VCS 标记
        UnsupportedVcsError: 标记不是 git
    """
    src = Path(gopath_src)
    directory = src / path
    if not directory.exists():
        raise VcsError(f"本地包 ({path}) 不存在: {directory}")

    parts = path.split("/")
    while parts:
        candidate = "/".join(parts)
        base = src / candidate
        for vcs, marker in VCS_MARKERS:
            if os.path.lexists(base / marker):
                return _require_git(RepoRoot(candidate, vcs, str(base)), path)
        parts.pop()
    raise VcsError(f"无法识别本地包 ({path}) 的版本控制系统: {directory}")
