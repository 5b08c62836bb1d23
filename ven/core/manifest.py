"""清单存储 (Manifest.yml)

职责:
- 记录已解析的根包、版本约束、排除项与本地包前缀
- 最长前缀匹配查找（本地包 / 排除包 / 约束 / 已有包 四类共用）
- 加载 / 原子保存，所有集合排序输出，保证清单可复现
- 根包推导（托管域名白名单启发式）

清单格式:
    vendor_path: ./vendor
    exclude_build: [...]
    exclude_dir: [...]
    exclude_packages: [...]
    local_packages: [...]
    constraints: {pkg: version}
    packages:
      github.com/pkg/errors:
        version: v0.8.0
        commithash: 645ef00...
        subpackages: [...]
        deps: [...]
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, NamedTuple

import yaml

from ven.core.exceptions import ManifestError
from ven.utils.yaml_io import dump_yaml, load_yaml, save_yaml

logger = logging.getLogger(__name__)

DEFAULT_VENDOR_PATH = "./vendor"

# 三段式根路径的托管域名，其余域名整条路径即为根
KNOWN_HOSTS = ("github.com", "gopkg.in", "golang.org", "gitlab.com")


def package_root(path: str) -> str:
    """由完整 import 路径推导根包

    >>> package_root("github.com/pkg/errors/sub")
    'github.com/pkg/errors'
    >>> package_root("example.org/custom/pkg/sub")
    'example.org/custom/pkg/sub'
    """
    parts = path.split("/")
    if len(parts) < 3:
        return path
    if parts[0] in KNOWN_HOSTS:
        return "/".join(parts[:3])
    return path


def iter_prefixes(path: str):
    """由长到短依次产出路径前缀: a/b/c, a/b, a"""
    parts = path.split("/")
    while parts:
        yield "/".join(parts)
        parts.pop()


class Lookup(NamedTuple):
    """前缀查找结果"""

    prefix: str
    value: Any
    found: bool


NOT_FOUND = Lookup("", None, False)


def longest_prefix(table: Mapping[str, Any] | set[str], path: str) -> Lookup:
    """在 table 中查找 path 的最长匹配前缀

    table 为集合时 value 恒为 True。
    """
    for prefix in iter_prefixes(path):
        if prefix in table:
            value = table[prefix] if isinstance(table, Mapping) else True
            return Lookup(prefix, value, True)
    return NOT_FOUND


class LookupKind(Enum):
    LOCAL = "local"
    EXCLUDED = "excluded"
    CONSTRAINT = "constraint"
    PACKAGE = "package"


@dataclass
class Package:
    """一个已解析的根包"""

    name: str
    version: str = ""
    commit_hash: str = ""
    deps: set[str] = field(default_factory=set)
    subpackages: set[str] = field(default_factory=set)

    def describe(self) -> str:
        info = f"commit {self.commit_hash}"
        if self.version:
            info += f", version: {self.version}"
        return info

    def clone(self) -> Package:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "commithash": self.commit_hash,
            "subpackages": sorted(self.subpackages),
            "deps": sorted(self.deps),
        }

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any] | None) -> Package:
        data = data or {}
        return cls(
            name=name,
            version=str(data.get("version") or ""),
            commit_hash=str(data.get("commithash") or ""),
            deps=set(data.get("deps") or []),
            subpackages=set(data.get("subpackages") or []),
        )


@dataclass
class Manifest:
    """清单内存形态，进程内构造一次并显式传递"""

    vendor_path: str = DEFAULT_VENDOR_PATH
    exclude_build: set[str] = field(default_factory=set)
    exclude_dir: set[str] = field(default_factory=set)
    exclude_packages: set[str] = field(default_factory=set)
    local_packages: set[str] = field(default_factory=set)
    constraints: dict[str, str] = field(default_factory=dict)
    packages: dict[str, Package] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # 最长前缀查找
    # ------------------------------------------------------------------

    def lookup(self, kind: LookupKind, path: str) -> Lookup:
        table: Mapping[str, Any] | set[str]
        if kind is LookupKind.LOCAL:
            table = self.local_packages
        elif kind is LookupKind.EXCLUDED:
            table = self.exclude_packages
        elif kind is LookupKind.CONSTRAINT:
            table = self.constraints
        else:
            table = self.packages
        return longest_prefix(table, path)

    def is_local(self, path: str) -> Lookup:
        return self.lookup(LookupKind.LOCAL, path)

    def is_excluded(self, path: str) -> Lookup:
        return self.lookup(LookupKind.EXCLUDED, path)

    def constraint_for(self, path: str) -> Lookup:
        return self.lookup(LookupKind.CONSTRAINT, path)

    def find_package(self, path: str) -> Lookup:
        return self.lookup(LookupKind.PACKAGE, path)

    def vendor_dir(self, pkg: str = "") -> Path:
        """vendor 根目录，或其中某个包的目录"""
        base = Path(self.vendor_path)
        return base / pkg if pkg else base

    # ------------------------------------------------------------------
    # 序列化
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """转换为持久化形态，所有集合排序"""
        return {
            "vendor_path": self.vendor_path,
            "exclude_build": sorted(self.exclude_build),
            "exclude_dir": sorted(self.exclude_dir),
            "exclude_packages": sorted(self.exclude_packages),
            "local_packages": sorted(self.local_packages),
            "constraints": {k: self.constraints[k] for k in sorted(self.constraints)},
            "packages": {
                name: self.packages[name].to_dict() for name in sorted(self.packages)
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Manifest:
        vendor_path = str(data.get("vendor_path") or DEFAULT_VENDOR_PATH).rstrip("/")
        constraints = data.get("constraints") or {}
        packages = data.get("packages") or {}
        if not isinstance(constraints, Mapping) or not isinstance(packages, Mapping):
            raise ManifestError("清单格式错误: constraints / packages 必须是映射")
        return cls(
            vendor_path=vendor_path or DEFAULT_VENDOR_PATH,
            exclude_build=set(data.get("exclude_build") or []),
            exclude_dir=set(data.get("exclude_dir") or []),
            exclude_packages=set(data.get("exclude_packages") or []),
            local_packages=set(data.get("local_packages") or []),
            constraints={str(k): str(v) for k, v in constraints.items() if v is not None},
            packages={
                str(name): Package.from_dict(str(name), info)
                for name, info in packages.items()
            },
        )

    def dumps(self) -> str:
        return dump_yaml(self.to_dict())

    @classmethod
    def load(cls, path: str | Path) -> Manifest:
        """从文件加载；文件不存在时返回全新清单"""
        p = Path(path)
        if not p.exists():
            logger.debug("清单不存在，使用空清单: %s", p)
            return cls()
        try:
            data = load_yaml(p)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ManifestError(f"无法读取清单 {p}: {e}") from e
        manifest = cls.from_dict(data)
        logger.debug("已加载清单: %s (%d 个包)", p, len(manifest.packages))
        return manifest

    def save(self, path: str | Path) -> None:
        """原子保存：写临时文件再 rename，崩溃不会损坏旧清单"""
        try:
            save_yaml(path, self.to_dict())
        except OSError as e:
            raise ManifestError(f"无法保存清单 {path}: {e}") from e
        logger.debug("清单已保存: %s", path)
