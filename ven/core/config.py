"""集中配置管理

提供统一的配置入口，从 YAML 文件加载（路径取 $VEN_CONFIG，默认 .ven.yml）。
环境变量只参与 GOPATH 解析，不覆盖其他字段。
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path

import yaml

from ven.core.exceptions import ConfigError
from ven.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".ven.yml"
DEFAULT_MANIFEST_FILE = "Manifest.yml"
DEFAULT_EXCLUDE_BUILDS = ["appenginevm", "appengine", "android", "integration", "ignore"]
DEFAULT_EXCLUDE_DIRS = ["test", "_fixture", "integration"]


@dataclass
class Config:
    """全局配置"""

    manifest_file: str = DEFAULT_MANIFEST_FILE
    # 为空时取 $GOPATH，再回退 ~/go
    gopath: str = ""

    # init 时写入清单的默认排除项
    default_exclude_builds: list[str] = field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_BUILDS),
    )
    default_exclude_dirs: list[str] = field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS),
    )

    # go-get 元数据发现的 HTTP 超时（秒）
    http_timeout: int = 30

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (OSError, ValueError) as e:
            raise ConfigError(f"配置文件无法读取: {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"配置文件格式错误: {path}: {e}") from e
        if not data:
            return cls()
        known = {f for f in cls.__dataclass_fields__ if f != "extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        for key in ("default_exclude_builds", "default_exclude_dirs"):
            if key in matched and not isinstance(matched[key], list):
                raise ConfigError(f"配置项 {key} 必须是列表")
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def resolved_gopath(self) -> str:
        """GOPATH 解析顺序: 配置 > 环境变量 > ~/go；多路径时取第一个"""
        gopath = self.gopath or os.environ.get("GOPATH", "")
        if not gopath:
            return str(Path.home() / "go")
        return gopath.split(os.pathsep)[0]

    def gopath_src(self) -> str:
        return os.path.join(self.resolved_gopath(), "src")

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "") -> Config:
    """从文件初始化全局配置，path 为空时取 $VEN_CONFIG 或 .ven.yml"""
    global _current  # noqa: PLW0603
    path = path or os.environ.get("VEN_CONFIG", DEFAULT_CONFIG_FILE)
    _current = Config.from_file(path)
    logger.debug("配置已加载: %s", path)
    return _current
