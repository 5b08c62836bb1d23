"""第三方依赖管理工具锁文件适配

拉取到的包若自带 dep / glide / godep / govendor 锁文件，从中读取
依赖的期望版本，作为本次运行的软约束。适配器按固定顺序注册，
首个识别成功的生效。
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from ven.core.exceptions import ForeignSourceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForeignPackage:
    """锁文件中的一条依赖"""

    name: str
    revision: str


class ForeignSource(Protocol):
    """锁文件适配器协议"""

    name: str

    def detect(self, directory: Path) -> bool:
        ...

    def extract(self, directory: Path) -> list[ForeignPackage]:
        ...


class LockFileSource(ABC):
    """单文件锁文件适配器: 文件存在即识别，按 loader 解析后交给 collect 提取"""

    name = ""
    lock_file = ""

    @abstractmethod
    def loads(self, text: str) -> Any:
        """把锁文件文本解析为映射；格式错误抛 ValueError"""

    @abstractmethod
    def collect(self, data: Any) -> list[ForeignPackage]:
        """从解析结果中提取依赖条目"""

    def detect(self, directory: Path) -> bool:
        return (Path(directory) / self.lock_file).is_file()

    def extract(self, directory: Path) -> list[ForeignPackage]:
        path = Path(directory) / self.lock_file
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ForeignSourceError(f"无法读取 {path}: {e}") from e
        try:
            data = self.loads(text)
        except ValueError as e:
            raise ForeignSourceError(f"无法解析 {path}: {e}") from e
        if not isinstance(data, dict):
            raise ForeignSourceError(f"{path} 格式错误: 顶层应为映射")
        return self.collect(data)


def entries(data: dict[str, Any], key: str, name_field: str, rev_field: str) -> list[ForeignPackage]:
    """从 data[key] 列表中提取 (name, revision)，忽略缺字段的条目"""
    items = data.get(key) or []
    if not isinstance(items, list):
        raise ForeignSourceError(f"锁文件字段 {key} 应为列表")
    result: list[ForeignPackage] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        name = item.get(name_field)
        rev = item.get(rev_field)
        if name and rev:
            result.append(ForeignPackage(str(name), str(rev)))
    return result


def default_sources() -> list[ForeignSource]:
    """按优先级排列的适配器: dep, glide, godep, govendor"""
    from ven.foreign.dep import DepSource
    from ven.foreign.glide import GlideSource
    from ven.foreign.godep import GodepSource
    from ven.foreign.govendor import GovendorSource

    return [DepSource(), GlideSource(), GodepSource(), GovendorSource()]


def find_source(
    directory: Path,
    sources: list[ForeignSource] | None = None,
) -> ForeignSource | None:
    """返回第一个识别出 directory 的适配器"""
    for source in sources if sources is not None else default_sources():
        if source.detect(directory):
            return source
    return None
