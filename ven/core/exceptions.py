"""统一异常体系

所有业务异常继承 VenError，替代散落的 ValueError / RuntimeError。
CLI 层可据此输出友好提示并返回非零退出码。

取消（Ctrl-C / SIGTERM）不是失败：OperationCancelled 不继承 VenError，
调用方据此区分 "清理后退出" 与 "报告错误"。
"""

from __future__ import annotations


class VenError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(VenError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ManifestError(VenError):
    """清单文件已存在、无法读取或格式错误"""

    code = "MANIFEST_ERROR"


class ConflictError(VenError):
    """版本约束冲突 / 废弃子包仍被依赖"""

    code = "CONFLICT"


class UnsupportedVcsError(ConflictError):
    """检测到非 git 的版本控制系统"""

    code = "UNSUPPORTED_VCS"


class VcsError(VenError):
    """clone / checkout / rev-parse 失败"""

    code = "VCS_ERROR"

    def __init__(self, message: str, output: str = "") -> None:
        if output:
            message = f"{message}\n{output.rstrip()}"
        super().__init__(message)
        self.output = output


class VendorFsError(VenError):
    """文件系统操作失败（源目录缺失、目标已存在、IO 错误）"""

    code = "FS_ERROR"


class WalkError(VenError):
    """import 扫描失败（子包目录缺失等）"""

    code = "WALK_ERROR"


class ForeignSourceError(VenError):
    """第三方锁文件读取或解析失败"""

    code = "FOREIGN_SOURCE_ERROR"


class OperationCancelled(Exception):  # noqa: N818
    """操作被外部中断取消"""

    def __init__(self, message: str = "cancelled") -> None:
        super().__init__(message)
