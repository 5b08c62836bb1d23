"""ven 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import sys
from typing import Any, Callable, TypeVar

import click

from ven import __version__
from ven.core.cancel import CancelToken, restore_signal_handlers
from ven.core.config import init_config
from ven.core.exceptions import OperationCancelled, VenError
from ven.services.vendor_service import VendorService
from ven.utils.logger import setup_logging_from_env

T = TypeVar("T")

# 被取消时的退出码（128 + SIGINT）
EXIT_CANCELLED = 130


def _svc(cancel: CancelToken) -> VendorService:
    """构造 vendor 服务的快捷方式"""
    return VendorService(cancel=cancel)


def _run(action: Callable[[VendorService], T], verbose: bool = False) -> T:
    """执行一个顶层操作: 安装信号处理、转换异常为退出码"""
    if verbose:
        setup_logging_from_env(verbose=True)
    cancel = CancelToken()
    previous = cancel.install_signal_handlers()
    try:
        return action(_svc(cancel))
    except OperationCancelled:
        click.echo("已取消", err=True)
        sys.exit(EXIT_CANCELLED)
    except VenError as e:
        raise click.ClickException(str(e)) from e
    finally:
        restore_signal_handlers(previous)


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """ven - Go 源码依赖 vendor 工具"""
    setup_logging_from_env()
    try:
        init_config()
    except VenError as e:
        raise click.ClickException(str(e)) from e


def _split_csv(value: Any) -> list[str]:
    """逗号分隔参数，可重复传入"""
    items: list[str] = []
    for chunk in value or ():
        items.extend(s.strip() for s in chunk.split(",") if s.strip())
    return items


# 注册各领域子命令
from ven.cli.cmd_manifest import register as _reg_manifest  # noqa: E402
from ven.cli.cmd_vendor import register as _reg_vendor  # noqa: E402

_reg_manifest(main)
_reg_vendor(main)
