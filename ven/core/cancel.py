"""协作式取消

CLI 收到 SIGINT/SIGTERM 时设置取消标志；拷贝、递归、网络拉取前的
检查点调用 check()，抛出 OperationCancelled 让调用栈有序回退。
"""

from __future__ import annotations

import signal
import threading
from typing import Any

from ven.core.exceptions import OperationCancelled


class CancelToken:
    """单进程取消标志"""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self) -> None:
        """检查点：已取消则抛 OperationCancelled"""
        if self._event.is_set():
            raise OperationCancelled()

    def install_signal_handlers(self) -> dict[int, Any]:
        """把 SIGINT / SIGTERM 转换为取消请求（仅主线程可调用），返回原处理器"""

        def _handler(signum: int, frame: Any) -> None:
            self.cancel()

        previous: dict[int, Any] = {}
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous[sig] = signal.signal(sig, _handler)
        return previous


def restore_signal_handlers(previous: dict[int, Any]) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler)
