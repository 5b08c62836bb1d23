"""ven 日志配置

普通文本输出给终端用户，结构化 JSON 输出给 CI 流水线。
环境变量:
    VEN_LOG_LEVEL   日志级别，默认 INFO；-v 时强制 DEBUG
    VEN_LOG_JSON    为 1 时输出 JSON
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import TextIO

LEVEL_ENV = "VEN_LOG_LEVEL"
JSON_ENV = "VEN_LOG_JSON"


class JSONFormatter(logging.Formatter):
    """每条记录一行 JSON；VenError 额外带上错误码"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[1]:
            exc = record.exc_info[1]
            code = getattr(exc, "code", None)
            if isinstance(code, str):
                log_entry["error_code"] = code
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
) -> None:
    """配置根日志器，重复调用会替换已有 handler

    DEBUG 级别的文本格式附带模块名，便于定位是哪一层跳过了文件或包。
    """
    reset_logging()
    root = logging.getLogger()
    numeric = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric)

    handler = logging.StreamHandler(stream or sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    elif numeric <= logging.DEBUG:
        handler.setFormatter(logging.Formatter("%(levelname)-7s %(name)s: %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(levelname)-7s %(message)s"))
    root.addHandler(handler)


def setup_logging_from_env(verbose: bool = False) -> None:
    """按 VEN_LOG_LEVEL / VEN_LOG_JSON 配置日志"""
    level = "DEBUG" if verbose else os.getenv(LEVEL_ENV, "INFO")
    setup_logging(level=level, json_output=os.getenv(JSON_ENV, "") == "1")


def reset_logging() -> None:
    """清理根日志器上所有已注册的 handlers"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
