"""vendorize 日志配置

日志一律写 stderr，stdout 留给命令输出（show / find 的结果可被管道消费）。

环境变量:
    VENDORIZE_LOG_LEVEL  日志级别，默认 INFO
    VENDORIZE_LOG_JSON   为 1 / true 时输出 JSON 行，便于 CI 收集
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone

LOG_LEVEL_ENV = "VENDORIZE_LOG_LEVEL"
LOG_JSON_ENV = "VENDORIZE_LOG_JSON"

_TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"
_TRUE_VALUES = ("1", "true", "yes", "on")


class JSONFormatter(logging.Formatter):
    """每条日志一行 JSON

    字段: timestamp, level, logger, message, module, function, line，
    有异常时附加 exception。
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def _env_json() -> bool:
    return os.getenv(LOG_JSON_ENV, "").strip().lower() in _TRUE_VALUES


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """配置根日志器

    参数为 None 时取对应环境变量。重复调用只保留一个 handler。
    """
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV, "INFO")
    if json_output is None:
        json_output = _env_json()

    reset_logging()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(_TEXT_FORMAT))
    root.addHandler(handler)


def reset_logging() -> None:
    """移除根日志器上的全部 handler（测试用）"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
