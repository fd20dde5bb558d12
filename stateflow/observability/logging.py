# -*- coding: utf-8 -*-
"""構造化ログモジュール.

JSON 形式の構造化ログを提供します。

特徴:
- JSON 形式出力（ログ分析ツール互換）
- ディスパッチ単位のコンテキスト情報の自動付加
- マスキング（機密情報の隠蔽）
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ディスパッチ単位のコンテキスト
_log_context: ContextVar[dict[str, Any]] = ContextVar("stateflow_log_context", default={})

DEFAULT_MASK_PATTERNS = (
    "password",
    "secret",
    "token",
    "api_key",
    "apikey",
    "authorization",
)

_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class LogLevel(str, Enum):
    """ログレベル."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class JSONFormatter(logging.Formatter):
    """JSON 形式フォーマッター."""

    def __init__(
        self,
        include_timestamp: bool = True,
        include_caller: bool = False,
        mask_patterns: tuple[str, ...] | list[str] | None = None,
    ) -> None:
        """初期化."""
        super().__init__()
        self._include_timestamp = include_timestamp
        self._include_caller = include_caller
        patterns = DEFAULT_MASK_PATTERNS if mask_patterns is None else mask_patterns
        self._mask_patterns = [p.lower() for p in patterns]

    def format(self, record: logging.LogRecord) -> str:
        """ログレコードを JSON 形式に変換."""
        log_data: dict[str, Any] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        if self._include_timestamp:
            log_data["timestamp"] = datetime.now(timezone.utc).isoformat()

        if self._include_caller:
            log_data["caller"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # 追加フィールド（extra）
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = self._mask_value(key, value)

        context = _log_context.get()
        if context:
            log_data["context"] = {k: self._mask_value(k, v) for k, v in context.items()}

        return json.dumps(log_data, ensure_ascii=False, default=str)

    def _mask_value(self, key: str, value: Any) -> Any:
        """機密情報をマスキング."""
        key_lower = key.lower()
        for pattern in self._mask_patterns:
            if pattern in key_lower:
                return "***MASKED***"
        return value


class TextFormatter(logging.Formatter):
    """テキスト形式フォーマッター."""

    def __init__(self, include_timestamp: bool = True) -> None:
        """初期化."""
        if include_timestamp:
            fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        else:
            fmt = "[%(levelname)s] %(name)s: %(message)s"
        super().__init__(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    format: str = "json",
    output: str = "stderr",
) -> logging.Handler:
    """グローバルログ設定.

    ``stateflow`` ロガー配下にハンドラーを設定する。

    Args:
        level: ログレベル
        format: 出力形式（json / text）
        output: 出力先（stdout / stderr / ファイルパス）

    Returns:
        設定したハンドラー
    """
    package_logger = logging.getLogger("stateflow")
    package_logger.setLevel(getattr(logging, level.value))

    # 既存のハンドラーをクリア
    for existing in list(package_logger.handlers):
        package_logger.removeHandler(existing)
        existing.close()

    handler: logging.Handler
    if output == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    elif output == "stderr":
        handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.FileHandler(output, encoding="utf-8")

    if format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    package_logger.addHandler(handler)
    return handler


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """コンテキストを一時的に追加.

    Example:
        >>> with log_context(dispatch_id="dispatch-1234"):
        ...     logger.info("Inside dispatch")
    """
    token = _log_context.set({**_log_context.get(), **kwargs})
    try:
        yield
    finally:
        _log_context.reset(token)


def get_context() -> dict[str, Any]:
    """現在のコンテキストを取得."""
    return dict(_log_context.get())


__all__ = [
    "JSONFormatter",
    "LogLevel",
    "TextFormatter",
    "get_context",
    "log_context",
    "setup_logging",
]
