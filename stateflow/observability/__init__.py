"""可観測性モジュール（構造化ログ）."""

from stateflow.observability.logging import (
    JSONFormatter,
    LogLevel,
    TextFormatter,
    get_context,
    log_context,
    setup_logging,
)


__all__ = [
    "JSONFormatter",
    "LogLevel",
    "TextFormatter",
    "get_context",
    "log_context",
    "setup_logging",
]
