"""ログビヘイビア.

チェーン全体をラップし、ディスパッチの開始・終了と所要時間を記録する。
"""

from __future__ import annotations

import logging
import time

from stateflow.core.types import DispatchResult
from stateflow.observability.logging import log_context
from stateflow.pipeline.base import Behavior, DispatchContext, NextStage


logger = logging.getLogger(__name__)


class LoggingBehavior(Behavior):
    """ログビヘイビア（pre/post）."""

    name = "logging"

    def __init__(self, log: logging.Logger | None = None) -> None:
        """初期化.

        Args:
            log: 出力先ロガー
        """
        self._logger = log or logger

    async def process(self, ctx: DispatchContext, next_: NextStage) -> DispatchResult:
        """チェーンを計時しながら実行."""
        assert ctx.result is not None
        started = time.perf_counter()
        with log_context(dispatch_id=ctx.result.id, action=ctx.action_name):
            self._logger.debug("ディスパッチ開始: %s", ctx.action_name)
            try:
                result = await next_()
            except Exception:
                elapsed = (time.perf_counter() - started) * 1000
                self._logger.exception(
                    "ディスパッチ中に予期しないエラー: %s",
                    ctx.action_name,
                    extra={"action": ctx.action_name, "duration_ms": round(elapsed, 3)},
                )
                raise

            result.duration_ms = (time.perf_counter() - started) * 1000
            extra = {
                "action": ctx.action_name,
                "status": result.status.value,
                "duration_ms": round(result.duration_ms, 3),
                "mutated": [tp.__qualname__ for tp in result.mutated],
            }
            if result.ok:
                self._logger.debug("ディスパッチ完了: %s", ctx.action_name, extra=extra)
            else:
                self._logger.warning(
                    "ディスパッチ失敗: %s (%s: %s)",
                    ctx.action_name,
                    result.stage,
                    result.error,
                    extra=extra,
                )
            for warning in result.warnings:
                self._logger.warning("ディスパッチ警告: %s", warning, extra={"stage": warning.stage})
        return result
