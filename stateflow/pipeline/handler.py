"""一次ハンドラービヘイビア."""

from __future__ import annotations

import asyncio
import logging

from stateflow.core.exceptions import DispatchCancelledError, HandlerError
from stateflow.core.types import DispatchResult, DispatchStatus
from stateflow.pipeline.base import Behavior, DispatchContext, NextStage
from stateflow.state.handlers import resolve_outcome
from stateflow.state.models import State
from stateflow.state.registry import StateRegistry


logger = logging.getLogger(__name__)


class PrimaryHandlerBehavior(Behavior):
    """一次ハンドラービヘイビア.

    キャンセル確認 → ハンドラー実行 → 置換（State が返された場合）→
    対象状態を変更済みとして記録。失敗時は残りのステージを実行しない。
    """

    name = "handler"

    def __init__(self, registry: StateRegistry) -> None:
        """初期化.

        Args:
            registry: 状態レジストリ
        """
        self._registry = registry

    async def process(self, ctx: DispatchContext, next_: NextStage) -> DispatchResult:
        """ハンドラーを実行."""
        assert ctx.result is not None
        try:
            ctx.cancellation.raise_if_cancelled()
        except DispatchCancelledError as e:
            ctx.result.status = DispatchStatus.CANCELLED
            ctx.result.error = e
            return ctx.result

        binding = ctx.binding
        state = await self._registry.get_async(binding.state_type)
        try:
            outcome = await resolve_outcome(
                binding.handler.handle(ctx.action, state, ctx.cancellation)
            )
            if isinstance(outcome, State):
                self._registry.replace(binding.state_type, outcome)
            elif binding.handler.replaces:
                msg = (
                    f"{type(binding.handler).__qualname__} must return "
                    f"{binding.state_type.__qualname__}, got {type(outcome).__qualname__}"
                )
                raise TypeError(msg)
        except DispatchCancelledError as e:
            ctx.result.status = DispatchStatus.CANCELLED
            ctx.result.error = e
            return ctx.result
        except asyncio.CancelledError:
            if not ctx.cancellation.cancelled:
                raise
            ctx.result.status = DispatchStatus.CANCELLED
            ctx.result.error = DispatchCancelledError(f"{ctx.action_name} cancelled during handler")
            return ctx.result
        except Exception as e:
            logger.debug("ハンドラー失敗: %s", ctx.action_name, exc_info=True)
            ctx.result.status = DispatchStatus.FAILED
            ctx.result.error = HandlerError(ctx.action_name, e)
            return ctx.result

        ctx.mark_mutated(binding.state_type)
        return await next_()
