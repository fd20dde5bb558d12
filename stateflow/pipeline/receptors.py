"""レシーバービヘイビア.

一次ハンドラー成功後、受理する全レシーバーを登録順に実行する。
レシーバーの失敗はディスパッチを失敗させず、結果の警告として記録する
（WARNING 出力はログビヘイビアが行い、ここではトレースバックを DEBUG で残す）。
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from stateflow.core.exceptions import ReceptorError
from stateflow.core.types import DispatchResult
from stateflow.pipeline.base import Behavior, DispatchContext, NextStage
from stateflow.state.handlers import Receptor, resolve_outcome
from stateflow.state.models import State
from stateflow.state.registry import StateRegistry


logger = logging.getLogger(__name__)


class ReceptorBehavior(Behavior):
    """レシーバービヘイビア."""

    name = "receptors"

    def __init__(self, registry: StateRegistry, receptors: Sequence[Receptor]) -> None:
        """初期化.

        Args:
            registry: 状態レジストリ
            receptors: レシーバー一覧（ストアと共有、登録順）
        """
        self._registry = registry
        self._receptors = receptors

    async def process(self, ctx: DispatchContext, next_: NextStage) -> DispatchResult:
        """受理するレシーバーを実行."""
        assert ctx.result is not None
        for receptor in list(self._receptors):
            if not receptor.accepts(ctx.action):
                continue
            try:
                state = await self._registry.get_async(receptor.state_type)
                outcome = await resolve_outcome(receptor.receive(ctx.action, state))
                if isinstance(outcome, State):
                    self._registry.replace(receptor.state_type, outcome)
            except Exception as e:
                logger.debug(
                    "レシーバー失敗: %s (%s): %s",
                    receptor.name,
                    ctx.action_name,
                    e,
                    exc_info=True,
                )
                ctx.result.warnings.append(ReceptorError(receptor.name, e))
                continue
            ctx.mark_mutated(receptor.state_type)
        return await next_()
