"""永続化ビヘイビア.

変更された永続化対象の状態をエンベロープとしてプロバイダーに書き込む。
書き込み失敗は結果の警告として記録し（WARNING 出力はログビヘイビアが行う）、
ディスパッチは成功のまま。
"""

from __future__ import annotations

import logging

from stateflow.core.exceptions import PersistenceWriteError
from stateflow.core.types import DispatchResult
from stateflow.pipeline.base import Behavior, DispatchContext, NextStage
from stateflow.state.models import PersistedEnvelope, State
from stateflow.state.registry import StateRegistry
from stateflow.storage.backend import PersistenceProvider


logger = logging.getLogger(__name__)


class PersistenceBehavior(Behavior):
    """永続化ビヘイビア."""

    name = "persistence"

    def __init__(self, registry: StateRegistry, provider: PersistenceProvider) -> None:
        """初期化.

        Args:
            registry: 状態レジストリ
            provider: 永続化プロバイダー
        """
        self._registry = registry
        self._provider = provider

    async def process(self, ctx: DispatchContext, next_: NextStage) -> DispatchResult:
        """変更済みの永続化対象を書き込み."""
        assert ctx.result is not None
        for state_type in list(ctx.mutated):
            registration = self._registry.registration(state_type)
            if not registration.persistent:
                continue
            state = self._registry.peek(state_type)
            if state is None:
                continue
            error = await self._write(registration.key, state)
            if error is not None:
                logger.debug("書き込み失敗: %s", error)
                ctx.result.warnings.append(error)
        return await next_()

    async def _write(self, key: str, state: State) -> PersistenceWriteError | None:
        try:
            data = PersistedEnvelope.from_state(key, state).to_bytes()
            written = await self._provider.set(key, data)
        except Exception as e:
            return PersistenceWriteError(key, e)
        if written is False:
            return PersistenceWriteError(key, "provider rejected write")
        logger.debug("永続化: %s (%d bytes)", key, len(data))
        return None
