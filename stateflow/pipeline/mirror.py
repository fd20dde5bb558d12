"""外部ミラービヘイビア.

初期化時にブリッジを probe し、有効な場合のみ各ディスパッチを
アクションと全状態のスナップショットとして送信する。
ブリッジのエラーは全て握りつぶし、DEBUG でのみ記録する。
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from stateflow.core.exceptions import MirrorError
from stateflow.core.types import DispatchResult
from stateflow.mirror.bridge import MirrorBridge, MirrorEvent
from stateflow.pipeline.base import Behavior, DispatchContext, NextStage


logger = logging.getLogger(__name__)


class MirrorBehavior(Behavior):
    """外部ミラービヘイビア."""

    name = "mirror"

    def __init__(
        self,
        bridge: MirrorBridge,
        snapshot: Callable[[], dict[str, Any]],
        timeout: float = 2.0,
        allowed: bool = True,
    ) -> None:
        """初期化.

        Args:
            bridge: ミラーブリッジ
            snapshot: ストア全体のシリアライズ可能な状態を返す関数
            timeout: 送信タイムアウト（秒）
            allowed: 設定上ミラーを許可するか
        """
        self._bridge = bridge
        self._snapshot = snapshot
        self._timeout = timeout
        self._allowed = allowed
        self._enabled = False

    @property
    def enabled(self) -> bool:
        """ブリッジが初期化時に有効と報告したか."""
        return self._enabled

    async def activate(self) -> bool:
        """ブリッジを probe し、有効なら init イベントを送信.

        Returns:
            ミラーが有効になったか
        """
        if not self._allowed:
            return False
        try:
            self._enabled = bool(await asyncio.wait_for(self._bridge.probe(), self._timeout))
        except Exception as e:
            logger.debug("%s", MirrorError(f"probe failed: {e}"))
            self._enabled = False
        if self._enabled:
            await self._send("init")
        logger.debug("ミラー: %s", "有効" if self._enabled else "無効")
        return self._enabled

    async def process(self, ctx: DispatchContext, next_: NextStage) -> DispatchResult:
        """アクションとスナップショットを送信."""
        if self._enabled:
            await self._send("action", ctx)
        return await next_()

    def _build_event(self, ctx: DispatchContext | None) -> MirrorEvent:
        if ctx is None:
            return MirrorEvent(kind="init", full_state=self._snapshot())
        return MirrorEvent(
            kind="action",
            action_name=ctx.action_name,
            payload=ctx.action.payload(),
            full_state=self._snapshot(),
        )

    async def _send(self, kind: str, ctx: DispatchContext | None = None) -> None:
        # スナップショットのシリアライズ失敗も送信失敗と同様に扱う
        try:
            event = self._build_event(ctx)
            await asyncio.wait_for(self._bridge.send(event), self._timeout)
        except Exception as e:
            logger.debug("%s", MirrorError(f"send failed ({kind}): {e}"))
