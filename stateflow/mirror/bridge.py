"""外部ミラーブリッジ協議.

ディスパッチされたアクションとストア全体のスナップショットを、
外部のデバッグツールへ転送するための抽象トランスポート。
ミラーは診断専用で、失敗はストア側で握りつぶされる。
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


class MirrorEvent(BaseModel):
    """ミラーイベント.

    Attributes:
        kind: "init"（初期化時）または "action"（ディスパッチ時）
        action_name: アクション名
        payload: アクションのペイロード
        full_state: ストア全体のシリアライズ可能なスナップショット
    """

    kind: Literal["init", "action"] = Field(..., description="イベント種別")
    action_name: str | None = Field(default=None, description="アクション名")
    payload: dict[str, Any] | None = Field(default=None, description="ペイロード")
    full_state: dict[str, Any] = Field(default_factory=dict, description="全状態")


@runtime_checkable
class MirrorBridge(Protocol):
    """ミラーブリッジプロトコル.

    Implementations:
    - NullMirrorBridge: 何もしない（デフォルト）
    - MemoryMirrorBridge: イベントを記録（開発/テスト用）
    - HttpMirrorBridge: HTTP でデバッグツールへ送信
    """

    async def probe(self) -> bool:
        """ブリッジが利用可能か確認."""
        ...

    async def send(self, event: MirrorEvent) -> bool:
        """イベントを送信."""
        ...


class NullMirrorBridge:
    """何もしないミラーブリッジ（デフォルト）."""

    async def probe(self) -> bool:
        """常に利用不可."""
        return False

    async def send(self, event: MirrorEvent) -> bool:
        """何もしない."""
        return False


class MemoryMirrorBridge:
    """イベントをメモリに記録するミラーブリッジ.

    Example:
        >>> bridge = MemoryMirrorBridge()
        >>> store = Store(mirror=bridge, mirror_enabled=True)
        >>> await store.initialize_async()
        >>> bridge.events[0].kind
        'init'
    """

    def __init__(self, enabled: bool = True, max_events: int = 1000) -> None:
        """初期化.

        Args:
            enabled: probe の戻り値
            max_events: 保持する最大イベント数
        """
        self.enabled = enabled
        self.max_events = max_events
        self.events: list[MirrorEvent] = []

    async def probe(self) -> bool:
        """利用可能か."""
        return self.enabled

    async def send(self, event: MirrorEvent) -> bool:
        """イベントを記録."""
        self.events.append(event)
        if len(self.events) > self.max_events:
            self.events.pop(0)
        return True

    def action_names(self) -> list[str]:
        """記録したアクション名一覧."""
        return [e.action_name for e in self.events if e.kind == "action" and e.action_name]


__all__ = [
    "MemoryMirrorBridge",
    "MirrorBridge",
    "MirrorEvent",
    "NullMirrorBridge",
]
