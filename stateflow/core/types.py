"""ディスパッチ結果とキャンセル制御の型定義."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from stateflow.core.exceptions import DispatchCancelledError, DispatchError


class DispatchStatus(str, Enum):
    """ディスパッチ結果ステータス."""

    SUCCEEDED = "succeeded"
    REJECTED = "rejected"  # バリデーション拒否
    FAILED = "failed"  # ハンドラー失敗
    CANCELLED = "cancelled"  # ハンドラー開始前にキャンセル
    QUEUED = "queued"  # パイプライン内からの再入ディスパッチ


class CancellationToken:
    """ディスパッチ単位のキャンセルシグナル.

    ハンドラー開始前にキャンセルされた場合、パイプラインは状態変更前に
    短絡する。開始後のキャンセルはハンドラー自身が監視する責任を持つ。

    Example:
        >>> token = CancellationToken()
        >>> token.cancel()
        >>> token.cancelled
        True
    """

    def __init__(self) -> None:
        """初期化."""
        self._cancelled = False
        self._callbacks: list[Callable[[], Any]] = []

    @property
    def cancelled(self) -> bool:
        """キャンセル済みか."""
        return self._cancelled

    def cancel(self) -> None:
        """キャンセルを要求."""
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], Any]) -> None:
        """キャンセル時のコールバックを登録."""
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def raise_if_cancelled(self) -> None:
        """キャンセル済みなら例外を送出.

        Raises:
            DispatchCancelledError: キャンセル済みの場合
        """
        if self._cancelled:
            raise DispatchCancelledError("dispatch cancelled")


@dataclass
class DispatchResult:
    """ディスパッチ結果.

    Attributes:
        action_name: アクション名
        status: 結果ステータス
        error: 失敗したステージのエラー
        mutated: 変更された状態型（初回変更順）
        warnings: ディスパッチを失敗させない分離済みエラー
        duration_ms: パイプライン所要時間
        follow_up: QUEUED の場合、後続ディスパッチの完了Future
        id: 結果ID
    """

    action_name: str
    status: DispatchStatus = DispatchStatus.SUCCEEDED
    error: DispatchError | None = None
    mutated: list[type] = field(default_factory=list)
    warnings: list[DispatchError] = field(default_factory=list)
    duration_ms: float = 0.0
    follow_up: asyncio.Future[DispatchResult] | None = None
    id: str = field(default_factory=lambda: f"dispatch-{uuid.uuid4().hex[:8]}")

    @property
    def ok(self) -> bool:
        """成功（または正常にキューイング済み）か."""
        return self.status in (DispatchStatus.SUCCEEDED, DispatchStatus.QUEUED)

    @property
    def stage(self) -> str | None:
        """失敗したステージ名."""
        return self.error.stage if self.error is not None else None

    def raise_for_error(self) -> DispatchResult:
        """失敗結果なら格納されたエラーを送出.

        Returns:
            成功時は自身

        Raises:
            DispatchError: 失敗・拒否・キャンセルの場合
        """
        if self.error is not None and not self.ok:
            raise self.error
        return self

    def to_dict(self) -> dict[str, Any]:
        """辞書に変換."""
        return {
            "id": self.id,
            "action": self.action_name,
            "status": self.status.value,
            "stage": self.stage,
            "error": str(self.error) if self.error else None,
            "mutated": [tp.__qualname__ for tp in self.mutated],
            "warnings": [str(w) for w in self.warnings],
            "duration_ms": round(self.duration_ms, 3),
        }


__all__ = [
    "CancellationToken",
    "DispatchResult",
    "DispatchStatus",
]
