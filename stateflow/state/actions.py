# -*- coding: utf-8 -*-
"""状態アクション定義.

状態変更を表現するアクションを定義。

設計原則:
- 不変性: アクションは生成後に変更できない
- 振る舞いを持たない: 純粋なデータとして1つのハンドラーに消費される
- 型タグ: アクションのクラス自体が種別を表す

使用例:
    >>> from stateflow.state.actions import Action
    >>>
    >>> class IncrementCount(Action):
    ...     amount: int = 1
    >>>
    >>> action = IncrementCount(amount=5)
    >>> action.action_name()
    'IncrementCount'
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, PrivateAttr


class Action(BaseModel):
    """状態変更アクション基底クラス.

    サブクラスのフィールドがペイロードになる。
    対象の状態型は ``Store.register_handler`` で明示的に結び付ける。
    """

    model_config = ConfigDict(frozen=True)

    _action_id: str = PrivateAttr(default_factory=lambda: f"action-{uuid.uuid4().hex[:8]}")
    _timestamp: datetime = PrivateAttr(default_factory=datetime.now)

    @classmethod
    def action_name(cls) -> str:
        """アクション名（型タグ）."""
        return cls.__qualname__

    @property
    def action_id(self) -> str:
        """アクションID."""
        return self._action_id

    @property
    def timestamp(self) -> datetime:
        """生成日時."""
        return self._timestamp

    def payload(self) -> dict[str, Any]:
        """ペイロード（JSON 互換）."""
        return self.model_dump(mode="json")

    def to_dict(self) -> dict[str, Any]:
        """辞書に変換."""
        return {
            "id": self.action_id,
            "type": self.action_name(),
            "payload": self.payload(),
            "timestamp": self.timestamp.isoformat(),
        }


__all__ = ["Action"]
