"""状態モデル定義.

ストアが所有する状態コンテナと、永続化用のエンベロープを定義。

設計原則:
- 状態型ごとにストア内でただ1つのインスタンス
- インスタンスID（guid）は永続化の往復で保持
- 変更はパイプライン経由のハンドラー内でのみ行う

使用例:
    >>> from stateflow.state.models import State
    >>>
    >>> class CounterState(State):
    ...     count: int = 0
    ...
    ...     def initialize(self) -> None:
    ...         self.count = 1
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Awaitable
from datetime import datetime, timezone
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field


S = TypeVar("S", bound="State")

ENVELOPE_VERSION = 1


def state_name(state_type: type) -> str:
    """状態型の安定した名前を取得."""
    return f"{state_type.__module__}.{state_type.__qualname__}"


class State(BaseModel):
    """状態コンテナ基底クラス.

    アプリケーションデータを保持する型付きコンテナ。
    サブクラスでフィールドを定義し、必要に応じて ``initialize`` を上書きする。
    ``initialize`` は同期・非同期どちらでもよい。

    Attributes:
        guid: インスタンスID（永続化で保持される）
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    guid: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="インスタンスID",
    )

    def initialize(self) -> None | Awaitable[None]:
        """初回利用前に1度だけ呼ばれる初期化フック.

        永続化スナップショットから復元された場合は呼ばれない。
        """
        return None

    @classmethod
    def state_name(cls) -> str:
        """状態名（モジュール修飾名）."""
        return state_name(cls)

    def fields(self) -> dict[str, Any]:
        """guid を除いたシリアライズ可能なフィールド."""
        return self.model_dump(mode="json", exclude={"guid"})


class PersistedEnvelope(BaseModel):
    """永続化エンベロープ.

    状態インスタンスのシリアライズ済みスナップショット。
    永続状態が変更されるたびに上書きされ、ハイドレーション時に読み戻される。

    Attributes:
        key: 永続化キー
        state_type: 状態名
        guid: インスタンスID
        fields: フィールド値
        saved_at: 保存日時
        version: エンベロープ形式バージョン
    """

    key: str = Field(..., description="永続化キー")
    state_type: str = Field(..., description="状態名")
    guid: str = Field(..., description="インスタンスID")
    fields: dict[str, Any] = Field(default_factory=dict, description="フィールド値")
    saved_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="保存日時",
    )
    version: int = Field(default=ENVELOPE_VERSION, description="形式バージョン")

    @classmethod
    def from_state(cls, key: str, state: State) -> PersistedEnvelope:
        """状態からエンベロープを作成."""
        return cls(
            key=key,
            state_type=state_name(type(state)),
            guid=state.guid,
            fields=state.fields(),
        )

    def to_bytes(self) -> bytes:
        """JSON バイト列に変換."""
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> PersistedEnvelope:
        """JSON バイト列から復元.

        Raises:
            ValueError: JSON またはスキーマが不正な場合
        """
        try:
            raw = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as ex:
            raise ValueError("Envelope is not valid JSON") from ex
        return cls.model_validate(raw)

    def restore(self, state_type: type[S]) -> S:
        """エンベロープから状態を再構築（guid を保持）."""
        return state_type.model_validate({**self.fields, "guid": self.guid})


__all__ = [
    "ENVELOPE_VERSION",
    "PersistedEnvelope",
    "State",
    "state_name",
]
