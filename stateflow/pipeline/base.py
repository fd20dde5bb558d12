# -*- coding: utf-8 -*-
"""ビヘイビアパイプライン基盤.

各ディスパッチを包む順序固定のビヘイビアチェーン（Chain of Responsibility）。

設計原則:
- 各ステージは ``process(ctx, next_)`` を実装し、``next_()`` で残りのチェーンを実行
- ステージは短絡（バリデーション拒否等）やラップ（ログの計時等）が可能
- ステージ順はパイプライン構築時に固定され、全アクションで同一

使用例:
    >>> class AuditBehavior(Behavior):
    ...     name = "audit"
    ...
    ...     async def process(self, ctx, next_):
    ...         result = await next_()
    ...         audit_log.append(ctx.action_name)
    ...         return result
    >>>
    >>> store.add_behavior(AuditBehavior(), before="persistence")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar

from stateflow.core.exceptions import CompositionError
from stateflow.core.types import CancellationToken, DispatchResult
from stateflow.state.actions import Action
from stateflow.state.handlers import HandlerBinding


NextStage = Callable[[], Awaitable[DispatchResult]]


@dataclass
class DispatchContext:
    """ディスパッチ単位のパイプラインコンテキスト.

    Attributes:
        action: ディスパッチされたアクション
        binding: 一次ハンドラーの結び付け
        cancellation: キャンセルシグナル
        result: 構築中のディスパッチ結果
        extras: 外部ビヘイビア用の自由領域
    """

    action: Action
    binding: HandlerBinding
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    result: DispatchResult | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """結果を初期化."""
        if self.result is None:
            self.result = DispatchResult(action_name=self.action_name)

    @property
    def action_name(self) -> str:
        """アクション名."""
        return self.action.action_name()

    @property
    def mutated(self) -> list[type]:
        """変更された状態型（初回変更順）."""
        assert self.result is not None
        return self.result.mutated

    def mark_mutated(self, state_type: type) -> None:
        """状態型を変更済みとして記録（重複は集約）."""
        if state_type not in self.mutated:
            self.mutated.append(state_type)


class Behavior(ABC):
    """パイプラインビヘイビア基底クラス.

    Attributes:
        name: ステージ名（パイプライン内で一意）
    """

    name: ClassVar[str] = "behavior"

    @abstractmethod
    async def process(self, ctx: DispatchContext, next_: NextStage) -> DispatchResult:
        """ステージを処理.

        Args:
            ctx: ディスパッチコンテキスト
            next_: 残りのチェーンを実行する関数

        Returns:
            ディスパッチ結果
        """


class Pipeline:
    """構築済み（順序固定）のビヘイビアパイプライン."""

    def __init__(self, behaviors: Sequence[Behavior]) -> None:
        """初期化.

        Args:
            behaviors: 実行順のビヘイビア
        """
        self._behaviors: tuple[Behavior, ...] = tuple(behaviors)

    @property
    def names(self) -> list[str]:
        """ステージ名一覧（実行順）."""
        return [b.name for b in self._behaviors]

    def get(self, name: str) -> Behavior | None:
        """ステージ名からビヘイビアを取得."""
        for behavior in self._behaviors:
            if behavior.name == name:
                return behavior
        return None

    async def run(self, ctx: DispatchContext) -> DispatchResult:
        """チェーンを実行."""

        async def invoke(index: int) -> DispatchResult:
            if index >= len(self._behaviors):
                assert ctx.result is not None
                return ctx.result
            behavior = self._behaviors[index]
            return await behavior.process(ctx, lambda: invoke(index + 1))

        return await invoke(0)

    def __len__(self) -> int:
        """ステージ数."""
        return len(self._behaviors)


class PipelineBuilder:
    """パイプライン構築器.

    組込みステージの前後に外部ビヘイビアを挿入できる。
    ``build()`` 後の順序は固定。
    """

    def __init__(self, behaviors: Sequence[Behavior] = ()) -> None:
        """初期化."""
        self._behaviors: list[Behavior] = []
        for behavior in behaviors:
            self.add(behavior)

    @property
    def names(self) -> list[str]:
        """ステージ名一覧."""
        return [b.name for b in self._behaviors]

    def add(
        self,
        behavior: Behavior,
        before: str | None = None,
        after: str | None = None,
    ) -> PipelineBuilder:
        """ビヘイビアを追加.

        Args:
            behavior: 追加するビヘイビア
            before: このステージの直前に挿入
            after: このステージの直後に挿入

        Returns:
            自身（チェーン用）

        Raises:
            CompositionError: 名前の重複、不明なステージ、before/after の同時指定
        """
        if not isinstance(behavior, Behavior):
            msg = f"Behavior must subclass Behavior, got {type(behavior).__name__}"
            raise TypeError(msg)
        if behavior.name in self.names:
            msg = f"Duplicate behavior name: {behavior.name}"
            raise CompositionError(msg)
        if before is not None and after is not None:
            msg = "Specify either before or after, not both"
            raise CompositionError(msg)

        if before is None and after is None:
            self._behaviors.append(behavior)
        elif before is not None:
            self._behaviors.insert(self._index(before), behavior)
        else:
            assert after is not None
            self._behaviors.insert(self._index(after) + 1, behavior)
        return self

    def _index(self, name: str) -> int:
        names = self.names
        if name not in names:
            msg = f"Unknown pipeline stage: {name}"
            raise CompositionError(msg)
        return names.index(name)

    def build(self) -> Pipeline:
        """パイプラインを構築."""
        return Pipeline(self._behaviors)


__all__ = [
    "Behavior",
    "DispatchContext",
    "NextStage",
    "Pipeline",
    "PipelineBuilder",
]
