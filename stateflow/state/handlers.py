"""ハンドラー・レシーバー定義.

アクションを処理する単位を定義します：
- ActionHandler: 対象状態をその場で変更（戻り値なし）
- ReplacingHandler: 新しい状態値を返し、古い値を原子的に置換
- Receptor: 任意のアクションに反応する二次ハンドラー（状態間の副作用）

ハンドラーはストアへの参照ではなく、スコープ付きの参照機能
（StoreContext）を受け取る。
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from stateflow.core.registry import TypeRegistry
from stateflow.core.types import CancellationToken
from stateflow.state.actions import Action
from stateflow.state.models import State


if TYPE_CHECKING:
    from stateflow.store.context import StoreContext


A = TypeVar("A", bound=Action)
S = TypeVar("S", bound=State)

HandlerFunction = Callable[[Any, Any], Any]
ReceptorFunction = Callable[[Any, Any], Any]


class BaseHandler(ABC, Generic[A, S]):
    """ハンドラー基底クラス.

    Attributes:
        replaces: 戻り値で状態を置換するか
        store: スコープ付き参照機能（構築時に注入）
    """

    replaces: ClassVar[bool] = False

    def __init__(self, store: StoreContext | None = None) -> None:
        """初期化.

        Args:
            store: スコープ付き参照機能
        """
        self.store = store

    @abstractmethod
    def handle(
        self,
        action: A,
        state: S,
        cancellation: CancellationToken,
    ) -> Any:
        """アクションを処理."""


class ActionHandler(BaseHandler[A, S]):
    """変更型ハンドラー.

    対象状態をその場で変更し、何も返さない。非同期でもよい。

    Example:
        >>> class IncrementHandler(ActionHandler[IncrementCount, CounterState]):
        ...     def handle(self, action, state, cancellation):
        ...         state.count += action.amount
    """

    @abstractmethod
    def handle(
        self,
        action: A,
        state: S,
        cancellation: CancellationToken,
    ) -> None | Awaitable[None]:
        """状態を変更."""


class ReplacingHandler(BaseHandler[A, S]):
    """置換型ハンドラー.

    新しい状態値を返し、ストアが古い値を原子的に置換する。
    """

    replaces = True

    @abstractmethod
    def handle(
        self,
        action: A,
        state: S,
        cancellation: CancellationToken,
    ) -> S | Awaitable[S]:
        """新しい状態値を生成."""


class FunctionHandler(BaseHandler[Any, Any]):
    """関数ハンドラー.

    ``fn(action, state)`` を呼び出す。State を返した場合は置換として扱う。
    """

    def __init__(self, fn: HandlerFunction, store: StoreContext | None = None) -> None:
        """初期化."""
        super().__init__(store)
        self._fn = fn

    @property
    def name(self) -> str:
        """関数名."""
        return getattr(self._fn, "__qualname__", repr(self._fn))

    def handle(self, action: Any, state: Any, cancellation: CancellationToken) -> Any:
        """関数を呼び出し."""
        return self._fn(action, state)


@dataclass(frozen=True)
class HandlerBinding:
    """アクション型とハンドラー・対象状態の結び付け.

    Attributes:
        action_type: アクション型
        handler: ハンドラー
        state_type: 対象状態型
    """

    action_type: type[Action]
    handler: BaseHandler[Any, Any]
    state_type: type[State]


class HandlerRegistry(TypeRegistry[HandlerBinding]):
    """アクション型 → ハンドラーの明示的レジストリ."""

    def bind(
        self,
        action_type: type[Action],
        handler: BaseHandler[Any, Any],
        state_type: type[State],
    ) -> HandlerBinding:
        """ハンドラーを登録.

        Raises:
            TypeError: アクション型が Action のサブクラスでない場合
        """
        if not (isinstance(action_type, type) and issubclass(action_type, Action)):
            msg = f"Action type must subclass Action, got {action_type!r}"
            raise TypeError(msg)
        binding = HandlerBinding(action_type=action_type, handler=handler, state_type=state_type)
        self.register(action_type, binding)
        return binding

    def resolve(self, action_type: type[Action]) -> HandlerBinding | None:
        """ハンドラーを解決（完全一致、次に基底クラス）."""
        for candidate in action_type.__mro__:
            binding = self.get_item(candidate)
            if binding is not None:
                return binding
        return None


class Receptor(ABC, Generic[S]):
    """レシーバー（二次ハンドラー）.

    一次ハンドラー完了後、受理した全アクションに対して呼ばれる。
    ``state_type`` の状態のみを変更でき、変更は通知時に集約される。

    Attributes:
        state_type: 変更対象の状態型
        action_types: 受理するアクション型（空の場合は全て）
    """

    state_type: ClassVar[type[State]]
    action_types: ClassVar[tuple[type[Action], ...]] = ()

    def __init__(self, store: StoreContext | None = None) -> None:
        """初期化."""
        self.store = store

    def accepts(self, action: Action) -> bool:
        """アクションを受理するか."""
        return not self.action_types or isinstance(action, self.action_types)

    @property
    def name(self) -> str:
        """レシーバー名."""
        return type(self).__qualname__

    @abstractmethod
    def receive(self, action: Action, state: S) -> Any:
        """アクションに反応（State を返した場合は置換）."""


class FunctionReceptor(Receptor[Any]):
    """関数レシーバー."""

    def __init__(
        self,
        fn: ReceptorFunction,
        state_type: type[State],
        action_types: Iterable[type[Action]] = (),
        store: StoreContext | None = None,
    ) -> None:
        """初期化.

        Args:
            fn: ``fn(action, state)`` 形式の関数
            state_type: 変更対象の状態型
            action_types: 受理するアクション型
            store: スコープ付き参照機能
        """
        super().__init__(store)
        self._fn = fn
        self._state_type = state_type
        self._action_types = tuple(action_types)

    @property
    def state_type(self) -> type[State]:  # type: ignore[override]
        """変更対象の状態型."""
        return self._state_type

    @property
    def action_types(self) -> tuple[type[Action], ...]:  # type: ignore[override]
        """受理するアクション型."""
        return self._action_types

    @property
    def name(self) -> str:
        """関数名."""
        return getattr(self._fn, "__qualname__", repr(self._fn))

    def receive(self, action: Action, state: Any) -> Any:
        """関数を呼び出し."""
        return self._fn(action, state)


async def resolve_outcome(outcome: Any) -> Any:
    """同期・非同期どちらの戻り値も解決."""
    if inspect.isawaitable(outcome):
        return await outcome
    return outcome


__all__ = [
    "ActionHandler",
    "BaseHandler",
    "FunctionHandler",
    "FunctionReceptor",
    "HandlerBinding",
    "HandlerRegistry",
    "Receptor",
    "ReplacingHandler",
    "resolve_outcome",
]
