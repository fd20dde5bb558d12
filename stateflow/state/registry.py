"""状態レジストリ.

登録済み状態型ごとに1つのライブインスタンスを管理します：
- 状態インスタンスの遅延生成と1回限りの初期化
- 同時初回アクセスでも初期化は最大1回（進行中の Future を共有）
- 未登録の状態型は UnregisteredStateError
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from stateflow.core.exceptions import (
    CompositionError,
    StateNotReadyError,
    UnregisteredStateError,
)
from stateflow.core.registry import TypeRegistry
from stateflow.state.models import State, state_name


S = TypeVar("S", bound=State)


@dataclass(frozen=True)
class StateRegistration:
    """状態登録情報.

    Attributes:
        state_type: 状態型
        factory: インスタンス生成関数
        persistent: 永続化対象か
        key: 永続化キー
    """

    state_type: type[State]
    factory: Callable[[], State]
    persistent: bool = False
    key: str = ""

    @property
    def name(self) -> str:
        """状態名."""
        return state_name(self.state_type)

    def create(self) -> State:
        """ファクトリからゼロ値インスタンスを生成.

        Raises:
            CompositionError: ファクトリが別の型を返した場合
        """
        instance = self.factory()
        if not isinstance(instance, self.state_type):
            msg = (
                f"Factory for {self.state_type.__qualname__} returned "
                f"{type(instance).__qualname__}"
            )
            raise CompositionError(msg)
        return instance


class StateRegistry(TypeRegistry[StateRegistration]):
    """状態レジストリ.

    登録済み状態型ごとに1つのライブインスタンスを保持する。
    インスタンスは初回アクセス時に生成・初期化される。

    Example:
        >>> registry = StateRegistry()
        >>> registry.register(CounterState, persistent=True)
        >>> counter = await registry.get_async(CounterState)
    """

    def __init__(self, namespace: str = "stateflow") -> None:
        """初期化.

        Args:
            namespace: 永続化キーの名前空間
        """
        super().__init__()
        self._namespace = namespace
        self._instances: dict[type, State] = {}
        self._pending: dict[type, asyncio.Future[State]] = {}

    @property
    def namespace(self) -> str:
        """永続化キーの名前空間."""
        return self._namespace

    def register(  # type: ignore[override]
        self,
        state_type: type[State],
        factory: Callable[[], State] | None = None,
        persistent: bool = False,
        key: str | None = None,
    ) -> StateRegistration:
        """状態型を登録.

        Args:
            state_type: 状態型
            factory: インスタンス生成関数（省略時は型そのもの）
            persistent: 永続化対象か
            key: 永続化キー（省略時は名前空間付き状態名）

        Returns:
            登録情報

        Raises:
            TypeError: State のサブクラスでない場合
            CompositionError: インスタンス生成後に再登録しようとした場合
        """
        if not (isinstance(state_type, type) and issubclass(state_type, State)):
            msg = f"State type must subclass State, got {state_type!r}"
            raise TypeError(msg)

        with self._lock:
            if state_type in self._instances or state_type in self._pending:
                msg = f"State already live, cannot re-register: {state_type.__qualname__}"
                raise CompositionError(msg)
            registration = StateRegistration(
                state_type=state_type,
                factory=factory or state_type,
                persistent=persistent,
                key=key or f"{self._namespace}:{state_name(state_type)}",
            )
            super().register(state_type, registration)
        return registration

    def registration(self, state_type: type) -> StateRegistration:
        """登録情報を取得.

        Raises:
            UnregisteredStateError: 未登録の場合
        """
        registration = self.get_item(state_type)
        if registration is None:
            raise UnregisteredStateError(state_type)
        return registration

    def registrations(self) -> list[StateRegistration]:
        """全登録情報（登録順）."""
        return self.values()

    def get(self, state_type: type[S]) -> S:
        """状態を同期取得（初回は生成して初期化）.

        Raises:
            UnregisteredStateError: 未登録の場合
            StateNotReadyError: 非同期初期化が未完了の場合
        """
        registration = self.registration(state_type)
        with self._lock:
            instance = self._instances.get(state_type)
            if instance is not None:
                return instance  # type: ignore[return-value]
            if state_type in self._pending:
                raise StateNotReadyError(state_type)

            state = registration.create()
            outcome = state.initialize()
            if not inspect.isawaitable(outcome):
                self._instances[state_type] = state
                return state  # type: ignore[return-value]

            try:
                asyncio.get_running_loop()
            except RuntimeError:
                _discard(outcome)
                raise StateNotReadyError(
                    state_type, "asynchronous initialize requires get_async"
                ) from None
            self._schedule(state_type, state, outcome)
        raise StateNotReadyError(state_type, "asynchronous initialization scheduled")

    async def get_async(self, state_type: type[S]) -> S:
        """状態を非同期取得（進行中の初期化を待機）.

        Raises:
            UnregisteredStateError: 未登録の場合
        """
        registration = self.registration(state_type)
        instance = self._instances.get(state_type)
        if instance is not None:
            return instance  # type: ignore[return-value]

        pending = self._pending.get(state_type)
        if pending is None:
            state = registration.create()
            outcome = state.initialize()
            if not inspect.isawaitable(outcome):
                self._instances[state_type] = state
                return state  # type: ignore[return-value]
            pending = self._schedule(state_type, state, outcome)
        return await asyncio.shield(pending)  # type: ignore[return-value]

    def _schedule(
        self, state_type: type, state: State, outcome: Awaitable[Any]
    ) -> asyncio.Future[State]:
        """非同期初期化をタスクとして開始し、共有 Future として保持."""
        task = asyncio.ensure_future(self._complete(state_type, state, outcome))
        task.add_done_callback(self._report_failure)
        self._pending[state_type] = task
        return task

    async def _complete(self, state_type: type, state: State, outcome: Awaitable[Any]) -> State:
        try:
            await outcome
        finally:
            self._pending.pop(state_type, None)
        self._instances[state_type] = state
        self._logger.debug("Initialized: %s", state_type.__qualname__)
        return state

    def _report_failure(self, task: asyncio.Future[State]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error("State initialization failed: %s", exc)

    def adopt(self, state_type: type[S], instance: S) -> None:
        """ハイドレーション済みインスタンスを初期化なしで設置.

        Raises:
            UnregisteredStateError: 未登録の場合
            TypeError: インスタンスの型が一致しない場合
        """
        self.registration(state_type)
        if not isinstance(instance, state_type):
            msg = f"Expected {state_type.__qualname__}, got {type(instance).__qualname__}"
            raise TypeError(msg)
        with self._lock:
            self._instances[state_type] = instance

    def replace(self, state_type: type[S], new_state: S) -> S:
        """状態を新しい値で置換（guid は引き継ぐ）.

        Raises:
            UnregisteredStateError: 未登録の場合
            TypeError: 新しい値の型が一致しない場合
        """
        self.registration(state_type)
        if not isinstance(new_state, state_type):
            msg = f"Replacement must be {state_type.__qualname__}, got {type(new_state).__qualname__}"
            raise TypeError(msg)
        with self._lock:
            current = self._instances.get(state_type)
            if current is not None:
                new_state.guid = current.guid
            self._instances[state_type] = new_state
        return new_state

    def peek(self, state_type: type[S]) -> S | None:
        """生成済みインスタンスを取得（生成しない）."""
        with self._lock:
            return self._instances.get(state_type)  # type: ignore[return-value]

    def is_ready(self, state_type: type) -> bool:
        """初期化済みか."""
        with self._lock:
            return state_type in self._instances

    def is_pending(self, state_type: type) -> bool:
        """非同期初期化が進行中か."""
        with self._lock:
            return state_type in self._pending

    def live_states(self) -> list[tuple[StateRegistration, State]]:
        """初期化済みの状態一覧（登録順）."""
        with self._lock:
            return [
                (registration, self._instances[registration.state_type])
                for registration in self._items.values()
                if registration.state_type in self._instances
            ]

    def clear(self) -> None:
        """全登録とインスタンスを破棄."""
        with self._lock:
            for pending in self._pending.values():
                pending.cancel()
            self._pending.clear()
            self._instances.clear()
            super().clear()


def _discard(outcome: Awaitable[Any]) -> None:
    close = getattr(outcome, "close", None)
    if close is not None:
        close()


__all__ = [
    "StateRegistration",
    "StateRegistry",
]
